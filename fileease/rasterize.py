"""
rasterize.py - PDF page rendering using PyMuPDF.

Documents are opened from in-memory bytes, pages render straight to numpy.
Call initialize() once before use; repeated calls are no-ops.
"""

import logging
import threading

import numpy as np
try:
    import fitz  # pip install pymupdf
except ImportError:
    import pymupdf as fitz  # apt install python3-pymupdf

from .errors import DecodeError, ParseError

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_initialized = False


def initialize() -> None:
    """
    One-time PyMuPDF setup.

    MuPDF prints repair chatter for damaged files to stderr; errors are
    reported through exceptions instead.
    """
    global _initialized
    with _init_lock:
        if _initialized:
            return
        fitz.TOOLS.mupdf_display_errors(False)
        fitz.TOOLS.mupdf_display_warnings(False)
        _initialized = True
        logger.debug(f"PyMuPDF initialized ({fitz.VersionBind})")


def is_initialized() -> bool:
    return _initialized


def open_document(pdf_bytes: bytes) -> "fitz.Document":
    """
    Open a PDF from bytes.

    Raises:
        ParseError: not a PDF (including raster images), encrypted, damaged or empty
    """
    initialize()
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        is_pdf = doc.is_pdf
        encrypted = is_pdf and doc.needs_pass
        page_count = doc.page_count if is_pdf and not encrypted else 0
    except (RuntimeError, ValueError, TypeError) as e:
        raise ParseError(f"Invalid PDF: {e}") from e

    # PyMuPDF opens raster bytes as one-page image documents
    if not is_pdf:
        doc.close()
        raise ParseError("Invalid PDF: not a PDF document")

    if encrypted:
        doc.close()
        raise ParseError("Invalid PDF: document is password protected")
    if page_count == 0:
        doc.close()
        raise ParseError("Invalid PDF: document has no pages")
    return doc


def get_page_count(pdf_bytes: bytes) -> int:
    """Get total page count."""
    with open_document(pdf_bytes) as doc:
        return doc.page_count


def render_page(doc: "fitz.Document", page_num: int, scale: float = 2.0) -> np.ndarray:
    """
    Render a single page to an RGB array on a white background.

    Args:
        doc: Open document
        page_num: 0-indexed page number
        scale: Zoom factor over the 72 DPI default

    Returns:
        RGB numpy array (height, width, 3)

    Raises:
        DecodeError: the page could not be rendered
    """
    try:
        page = doc[page_num]
        matrix = fitz.Matrix(scale, scale)

        # Render to pixmap (in-memory)
        pixmap = page.get_pixmap(matrix=matrix, alpha=False, colorspace=fitz.csRGB)

        image = np.frombuffer(pixmap.samples, dtype=np.uint8).reshape(
            pixmap.height, pixmap.width, pixmap.n
        ).copy()  # Copy to own the memory
    except (RuntimeError, ValueError, IndexError) as e:
        raise DecodeError(f"Failed to render page {page_num + 1}: {e}") from e

    logger.debug(
        f"Rendered page {page_num + 1}: {pixmap.width}x{pixmap.height} @ {scale:g}x"
    )
    return image
