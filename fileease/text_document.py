"""
text_document.py - PDF text export to a Word-importable document.

Produces the legacy HTML container Word opens as a .doc file. Layout,
fonts and images are not carried over; this is a plain-text fallback.
"""

import html
import logging
from typing import List

try:
    import fitz  # PyMuPDF
except ImportError:
    import pymupdf as fitz

from .errors import ConversionError, ExtractError
from .models import Artifact
from .rasterize import open_document
from .utils import strip_extension

logger = logging.getLogger(__name__)

DOCUMENT_MIME_TYPE = "application/msword"
DOCUMENT_EXTENSION = ".doc"

DOCUMENT_TEMPLATE = """<html xmlns:o="urn:schemas-microsoft-com:office:office"
      xmlns:w="urn:schemas-microsoft-com:office:word"
      xmlns="http://www.w3.org/TR/REC-html40">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
  body {{ font-family: Arial, sans-serif; font-size: 12pt; }}
  p {{ margin: 0 0 12pt; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""


def page_text(page) -> str:
    """Join the page's text spans with single spaces, in reading order."""
    text_dict = page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)

    fragments: List[str] = []
    for block in text_dict.get("blocks", []):
        if block.get("type") != 0:  # Skip image blocks
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                fragments.append(span.get("text", ""))
    return " ".join(fragments)


def extract_text(pdf_bytes: bytes) -> str:
    """All pages in order, each followed by a blank line."""
    parts: List[str] = []
    with open_document(pdf_bytes) as doc:
        for page in doc:
            parts.append(page_text(page) + "\n\n")
        logger.debug(f"Extracted text from {doc.page_count} page(s)")
    return "".join(parts)


def build_text_document(text: str, title: str) -> bytes:
    """One <div> per line of text, HTML-escaped."""
    body = "\n".join(f"<div>{html.escape(line)}</div>" for line in text.split("\n"))
    document = DOCUMENT_TEMPLATE.format(title=html.escape(title), body=body)
    return document.encode("utf-8")


def pdf_to_text_document(pdf_bytes: bytes, source_name: str) -> Artifact:
    """
    Convert a PDF to a minimal word-processor document.

    Raises:
        ExtractError: any failure, chained to the underlying cause
    """
    try:
        text = extract_text(pdf_bytes)
        data = build_text_document(text, strip_extension(source_name, ".pdf"))
    except (ConversionError, RuntimeError, ValueError) as e:
        raise ExtractError(f"Failed to convert PDF to Word: {e}") from e

    logger.info(f"Text document for {source_name}: {len(text):,} chars, {len(data):,} bytes")
    return Artifact(data=data, mime_type=DOCUMENT_MIME_TYPE, extension=DOCUMENT_EXTENSION)
