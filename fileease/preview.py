"""
preview.py - Inline thumbnails for selected files.

Previews are decorative: every failure returns None instead of raising.
"""

import base64
import logging
from typing import Optional

import cv2
import numpy as np

from . import codec, config
from .models import RasterFormat
from .rasterize import open_document, render_page

logger = logging.getLogger(__name__)


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def limit_size(image: np.ndarray, max_edge: int = config.PREVIEW_MAX_EDGE) -> np.ndarray:
    """Downsample so the long edge is at most max_edge pixels."""
    height, width = image.shape[:2]
    longest = max(height, width)
    if longest <= max_edge:
        return image

    scale = max_edge / longest
    new_width = max(1, int(width * scale))
    new_height = max(1, int(height * scale))
    return cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)


def pdf_thumbnail(pdf_bytes: bytes) -> bytes:
    """First page as a small JPEG."""
    with open_document(pdf_bytes) as doc:
        pixels = render_page(doc, 0, scale=config.PREVIEW_SCALE)
    return codec.encode(limit_size(pixels), RasterFormat.JPEG, config.PREVIEW_QUALITY)


def thumbnail(data: bytes, mime_type: str) -> Optional[str]:
    """
    Data URL preview for an image or the first page of a PDF.

    Images are returned as-is, PDFs are rendered. Returns None for other
    types and whenever rendering fails.
    """
    if mime_type.startswith("image/"):
        return to_data_url(data, mime_type)

    if mime_type != "application/pdf":
        return None

    try:
        jpeg = pdf_thumbnail(data)
    except Exception as e:
        logger.debug(f"PDF preview unavailable: {e}")
        return None
    return to_data_url(jpeg, RasterFormat.JPEG.mime_type)
