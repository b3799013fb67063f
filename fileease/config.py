"""
config.py - Engine limits, defaults and the input allow-list.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Optional

from .errors import InputRejected

logger = logging.getLogger(__name__)

# Input contract
MAX_INPUT_BYTES = 50 * 1024 * 1024  # 50 MB
ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "application/pdf")

# Directive defaults
DEFAULT_QUALITY = 0.9
MIN_QUALITY = 0.1
MAX_QUALITY = 1.0
DEFAULT_MARGIN_MM = 10
MAX_MARGIN_MM = 50

# Page sizes in millimetres (portrait)
PAGE_SIZES_MM = {
    "a4": (210.0, 297.0),
    "letter": (215.9, 279.4),
}

# Image-to-PDF composition
CAPTION_BAND_MM = 10.0
CAPTION_BASELINE_MM = 7.0    # Below the top margin
CAPTION_FONT_SIZE = 12
CAPTION_GRAY = (40, 40, 40)
PDF_EMBED_QUALITY = 0.95     # JPEG quality for images placed in a PDF

# PDF rasterization
PDF_RENDER_SCALE = 2.0       # 2x the 72 DPI default, avoids blurry pages

# Previews
PREVIEW_SCALE = 1.0
PREVIEW_QUALITY = 0.7
PREVIEW_MAX_EDGE = 1024      # Pixels, long edge

_EXTENSION_MIME = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
}


def guess_mime_type(path: Path) -> Optional[str]:
    """Map a file name to one of the supported MIME types."""
    mime = _EXTENSION_MIME.get(Path(path).suffix.lower())
    if mime is None:
        mime, _ = mimetypes.guess_type(str(path))
    return mime


def check_input(name: str, mime_type: Optional[str], size: int) -> None:
    """
    Reject inputs outside the allow-list or above the size ceiling.

    Raises:
        InputRejected: with a message naming the offending file
    """
    if mime_type not in ALLOWED_MIME_TYPES:
        raise InputRejected(
            f"{name}: unsupported type {mime_type or 'unknown'} "
            f"(expected JPEG, PNG or PDF)"
        )
    if size > MAX_INPUT_BYTES:
        raise InputRejected(
            f"{name}: {size:,} bytes exceeds the {MAX_INPUT_BYTES // (1024 * 1024)} MB limit"
        )
    logger.debug(f"Accepted {name} ({mime_type}, {size:,} bytes)")
