"""
codec.py - Raster decode/encode.

Supports:
- JPEG output, always opaque (alpha composited onto white first)
- PNG output, alpha preserved, quality accepted but unused
"""

import io
import logging

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError, EncodeError
from .models import RasterFormat

logger = logging.getLogger(__name__)


def jpeg_quality(quality: float) -> int:
    """Map a 0.1-1.0 quality factor to Pillow's 1-100 JPEG scale."""
    return max(1, min(100, int(round(quality * 100))))


def has_alpha(pixels: np.ndarray) -> bool:
    return pixels.ndim == 3 and pixels.shape[2] == 4


def decode(data: bytes) -> np.ndarray:
    """
    Decode image bytes to an RGB or RGBA uint8 array.

    EXIF orientation is applied so the pixels match what a viewer shows.
    RGBA is only returned when the source carries transparency.

    Raises:
        DecodeError: bytes are not a readable raster image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            transparent = "A" in img.getbands() or "transparency" in img.info
            pixels = np.asarray(img.convert("RGBA" if transparent else "RGB")).copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Failed to load image: {e}") from e

    logger.debug(f"Decoded image: {pixels.shape[1]}x{pixels.shape[0]}, alpha={has_alpha(pixels)}")
    return pixels


def flatten_onto_white(pixels: np.ndarray) -> np.ndarray:
    """Composite RGBA pixels onto an opaque white background."""
    if not has_alpha(pixels):
        return pixels

    rgb = pixels[:, :, :3].astype(np.float32)
    alpha = pixels[:, :, 3:4].astype(np.float32) / 255.0
    blended = rgb * alpha + 255.0 * (1.0 - alpha)
    return np.clip(np.rint(blended), 0, 255).astype(np.uint8)


def encode(pixels: np.ndarray, target_format: RasterFormat, quality: float) -> bytes:
    """
    Encode pixels as JPEG or PNG.

    Args:
        pixels: RGB or RGBA uint8 array
        target_format: Output format
        quality: 0.1-1.0, only used for JPEG

    Returns:
        Encoded image bytes

    Raises:
        EncodeError: the encoder produced no output
    """
    buffer = io.BytesIO()
    try:
        if target_format is RasterFormat.JPEG:
            img = Image.fromarray(flatten_onto_white(pixels))
            img.save(
                buffer,
                format="JPEG",
                quality=jpeg_quality(quality),
                optimize=True
            )
        else:
            img = Image.fromarray(pixels)
            img.save(buffer, format="PNG", optimize=True)
    except (OSError, ValueError, TypeError) as e:
        raise EncodeError(f"Conversion failed: {e}") from e

    data = buffer.getvalue()
    if not data:
        raise EncodeError("Conversion failed: encoder returned no data")

    logger.debug(
        f"Encoded {pixels.shape[1]}x{pixels.shape[0]} as {target_format.value}: "
        f"{len(data):,} bytes"
    )
    return data


def convert(data: bytes, target_format: RasterFormat, quality: float) -> bytes:
    """Decode then re-encode in the target format."""
    return encode(decode(data), target_format, quality)


def optimize(data: bytes, source_format: RasterFormat, quality: float) -> bytes:
    """Re-encode in the source format, typically at a lower quality."""
    return convert(data, source_format, quality)
