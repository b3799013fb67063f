from __future__ import annotations

import io
from typing import Callable, Sequence

import pytest
from PIL import Image

try:
    import fitz
except ImportError:
    import pymupdf as fitz


def encode_image(img: Image.Image, fmt: str) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return encode_image(Image.new("RGB", (40, 30), (200, 30, 30)), "JPEG")


@pytest.fixture()
def png_bytes() -> bytes:
    return encode_image(Image.new("RGB", (30, 40), (30, 120, 200)), "PNG")


@pytest.fixture()
def transparent_png() -> bytes:
    """Fully transparent blue square."""
    return encode_image(Image.new("RGBA", (16, 16), (0, 0, 255, 0)), "PNG")


@pytest.fixture()
def image_factory() -> Callable[[str, tuple], bytes]:
    def _create(fmt: str = "PNG", size: tuple = (20, 20), color=(10, 200, 10)) -> bytes:
        mode = "RGBA" if len(color) == 4 else "RGB"
        return encode_image(Image.new(mode, size, color), fmt)

    return _create


@pytest.fixture()
def pdf_factory() -> Callable[..., bytes]:
    """PDF bytes with one 200x300 pt page per text entry."""

    def _create(texts: Sequence[str] = ("Page one",)) -> bytes:
        doc = fitz.open()
        for text in texts:
            page = doc.new_page(width=200, height=300)
            page.insert_text((20, 40), text)
        data = doc.tobytes()
        doc.close()
        return data

    return _create
