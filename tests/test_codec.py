from __future__ import annotations

import io
from itertools import product

import numpy as np
import pytest
from PIL import Image

from fileease import codec
from fileease.errors import DecodeError
from fileease.models import RasterFormat


@pytest.mark.parametrize("source,target", list(product(["JPEG", "PNG"], list(RasterFormat))))
def test_convert_supported_pairs(source: str, target: RasterFormat, image_factory) -> None:
    data = image_factory(source)
    out = codec.convert(data, target, 0.9)
    with Image.open(io.BytesIO(out)) as img:
        assert img.format == target.pil_format
        assert img.size == (20, 20)


def test_transparent_png_to_jpeg_is_white(transparent_png: bytes) -> None:
    out = codec.convert(transparent_png, RasterFormat.JPEG, 0.9)
    with Image.open(io.BytesIO(out)) as img:
        assert img.mode == "RGB"
        pixels = np.asarray(img)
    assert pixels.min() >= 250


def test_half_transparent_pixels_blend_with_white() -> None:
    pixels = np.zeros((4, 4, 4), dtype=np.uint8)
    pixels[:, :] = (255, 0, 0, 128)
    flat = codec.flatten_onto_white(pixels)
    assert flat.shape == (4, 4, 3)
    assert tuple(flat[0, 0]) == (255, 127, 127)


def test_flatten_leaves_opaque_pixels_alone() -> None:
    pixels = np.full((2, 2, 3), 17, dtype=np.uint8)
    assert codec.flatten_onto_white(pixels) is pixels


def test_png_output_keeps_alpha(transparent_png: bytes) -> None:
    out = codec.convert(transparent_png, RasterFormat.PNG, 0.5)
    with Image.open(io.BytesIO(out)) as img:
        assert img.mode == "RGBA"
        assert img.getpixel((0, 0))[3] == 0


def test_decode_reports_alpha_only_when_present(png_bytes: bytes, transparent_png: bytes) -> None:
    assert codec.decode(png_bytes).shape == (40, 30, 3)
    assert codec.decode(transparent_png).shape == (16, 16, 4)


def test_jpeg_quality_changes_size() -> None:
    rng = np.random.default_rng(0)
    noise = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
    low = codec.encode(noise, RasterFormat.JPEG, 0.1)
    high = codec.encode(noise, RasterFormat.JPEG, 1.0)
    assert len(low) < len(high)


def test_png_quality_is_accepted_but_ignored() -> None:
    pixels = np.full((8, 8, 3), 90, dtype=np.uint8)
    assert codec.encode(pixels, RasterFormat.PNG, 0.1) == codec.encode(pixels, RasterFormat.PNG, 1.0)


@pytest.mark.parametrize("data", [b"", b"definitely not an image"])
def test_decode_rejects_garbage(data: bytes) -> None:
    with pytest.raises(DecodeError):
        codec.decode(data)


def test_optimize_preserves_format(jpeg_bytes: bytes, png_bytes: bytes) -> None:
    for data, fmt in ((jpeg_bytes, RasterFormat.JPEG), (png_bytes, RasterFormat.PNG)):
        out = codec.optimize(data, fmt, 0.5)
        with Image.open(io.BytesIO(out)) as img:
            assert img.format == fmt.pil_format


@pytest.mark.parametrize("quality,expected", [(0.1, 10), (0.9, 90), (1.0, 100), (0.001, 1)])
def test_jpeg_quality_mapping(quality: float, expected: int) -> None:
    assert codec.jpeg_quality(quality) == expected
