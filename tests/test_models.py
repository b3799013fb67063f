from __future__ import annotations

import pytest

from fileease.models import (
    ConversionDirective,
    ConversionKind,
    ItemStatus,
    Orientation,
    PageSize,
    PdfLayout,
    RasterFormat,
    WorkItem,
)


def test_directive_defaults() -> None:
    directive = ConversionDirective(kind=ConversionKind.RASTER_TO_PDF)
    assert directive.quality == 0.9
    assert directive.layout == PdfLayout(PageSize.A4, Orientation.PORTRAIT, 10)


def test_directive_accepts_plain_strings() -> None:
    directive = ConversionDirective(kind="pdf-to-raster", target_format="png")
    assert directive.kind is ConversionKind.PDF_TO_RASTER
    assert directive.target_format is RasterFormat.PNG


@pytest.mark.parametrize("quality", [0.0, 0.05, 1.01, 5])
def test_directive_rejects_quality_out_of_range(quality: float) -> None:
    with pytest.raises(ValueError):
        ConversionDirective(kind=ConversionKind.OPTIMIZE_RASTER, quality=quality)


@pytest.mark.parametrize("kind", [ConversionKind.RASTER_TO_RASTER, ConversionKind.PDF_TO_RASTER])
def test_directive_requires_target_format(kind: ConversionKind) -> None:
    with pytest.raises(ValueError):
        ConversionDirective(kind=kind)


def test_directive_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError):
        ConversionDirective(kind="gif-to-bmp")


@pytest.mark.parametrize("margin", [-1, 51, 2.5, True])
def test_layout_rejects_bad_margin(margin) -> None:
    with pytest.raises(ValueError):
        PdfLayout(margin_mm=margin)


def test_layout_dimensions() -> None:
    assert PdfLayout().page_dimensions_mm == (210.0, 297.0)
    assert PdfLayout(page_size="letter", orientation="landscape").page_dimensions_mm == (279.4, 215.9)


def test_raster_format_properties() -> None:
    assert RasterFormat.JPEG.extension == ".jpg"
    assert RasterFormat.JPEG.mime_type == "image/jpeg"
    assert RasterFormat.from_mime("image/png") is RasterFormat.PNG
    with pytest.raises(ValueError):
        RasterFormat.from_mime("application/pdf")


def test_work_item_create() -> None:
    first = WorkItem.create(b"abc", "a.png", "image/png")
    second = WorkItem.create(b"abc", "a.png", "image/png")
    assert first.id != second.id
    assert first.id.startswith("a.png-")
    assert first.status is ItemStatus.PENDING
    assert first.input_size == 3
    assert first.output_buffer is None
    assert first.compression_ratio is None


def test_work_item_release() -> None:
    item = WorkItem.create(b"x" * 100, "a.png", "image/png")
    item.output_buffer = b"y" * 25
    item.output_size = 25
    item.preview = "data:image/png;base64,"
    assert item.compression_ratio == 75
    item.release()
    assert item.output_buffer is None
    assert item.preview is None
