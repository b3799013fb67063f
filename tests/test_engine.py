from __future__ import annotations

import asyncio
import io
import threading
import time
from types import SimpleNamespace

import pytest
from PIL import Image

from fileease import engine as engine_module
from fileease import rasterize
from fileease.engine import ConversionEngine, output_name
from fileease.errors import DecodeError, ResourceUnavailable, UnsupportedOperation
from fileease.models import Artifact, ConversionDirective, ConversionKind, PdfLayout, RasterFormat, WorkItem
from fileease.surface import RenderingSurface


def test_every_kind_has_a_handler() -> None:
    assert set(engine_module._HANDLERS) == set(ConversionKind)


def test_initialize_is_idempotent() -> None:
    engine = ConversionEngine()
    engine.initialize()
    engine.initialize()
    assert rasterize.is_initialized()


def test_execute_raster_to_raster(jpeg_bytes: bytes) -> None:
    item = WorkItem.create(jpeg_bytes, "photo.jpg", "image/jpeg")
    directive = ConversionDirective(kind=ConversionKind.RASTER_TO_RASTER, target_format=RasterFormat.PNG)
    artifact = asyncio.run(ConversionEngine().execute(item, directive))
    assert artifact.mime_type == "image/png"
    with Image.open(io.BytesIO(artifact.data)) as img:
        assert img.format == "PNG"


def test_execute_image_to_pdf(png_bytes: bytes) -> None:
    item = WorkItem.create(png_bytes, "scan.png", "image/png")
    directive = ConversionDirective(kind=ConversionKind.RASTER_TO_PDF)
    artifact = asyncio.run(ConversionEngine().execute(item, directive))
    assert artifact.mime_type == "application/pdf"
    assert artifact.data.startswith(b"%PDF")


def test_execute_optimize_rejects_pdf_input(pdf_factory) -> None:
    item = WorkItem.create(pdf_factory(), "doc.pdf", "application/pdf")
    directive = ConversionDirective(kind=ConversionKind.OPTIMIZE_RASTER, quality=0.5)
    with pytest.raises(UnsupportedOperation):
        asyncio.run(ConversionEngine().execute(item, directive))


def test_execute_unknown_kind() -> None:
    item = WorkItem.create(b"", "x", "image/png")
    with pytest.raises(UnsupportedOperation):
        asyncio.run(ConversionEngine().execute(item, SimpleNamespace(kind="gif-to-bmp")))


def test_merge_names_the_bad_image(png_bytes: bytes) -> None:
    images = [("good.png", png_bytes, "image/png"), ("bad.png", b"junk", "image/png")]
    with pytest.raises(DecodeError, match="bad.png"):
        asyncio.run(ConversionEngine().merge_images_to_pdf(images, PdfLayout()))


def test_thumbnail_never_raises() -> None:
    assert asyncio.run(ConversionEngine().thumbnail(b"junk", "application/pdf")) is None


def test_surface_runs_one_step_at_a_time() -> None:
    active = 0
    peak = 0
    guard = threading.Lock()

    def step() -> None:
        nonlocal active, peak
        with guard:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with guard:
            active -= 1

    async def scenario() -> RenderingSurface:
        surface = RenderingSurface()
        await asyncio.gather(*(surface.run(step) for _ in range(4)))
        return surface

    surface = asyncio.run(scenario())
    assert peak == 1
    assert surface.steps == 4
    assert not surface.busy


@pytest.mark.parametrize(
    "kind,target,name,artifact,expected",
    [
        (ConversionKind.RASTER_TO_RASTER, RasterFormat.PNG, "a.JPEG", Artifact(b"", "image/png", ".png"), "a.png"),
        (ConversionKind.RASTER_TO_RASTER, RasterFormat.JPEG, "b.png", Artifact(b"", "image/jpeg", ".jpg"), "b.jpg"),
        (ConversionKind.RASTER_TO_PDF, None, "c.jpg", Artifact(b"", "application/pdf", ".pdf"), "c.pdf"),
        (ConversionKind.OPTIMIZE_RASTER, None, "d.png", Artifact(b"", "image/png", ".png"), "d.png"),
        (ConversionKind.PDF_TO_RASTER, RasterFormat.PNG, "e.pdf", Artifact(b"", "image/png", ".png"), "e.png"),
        (ConversionKind.PDF_TO_RASTER, RasterFormat.JPEG, "f.pdf",
         Artifact(b"", "application/zip", ".zip", is_archive=True), "f-pages.zip"),
        (ConversionKind.PDF_TO_TEXT_DOCUMENT, None, "g.PDF", Artifact(b"", "application/msword", ".doc"), "g.doc"),
    ],
)
def test_output_name(kind, target, name, artifact, expected) -> None:
    directive = ConversionDirective(kind=kind, target_format=target)
    assert output_name(name, directive, artifact) == expected


def test_closed_surface_is_unavailable(jpeg_bytes: bytes) -> None:
    surface = RenderingSurface()
    surface.close()
    item = WorkItem.create(jpeg_bytes, "photo.jpg", "image/jpeg")
    directive = ConversionDirective(kind=ConversionKind.RASTER_TO_RASTER, target_format=RasterFormat.PNG)
    with pytest.raises(ResourceUnavailable):
        asyncio.run(ConversionEngine(surface).execute(item, directive))
    assert surface.steps == 0


def test_surface_reused_across_event_loops() -> None:
    surface = RenderingSurface()

    async def contended() -> None:
        await asyncio.gather(*(surface.run(time.sleep, 0.01) for _ in range(3)))

    asyncio.run(contended())
    asyncio.run(contended())
    assert surface.steps == 6
    assert not surface.busy
