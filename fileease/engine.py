"""
engine.py - Async conversion engine.

Every blocking step goes through the RenderingSurface, so the event loop
stays free and only one raster operation touches the surface at a time.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from . import codec, extract, pdf_writer, preview, rasterize, text_document
from .errors import DecodeError, ResourceUnavailable, UnsupportedOperation
from .models import (
    Artifact,
    ConversionDirective,
    ConversionKind,
    PdfLayout,
    RasterFormat,
    WorkItem,
)
from .surface import RenderingSurface
from .utils import replace_extension, strip_extension

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
RASTER_EXTENSIONS = (".jpg", ".jpeg", ".png")

Handler = Callable[["ConversionEngine", WorkItem, ConversionDirective], Awaitable[Artifact]]


class ConversionEngine:
    """
    Runs single conversions for the batch orchestrator.

    Args:
        surface: Shared surface, a new one by default
    """

    def __init__(self, surface: Optional[RenderingSurface] = None):
        self.surface = surface or RenderingSurface()

    def initialize(self):
        """Prepare the PDF backend. Safe to call any number of times."""
        rasterize.initialize()

    # Raster

    async def convert_raster(self, data: bytes, target: RasterFormat, quality: float) -> Artifact:
        pixels = await self.surface.run(codec.decode, data)
        encoded = await self.surface.run(codec.encode, pixels, target, quality)
        return Artifact(data=encoded, mime_type=target.mime_type, extension=target.extension)

    async def optimize_raster(self, data: bytes, source: RasterFormat, quality: float) -> Artifact:
        return await self.convert_raster(data, source, quality)

    # Image to PDF

    async def image_to_pdf(self, data: bytes) -> Artifact:
        pixels = await self.surface.run(codec.decode, data)
        pdf = await self.surface.run(pdf_writer.single_page_pdf, pixels)
        return Artifact(data=pdf, mime_type=PDF_MIME_TYPE, extension=".pdf")

    async def merge_images_to_pdf(
        self,
        images: Sequence[Tuple[str, bytes, str]],
        layout: PdfLayout
    ) -> Artifact:
        """
        Combine (name, bytes, mime type) images into one PDF.

        Every image is decoded before any page is written, so one bad input
        aborts the whole document.
        """
        decoded = []
        for name, data, mime_type in images:
            try:
                pixels = await self.surface.run(codec.decode, data)
            except DecodeError as e:
                raise DecodeError(f"Failed to load image: {name}") from e
            decoded.append((name, pixels, mime_type == RasterFormat.PNG.mime_type))

        pdf = await self.surface.run(pdf_writer.merged_pdf, decoded, layout)
        return Artifact(data=pdf, mime_type=PDF_MIME_TYPE, extension=".pdf")

    # PDF sources

    async def pdf_to_images(self, data: bytes, fmt: RasterFormat, quality: float) -> Artifact:
        doc = await self.surface.run(rasterize.open_document, data)
        try:
            pages: List[bytes] = []
            for page_num in range(doc.page_count):
                pages.append(
                    await self.surface.run(extract.encode_page, doc, page_num, fmt, quality)
                )
        finally:
            doc.close()
        return await self.surface.run(extract.package_pages, pages, fmt)

    async def pdf_to_text_document(self, data: bytes, source_name: str) -> Artifact:
        return await self.surface.run(text_document.pdf_to_text_document, data, source_name)

    async def thumbnail(self, data: bytes, mime_type: str) -> Optional[str]:
        """Preview data URL, None when unavailable. Never raises."""
        try:
            return await self.surface.run(preview.thumbnail, data, mime_type)
        except ResourceUnavailable as e:
            logger.debug(f"Preview skipped: {e}")
            return None

    # Dispatch

    async def execute(self, item: WorkItem, directive: ConversionDirective) -> Artifact:
        """
        Run one item through the operation selected by the directive.

        Raises:
            UnsupportedOperation: kind has no per-item handler
            ConversionError: the operation failed
        """
        handler = _HANDLERS.get(directive.kind)
        if handler is None:
            raise UnsupportedOperation(f"Unsupported conversion type: {directive.kind}")
        return await handler(self, item, directive)


async def _raster_to_raster(engine, item, directive):
    return await engine.convert_raster(item.input_buffer, directive.target_format, directive.quality)


async def _raster_to_pdf(engine, item, directive):
    return await engine.image_to_pdf(item.input_buffer)


async def _raster_to_pdf_merged(engine, item, directive):
    # A merge of one, for callers that dispatch merged directives per item
    return await engine.merge_images_to_pdf(
        [(item.input_name, item.input_buffer, item.input_type)], directive.layout
    )


async def _optimize_raster(engine, item, directive):
    try:
        source = RasterFormat.from_mime(item.input_type)
    except ValueError as e:
        raise UnsupportedOperation(f"Cannot optimize {item.input_type} input") from e
    return await engine.optimize_raster(item.input_buffer, source, directive.quality)


async def _pdf_to_raster(engine, item, directive):
    return await engine.pdf_to_images(item.input_buffer, directive.target_format, directive.quality)


async def _pdf_to_text_document(engine, item, directive):
    return await engine.pdf_to_text_document(item.input_buffer, item.input_name)


_HANDLERS: Dict[ConversionKind, Handler] = {
    ConversionKind.RASTER_TO_RASTER: _raster_to_raster,
    ConversionKind.RASTER_TO_PDF: _raster_to_pdf,
    ConversionKind.RASTER_TO_PDF_MERGED: _raster_to_pdf_merged,
    ConversionKind.OPTIMIZE_RASTER: _optimize_raster,
    ConversionKind.PDF_TO_RASTER: _pdf_to_raster,
    ConversionKind.PDF_TO_TEXT_DOCUMENT: _pdf_to_text_document,
}

_missing = set(ConversionKind) - set(_HANDLERS)
if _missing:
    raise ImportError(f"No engine handler for: {', '.join(sorted(k.value for k in _missing))}")


def output_name(input_name: str, directive: ConversionDirective, artifact: Artifact) -> str:
    """
    Result file name derived from the input name.

    Raster and PDF targets swap the source extension, optimize keeps the
    name, multi-page extractions become <stem>-pages.zip.
    """
    kind = directive.kind
    if kind is ConversionKind.OPTIMIZE_RASTER:
        return input_name
    if kind in (ConversionKind.RASTER_TO_RASTER, ConversionKind.RASTER_TO_PDF,
                ConversionKind.RASTER_TO_PDF_MERGED):
        return replace_extension(input_name, RASTER_EXTENSIONS, artifact.extension)
    if kind is ConversionKind.PDF_TO_RASTER and artifact.is_archive:
        return strip_extension(input_name, ".pdf") + "-pages" + artifact.extension
    return replace_extension(input_name, (".pdf",), artifact.extension)
