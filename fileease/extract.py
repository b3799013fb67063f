"""
extract.py - PDF to image conversion.

One image per page. Single-page documents return the image itself,
multi-page documents return a ZIP with page-1.<fmt>, page-2.<fmt>, ...
bundle_results() packs the outputs of a finished batch the same way.
"""

import io
import logging
import os
from typing import Dict, Iterable, List, Sequence, Tuple
from zipfile import ZIP_DEFLATED, ZipFile

from . import codec, config
from .errors import EncodeError
from .models import Artifact, ItemStatus, RasterFormat, WorkItem
from .rasterize import open_document, render_page

logger = logging.getLogger(__name__)

ARCHIVE_MIME_TYPE = "application/zip"
BUNDLE_NAME = "converted-files.zip"


def page_entry_name(page_num: int, fmt: RasterFormat) -> str:
    """Archive entry for a 0-indexed page."""
    return f"page-{page_num + 1}.{fmt.value}"


def encode_page(doc, page_num: int, fmt: RasterFormat, quality: float) -> bytes:
    """Render one page at the extraction scale and encode it."""
    pixels = render_page(doc, page_num, scale=config.PDF_RENDER_SCALE)
    return codec.encode(pixels, fmt, quality)


def write_zip(entries: Iterable[Tuple[str, bytes]]) -> bytes:
    """Deflated in-memory ZIP of (entry name, data) pairs."""
    buffer = io.BytesIO()
    with ZipFile(buffer, "w", compression=ZIP_DEFLATED) as archive:
        for name, data in entries:
            archive.writestr(name, data)
    return buffer.getvalue()


def build_archive(pages: Sequence[bytes], fmt: RasterFormat) -> bytes:
    return write_zip(
        (page_entry_name(page_num, fmt), data) for page_num, data in enumerate(pages)
    )


def package_pages(pages: Sequence[bytes], fmt: RasterFormat) -> Artifact:
    """Return the lone page image, or all pages bundled in an archive."""
    if len(pages) == 1:
        return Artifact(data=pages[0], mime_type=fmt.mime_type, extension=fmt.extension)

    archive = build_archive(pages, fmt)
    logger.info(f"Bundled {len(pages)} pages into archive ({len(archive):,} bytes)")
    return Artifact(data=archive, mime_type=ARCHIVE_MIME_TYPE, extension=".zip", is_archive=True)


def pages_to_images(pdf_bytes: bytes, fmt: RasterFormat, quality: float) -> Artifact:
    """
    Convert every page of a PDF to an image.

    Raises:
        ParseError: not a well-formed PDF
        DecodeError: first page that fails to render, aborts the extraction
    """
    pages: List[bytes] = []
    with open_document(pdf_bytes) as doc:
        for page_num in range(doc.page_count):
            pages.append(encode_page(doc, page_num, fmt, quality))
    return package_pages(pages, fmt)


def bundle_results(items: Sequence[WorkItem]) -> Tuple[str, Artifact]:
    """
    Package the outputs of completed items for download.

    A single result is returned as-is under its own name. Several results
    go into converted-files.zip, one entry per output name (a later item
    wins on a duplicate name).

    Raises:
        EncodeError: no item has a completed output
    """
    done = [
        item for item in items
        if item.status is ItemStatus.COMPLETED and item.output_buffer is not None
    ]
    if not done:
        raise EncodeError("No completed files to bundle")

    if len(done) == 1:
        item = done[0]
        artifact = Artifact(
            data=item.output_buffer,
            mime_type=item.output_type,
            extension=os.path.splitext(item.output_name)[1],
            is_archive=item.output_type == ARCHIVE_MIME_TYPE,
        )
        return item.output_name, artifact

    entries: Dict[str, bytes] = {item.output_name: item.output_buffer for item in done}
    archive = write_zip(entries.items())
    logger.info(f"Bundled {len(entries)} result(s) into {BUNDLE_NAME} ({len(archive):,} bytes)")
    return BUNDLE_NAME, Artifact(
        data=archive, mime_type=ARCHIVE_MIME_TYPE, extension=".zip", is_archive=True
    )
