"""
models.py - Directives, work items and batch state.
"""

import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from . import config
from .utils import compression_ratio


class ConversionKind(str, Enum):
    RASTER_TO_RASTER = "raster-to-raster"
    RASTER_TO_PDF = "raster-to-pdf"
    RASTER_TO_PDF_MERGED = "raster-to-pdf-merged"
    OPTIMIZE_RASTER = "optimize-raster"
    PDF_TO_RASTER = "pdf-to-raster"
    PDF_TO_TEXT_DOCUMENT = "pdf-to-text-document"


class RasterFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return ".jpg" if self is RasterFormat.JPEG else ".png"

    @property
    def pil_format(self) -> str:
        return self.value.upper()

    @classmethod
    def from_mime(cls, mime_type: str) -> "RasterFormat":
        for fmt in cls:
            if fmt.mime_type == mime_type:
                return fmt
        raise ValueError(f"Not a raster MIME type: {mime_type}")


class PageSize(str, Enum):
    A4 = "a4"
    LETTER = "letter"


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class ItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PdfLayout:
    """Page setup for merged image-to-PDF documents."""
    page_size: PageSize = PageSize.A4
    orientation: Orientation = Orientation.PORTRAIT
    margin_mm: int = config.DEFAULT_MARGIN_MM

    def __post_init__(self):
        object.__setattr__(self, "page_size", PageSize(self.page_size))
        object.__setattr__(self, "orientation", Orientation(self.orientation))
        if isinstance(self.margin_mm, bool) or not isinstance(self.margin_mm, int):
            raise ValueError(f"margin_mm must be an integer, got {self.margin_mm!r}")
        if not 0 <= self.margin_mm <= config.MAX_MARGIN_MM:
            raise ValueError(
                f"margin_mm must be within 0-{config.MAX_MARGIN_MM}, got {self.margin_mm}"
            )

    @property
    def page_dimensions_mm(self) -> tuple:
        """(width, height) in millimetres with orientation applied."""
        width, height = config.PAGE_SIZES_MM[self.page_size.value]
        if self.orientation is Orientation.LANDSCAPE:
            return height, width
        return width, height


@dataclass(frozen=True)
class ConversionDirective:
    """
    What to do with every item of a batch.

    quality only affects lossy (JPEG) output. target_format is required for
    RASTER_TO_RASTER and PDF_TO_RASTER and ignored by the other kinds.
    """
    kind: ConversionKind
    quality: float = config.DEFAULT_QUALITY
    target_format: Optional[RasterFormat] = None
    layout: PdfLayout = field(default_factory=PdfLayout)

    def __post_init__(self):
        object.__setattr__(self, "kind", ConversionKind(self.kind))
        if self.target_format is not None:
            object.__setattr__(self, "target_format", RasterFormat(self.target_format))
        if not config.MIN_QUALITY <= float(self.quality) <= config.MAX_QUALITY:
            raise ValueError(
                f"quality must be within {config.MIN_QUALITY}-{config.MAX_QUALITY}, "
                f"got {self.quality}"
            )
        needs_target = (ConversionKind.RASTER_TO_RASTER, ConversionKind.PDF_TO_RASTER)
        if self.kind in needs_target and self.target_format is None:
            raise ValueError(f"{self.kind.value} requires a target_format")


@dataclass(frozen=True)
class Artifact:
    """Bytes produced by one engine operation."""
    data: bytes
    mime_type: str
    extension: str
    is_archive: bool = False

    @property
    def size(self) -> int:
        return len(self.data)


def _new_item_id(name: str) -> str:
    epoch_ms = int(time.time() * 1000)
    return f"{name}-{epoch_ms}-{os.urandom(4).hex()}"


@dataclass
class WorkItem:
    """One input file and its conversion state."""
    id: str
    input_buffer: bytes
    input_name: str
    input_type: str
    input_size: int
    status: ItemStatus = ItemStatus.PENDING
    progress: int = 0
    output_buffer: Optional[bytes] = None
    output_name: Optional[str] = None
    output_type: Optional[str] = None
    output_size: Optional[int] = None
    preview: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def create(cls, buffer: bytes, name: str, mime_type: str) -> "WorkItem":
        return cls(
            id=_new_item_id(name),
            input_buffer=buffer,
            input_name=name,
            input_type=mime_type,
            input_size=len(buffer),
        )

    @property
    def compression_ratio(self) -> Optional[int]:
        if self.output_size is None:
            return None
        return compression_ratio(self.input_size, self.output_size)

    def release(self):
        """Drop the output and preview buffers once the caller is done."""
        self.output_buffer = None
        self.preview = None


@dataclass
class BatchState:
    running: bool = False
    current_index: int = 0
    total_items: int = 0
    overall_progress: float = 0.0
