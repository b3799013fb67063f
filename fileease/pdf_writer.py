"""
pdf_writer.py - PDF assembly from decoded images.

Supports:
- JPEG images (DCTDecode)
- Lossless RGB images (FlateDecode) with an alpha soft mask
- File-name captions in built-in Helvetica

All layout math is done in millimetres with a top-left origin, then
converted to PDF points (bottom-left origin) when the page is written.
"""

import io
import logging
import zlib
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pikepdf
from pikepdf import Pdf, Stream, Dictionary, Name

from . import codec, config
from .errors import EncodeError
from .models import PdfLayout, RasterFormat

logger = logging.getLogger(__name__)

MM_TO_PT = 72.0 / 25.4

# Default page for single-image documents: A4 portrait
DEFAULT_PAGE_MM = config.PAGE_SIZES_MM["a4"]


@dataclass
class Placement:
    """Image rectangle on a page, millimetres from the top-left corner."""
    page_width: float
    page_height: float
    x: float
    y: float
    width: float
    height: float


@dataclass
class EmbeddedImage:
    """Image data ready for a PDF image XObject."""
    data: bytes
    width: int
    height: int
    is_jpeg: bool
    alpha: Optional[bytes] = None  # Flate-compressed soft mask

    @property
    def total_size(self) -> int:
        return len(self.data) + len(self.alpha or b"")


def fit_within(
    img_width: float,
    img_height: float,
    box_width: float,
    box_height: float
) -> Tuple[float, float]:
    """Largest (width, height) with the image's aspect ratio that fits the box."""
    img_ratio = img_width / img_height
    box_ratio = box_width / box_height
    if img_ratio > box_ratio:
        return box_width, box_width / img_ratio
    return box_height * img_ratio, box_height


def single_page_placement(img_width: int, img_height: int) -> Placement:
    """Fit the image on the default page, anchored at the top-left corner."""
    page_width, page_height = DEFAULT_PAGE_MM
    width, height = fit_within(img_width, img_height, page_width, page_height)
    return Placement(page_width, page_height, 0.0, 0.0, width, height)


def merged_page_placement(img_width: int, img_height: int, layout: PdfLayout) -> Placement:
    """
    Fit the image into the content box below the caption band.

    Content box = page - 2 x margin - caption band. The image is centered
    across the full page width and its top edge sits under the caption band.
    """
    page_width, page_height = layout.page_dimensions_mm
    margin = float(layout.margin_mm)
    content_width = page_width - 2 * margin
    content_height = page_height - 2 * margin - config.CAPTION_BAND_MM

    width, height = fit_within(img_width, img_height, content_width, content_height)
    x = (page_width - width) / 2
    y = margin + config.CAPTION_BAND_MM
    return Placement(page_width, page_height, x, y, width, height)


def prepare_image(pixels: np.ndarray, lossless: bool) -> EmbeddedImage:
    """
    Encode pixels for embedding.

    Args:
        pixels: RGB or RGBA array
        lossless: Keep exact pixels and transparency (PNG sources)
    """
    height, width = pixels.shape[:2]

    if not lossless:
        jpeg_data = codec.encode(pixels, RasterFormat.JPEG, config.PDF_EMBED_QUALITY)
        return EmbeddedImage(data=jpeg_data, width=width, height=height, is_jpeg=True)

    rgb = np.ascontiguousarray(pixels[:, :, :3])
    alpha = None
    if codec.has_alpha(pixels):
        mask = np.ascontiguousarray(pixels[:, :, 3])
        # Fully opaque masks add nothing
        if mask.min() < 255:
            alpha = zlib.compress(mask.tobytes(), level=9)

    return EmbeddedImage(
        data=zlib.compress(rgb.tobytes(), level=9),
        width=width,
        height=height,
        is_jpeg=False,
        alpha=alpha
    )


def escape_pdf_text(text: str) -> str:
    """Escape special characters for PDF string literal."""
    result = text.replace("\\", "\\\\")
    result = result.replace("(", "\\(")
    result = result.replace(")", "\\)")
    # Helvetica with WinAnsiEncoding only covers latin-1
    filtered = ""
    for c in result:
        try:
            c.encode("latin-1")
            filtered += c
        except UnicodeEncodeError:
            filtered += "?"
    return filtered


class PDFWriter:
    """
    Assembles pages, one image per page, into a PDF.

    Optionally draws a caption line above each image.
    """

    def __init__(self):
        self.pdf = Pdf.new()
        self.page_count = 0
        self.image_bytes = 0

    def add_page(
        self,
        image: EmbeddedImage,
        placement: Placement,
        caption: Optional[str] = None,
        caption_position: Tuple[float, float] = (0.0, 0.0)
    ):
        """
        Add a page holding one image.

        Args:
            image: Encoded image
            placement: Page size and image rectangle in millimetres
            caption: Optional text drawn in Helvetica
            caption_position: Caption baseline (x, y) in millimetres from top-left
        """
        page_width_pts = placement.page_width * MM_TO_PT
        page_height_pts = placement.page_height * MM_TO_PT

        self.pdf.add_blank_page(page_size=(page_width_pts, page_height_pts))
        page = self.pdf.pages[-1]

        xobjects = Dictionary({})
        xobjects['/Im0'] = self.pdf.make_indirect(self._image_stream(image))

        # PDF y-origin is bottom, layout is top
        img_w = placement.width * MM_TO_PT
        img_h = placement.height * MM_TO_PT
        img_x = placement.x * MM_TO_PT
        img_y = page_height_pts - (placement.y * MM_TO_PT) - img_h

        content_parts = [
            "q",
            f"{img_w:.4f} 0 0 {img_h:.4f} {img_x:.4f} {img_y:.4f} cm",
            "/Im0 Do",
            "Q",
        ]

        resources = Dictionary({'/XObject': xobjects})
        if caption:
            # Use built-in Helvetica (no embedding needed)
            resources['/Font'] = Dictionary({
                '/F1': Dictionary({
                    '/Type': Name.Font,
                    '/Subtype': Name.Type1,
                    '/BaseFont': Name.Helvetica,
                    '/Encoding': Name.WinAnsiEncoding,
                })
            })
            content_parts.append(
                self._caption_content(caption, caption_position, page_height_pts)
            )
        page.Resources = resources

        page.Contents = self.pdf.make_indirect(
            Stream(self.pdf, "\n".join(content_parts).encode("latin-1", errors="replace"))
        )

        self.page_count += 1
        self.image_bytes += image.total_size

        mode = "jpeg" if image.is_jpeg else ("flate+alpha" if image.alpha else "flate")
        logger.debug(
            f"Added page {self.page_count}: {image.width}x{image.height} "
            f"{image.total_size:,} bytes ({mode})"
        )

    def _image_stream(self, image: EmbeddedImage) -> Stream:
        image_dict = Dictionary({
            '/Type': Name.XObject,
            '/Subtype': Name.Image,
            '/Width': image.width,
            '/Height': image.height,
            '/ColorSpace': Name.DeviceRGB,
            '/BitsPerComponent': 8,
            '/Filter': Name.DCTDecode if image.is_jpeg else Name.FlateDecode,
        })

        if image.alpha is not None:
            smask_dict = Dictionary({
                '/Type': Name.XObject,
                '/Subtype': Name.Image,
                '/Width': image.width,
                '/Height': image.height,
                '/ColorSpace': Name.DeviceGray,
                '/BitsPerComponent': 8,
                '/Filter': Name.FlateDecode,
            })
            smask = Stream(self.pdf, image.alpha, smask_dict)
            image_dict['/SMask'] = self.pdf.make_indirect(smask)

        return Stream(self.pdf, image.data, image_dict)

    def _caption_content(
        self,
        caption: str,
        position: Tuple[float, float],
        page_height_pts: float
    ) -> str:
        x = position[0] * MM_TO_PT
        y = page_height_pts - position[1] * MM_TO_PT
        gray = " ".join(f"{c / 255:.4f}" for c in config.CAPTION_GRAY)
        return "\n".join([
            "BT",
            f"/F1 {config.CAPTION_FONT_SIZE} Tf",
            f"{gray} rg",
            f"{x:.4f} {y:.4f} Td",
            f"({escape_pdf_text(caption)}) Tj",
            "ET",
        ])

    def to_bytes(self) -> bytes:
        """Serialize the PDF."""
        buffer = io.BytesIO()
        try:
            self.pdf.save(
                buffer,
                compress_streams=True,
                object_stream_mode=pikepdf.ObjectStreamMode.generate
            )
        except pikepdf.PdfError as e:
            raise EncodeError(f"Failed to write PDF: {e}") from e
        data = buffer.getvalue()
        logger.info(f"Wrote {self.page_count} page(s), {len(data):,} bytes")
        return data

    def close(self):
        self.pdf.close()


def single_page_pdf(pixels: np.ndarray) -> bytes:
    """
    One default-size page with the image fitted at the top-left.

    The image is embedded as JPEG.
    """
    height, width = pixels.shape[:2]
    writer = PDFWriter()
    try:
        writer.add_page(prepare_image(pixels, lossless=False), single_page_placement(width, height))
        return writer.to_bytes()
    finally:
        writer.close()


def sort_by_name(images: Sequence[Tuple[str, np.ndarray, bool]]) -> List[Tuple[str, np.ndarray, bool]]:
    """Stable ascending order by file name, independent of selection order."""
    return sorted(images, key=lambda entry: entry[0])


def merged_pdf(images: Sequence[Tuple[str, np.ndarray, bool]], layout: PdfLayout) -> bytes:
    """
    Combine images into one document, one captioned page per image.

    Args:
        images: (file name, pixels, is_png) per image, any order
        layout: Page size, orientation and margin

    Returns:
        PDF bytes with pages in ascending file-name order
    """
    if not images:
        raise EncodeError("No images to combine")

    margin = float(layout.margin_mm)
    caption_position = (margin, margin + config.CAPTION_BASELINE_MM)

    writer = PDFWriter()
    try:
        for name, pixels, is_png in sort_by_name(images):
            height, width = pixels.shape[:2]
            writer.add_page(
                prepare_image(pixels, lossless=is_png),
                merged_page_placement(width, height, layout),
                caption=name,
                caption_position=caption_position
            )
        return writer.to_bytes()
    finally:
        writer.close()
