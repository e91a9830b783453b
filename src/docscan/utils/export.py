"""
PDF export module.

Lays out page images one per page on fixed-size PDF pages (aspect-fit,
centered) and serializes the result with fpdf2.
"""

import io
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from .codec import encode_jpeg
from .errors import AssemblyError
from .images import image_size, is_valid_image

logger = logging.getLogger(__name__)


# ============================================================================
# Page Geometry
# ============================================================================

@dataclass(frozen=True)
class Placement:
    """Rectangle an image occupies on a page, in points from the top-left."""
    x: float
    y: float
    width: float
    height: float
    scale: float


def compute_placement(
    image_width: float,
    image_height: float,
    page_width: float,
    page_height: float
) -> Placement:
    """
    Aspect-fit an image into a page and center it.

    The image is scaled by the smaller of the two axis ratios, so it never
    crops and never exceeds the page; the leftover space is split evenly
    between opposite margins.
    """
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Invalid image size: {image_width}x{image_height}")

    scale_x = page_width / image_width
    scale_y = page_height / image_height
    scale = min(scale_x, scale_y)

    scaled_width = min(image_width * scale, page_width)
    scaled_height = min(image_height * scale, page_height)

    return Placement(
        x=(page_width - scaled_width) / 2,
        y=(page_height - scaled_height) / 2,
        width=scaled_width,
        height=scaled_height,
        scale=scale
    )


def export_filename(timestamp: Optional[float] = None, attempt: int = 0) -> str:
    """File name for an exported PDF: Doc_<epoch-seconds>[_<attempt>].pdf"""
    if timestamp is None:
        timestamp = time.time()
    if attempt:
        return f"Doc_{int(timestamp)}_{attempt}.pdf"
    return f"Doc_{int(timestamp)}.pdf"


# ============================================================================
# PDF Assembler
# ============================================================================

class PdfAssembler:
    """Assemble page images into a single PDF."""

    def __init__(
        self,
        page_width: float = 595.2,
        page_height: float = 841.8,
        creator: str = "DocScan",
        author: str = "User",
        jpeg_quality: int = 80
    ):
        self.page_width = page_width
        self.page_height = page_height
        self.creator = creator
        self.author = author
        self.jpeg_quality = jpeg_quality

    @classmethod
    def from_config(cls, config, jpeg_quality: int = 80) -> "PdfAssembler":
        """Build an assembler from an AssemblyConfig."""
        return cls(
            page_width=config.page_width,
            page_height=config.page_height,
            creator=config.creator,
            author=config.author,
            jpeg_quality=jpeg_quality
        )

    def placement_for(self, image: np.ndarray) -> Placement:
        width, height = image_size(image)
        return compute_placement(width, height, self.page_width, self.page_height)

    def assemble(self, images: Sequence[np.ndarray]) -> bytes:
        """
        Build a PDF with one page per image, in input order.

        Args:
            images: Page images (BGR or grayscale)

        Returns:
            PDF bytes

        Raises:
            AssemblyError: If the list is empty or serialization fails
        """
        images = list(images)
        if not images:
            raise AssemblyError("Cannot assemble a PDF without pages")

        try:
            from fpdf import FPDF

            pdf = FPDF(orientation="P", unit="pt", format=(self.page_width, self.page_height))
            pdf.set_margins(0, 0, 0)
            pdf.set_auto_page_break(auto=False)
            pdf.set_creator(self.creator)
            pdf.set_author(self.author)

            for index, image in enumerate(images):
                if not is_valid_image(image):
                    raise AssemblyError(f"Page {index + 1} has no pixel buffer")

                placement = self.placement_for(image)
                pdf.add_page()
                pdf.image(
                    io.BytesIO(encode_jpeg(image, self.jpeg_quality)),
                    x=placement.x,
                    y=placement.y,
                    w=placement.width,
                    h=placement.height
                )

            data = bytes(pdf.output())

        except AssemblyError:
            raise
        except Exception as e:
            raise AssemblyError(f"PDF generation failed: {e}") from e

        logger.info(f"Assembled PDF with {len(images)} page(s), {len(data)} bytes")
        return data

    def export(
        self,
        images: Sequence[np.ndarray],
        output_dir: Union[str, Path],
        timestamp: Optional[float] = None
    ) -> Path:
        """
        Assemble images and write the PDF to output_dir.

        An existing export is never overwritten; a numbered suffix is added
        instead.

        Returns:
            Path to the written Doc_<epoch>.pdf
        """
        data = self.assemble(images)

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        if timestamp is None:
            timestamp = time.time()

        attempt = 0
        while True:
            pdf_path = output_dir / export_filename(timestamp, attempt)
            try:
                with open(pdf_path, "xb") as f:
                    f.write(data)
                break
            except FileExistsError:
                attempt += 1
            except OSError as e:
                raise AssemblyError(f"Could not write {pdf_path}: {e}") from e

        logger.info(f"Exported PDF: {pdf_path}")
        return pdf_path
