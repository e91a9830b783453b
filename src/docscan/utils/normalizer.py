"""
Format normalization.

Turns an input file into a lazy, ordered sequence of page images, one per
logical page, dispatching on the detected InputKind:

- pdf: rasterize every page's media box; pages that fail are skipped
- rasterizable_document: render to an intermediate PDF, then rasterize it
- image: the decoded image itself
- unsupported: rejected immediately

Blocking work (pdfinfo, decoding) runs in worker threads. The returned
iterator renders pages synchronously, so callers on an event loop pull it
from a thread as well.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import numpy as np

from .codec import decode_image
from .errors import CodecError, JobCancelled, RenderFailure, UnsupportedFormat
from .images import from_pil
from .io import ConversionProgress, InputKind
from .render import DocumentRenderer

logger = logging.getLogger(__name__)

PdfSource = Union[Path, bytes]


# ============================================================================
# PDF Rasterizer
# ============================================================================

class PdfRasterizer:
    """Render single PDF pages to images using pdf2image (poppler backend)."""

    def __init__(self, dpi: int = 150, thread_count: int = 1):
        if dpi <= 0:
            raise ValueError("dpi must be a positive integer")
        self.dpi = dpi
        self.thread_count = thread_count

    def page_count(self, source: PdfSource) -> int:
        """
        Get the number of pages in a PDF file or PDF bytes.

        Raises:
            RenderFailure: If the PDF cannot be opened
        """
        from pdf2image import pdfinfo_from_bytes, pdfinfo_from_path

        try:
            if isinstance(source, bytes):
                info = pdfinfo_from_bytes(source)
            else:
                info = pdfinfo_from_path(str(source))
        except Exception as e:
            if "poppler" in str(e).lower():
                raise RenderFailure(
                    "Poppler is not installed. Install with:\n"
                    "  macOS: brew install poppler\n"
                    "  Linux: sudo apt-get install poppler-utils"
                ) from e
            raise RenderFailure(f"Failed to read PDF: {e}") from e

        return int(info.get('Pages', 0))

    def render_page(self, source: PdfSource, index: int) -> np.ndarray:
        """
        Render one page (0-indexed) to a BGR image.

        Raises:
            RenderFailure: If the page cannot be rendered
        """
        from pdf2image import convert_from_bytes, convert_from_path

        page_number = index + 1
        options = dict(
            dpi=self.dpi,
            first_page=page_number,
            last_page=page_number,
            fmt='png',
            thread_count=self.thread_count,
            use_cropbox=False
        )

        try:
            if isinstance(source, bytes):
                pil_images = convert_from_bytes(source, **options)
            else:
                pil_images = convert_from_path(str(source), **options)
        except Exception as e:
            raise RenderFailure(f"Page {page_number} failed to render: {e}") from e

        if not pil_images:
            raise RenderFailure(f"Page {page_number} produced no image")

        return from_pil(pil_images[0])


# ============================================================================
# Format Normalizer
# ============================================================================

class FormatNormalizer:
    """
    Dispatches an input file to the matching conversion path.

    Components are passed in explicitly; the normalizer holds no per-job state.
    """

    def __init__(
        self,
        rasterizer: Optional[PdfRasterizer] = None,
        renderer: Optional[DocumentRenderer] = None,
        page_size: Tuple[float, float] = (595.2, 841.8)
    ):
        self.rasterizer = rasterizer or PdfRasterizer()
        self.renderer = renderer
        self.page_size = page_size

    async def normalize(
        self,
        path: Union[str, Path],
        kind: InputKind,
        progress: Optional[ConversionProgress] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Iterator[np.ndarray]:
        """
        Produce the page images of an input file.

        Args:
            path: Input file
            kind: Detected input kind
            progress: Optional progress tracker; skipped pages are recorded here
            cancel_event: Checked after the rendering await

        Returns:
            Lazy iterator of page images in source order

        Raises:
            UnsupportedFormat: For InputKind.UNSUPPORTED
            RenderFailure: If a PDF cannot be opened or a document cannot be rendered
            CodecError: If an image input cannot be decoded
            JobCancelled: If cancel_event was set while rendering
        """
        path = Path(path)
        progress = progress if progress is not None else ConversionProgress()

        if kind == InputKind.PDF:
            progress.update("rasterizing")
            return await asyncio.to_thread(self.rasterize_pdf, path, progress)

        elif kind == InputKind.RASTERIZABLE_DOCUMENT:
            if self.renderer is None:
                raise RenderFailure("No document renderer configured")

            progress.update("rendering")
            logger.info(f"Rendering {path.name} with {self.renderer.name} renderer")
            try:
                pdf_bytes = await self.renderer.render(path, self.page_size)
            except RenderFailure:
                raise
            except Exception as e:
                raise RenderFailure(f"Renderer failed on {path.name}: {e}") from e

            if cancel_event is not None and cancel_event.is_set():
                raise JobCancelled(f"Conversion of {path.name} was cancelled")

            progress.update("rasterizing")
            return await asyncio.to_thread(self.rasterize_pdf, pdf_bytes, progress)

        elif kind == InputKind.IMAGE:
            progress.update("decoding", total_pages=1)
            try:
                data = await asyncio.to_thread(path.read_bytes)
            except OSError as e:
                raise CodecError(f"Could not read {path.name}: {e}") from e
            image = await asyncio.to_thread(decode_image, data)
            progress.page_produced()
            return iter([image])

        raise UnsupportedFormat(f"Unsupported input: {path.name}")

    def rasterize_pdf(
        self,
        source: PdfSource,
        progress: Optional[ConversionProgress] = None
    ) -> Iterator[np.ndarray]:
        """
        Rasterize every page of a PDF, skipping pages that fail.

        The page count is read eagerly; pages are rendered lazily as the
        returned iterator is consumed.
        """
        progress = progress if progress is not None else ConversionProgress()
        count = self.rasterizer.page_count(source)
        progress.update(progress.current_stage, total_pages=count)
        logger.info(f"Rasterizing {count} PDF page(s) at {self.rasterizer.dpi} DPI")
        return self._iter_pages(source, count, progress)

    def _iter_pages(
        self,
        source: PdfSource,
        count: int,
        progress: ConversionProgress
    ) -> Iterator[np.ndarray]:
        for index in range(count):
            try:
                image = self.rasterizer.render_page(source, index)
            except RenderFailure as e:
                progress.drop_page(f"Skipping page {index + 1}: {e}")
                continue
            progress.page_produced()
            yield image
