"""
Document library.

Ties the pipeline components together around an on-disk library directory:

    <library>/documents/<id>.json   document records
    <library>/pages/<ref>.jpg       page images
    <library>/exports/              exported PDFs (default)
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np

from ..config import PipelineConfig, get_config
from .codec import PageStore
from .document import Document, DocumentStore
from .errors import AssemblyError, CodecError, DocumentNotFound, NoPagesProduced
from .export import PdfAssembler
from .io import InputResource, LocalFileResource
from .normalizer import FormatNormalizer, PdfRasterizer
from .ocr_text import TextExtractor
from .orchestrator import ConversionJob, ConversionOrchestrator
from .render import get_renderer

logger = logging.getLogger(__name__)


def _timestamp_label() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M")


class Library:
    """
    A collection of scanned and imported documents.

    Components default to the ones described by the configuration and can
    be replaced for testing.
    """

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        config: Optional[PipelineConfig] = None,
        normalizer: Optional[FormatNormalizer] = None,
        assembler: Optional[PdfAssembler] = None,
        extractor: Optional[TextExtractor] = None
    ):
        self.config = config or get_config()
        self.root = Path(root) if root else Path(self.config.library_dir)

        self.documents = DocumentStore(self.root / "documents")
        self.pages = PageStore(
            self.root / "pages",
            quality=self.config.codec.jpeg_quality,
            suffix=self.config.codec.page_suffix
        )

        self.normalizer = normalizer
        self.assembler = assembler or PdfAssembler.from_config(
            self.config.assembly, jpeg_quality=self.config.codec.jpeg_quality
        )
        self._extractor = extractor

    @classmethod
    def from_config(cls, config: Optional[PipelineConfig] = None) -> "Library":
        return cls(config=config)

    @property
    def extractor(self) -> TextExtractor:
        if self._extractor is None:
            self._extractor = TextExtractor.from_config(self.config.ocr)
        return self._extractor

    def _get_normalizer(self) -> FormatNormalizer:
        if self.normalizer is None:
            render = self.config.render
            self.normalizer = FormatNormalizer(
                rasterizer=PdfRasterizer(
                    dpi=self.config.raster.dpi,
                    thread_count=self.config.raster.thread_count
                ),
                renderer=get_renderer(render),
                page_size=(render.page_width, render.page_height)
            )
        return self.normalizer

    @property
    def orchestrator(self) -> ConversionOrchestrator:
        return ConversionOrchestrator(self._get_normalizer(), self.pages)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def convert(
        self,
        source: Union[str, Path, InputResource],
        cancel_event: Optional[asyncio.Event] = None
    ) -> ConversionJob:
        """Run a conversion job without touching any document."""
        if not isinstance(source, InputResource):
            source = LocalFileResource(source)
        return await self.orchestrator.convert(source, cancel_event=cancel_event)

    async def import_file(
        self,
        source: Union[str, Path, InputResource],
        title: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> Tuple[ConversionJob, Optional[Document]]:
        """
        Convert a file into a new document.

        Returns:
            (job, document); document is None when the job failed
        """
        job = await self.convert(source, cancel_event=cancel_event)
        if not job.succeeded:
            return job, None

        document = Document(title=title or f"Import {_timestamp_label()}")
        document.append(job.page_refs)
        self.documents.save(document)
        logger.info(f"Created document {document.id} with {document.page_count} page(s)")
        return job, document

    async def import_into(
        self,
        doc_id: str,
        source: Union[str, Path, InputResource],
        cancel_event: Optional[asyncio.Event] = None
    ) -> ConversionJob:
        """
        Convert a file and append its pages to an existing document.

        The record is read again once the conversion finishes, so edits made
        meanwhile are kept.

        Raises:
            DocumentNotFound: If the document does not exist, or was deleted
                while converting (the new pages are released)
        """
        self.documents.load(doc_id)
        job = await self.convert(source, cancel_event=cancel_event)
        if not job.succeeded:
            return job

        try:
            document = self.documents.load(doc_id)
        except DocumentNotFound:
            for ref in job.page_refs:
                self.pages.delete(ref)
            raise

        document.append(job.page_refs)
        self.documents.save(document)
        logger.info(f"Appended {len(job.page_refs)} page(s) to {doc_id}")
        return job

    def create_from_images(
        self,
        images: Iterable[np.ndarray],
        source: str = "Scan"
    ) -> Document:
        """
        Create a document from captured images (camera pages or photos).

        Images that cannot be stored are skipped.

        Raises:
            NoPagesProduced: If no image could be stored
        """
        refs = []
        for index, image in enumerate(images, 1):
            try:
                refs.append(self.pages.store(image))
            except CodecError as e:
                logger.warning(f"Skipping captured image {index}: {e}")

        if not refs:
            raise NoPagesProduced(f"{source} produced no pages")

        document = Document(title=f"{source} {_timestamp_label()}")
        document.append(refs)
        self.documents.save(document)
        logger.info(f"Created document {document.id} with {document.page_count} page(s)")
        return document

    # ------------------------------------------------------------------
    # Queries and edits
    # ------------------------------------------------------------------

    def get(self, doc_id: str) -> Document:
        return self.documents.load(doc_id)

    def list_documents(self) -> List[Document]:
        return self.documents.list()

    def rename(self, doc_id: str, title: str) -> Document:
        document = self.documents.load(doc_id)
        document.rename(title)
        self.documents.save(document)
        return document

    def move_page(self, doc_id: str, from_index: int, to_index: int) -> Document:
        """Move the page at from_index (0-based) to to_index."""
        document = self.documents.load(doc_id)
        if not 0 <= from_index < document.page_count:
            raise IndexError(f"Page index {from_index} out of range")
        document.move(document.pages[from_index], to_index)
        self.documents.save(document)
        return document

    def remove_page(self, doc_id: str, index: int) -> Document:
        """Remove the page at index (0-based) and release its image."""
        document = self.documents.load(doc_id)
        if not 0 <= index < document.page_count:
            raise IndexError(f"Page index {index} out of range")
        ref = document.pages[index]
        document.remove(ref)
        self.documents.save(document)
        self.pages.delete(ref)
        return document

    def delete_document(self, doc_id: str) -> None:
        """Delete a document together with all of its page images."""
        document = self.documents.load(doc_id)
        for ref in document.pages:
            self.pages.delete(ref)
        self.documents.delete(doc_id)
        logger.info(f"Deleted document {doc_id}")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def load_pages(self, document: Document) -> List[np.ndarray]:
        """Load every loadable page image of a document, in order."""
        images = []
        for ref in document.pages:
            try:
                images.append(self.pages.load(ref))
            except CodecError as e:
                logger.warning(f"Skipping page {ref}: {e}")
        return images

    def export_pdf(
        self,
        doc_id: str,
        output_dir: Optional[Union[str, Path]] = None
    ) -> Path:
        """
        Export a document as a PDF.

        Raises:
            AssemblyError: If no page could be loaded or the PDF cannot be built
        """
        document = self.documents.load(doc_id)
        images = self.load_pages(document)
        if not images:
            raise AssemblyError(f"Document {doc_id} has no loadable pages")

        output_dir = Path(output_dir) if output_dir else self.root / "exports"
        return self.assembler.export(images, output_dir)

    def extract_text(self, doc_id: str, page_index: int = 0) -> str:
        """Run OCR on one page of a document."""
        document = self.documents.load(doc_id)
        if not 0 <= page_index < document.page_count:
            raise IndexError(f"Page index {page_index} out of range")
        image = self.pages.load(document.pages[page_index])
        return self.extractor.extract(image)
