"""
Utility modules for the DocScan pipeline.
"""

from .errors import (
    DocScanError, UnsupportedFormat, ResourceAccessDenied, RenderFailure,
    NoPagesProduced, CodecError, PageNotFound, AssemblyError,
    RecognitionFailure, JobCancelled, DocumentNotFound,
)
from .io import InputKind, InputResource, LocalFileResource, scoped_access, detect_input_kind
from .codec import PageRef, PageStore, encode_jpeg, decode_image
from .render import DocumentRenderer, TextLayoutRenderer, OfficeRenderer, FileTypeRenderer, get_renderer
from .normalizer import FormatNormalizer, PdfRasterizer
from .export import PdfAssembler, Placement, compute_placement, export_filename
from .ocr_text import TextExtractor, TesseractEngine, TextRegion, RecognitionLevel
from .document import Document, DocumentStore
from .orchestrator import ConversionOrchestrator, ConversionJob, JobState
from .library import Library

__all__ = [
    # Errors
    "DocScanError", "UnsupportedFormat", "ResourceAccessDenied", "RenderFailure",
    "NoPagesProduced", "CodecError", "PageNotFound", "AssemblyError",
    "RecognitionFailure", "JobCancelled", "DocumentNotFound",
    # IO
    "InputKind", "InputResource", "LocalFileResource", "scoped_access", "detect_input_kind",
    # Codec
    "PageRef", "PageStore", "encode_jpeg", "decode_image",
    # Normalization
    "DocumentRenderer", "TextLayoutRenderer", "OfficeRenderer", "FileTypeRenderer",
    "get_renderer",
    "FormatNormalizer", "PdfRasterizer",
    # Export
    "PdfAssembler", "Placement", "compute_placement", "export_filename",
    # OCR
    "TextExtractor", "TesseractEngine", "TextRegion", "RecognitionLevel",
    # Documents
    "Document", "DocumentStore",
    "ConversionOrchestrator", "ConversionJob", "JobState",
    "Library",
]
