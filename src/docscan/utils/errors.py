"""
Error taxonomy for the DocScan pipeline.

Per-page errors (RenderFailure, CodecError) are absorbed inside a conversion
job and counted. Job-level errors (UnsupportedFormat, ResourceAccessDenied,
NoPagesProduced, JobCancelled) end the job in the failed state.
"""


class DocScanError(Exception):
    """Base class for all pipeline errors."""


class UnsupportedFormat(DocScanError, ValueError):
    """Input kind cannot be converted."""


class ResourceAccessDenied(DocScanError, PermissionError):
    """Scoped access to the input resource could not be acquired."""


class RenderFailure(DocScanError, RuntimeError):
    """PDF rasterizer or external document renderer failed."""


class NoPagesProduced(DocScanError):
    """A conversion or capture yielded no storable page."""


class CodecError(DocScanError):
    """Page image could not be encoded, written, read or decoded."""


class PageNotFound(CodecError, KeyError):
    """Page reference is unknown or was deleted."""

    def __str__(self) -> str:
        # KeyError quotes its argument
        return Exception.__str__(self)


class AssemblyError(DocScanError):
    """PDF serialization failed."""


class RecognitionFailure(DocScanError):
    """OCR failed or the image has no usable pixel buffer."""


class JobCancelled(DocScanError):
    """Conversion job was cancelled by its caller."""


class DocumentNotFound(DocScanError, KeyError):
    """No document record with the given id."""

    def __str__(self) -> str:
        return Exception.__str__(self)
