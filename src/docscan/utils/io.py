"""
I/O utilities for the DocScan pipeline.

Handles:
- Input kind detection
- Scoped access to input resources
- JSON serialization
- Directory management
- Conversion progress tracking
"""

import json
import logging
import os
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import List, Union, Optional, Any, Iterator
from dataclasses import dataclass, field, asdict

import numpy as np

from .errors import ResourceAccessDenied

logger = logging.getLogger(__name__)


# ============================================================================
# Input Kind Detection
# ============================================================================

class InputKind(str, Enum):
    """Detected kind of an input file."""
    PDF = "pdf"
    RASTERIZABLE_DOCUMENT = "rasterizable_document"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


PDF_EXTENSIONS = ('.pdf',)
DOCUMENT_EXTENSIONS = ('.docx', '.doc', '.txt', '.rtf', '.md', '.odt')
IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.gif', '.webp')

_IMAGE_MAGIC = (
    b'\xff\xd8\xff',          # JPEG
    b'\x89PNG\r\n\x1a\n',     # PNG
    b'GIF87a', b'GIF89a',
    b'BM',
    b'II*\x00', b'MM\x00*',   # TIFF
)


def _read_header(path: Path, size: int = 16) -> bytes:
    try:
        with open(path, 'rb') as f:
            return f.read(size)
    except OSError:
        return b''


def detect_input_kind(input_path: Union[str, Path]) -> InputKind:
    """
    Detect the kind of an input file.

    The suffix decides first; files without a known suffix are sniffed for
    PDF and image magic bytes.

    Args:
        input_path: Path to the input file

    Returns:
        The detected InputKind (UNSUPPORTED for missing files and directories)
    """
    input_path = Path(input_path)

    if not input_path.is_file():
        return InputKind.UNSUPPORTED

    suffix = input_path.suffix.lower()
    if suffix in PDF_EXTENSIONS:
        return InputKind.PDF
    elif suffix in DOCUMENT_EXTENSIONS:
        return InputKind.RASTERIZABLE_DOCUMENT
    elif suffix in IMAGE_EXTENSIONS:
        return InputKind.IMAGE

    header = _read_header(input_path)
    if header.startswith(b'%PDF-'):
        return InputKind.PDF
    if header.startswith(_IMAGE_MAGIC) or (header[:4] == b'RIFF' and header[8:12] == b'WEBP'):
        return InputKind.IMAGE

    return InputKind.UNSUPPORTED


# ============================================================================
# Scoped Resource Access
# ============================================================================

class InputResource:
    """
    An input file guarded by an access grant.

    Subclasses decide whether access is granted. begin_access() returns
    False when the grant is refused; end_access() releases a granted one.
    """

    path: Path

    def begin_access(self) -> bool:
        raise NotImplementedError

    def end_access(self) -> None:
        raise NotImplementedError

    @property
    def name(self) -> str:
        return self.path.name


class LocalFileResource(InputResource):
    """
    A file on the local filesystem.

    Access is granted when the file exists and is readable, and only to one
    holder at a time.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def begin_access(self) -> bool:
        if self._active:
            logger.warning(f"Access to {self.path} is already held")
            return False
        if not self.path.is_file() or not os.access(self.path, os.R_OK):
            logger.warning(f"Input not readable: {self.path}")
            return False
        self._active = True
        return True

    def end_access(self) -> None:
        self._active = False


@contextmanager
def scoped_access(resource: InputResource) -> Iterator[Path]:
    """
    Hold access to an input resource for the duration of a with-block.

    end_access() is called exactly once on every exit path. A refused grant
    raises ResourceAccessDenied without calling end_access().

    Yields:
        Path of the resource
    """
    if not resource.begin_access():
        raise ResourceAccessDenied(f"Access to {resource.path} was refused")
    try:
        yield resource.path
    finally:
        resource.end_access()
        logger.debug(f"Released access to {resource.path}")


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy scalars, enums, paths and dataclasses."""

    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    The file is written next to its destination and then renamed over it,
    so readers never observe a half-written record.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = output_path.with_name(output_path.name + ".tmp")
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)
    os.replace(tmp_path, output_path)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """
    Load data from a JSON file.

    Args:
        json_path: Path to the JSON file

    Returns:
        Parsed JSON data
    """
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


# ============================================================================
# Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


# ============================================================================
# Progress Tracking
# ============================================================================

@dataclass
class ConversionProgress:
    """Track progress of one conversion job."""
    total_pages: int = 0
    produced_pages: int = 0
    stored_pages: int = 0
    dropped_pages: int = 0
    current_stage: str = ""
    errors: List[str] = field(default_factory=list)

    @property
    def percent_complete(self) -> float:
        if self.total_pages == 0:
            return 0.0
        return (self.stored_pages + self.dropped_pages) / self.total_pages * 100

    def update(self, stage: str, total_pages: Optional[int] = None):
        self.current_stage = stage
        if total_pages is not None:
            self.total_pages = total_pages

    def page_produced(self):
        self.produced_pages += 1

    def page_stored(self):
        self.stored_pages += 1

    def drop_page(self, error: str):
        self.dropped_pages += 1
        self.add_error(error)

    def add_error(self, error: str):
        self.errors.append(error)
        logger.warning(error)
