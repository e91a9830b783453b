"""
Document model.

A Document is an ordered list of page references plus a title. Page order
is the rendering and export order. Records are persisted as JSON files by
DocumentStore.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from ..config import JSON_SCHEMA_VERSION
from .codec import PageRef
from .errors import DocumentNotFound
from .io import ensure_dir, load_json, save_json

logger = logging.getLogger(__name__)


# ============================================================================
# Document
# ============================================================================

@dataclass
class Document:
    """An ordered collection of page images with a title."""
    title: str
    pages: List[PageRef] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def append(self, refs: Iterable[PageRef]) -> None:
        """Add pages to the end, keeping their order."""
        refs = list(refs)
        with self._lock:
            self.pages.extend(refs)

    def remove(self, ref: PageRef) -> bool:
        """
        Remove a page.

        Returns:
            False if the page is not part of this document
        """
        with self._lock:
            try:
                self.pages.remove(ref)
            except ValueError:
                return False
            return True

    def move(self, ref: PageRef, index: int) -> bool:
        """
        Move a page to a new position.

        The target index counts positions in the list with the page taken
        out, and is clamped to the valid range. Dropping a page on its
        current slot leaves the order unchanged.

        Returns:
            False if the page is not part of this document
        """
        with self._lock:
            try:
                current = self.pages.index(ref)
            except ValueError:
                return False

            target = max(0, min(int(index), len(self.pages) - 1))
            if target == current:
                return True

            del self.pages[current]
            self.pages.insert(target, ref)
            return True

    def rename(self, title: str) -> None:
        with self._lock:
            self.title = title

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "id": self.id,
                "created_at": self.created_at,
                "title": self.title,
                "pages": list(self.pages),
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        return cls(
            id=data["id"],
            created_at=data["created_at"],
            title=data["title"],
            pages=[PageRef(p) for p in data.get("pages", [])]
        )


# ============================================================================
# Record Store
# ============================================================================

class DocumentStore:
    """Persist document records as <root>/<id>.json"""

    def __init__(self, root: Union[str, Path]):
        self.root = ensure_dir(root)

    def _path(self, doc_id: str) -> Path:
        if not doc_id or Path(doc_id).name != doc_id:
            raise DocumentNotFound(f"Invalid document id: {doc_id!r}")
        return self.root / f"{doc_id}.json"

    def save(self, document: Document) -> Path:
        record = document.to_dict()
        record["schema_version"] = JSON_SCHEMA_VERSION
        return save_json(record, self._path(document.id))

    def load(self, doc_id: str) -> Document:
        """
        Raises:
            DocumentNotFound: If no record exists for doc_id
        """
        try:
            return Document.from_dict(load_json(self._path(doc_id)))
        except FileNotFoundError:
            raise DocumentNotFound(f"Document not found: {doc_id}")

    def exists(self, doc_id: str) -> bool:
        try:
            return self._path(doc_id).is_file()
        except DocumentNotFound:
            return False

    def delete(self, doc_id: str) -> bool:
        try:
            self._path(doc_id).unlink()
        except (FileNotFoundError, DocumentNotFound):
            return False
        logger.debug(f"Deleted document record {doc_id}")
        return True

    def list(self) -> List[Document]:
        """All stored documents, newest first."""
        documents = []
        for path in self.root.glob("*.json"):
            try:
                documents.append(Document.from_dict(load_json(path)))
            except (ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable record {path.name}: {e}")
        documents.sort(key=lambda d: d.created_at, reverse=True)
        return documents
