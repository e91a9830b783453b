"""
Page image codec.

Stores page images as JPEG files under a private directory, keyed by a
freshly generated token per store() call.
"""

import logging
import uuid
from pathlib import Path
from typing import NewType, Union

import numpy as np

from .errors import CodecError, PageNotFound
from .images import is_valid_image, to_bgr

logger = logging.getLogger(__name__)

PageRef = NewType("PageRef", str)


def encode_jpeg(image: np.ndarray, quality: int = 80) -> bytes:
    """
    Encode an image as JPEG.

    Args:
        image: BGR, BGRA or grayscale image
        quality: JPEG quality (0-100)

    Returns:
        Encoded JPEG bytes
    """
    import cv2

    if not is_valid_image(image):
        raise CodecError("Image has no encodable pixel buffer")

    try:
        ok, buffer = cv2.imencode('.jpg', to_bgr(image), [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    except cv2.error as e:
        raise CodecError(f"JPEG encoding failed: {e}") from e
    if not ok:
        raise CodecError("JPEG encoding failed")
    return buffer.tobytes()


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode encoded image bytes (JPEG, PNG, TIFF, ...) into a BGR array.

    Raises:
        CodecError: If the bytes cannot be decoded
    """
    import cv2

    if not data:
        raise CodecError("Empty image data")

    buffer = np.frombuffer(data, dtype=np.uint8)
    try:
        img = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise CodecError(f"Could not decode image: {e}") from e
    if img is None:
        raise CodecError("Could not decode image")
    return img


class PageStore:
    """
    Content store for page images.

    Every store() call writes a new file named `<uuid4 hex>.jpg`; keys are
    never reused or derived from the pixels, so storing the same image twice
    yields two refs.
    """

    def __init__(
        self,
        root: Union[str, Path],
        quality: int = 80,
        suffix: str = ".jpg"
    ):
        self.root = Path(root)
        self.quality = quality
        self.suffix = suffix
        self.root.mkdir(parents=True, exist_ok=True)

    def _new_ref(self) -> PageRef:
        return PageRef(uuid.uuid4().hex + self.suffix)

    def path_for(self, ref: str) -> Path:
        """Resolve a ref to its file, rejecting anything but a bare file name."""
        if not ref or Path(ref).name != ref or ref in ('.', '..'):
            raise PageNotFound(f"Invalid page reference: {ref!r}")
        return self.root / ref

    def exists(self, ref: str) -> bool:
        try:
            return self.path_for(ref).is_file()
        except PageNotFound:
            return False

    def store(self, image: np.ndarray) -> PageRef:
        """
        Encode and persist a page image.

        Returns:
            The new page reference

        Raises:
            CodecError: If encoding or writing fails
        """
        data = encode_jpeg(image, self.quality)
        ref = self._new_ref()
        path = self.path_for(ref)
        try:
            path.write_bytes(data)
        except OSError as e:
            raise CodecError(f"Could not write page {ref}: {e}") from e

        logger.debug(f"Stored page {ref} ({len(data)} bytes)")
        return ref

    def load(self, ref: str) -> np.ndarray:
        """
        Load a stored page image.

        Raises:
            PageNotFound: If the ref is unknown or was deleted
            CodecError: If the stored file cannot be decoded
        """
        path = self.path_for(ref)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise PageNotFound(f"Page not found: {ref}")
        except OSError as e:
            raise CodecError(f"Could not read page {ref}: {e}") from e

        return decode_image(data)

    def delete(self, ref: str) -> bool:
        """Release a stored page. Returns False if it did not exist."""
        try:
            self.path_for(ref).unlink()
        except (FileNotFoundError, PageNotFound):
            return False
        logger.debug(f"Deleted page {ref}")
        return True
