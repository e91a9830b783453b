"""
Text OCR module.

Provides:
- Full-page text extraction through Tesseract
- Line-level regions with confidence scoring
- Recognition levels (accurate, fast)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from .errors import RecognitionFailure
from .images import is_valid_image, resize_for_ocr, to_grayscale

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

class RecognitionLevel(str, Enum):
    """Speed/accuracy trade-off requested from the OCR engine."""
    ACCURATE = "accurate"
    FAST = "fast"


# Tesseract settings per level
LEVEL_CONFIGS = {
    RecognitionLevel.ACCURATE: "--oem 3 --psm 3",
    RecognitionLevel.FAST: "--oem 3 --psm 6",
}


@dataclass
class TextRegion:
    """One recognized text line."""
    text: str
    confidence: float
    bbox: Optional[Tuple[int, int, int, int]] = None  # (x1, y1, x2, y2)


# ============================================================================
# Tesseract Engine
# ============================================================================

class TesseractEngine:
    """OCR using Tesseract."""

    def __init__(
        self,
        language: str = "eng",
        tesseract_cmd: Optional[str] = None
    ):
        import pytesseract

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

        self.pytesseract = pytesseract
        self.language = language

    def recognize(
        self,
        image: np.ndarray,
        level: RecognitionLevel = RecognitionLevel.ACCURATE
    ) -> List[TextRegion]:
        """
        Recognize text lines in an image.

        Words are grouped into lines by Tesseract's (block, paragraph, line)
        numbering; lines are returned in the order Tesseract reports them.

        Raises:
            Whatever pytesseract raises if the engine fails
        """
        data = self.pytesseract.image_to_data(
            image,
            lang=self.language,
            config=LEVEL_CONFIGS[RecognitionLevel(level)],
            output_type=self.pytesseract.Output.DICT
        )

        lines = {}
        for i in range(len(data['text'])):
            text = str(data['text'][i]).strip()
            conf = float(data['conf'][i])

            if conf < 0 or not text:  # -1 means no valid confidence
                continue

            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            box = (
                data['left'][i],
                data['top'][i],
                data['left'][i] + data['width'][i],
                data['top'][i] + data['height'][i]
            )
            lines.setdefault(key, []).append((text, conf / 100.0, box))

        regions = []
        for words in lines.values():
            regions.append(TextRegion(
                text=' '.join(w[0] for w in words),
                confidence=float(np.mean([w[1] for w in words])),
                bbox=(
                    min(w[2][0] for w in words),
                    min(w[2][1] for w in words),
                    max(w[2][2] for w in words),
                    max(w[2][3] for w in words)
                )
            ))

        return regions


# ============================================================================
# Text Extractor
# ============================================================================

class TextExtractor:
    """
    Extract the plain text of one page image.

    The engine is injected; by default a TesseractEngine is created on first
    use.
    """

    def __init__(
        self,
        engine=None,
        level: RecognitionLevel = RecognitionLevel.ACCURATE,
        language: str = "eng",
        tesseract_cmd: Optional[str] = None
    ):
        self._engine = engine
        self.level = RecognitionLevel(level)
        self.language = language
        self.tesseract_cmd = tesseract_cmd

    @classmethod
    def from_config(cls, config) -> "TextExtractor":
        """Build an extractor from an OCRConfig."""
        return cls(
            level=config.level,
            language=config.language,
            tesseract_cmd=config.tesseract_cmd
        )

    @property
    def engine(self):
        if self._engine is None:
            try:
                self._engine = TesseractEngine(self.language, self.tesseract_cmd)
            except ImportError as e:
                raise RecognitionFailure(f"Tesseract not available: {e}") from e
        return self._engine

    def recognize_regions(self, image: np.ndarray) -> List[TextRegion]:
        """
        Run OCR and return the line regions.

        Raises:
            RecognitionFailure: If the image has no pixel buffer or OCR fails
        """
        if not is_valid_image(image):
            raise RecognitionFailure("Image has no decodable pixel buffer")

        prepared = resize_for_ocr(to_grayscale(image))

        try:
            regions = self.engine.recognize(prepared, self.level)
        except RecognitionFailure:
            raise
        except Exception as e:
            logger.error(f"OCR error: {e}")
            raise RecognitionFailure(f"Text recognition failed: {e}") from e

        logger.debug(f"Recognized {len(regions)} text regions")
        return regions

    def extract(self, image: np.ndarray) -> str:
        """
        Extract text from an image.

        Returns:
            The regions' text joined with newlines (empty when no text is found)
        """
        regions = self.recognize_regions(image)
        return '\n'.join(region.text for region in regions)
