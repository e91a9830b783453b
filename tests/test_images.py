"""
Tests for image helpers and configuration.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestImageHelpers:
    """Test color conversion and validation."""

    def test_is_valid_image(self):
        from docscan.utils.images import is_valid_image

        assert is_valid_image(np.zeros((5, 5), dtype=np.uint8))
        assert is_valid_image(np.zeros((5, 5, 3), dtype=np.uint8))
        assert is_valid_image(np.zeros((5, 5, 4), dtype=np.uint8))
        assert not is_valid_image(np.zeros((0, 5, 3), dtype=np.uint8))
        assert not is_valid_image(np.zeros((5, 5, 3), dtype=np.float64))
        assert not is_valid_image(np.zeros(5, dtype=np.uint8))
        assert not is_valid_image(None)

    def test_image_size(self):
        from docscan.utils.images import image_size

        assert image_size(np.zeros((30, 20, 3), dtype=np.uint8)) == (20, 30)

    def test_grayscale_conversion(self):
        """Test grayscale conversion."""
        from docscan.utils.images import to_grayscale

        color = np.zeros((10, 10, 3), dtype=np.uint8)
        assert to_grayscale(color).shape == (10, 10)

        gray = np.zeros((10, 10), dtype=np.uint8)
        assert to_grayscale(gray) is gray

        bgra = np.zeros((10, 10, 4), dtype=np.uint8)
        assert to_grayscale(bgra).shape == (10, 10)

    def test_to_bgr(self):
        from docscan.utils.images import to_bgr

        assert to_bgr(np.zeros((4, 4), dtype=np.uint8)).shape == (4, 4, 3)
        assert to_bgr(np.zeros((4, 4, 4), dtype=np.uint8)).shape == (4, 4, 3)

    def test_from_pil_swaps_channels(self):
        """PIL RGB images become BGR arrays."""
        from PIL import Image
        from docscan.utils.images import from_pil

        pil = Image.new("RGB", (3, 2), (255, 0, 0))
        arr = from_pil(pil)

        assert arr.shape == (2, 3, 3)
        assert tuple(arr[0, 0]) == (0, 0, 255)

    def test_resize_for_ocr(self):
        """Small images are upscaled at most 2x; large ones are untouched."""
        from docscan.utils.images import resize_for_ocr

        small = np.zeros((100, 80), dtype=np.uint8)
        assert resize_for_ocr(small).shape == (200, 160)

        large = np.zeros((4000, 3000), dtype=np.uint8)
        assert resize_for_ocr(large) is large


class TestConfig:
    """Test configuration defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        for name in ("DOCSCAN_LIBRARY_DIR", "DOCSCAN_DPI", "DOCSCAN_RENDERER", "DOCSCAN_DEBUG"):
            monkeypatch.delenv(name, raising=False)
        from docscan.config import get_config, A4_WIDTH_PT, A4_HEIGHT_PT

        config = get_config()
        assert config.codec.jpeg_quality == 80
        assert config.raster.dpi == 150
        assert config.render.backend == "auto"
        assert (config.assembly.page_width, config.assembly.page_height) == (A4_WIDTH_PT, A4_HEIGHT_PT)
        assert config.assembly.creator == "DocScan"
        assert config.assembly.author == "User"
        assert config.ocr.level == "accurate"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        from docscan.config import get_config

        monkeypatch.setenv("DOCSCAN_LIBRARY_DIR", str(tmp_path))
        monkeypatch.setenv("DOCSCAN_DPI", "300")
        monkeypatch.setenv("DOCSCAN_RENDERER", "SOFFICE")
        monkeypatch.setenv("DOCSCAN_DEBUG", "true")
        monkeypatch.setenv("DOCSCAN_OCR_LANG", "deu")

        config = get_config()
        assert config.library_dir == tmp_path
        assert config.raster.dpi == 300
        assert config.render.backend == "soffice"
        assert config.debug_mode is True
        assert config.ocr.language == "deu"

    def test_invalid_dpi_ignored(self, monkeypatch):
        from docscan.config import get_config

        monkeypatch.setenv("DOCSCAN_DPI", "lots")
        assert get_config().raster.dpi == 150


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
