"""
Configuration and constants for the DocScan pipeline.

This module provides:
- Global configuration settings
- Page geometry and codec constants
- Processing parameters with environment overrides
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("docscan")


# ============================================================================
# Page Geometry
# ============================================================================

# ISO A4 in PDF points
A4_WIDTH_PT = 595.2
A4_HEIGHT_PT = 841.8

DEFAULT_LIBRARY_DIR = Path.home() / ".docscan"


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class CodecConfig:
    """Page image codec configuration."""
    jpeg_quality: int = 80  # 0-100, ~0.8 of max quality
    page_suffix: str = ".jpg"


@dataclass
class RasterConfig:
    """PDF rasterization configuration."""
    dpi: int = 150
    thread_count: int = 1


@dataclass
class RenderConfig:
    """Document-rendering collaborator configuration."""
    backend: str = "auto"  # auto, text, soffice
    page_width: float = A4_WIDTH_PT
    page_height: float = A4_HEIGHT_PT
    soffice_path: str = "soffice"
    timeout_seconds: float = 120.0
    # Text layout settings (points)
    font_family: str = "Helvetica"
    font_size: float = 11.0
    margin: float = 56.0


@dataclass
class AssemblyConfig:
    """PDF assembly configuration."""
    page_width: float = A4_WIDTH_PT
    page_height: float = A4_HEIGHT_PT
    creator: str = "DocScan"
    author: str = "User"


@dataclass
class OCRConfig:
    """OCR configuration."""
    language: str = "eng"
    level: str = "accurate"  # accurate, fast
    tesseract_cmd: Optional[str] = None


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    codec: CodecConfig = field(default_factory=CodecConfig)
    raster: RasterConfig = field(default_factory=RasterConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    assembly: AssemblyConfig = field(default_factory=AssemblyConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)

    # Global settings
    library_dir: Path = DEFAULT_LIBRARY_DIR
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    library_dir = os.environ.get("DOCSCAN_LIBRARY_DIR")
    if library_dir:
        config.library_dir = Path(library_dir).expanduser()

    if os.environ.get("DOCSCAN_DEBUG", "").lower() == "true":
        config.debug_mode = True

    dpi = os.environ.get("DOCSCAN_DPI")
    if dpi:
        try:
            config.raster.dpi = int(dpi)
        except ValueError:
            logger.warning(f"Ignoring invalid DOCSCAN_DPI value: {dpi!r}")

    renderer = os.environ.get("DOCSCAN_RENDERER")
    if renderer:
        config.render.backend = renderer.lower()

    ocr_lang = os.environ.get("DOCSCAN_OCR_LANG")
    if ocr_lang:
        config.ocr.language = ocr_lang

    config.ocr.tesseract_cmd = os.environ.get("TESSERACT_CMD")

    return config


# ============================================================================
# Record Schema Version
# ============================================================================

JSON_SCHEMA_VERSION = "1.0"
