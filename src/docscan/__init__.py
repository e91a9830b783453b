"""
DocScan
=======

Page-image document pipeline for scanned and imported material.
Turns PDFs, flat documents and images into ordered page images, keeps them
as reorderable documents, and assembles them back into a single PDF.

Main components:
- Format normalization (PDF rasterizing, document rendering, image passthrough)
- Page image codec (JPEG page store)
- Document model (ordered page references)
- PDF assembly (aspect-fit, centered A4 pages)
- Text extraction (Tesseract OCR)
- Conversion orchestration with partial-failure policy
"""

__version__ = "1.0.0"
__author__ = "DocScan Team"
