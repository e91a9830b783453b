#!/usr/bin/env python
"""
Command-line interface for DocScan.

Usage:
    docscan [--library DIR] <command> [options]

Examples:
    # Import a PDF, Word document or image as a new document
    docscan convert report.docx --title "Quarterly report"

    # Create a document from scanned page images
    docscan scan page1.jpg page2.jpg

    # Reorder, export and OCR
    docscan move <doc_id> 3 1
    docscan export <doc_id> --output ./out
    docscan ocr <doc_id> --page 2
"""

import argparse
import asyncio
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import Iterator, List, Optional

from . import __version__
from .config import get_config
from .utils.codec import decode_image
from .utils.errors import CodecError, DocScanError
from .utils.library import Library

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("docscan")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="docscan",
        description="DocScan - Turn scans, photos, PDFs and office documents into page-image PDFs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Import a file as a new document:
    docscan convert document.pdf

  Append a file to an existing document:
    docscan convert notes.txt --into <doc_id>

  Export a document to PDF:
    docscan export <doc_id> --output ./out
        """
    )

    parser.add_argument(
        "--library", "-l",
        default=None,
        help="Library directory (default: $DOCSCAN_LIBRARY_DIR or ~/.docscan)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show full tracebacks on failure"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    p = sub.add_parser("convert", help="Import a PDF, document or image")
    p.add_argument("input", help="Input file")
    p.add_argument("--title", "-t", default=None, help="Title of the new document")
    p.add_argument("--into", default=None, metavar="DOC_ID",
                   help="Append pages to an existing document instead")
    p.add_argument("--json", action="store_true", help="Print the job record as JSON")

    p = sub.add_parser("scan", help="Create a document from page images")
    p.add_argument("images", nargs="+", help="Image files, one per page")
    p.add_argument("--source", default="Scan", help="Title prefix (default: Scan)")

    sub.add_parser("list", help="List documents, newest first")

    p = sub.add_parser("show", help="Show one document")
    p.add_argument("doc_id")

    p = sub.add_parser("rename", help="Rename a document")
    p.add_argument("doc_id")
    p.add_argument("title")

    p = sub.add_parser("move", help="Move a page (1-based page numbers)")
    p.add_argument("doc_id")
    p.add_argument("from_page", type=int)
    p.add_argument("to_page", type=int)

    p = sub.add_parser("remove", help="Remove a page (1-based page number)")
    p.add_argument("doc_id")
    p.add_argument("page", type=int)

    p = sub.add_parser("export", help="Export a document as PDF")
    p.add_argument("doc_id")
    p.add_argument("--output", "-o", default=None, help="Output directory")

    p = sub.add_parser("ocr", help="Extract the text of one page")
    p.add_argument("doc_id")
    p.add_argument("--page", "-p", type=int, default=1, help="Page number (default: 1)")

    p = sub.add_parser("delete", help="Delete a document and its pages")
    p.add_argument("doc_id")

    sub.add_parser("check", help="Check external dependencies")

    return parser


def check_dependencies() -> bool:
    """Check if required dependencies are available."""
    missing = []
    optional_missing = []

    try:
        import cv2  # noqa: F401
    except ImportError:
        missing.append("opencv-python")

    try:
        import fpdf  # noqa: F401
    except ImportError:
        missing.append("fpdf2")

    try:
        import pdf2image  # noqa: F401
        if shutil.which("pdftoppm") is None:
            missing.append("poppler-utils (system package, for PDF support)")
    except ImportError:
        missing.append("pdf2image")

    try:
        import pytesseract
        try:
            pytesseract.get_tesseract_version()
        except Exception:
            optional_missing.append("tesseract-ocr (system package, for text extraction)")
    except ImportError:
        optional_missing.append("pytesseract (for text extraction)")

    try:
        import docx  # noqa: F401
    except ImportError:
        optional_missing.append("python-docx (for .docx with the text renderer)")

    if shutil.which(get_config().render.soffice_path) is None:
        optional_missing.append("libreoffice (for the soffice renderer)")

    if missing:
        logger.error("Missing required dependencies:")
        for dep in missing:
            logger.error(f"  - {dep}")
        return False

    if optional_missing:
        logger.warning("Missing optional dependencies (some features may be limited):")
        for dep in optional_missing:
            logger.warning(f"  - {dep}")

    logger.info("All required dependencies are available")
    return True


def _read_images(paths: List[str]) -> Iterator:
    for name in paths:
        try:
            yield decode_image(Path(name).read_bytes())
        except (OSError, CodecError) as e:
            logger.warning(f"Skipping {name}: {e}")


def _print_document(document) -> None:
    print(f"{document.id}  {document.title}")
    print(f"  Created: {document.created_at}")
    print(f"  Pages:   {document.page_count}")
    for number, ref in enumerate(document.pages, 1):
        print(f"    {number:>3}. {ref}")


def run_command(args, config=None) -> int:
    """Run one subcommand against the library."""
    config = config or get_config()
    library = Library(root=args.library, config=config)

    if args.command == "convert":
        if args.into:
            job = asyncio.run(library.import_into(args.into, args.input))
            document = library.get(args.into) if job.succeeded else None
        else:
            job, document = asyncio.run(library.import_file(args.input, title=args.title))

        if args.json:
            print(json.dumps(job.to_dict(), indent=2))
        if not job.succeeded:
            logger.error(f"Conversion failed: {job.error}")
            return 1
        if job.dropped_pages:
            logger.warning(f"{job.dropped_pages} page(s) could not be converted")
        if not args.quiet and not args.json:
            print(f"Imported {len(job.page_refs)} page(s) from {job.source}")
            _print_document(document)

    elif args.command == "scan":
        document = library.create_from_images(_read_images(args.images), source=args.source)
        if not args.quiet:
            _print_document(document)

    elif args.command == "list":
        for document in library.list_documents():
            print(f"{document.id}  {document.page_count:>3} page(s)  {document.title}")

    elif args.command == "show":
        _print_document(library.get(args.doc_id))

    elif args.command == "rename":
        document = library.rename(args.doc_id, args.title)
        if not args.quiet:
            print(f"Renamed {document.id} to {document.title!r}")

    elif args.command == "move":
        document = library.move_page(args.doc_id, args.from_page - 1, args.to_page - 1)
        if not args.quiet:
            _print_document(document)

    elif args.command == "remove":
        document = library.remove_page(args.doc_id, args.page - 1)
        if not args.quiet:
            _print_document(document)

    elif args.command == "export":
        pdf_path = library.export_pdf(args.doc_id, args.output)
        print(pdf_path)

    elif args.command == "ocr":
        text = library.extract_text(args.doc_id, args.page - 1)
        print(text)

    elif args.command == "delete":
        library.delete_document(args.doc_id)
        if not args.quiet:
            print(f"Deleted {args.doc_id}")

    elif args.command == "check":
        return 0 if check_dependencies() else 1

    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    config = get_config()
    if args.debug:
        config.debug_mode = True

    # Configure logging level
    if args.verbose or config.debug_mode:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        exit_code = run_command(args, config)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except (DocScanError, KeyError, IndexError, OSError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        logger.error("The operation did not complete. Please try again.")
        if config.debug_mode:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
