"""
Document-rendering collaborators.

A renderer turns a flat document (plain text, Markdown, DOCX, ...) into the
bytes of an intermediate PDF at a fixed page size. The PDF is then rasterized
like any other PDF input. Rendering is the one awaited step of a conversion.

Provides:
- DocumentRenderer interface
- TextLayoutRenderer (python-docx + fpdf2, in a worker thread)
- OfficeRenderer (LibreOffice headless, as a subprocess)
- FileTypeRenderer (text layout where possible, LibreOffice for the rest)
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import List, Tuple, Union

from .errors import RenderFailure

logger = logging.getLogger(__name__)

PageSize = Tuple[float, float]


# ============================================================================
# Renderer Interface
# ============================================================================

class DocumentRenderer:
    """Converts a document file into PDF bytes at a given page size (points)."""

    name = "base"

    async def render(self, path: Union[str, Path], page_size: PageSize) -> bytes:
        raise NotImplementedError


# ============================================================================
# Text Layout Renderer
# ============================================================================

TEXT_SUFFIXES = ('.txt', '.md')
LAYOUT_SUFFIXES = TEXT_SUFFIXES + ('.docx',)


class TextLayoutRenderer(DocumentRenderer):
    """
    Lay out the text content of a document on fixed-size pages.

    Plain text and Markdown are read directly; DOCX paragraphs come from
    python-docx. Headings (Markdown '#' lines, DOCX 'Heading' styles) are set
    in bold. Formatting beyond that is not reproduced.
    """

    name = "text"

    def __init__(
        self,
        font_family: str = "Helvetica",
        font_size: float = 11.0,
        margin: float = 56.0
    ):
        self.font_family = font_family
        self.font_size = font_size
        self.margin = margin

    async def render(self, path: Union[str, Path], page_size: PageSize) -> bytes:
        return await asyncio.to_thread(self.render_sync, Path(path), page_size)

    def render_sync(self, path: Path, page_size: PageSize) -> bytes:
        """Blocking variant of render()."""
        blocks = self._load_blocks(path)
        logger.debug(f"Laying out {len(blocks)} blocks from {path.name}")
        try:
            return self._layout(blocks, page_size)
        except Exception as e:
            raise RenderFailure(f"Could not lay out {path.name}: {e}") from e

    def _load_blocks(self, path: Path) -> List[Tuple[str, str]]:
        """Return (style, text) blocks; style is 'h1'..'h3', 'bullet' or 'body'."""
        suffix = path.suffix.lower()
        try:
            if suffix in TEXT_SUFFIXES:
                text = path.read_text(encoding='utf-8', errors='replace')
                if suffix == '.md':
                    return [self._markdown_block(line) for line in text.splitlines()]
                return [("body", line) for line in text.splitlines()]
            if suffix == '.docx':
                return self._docx_blocks(path)
        except RenderFailure:
            raise
        except Exception as e:
            raise RenderFailure(f"Could not load {path.name}: {e}") from e

        raise RenderFailure(f"Text renderer cannot load '{suffix}' files")

    @staticmethod
    def _markdown_block(line: str) -> Tuple[str, str]:
        line = line.rstrip()
        if line.startswith('### '):
            return ("h3", line[4:])
        if line.startswith('## '):
            return ("h2", line[3:])
        if line.startswith('# '):
            return ("h1", line[2:])
        if line.startswith('- ') or line.startswith('* '):
            return ("bullet", line[2:])
        clean_line = line.replace('**', '').replace('`', '')
        return ("body", clean_line)

    @staticmethod
    def _docx_blocks(path: Path) -> List[Tuple[str, str]]:
        from docx import Document as DocxDocument

        doc = DocxDocument(str(path))
        blocks = []
        for para in doc.paragraphs:
            style_name = para.style.name if para.style is not None else ""
            if style_name.startswith("Heading 1") or style_name == "Title":
                blocks.append(("h1", para.text))
            elif style_name.startswith("Heading 2"):
                blocks.append(("h2", para.text))
            elif style_name.startswith("Heading"):
                blocks.append(("h3", para.text))
            elif style_name.startswith("List"):
                blocks.append(("bullet", para.text))
            else:
                blocks.append(("body", para.text))
        return blocks

    def _layout(self, blocks: List[Tuple[str, str]], page_size: PageSize) -> bytes:
        from fpdf import FPDF
        from fpdf.enums import XPos, YPos

        pdf = FPDF(orientation="P", unit="pt", format=page_size)
        pdf.set_margins(self.margin, self.margin, self.margin)
        pdf.set_auto_page_break(auto=True, margin=self.margin)
        pdf.add_page()

        body = self.font_size
        line_height = body * 1.4
        heading_sizes = {"h1": body * 1.6, "h2": body * 1.3, "h3": body * 1.1}

        for style, text in blocks:
            text = _latin1(text)
            if style in heading_sizes:
                size = heading_sizes[style]
                pdf.set_font(self.font_family, 'B', size)
                pdf.multi_cell(0, size * 1.4, text, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
                pdf.ln(size * 0.3)
            elif not text.strip():
                pdf.ln(line_height * 0.5)
            elif style == "bullet":
                pdf.set_font(self.font_family, '', body)
                pdf.cell(body, line_height, chr(183))
                pdf.multi_cell(0, line_height, text, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            else:
                pdf.set_font(self.font_family, '', body)
                pdf.multi_cell(0, line_height, text, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

        return bytes(pdf.output())


def _latin1(text: str) -> str:
    # Core PDF fonts only cover Latin-1
    return text.replace('\t', '    ').encode('latin-1', 'replace').decode('latin-1')


# ============================================================================
# LibreOffice Renderer
# ============================================================================

class OfficeRenderer(DocumentRenderer):
    """
    Convert documents with a headless LibreOffice subprocess.

    Handles every format LibreOffice can open (DOC, DOCX, RTF, ODT, TXT).
    Page geometry follows the document's own page setup; page_size is only
    used by renderers that lay out text themselves.
    """

    name = "soffice"

    def __init__(self, soffice_path: str = "soffice", timeout_seconds: float = 120.0):
        self.soffice_path = soffice_path
        self.timeout_seconds = timeout_seconds

    async def render(self, path: Union[str, Path], page_size: PageSize) -> bytes:
        path = Path(path)
        with tempfile.TemporaryDirectory(prefix="docscan_") as tmp_dir:
            out_dir = Path(tmp_dir)
            # Private profile so concurrent conversions don't share a lock
            profile = (out_dir / "profile").as_uri()
            cmd = [
                self.soffice_path,
                f"-env:UserInstallation={profile}",
                "--headless",
                "--convert-to", "pdf",
                "--outdir", str(out_dir),
                str(path),
            ]

            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE
                )
            except FileNotFoundError as e:
                raise RenderFailure(f"{self.soffice_path} not found. Install LibreOffice") from e

            try:
                _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                raise RenderFailure(f"Rendering {path.name} timed out after {self.timeout_seconds}s")
            except asyncio.CancelledError:
                proc.kill()
                await proc.wait()
                raise

            if proc.returncode != 0:
                message = stderr.decode('utf-8', errors='replace')[-2000:]
                raise RenderFailure(f"LibreOffice failed on {path.name}: {message}")

            pdf_path = out_dir / (path.stem + ".pdf")
            if not pdf_path.exists():
                raise RenderFailure(f"LibreOffice produced no PDF for {path.name}")

            return pdf_path.read_bytes()


# ============================================================================
# File Type Dispatch
# ============================================================================

class FileTypeRenderer(DocumentRenderer):
    """
    Route each file to the renderer that can read it.

    Plain text, Markdown and DOCX are laid out directly; RTF, DOC, ODT and
    anything else go to LibreOffice.
    """

    name = "auto"

    def __init__(self, text_renderer: DocumentRenderer, office_renderer: DocumentRenderer):
        self.text_renderer = text_renderer
        self.office_renderer = office_renderer

    def renderer_for(self, path: Union[str, Path]) -> DocumentRenderer:
        if Path(path).suffix.lower() in LAYOUT_SUFFIXES:
            return self.text_renderer
        return self.office_renderer

    async def render(self, path: Union[str, Path], page_size: PageSize) -> bytes:
        renderer = self.renderer_for(path)
        logger.debug(f"Routing {Path(path).name} to the {renderer.name} renderer")
        return await renderer.render(path, page_size)


# ============================================================================
# Factory
# ============================================================================

def get_renderer(config) -> DocumentRenderer:
    """
    Create the renderer named by a RenderConfig.

    Args:
        config: RenderConfig instance

    Returns:
        DocumentRenderer
    """
    text = TextLayoutRenderer(
        font_family=config.font_family,
        font_size=config.font_size,
        margin=config.margin
    )
    office = OfficeRenderer(
        soffice_path=config.soffice_path,
        timeout_seconds=config.timeout_seconds
    )

    if config.backend == "auto":
        return FileTypeRenderer(text, office)
    elif config.backend == "text":
        return text
    elif config.backend == "soffice":
        return office
    raise ValueError(f"Unknown renderer backend: {config.backend}")
