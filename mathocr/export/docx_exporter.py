"""
Word document export.

Writes processed pages to a .docx file with python-docx:
one heading per page, one paragraph per text line and one picture per
cropped figure at a fixed display size.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import BinaryIO, Optional, Sequence, Union

from docx import Document
from docx.document import Document as DocxDocument
from docx.shared import Pt

from ..config import ExportConfig, get_config
from ..exceptions import ExportError
from ..logger import get_logger
from ..models import ContentBlock, PageResult

FAILED_FIGURE_TEXT = "[Figure could not be cropped]"

logger = get_logger("DocxExporter")


class DocxExporter:
    """
    Build a Word document from page results.

    Figures that were not cropped are written as an italic placeholder
    line so a failed crop stays visible in the export.
    """

    def __init__(self, config: Optional[ExportConfig] = None):
        self.config = config or get_config().export

    def build(self, results: Sequence[PageResult]) -> DocxDocument:
        """Create the in-memory document."""
        doc = Document()
        doc.add_heading(self.config.title, level=0)

        for page in results:
            heading = doc.add_heading(f"Page {page.page_number}", level=2)
            heading.paragraph_format.space_before = Pt(20)
            heading.paragraph_format.space_after = Pt(10)

            for block in page.blocks:
                if block.is_text:
                    self._add_text(doc, block)
                else:
                    self._add_figure(doc, block, page.page_number)

        return doc

    def export(self, results: Sequence[PageResult], target: Union[str, Path, BinaryIO]) -> None:
        """
        Write the document to a path or binary stream.

        Raises:
            ExportError: The file could not be written
        """
        doc = self.build(results)
        file_path = str(target) if isinstance(target, (str, Path)) else None

        try:
            if file_path:
                Path(file_path).parent.mkdir(parents=True, exist_ok=True)
            doc.save(target)
        except OSError as e:
            raise ExportError(f"Failed to write Word document: {e}", file_path=file_path, export_format="docx") from e

        logger.info(f"Exported {len(results)} pages to {file_path or 'stream'}")

    def to_bytes(self, results: Sequence[PageResult]) -> bytes:
        buf = io.BytesIO()
        self.export(results, buf)
        return buf.getvalue()

    def _add_text(self, doc: DocxDocument, block: ContentBlock) -> None:
        for line in (block.text or "").split("\n"):
            if not line.strip():
                continue
            paragraph = doc.add_paragraph()
            run = paragraph.add_run(line)
            run.font.size = Pt(self.config.font_size_pt)
            paragraph.paragraph_format.space_after = Pt(6)

    def _add_figure(self, doc: DocxDocument, block: ContentBlock, page_number: int) -> None:
        paragraph = doc.add_paragraph()
        paragraph.paragraph_format.space_before = Pt(10)
        paragraph.paragraph_format.space_after = Pt(10)

        if block.cropped_image is None:
            run = paragraph.add_run(FAILED_FIGURE_TEXT)
            run.italic = True
            return

        try:
            paragraph.add_run().add_picture(
                io.BytesIO(block.cropped_image),
                width=Pt(self.config.figure_width_pt),
                height=Pt(self.config.figure_height_pt),
            )
        except Exception as e:
            # python-docx raises its own UnrecognizedImageError plus stdlib errors
            raise ExportError(
                f"Figure on page {page_number} could not be embedded: {e}",
                export_format="docx",
            ) from e


def export_docx(
    results: Sequence[PageResult],
    target: Union[str, Path, BinaryIO],
    config: Optional[ExportConfig] = None,
) -> None:
    """Convenience function to write page results to a .docx file."""
    DocxExporter(config).export(results, target)
