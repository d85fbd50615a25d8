"""Word document extractor via python-docx."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import docx

from rfpdesk.ingest.base import BaseExtractor


class DocxExtractor(BaseExtractor):
    """Extract paragraph text, then table rows, from a ``.docx`` file.

    Table cells are joined with `` | `` so row structure survives into the
    plain text that the section heuristics and the summarizer see.
    """

    extensions = (".docx",)
    file_type = "docx"

    def _extract_text(self, path: Path) -> tuple[str, dict[str, Any]]:
        document = docx.Document(str(path))
        parts = [p.text for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    parts.append(" | ".join(cells))
        return "\n".join(parts), {"table_count": len(document.tables)}
