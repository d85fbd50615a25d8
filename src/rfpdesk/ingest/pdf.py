"""PDF extractor — page-based extraction via pypdf."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pypdf

from rfpdesk.ingest.base import BaseExtractor


class PdfExtractor(BaseExtractor):
    """Extract text from a PDF using pypdf.

    Pages are joined with blank lines; pages that yield no text (scanned
    images, etc.) are skipped but still counted in ``page_count``.
    """

    extensions = (".pdf",)
    file_type = "pdf"

    def _extract_text(self, path: Path) -> tuple[str, dict[str, Any]]:
        reader = pypdf.PdfReader(str(path))
        parts: list[str] = []
        for page in reader.pages:
            page_text = page.extract_text() or ""
            stripped = page_text.strip()
            if stripped:
                parts.append(stripped)
        return "\n\n".join(parts), {"page_count": len(reader.pages)}
