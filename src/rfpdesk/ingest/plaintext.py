"""Plain text extractor."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from rfpdesk.ingest.base import BaseExtractor


class PlainTextExtractor(BaseExtractor):
    """Read text files as UTF-8; undecodable bytes are replaced, not fatal."""

    extensions = (".txt", ".text", ".md", ".csv")
    file_type = "txt"

    def _extract_text(self, path: Path) -> tuple[str, dict[str, Any]]:
        return path.read_text(encoding="utf-8", errors="replace"), {}
