"""Base extractor interface for all uploaded file types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class ParsedDocument:
    """Plain text extracted from a file plus structural metadata.

    ``metadata`` always carries ``file_name``, ``file_type`` and
    ``extracted_at``; PDFs add ``page_count`` and spreadsheets ``sheet_count``.
    """

    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


class BaseExtractor(ABC):
    """Abstract base for all extractors.

    Subclasses declare the lowercase ``extensions`` they handle and implement
    ``_extract_text()``; ``extract()`` assembles the common metadata.
    """

    extensions: tuple[str, ...] = ()
    file_type: str = ""

    def extract(self, path: Path | str) -> ParsedDocument:
        """Read *path* and return its text with metadata."""
        path = Path(path)
        text, extra = self._extract_text(path)
        metadata: dict[str, Any] = {
            "file_name": path.name,
            "file_type": self.file_type,
            "extracted_at": datetime.now(timezone.utc).isoformat(),
            **extra,
        }
        return ParsedDocument(text=text, metadata=metadata)

    @abstractmethod
    def _extract_text(self, path: Path) -> tuple[str, dict[str, Any]]:
        """Return ``(text, extra_metadata)`` for the file at *path*."""
