"""rfpdesk ingest pipeline — text extraction, section heuristics, summaries, scraping."""

from __future__ import annotations

from pathlib import Path

from rfpdesk.errors import ExtractionError, UnsupportedFileTypeError
from rfpdesk.ingest.base import BaseExtractor, ParsedDocument
from rfpdesk.ingest.word import DocxExtractor
from rfpdesk.ingest.pdf import PdfExtractor
from rfpdesk.ingest.plaintext import PlainTextExtractor
from rfpdesk.ingest.xlsx import SpreadsheetExtractor

_EXTRACTORS: tuple[BaseExtractor, ...] = (
    PdfExtractor(),
    DocxExtractor(),
    SpreadsheetExtractor(),
    PlainTextExtractor(),
)

SUPPORTED_EXTENSIONS: tuple[str, ...] = tuple(
    ext for extractor in _EXTRACTORS for ext in extractor.extensions
)


def get_extractor(filename: str) -> BaseExtractor:
    """Return the extractor for *filename*'s extension.

    Raises:
        UnsupportedFileTypeError: If no extractor handles the extension.
    """
    suffix = Path(filename).suffix.lower()
    for extractor in _EXTRACTORS:
        if suffix in extractor.extensions:
            return extractor
    raise UnsupportedFileTypeError(
        f"Unsupported file type '{suffix or filename}'. "
        f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
    )


def parse_document(path: Path | str, filename: str | None = None) -> ParsedDocument:
    """Extract text and metadata from the file at *path*.

    Args:
        path: File on disk.
        filename: Original upload name used to pick the extractor; defaults
            to *path*'s own name.

    Raises:
        UnsupportedFileTypeError: If the extension is not supported.
        ExtractionError: If the file cannot be parsed.
    """
    path = Path(path)
    extractor = get_extractor(filename or path.name)
    try:
        parsed = extractor.extract(path)
    except Exception as exc:
        raise ExtractionError(
            f"Could not extract text from '{filename or path.name}': {exc}"
        ) from exc
    if filename:
        parsed.metadata["file_name"] = filename
    return parsed


__all__ = [
    "BaseExtractor",
    "DocxExtractor",
    "ParsedDocument",
    "PdfExtractor",
    "PlainTextExtractor",
    "SpreadsheetExtractor",
    "SUPPORTED_EXTENSIONS",
    "get_extractor",
    "parse_document",
]
