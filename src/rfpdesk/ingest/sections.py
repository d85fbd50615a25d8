"""Heuristic key-information extraction for RFI/RFP text.

Pure functions: no I/O, no model calls. A section starts at a line whose
first word is one of the section keywords (optionally numbered, e.g.
``3. Scope of Work:``) and runs until the next section header or the end of
the text. Only the first occurrence of each section is kept.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

SECTION_NAMES: tuple[str, ...] = ("scope", "requirements", "timeline", "budget", "deliverables")

_SECTION_KEYWORDS: dict[str, str] = {
    "scope": r"scope\s+of\s+work|project\s+scope|scope",
    "requirements": r"technical\s+requirements|functional\s+requirements|requirements",
    "timeline": r"timeline|schedule|project\s+duration|deadlines?",
    "budget": r"budget|pricing|cost|financial",
    "deliverables": r"deliverables|outputs|expected\s+results",
}

_HEADER_RE = re.compile(
    r"^[ \t]*(?:(?:\d+|[A-Za-z])[.)][ \t]*)?(?:#+[ \t]*)?"
    r"(?:"
    + "|".join(f"(?P<{name}>{pattern})" for name, pattern in _SECTION_KEYWORDS.items())
    + r")\b[ \t]*:?",
    re.IGNORECASE | re.MULTILINE,
)

# Line keywords for spreadsheet text, checked in this order.
_SHEET_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("requirements", ("requirement", "spec")),
    ("budget", ("budget", "cost", "price")),
    ("timeline", ("timeline", "schedule", "date")),
    ("deliverables", ("deliverable", "output")),
)

_PRICE_RE = re.compile(r"\$[\d,]+(?:\.\d+)?")


@dataclass(frozen=True)
class SectionSpan:
    """A located section: ``text[start:end]`` covers header and body."""

    name: str
    start: int
    end: int
    text: str


def find_sections(text: str) -> list[SectionSpan]:
    """Return the first span of each named section, in document order."""
    headers = [
        (m.start(), m.end(), m.lastgroup)
        for m in _HEADER_RE.finditer(text)
        if m.lastgroup
    ]
    spans: list[SectionSpan] = []
    seen: set[str] = set()
    for index, (start, body_start, name) in enumerate(headers):
        end = headers[index + 1][0] if index + 1 < len(headers) else len(text)
        if name in seen:
            continue
        body = text[body_start:end].strip()
        if not body:
            continue
        seen.add(name)
        spans.append(SectionSpan(name=name, start=start, end=end, text=body))
    return spans


def _spreadsheet_sections(text: str) -> dict[str, str]:
    sections: dict[str, str] = {}
    current = ""
    content: list[str] = []

    def _flush() -> None:
        if current and content:
            sections[current] = "\n".join(content).strip()

    for line in text.split("\n"):
        lower = line.lower()
        matched = next(
            (name for name, words in _SHEET_KEYWORDS if any(w in lower for w in words)),
            None,
        )
        if matched:
            _flush()
            current = matched
            content = []
        elif current and line.strip():
            content.append(line)
    _flush()

    prices = _PRICE_RE.findall(text)
    if prices and "budget" not in sections:
        sections["budget"] = "Pricing found: " + ", ".join(prices)
    return sections


def extract_key_information(text: str, max_chars: int | None = None) -> dict[str, str]:
    """Return ``{section_name: body}`` for the sections found in *text*.

    Spreadsheet text (rendered with ``=== Sheet:`` headers) is classified line
    by line instead, and bare dollar amounts fill ``budget`` when no budget
    rows were found.

    Args:
        text: Extracted document text.
        max_chars: If given, each body is truncated to this many characters.
    """
    if not text or not text.strip():
        return {}
    if "=== Sheet:" in text:
        sections = _spreadsheet_sections(text)
    else:
        sections = {span.name: span.text for span in find_sections(text)}
    if max_chars is not None:
        sections = {k: v[:max_chars] for k, v in sections.items()}
    return sections
