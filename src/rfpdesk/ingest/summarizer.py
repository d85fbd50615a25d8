"""Document summarizer — structured RFI/RFP summaries via LiteLLM.

Texts are handled by size:

* small  (< ``small_threshold`` chars): wrapped as-is, no model call;
* medium (up to ``large_threshold``): one model call;
* large: split into chunks of at most ``chunk_size`` chars, one call per
  chunk, then merged.

A failed or unparsable call contributes nothing. Only when every call fails
is ``SummarizationFailedError`` raised. Calls are never retried here.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from rfpdesk.config import SummarizerCfg
from rfpdesk.db.models import Summary
from rfpdesk.errors import NothingToSummarizeError, SummarizationFailedError
from rfpdesk.ingest.sections import SectionSpan, extract_key_information, find_sections
from rfpdesk.rag import llm_client

logger = logging.getLogger(__name__)

_SUMMARY_PROMPT = """\
You are analyzing an {project_type} document for a company preparing its response.
Focus on {focus}.
{part_note}Document: {label}

Answer in exactly this format. Write "Not specified" for anything the document does not cover.
Use "- " bullet lines under a field when it holds several items.

SUMMARY: <2-4 sentence overview>
SCOPE: <project scope>
REQUIREMENTS: <key requirements>
TIMELINE: <dates, deadlines and milestones>
BUDGET: <budget or pricing information>
DELIVERABLES: <expected deliverables>
TECHNICAL_SPECS: <technical specifications>
EVALUATION_CRITERIA: <how responses will be evaluated>
KEY_POINTS:
- <at most {max_key_points} short key points>

Document text:
{text}"""

_FOCUS: dict[str, str] = {
    "RFI": "what information the issuer asks vendors to provide and what they plan to buy",
    "RFP": "the requirements a proposal must satisfy, how it will be scored, and when it is due",
}

# Response label → Summary field name ("narrative" and "key_points" are special).
_LABELS: dict[str, str] = {
    "SUMMARY": "narrative",
    "OVERVIEW": "narrative",
    "SCOPE": "scope",
    "REQUIREMENTS": "requirements",
    "TIMELINE": "timeline",
    "BUDGET": "budget",
    "DELIVERABLES": "deliverables",
    "TECHNICAL_SPECS": "technical_specs",
    "TECHNICAL_SPECIFICATIONS": "technical_specs",
    "EVALUATION": "evaluation_criteria",
    "EVALUATION_CRITERIA": "evaluation_criteria",
    "KEY_POINTS": "key_points",
}

_LABEL_RE = re.compile(r"^\s*[*#]*\s*([A-Za-z][A-Za-z_ ]*?)\s*[*]*\s*:\s*[*]*\s*(.*)$")
_BULLET_RE = re.compile(r"^\s*(?:[-•*]|\d+[.)])\s+(.*\S)\s*$")
_EMPTY_VALUES = frozenset(["not specified", "n/a", "none", "not applicable", "unknown"])


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------


def split_into_chunks(
    text: str, chunk_size: int, sections: Sequence[SectionSpan] = ()
) -> list[str]:
    """Split *text* into contiguous chunks of at most *chunk_size* characters.

    A cut that would land inside one of *sections* moves back to that
    section's start when the section begins inside the current chunk and
    fits in one chunk.
    Otherwise the cut prefers the last newline, then the last space, in the
    second half of the window. Whitespace-only chunks are dropped.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    chunks: list[str] = []
    start = 0
    length = len(text)
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            end = _choose_cut(text, start, end, chunk_size, sections)
        piece = text[start:end]
        if piece.strip():
            chunks.append(piece)
        start = end
    return chunks


def _choose_cut(
    text: str, start: int, end: int, chunk_size: int, sections: Sequence[SectionSpan]
) -> int:
    for span in sections:
        if start < span.start < end < span.end and span.end - span.start <= chunk_size:
            return span.start
    floor = start + chunk_size // 2
    newline = text.rfind("\n", floor, end)
    if newline != -1:
        return newline + 1
    space = max(text.rfind(" ", floor, end), text.rfind("\t", floor, end))
    if space != -1:
        return space + 1
    return end


# ---------------------------------------------------------------------------
# Response parsing + merge
# ---------------------------------------------------------------------------


def _is_empty_value(value: str) -> bool:
    return value.strip().rstrip(".").lower() in _EMPTY_VALUES


def parse_summary_response(raw: str, max_key_points: int = 10) -> Summary | None:
    """Parse a ``LABEL: value`` model response into a Summary.

    Returns None when the response has no usable ``SUMMARY`` narrative.
    """
    narrative: list[str] = []
    key_points: list[str] = []
    texts: dict[str, list[str]] = {}
    items: dict[str, list[str]] = {}
    current: str | None = None

    for line in (raw or "").splitlines():
        if not line.strip():
            continue
        bullet = _BULLET_RE.match(line)
        label = None if bullet else _LABEL_RE.match(line)
        key = _LABELS.get(label.group(1).strip().upper().replace(" ", "_")) if label else None

        if key is not None:
            current = key
            value = label.group(2).strip() if label else ""
            if not value or _is_empty_value(value):
                continue
            if key == "narrative":
                narrative.append(value)
            elif key == "key_points":
                key_points.append(value)
            else:
                texts.setdefault(key, []).append(value)
        elif current is None:
            continue
        elif bullet:
            value = bullet.group(1).strip()
            if _is_empty_value(value):
                continue
            if current == "key_points":
                key_points.append(value)
            elif current == "narrative":
                narrative.append(value)
            else:
                items.setdefault(current, []).append(value)
        elif current == "narrative":
            narrative.append(line.strip())
        elif current == "key_points":
            key_points.append(line.strip())
        elif not _is_empty_value(line):
            texts.setdefault(current, []).append(line.strip())

    text = " ".join(narrative).strip()
    if not text:
        return None

    fields: dict[str, str | list[str]] = {}
    for name in dict.fromkeys([*texts, *items]):
        head = " ".join(texts.get(name, [])).strip()
        if name in items:
            fields[name] = ([head] if head else []) + items[name]
        elif head:
            fields[name] = head

    return Summary(
        narrative=text,
        key_points=key_points[:max_key_points],
        fields=fields,
    )


def merge_summaries(parts: Sequence[Summary | None], original_length: int) -> Summary:
    """Merge per-chunk summaries in chunk order.

    Narratives are concatenated, key points unioned (first spelling wins,
    case-insensitive), fields take the first non-empty value per name.
    ``chunk_count`` is the number of chunks processed, failed ones included.
    """
    narratives: list[str] = []
    key_points: list[str] = []
    seen: set[str] = set()
    fields: dict[str, str | list[str]] = {}

    for part in parts:
        if part is None:
            continue
        if part.narrative.strip():
            narratives.append(part.narrative.strip())
        for point in part.key_points:
            folded = point.strip().casefold()
            if folded and folded not in seen:
                seen.add(folded)
                key_points.append(point.strip())
        for name, value in part.fields.items():
            if name not in fields and value:
                fields[name] = value

    return Summary(
        narrative="\n\n".join(narratives),
        key_points=key_points,
        fields=fields,
        chunk_count=len(parts),
        original_length=original_length,
    )


def truncate_for_context(text: str, limit: int) -> str:
    """Return *text* cut to *limit* characters, marked with an ellipsis if cut."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


# ---------------------------------------------------------------------------
# Summarizer
# ---------------------------------------------------------------------------


class DocumentSummarizer:
    """Produce a Summary for a document or web-source text.

    Args:
        cfg: Size bands, model and output limits (rfpdesk.yaml: summarizer:).
    """

    def __init__(self, cfg: SummarizerCfg | None = None) -> None:
        self._cfg = cfg or SummarizerCfg()

    def summarize(self, text: str, label: str = "document", project_type: str = "RFP") -> Summary:
        """Summarize *text*, choosing the strategy from its length.

        Args:
            text: Full extracted text.
            label: Human-readable name used in prompts and log lines.
            project_type: ``"RFI"`` or ``"RFP"``; steers which details matter.

        Raises:
            NothingToSummarizeError: If *text* is empty or whitespace.
            SummarizationFailedError: If every model call failed.
        """
        if not text or not text.strip():
            raise NothingToSummarizeError()

        cfg = self._cfg
        length = len(text)

        if length < cfg.small_threshold:
            logger.info("Summary of %s: %d chars, small band, no model call", label, length)
            return Summary(
                narrative=text,
                key_points=[text],
                fields=dict(extract_key_information(text, max_chars=500)),
                chunk_count=1,
                original_length=length,
            )

        if length <= cfg.large_threshold:
            chunks = [text]
        else:
            chunks = split_into_chunks(text, cfg.chunk_size, find_sections(text))

        parts = [
            self._summarize_chunk(chunk, label, project_type, index, len(chunks))
            for index, chunk in enumerate(chunks)
        ]
        if all(part is None for part in parts):
            raise SummarizationFailedError(
                f"Summarization failed for {label}: "
                f"no usable model output for any of {len(chunks)} chunk(s)"
            )

        summary = merge_summaries(parts, length)
        failed = sum(1 for part in parts if part is None)
        logger.info(
            "Summary of %s: %d chars, %d chunk(s), %d failed",
            label,
            length,
            summary.chunk_count,
            failed,
        )
        return summary

    def _summarize_chunk(
        self, chunk: str, label: str, project_type: str, index: int, total: int
    ) -> Summary | None:
        """One model call for one chunk; None when it fails or cannot be parsed."""
        project_type = project_type.upper() if project_type else "RFP"
        part_note = (
            f"This is part {index + 1} of {total} of the document; summarize only this part.\n"
            if total > 1
            else ""
        )
        prompt = _SUMMARY_PROMPT.format(
            project_type=project_type,
            focus=_FOCUS.get(project_type, _FOCUS["RFP"]),
            part_note=part_note,
            label=label,
            max_key_points=self._cfg.max_key_points,
            text=chunk,
        )
        try:
            raw = llm_client.complete(
                model=self._cfg.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self._cfg.max_tokens,
                temperature=0.0,
                num_retries=0,
            )
        except Exception as exc:
            logger.warning("Summary call failed for %s chunk %d/%d: %s", label, index + 1, total, exc)
            return None

        parsed = parse_summary_response(raw, self._cfg.max_key_points)
        if parsed is None:
            logger.warning("Unparsable summary for %s chunk %d/%d", label, index + 1, total)
        return parsed
