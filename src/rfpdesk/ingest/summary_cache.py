"""Read-through cache of Summary objects on document, web-source and knowledge rows.

A cached value is usable only if it parses and has a non-empty narrative;
anything else is reported as a miss and gets regenerated on the next
read-through. Writes are last-write-wins.
"""

from __future__ import annotations

import json
import logging

from rfpdesk.db.models import Summary
from rfpdesk.db.repository import SUMMARY_TABLES, Repository
from rfpdesk.ingest.summarizer import DocumentSummarizer

logger = logging.getLogger(__name__)


class SummaryCache:
    """Summary cache for one entity kind (``document``, ``web_source`` or ``knowledge``)."""

    def __init__(self, repo: Repository, kind: str) -> None:
        if kind not in SUMMARY_TABLES:
            raise ValueError(
                f"Unknown summary entity kind {kind!r}; expected one of {sorted(SUMMARY_TABLES)}"
            )
        self._repo = repo
        self.kind = kind

    def get(self, entity_id: str) -> Summary | None:
        """Return the cached summary, or None on a miss."""
        raw = self._repo.get_summary_cache(self.kind, entity_id)
        return load_summary(raw, f"{self.kind} {entity_id}")

    def set(self, entity_id: str, summary: Summary) -> bool:
        """Store *summary* and stamp the generation time. False if the entity is gone."""
        return self._repo.set_summary_cache(self.kind, entity_id, summary.to_json())

    def invalidate(self, entity_id: str) -> bool:
        """Clear the cached summary and its timestamp."""
        return self._repo.clear_summary_cache(self.kind, entity_id)

    def get_or_create(
        self,
        entity_id: str,
        text: str,
        summarizer: DocumentSummarizer,
        *,
        label: str = "document",
        project_type: str = "RFP",
        force: bool = False,
    ) -> tuple[Summary, bool]:
        """Return ``(summary, cached)``, generating and storing on a miss or *force*.

        Raises:
            NothingToSummarizeError: If *text* is empty.
            SummarizationFailedError: If generation failed; the cache is untouched.
        """
        if not force:
            cached = self.get(entity_id)
            if cached is not None:
                return cached, True
        summary = summarizer.summarize(text, label=label, project_type=project_type)
        self.set(entity_id, summary)
        return summary, False


def load_summary(raw: str | None, label: str = "entity") -> Summary | None:
    """Parse a stored ``summary_cache`` value; None unless it is a valid Summary."""
    if not raw:
        return None
    try:
        summary = Summary.from_json(raw)
    except (json.JSONDecodeError, ValueError, TypeError) as exc:
        logger.warning("Ignoring unreadable summary cache for %s: %s", label, exc)
        return None
    return summary if summary.is_valid else None
