"""Exception hierarchy shared by the service layer, the API and the CLI.

The API maps each class to an HTTP status via ``status_code``.
"""

from __future__ import annotations


class RfpDeskError(Exception):
    """Base class for all rfpdesk errors."""

    status_code: int = 500

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInputError(RfpDeskError):
    """A request value failed validation."""

    status_code = 400


class NothingToSummarizeError(InvalidInputError):
    """The entity has no text content."""

    def __init__(self, message: str = "No content to summarize") -> None:
        super().__init__(message)


class UnsupportedFileTypeError(InvalidInputError):
    """The uploaded file has an extension no extractor handles."""


class NotFoundError(RfpDeskError):
    """A referenced project, document, question or revision does not exist."""

    status_code = 404

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found: {entity_id}", details={"id": entity_id})
        self.kind = kind
        self.entity_id = entity_id


class ConcurrentUpdateError(RfpDeskError):
    """A draft was modified by another writer between read and write."""

    status_code = 409


class ExtractionError(RfpDeskError):
    """A file could not be parsed into text."""

    status_code = 422


class SummarizationFailedError(RfpDeskError):
    """Every summarization call for a text failed."""

    status_code = 502


class ScrapeError(RfpDeskError):
    """A web page could not be fetched or rendered."""

    status_code = 502


class GenerationError(RfpDeskError):
    """The language model returned no usable output."""

    status_code = 502


class MissingAnswersError(RfpDeskError):
    """Some questions are still unanswered after the per-question retry."""

    status_code = 502

    def __init__(self, question_ids: list[str]) -> None:
        super().__init__(
            f"No answer generated for {len(question_ids)} question(s): "
            + ", ".join(question_ids),
            details={"missing": list(question_ids)},
        )
        self.question_ids = list(question_ids)
