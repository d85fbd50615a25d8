"""Tests for DocumentSummarizer, chunking and response parsing."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from rfpdesk.config import SummarizerCfg
from rfpdesk.db.models import Summary
from rfpdesk.errors import NothingToSummarizeError, SummarizationFailedError
from rfpdesk.ingest.sections import SectionSpan
from rfpdesk.ingest.summarizer import (
    DocumentSummarizer,
    merge_summaries,
    parse_summary_response,
    split_into_chunks,
    truncate_for_context,
)

RESPONSE = """\
SUMMARY: The district is buying Wi-Fi for 12 schools.
SCOPE: Install access points.
REQUIREMENTS:
- Wi-Fi 6E
- PoE switches
TIMELINE: Not specified
BUDGET: $250,000
KEY_POINTS:
- Wi-Fi 6E required
- Responses due June 1
"""


def _response(text: str) -> MagicMock:
    mock = MagicMock()
    mock.choices = [MagicMock()]
    mock.choices[0].message.content = text
    return mock


def _mock_completion(text: str):
    return patch("rfpdesk.rag.llm_client.litellm.completion", return_value=_response(text))


SMALL_BANDS = SummarizerCfg(small_threshold=100, large_threshold=500, chunk_size=300)


# ------------------------------------------------------------------
# Size bands
# ------------------------------------------------------------------


def test_small_text_needs_no_model_call():
    text = "Budget: $5,000 for cabling."
    with patch("rfpdesk.rag.llm_client.litellm.completion") as mock_call:
        summary = DocumentSummarizer().summarize(text)

    mock_call.assert_not_called()
    assert summary.narrative == text
    assert summary.key_points == [text]
    assert summary.fields["budget"] == "$5,000 for cabling."
    assert summary.chunk_count == 1
    assert summary.original_length == len(text)


def test_medium_text_single_call():
    text = "word " * 1000
    with _mock_completion(RESPONSE) as mock_call:
        summary = DocumentSummarizer().summarize(text, label="rfp.pdf", project_type="rfi")

    assert mock_call.call_count == 1
    kwargs = mock_call.call_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o-mini"
    assert kwargs["num_retries"] == 0
    prompt = kwargs["messages"][0]["content"]
    assert "RFI document" in prompt
    assert "rfp.pdf" in prompt
    assert "part 1 of" not in prompt
    assert summary.narrative == "The district is buying Wi-Fi for 12 schools."
    assert summary.chunk_count == 1
    assert summary.original_length == 5000


def test_large_text_is_chunked():
    text = "word " * 200
    with _mock_completion(RESPONSE) as mock_call:
        summary = DocumentSummarizer(SMALL_BANDS).summarize(text)

    assert summary.chunk_count == mock_call.call_count == 4
    first_prompt = mock_call.call_args_list[0].kwargs["messages"][0]["content"]
    assert "part 1 of 4" in first_prompt
    # Identical per-chunk key points collapse to one copy each.
    assert summary.key_points == ["Wi-Fi 6E required", "Responses due June 1"]
    assert summary.narrative.count("The district is buying") == 4


def test_large_text_key_points_are_unioned():
    responses = iter([
        "SUMMARY: Part one.\nKEY_POINTS:\n- Fiber backbone\n- Due May 1",
        "SUMMARY: Part two.\nKEY_POINTS:\n- due may 1\n- Five-year term",
        "SUMMARY: Part three.\nKEY_POINTS:\n- Bonding required",
        "SUMMARY: Part four.",
    ])
    with patch(
        "rfpdesk.rag.llm_client.litellm.completion",
        side_effect=lambda **_kw: _response(next(responses)),
    ):
        summary = DocumentSummarizer(SMALL_BANDS).summarize("word " * 200)

    assert summary.key_points == ["Fiber backbone", "Due May 1", "Five-year term", "Bonding required"]
    assert summary.narrative == "Part one.\n\nPart two.\n\nPart three.\n\nPart four."


def test_partial_chunk_failure_still_summarizes():
    calls = {"n": 0}

    def flaky(**_kw):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("rate limited")
        return _response(f"SUMMARY: Chunk {calls['n']}.")

    with patch("rfpdesk.rag.llm_client.litellm.completion", side_effect=flaky):
        summary = DocumentSummarizer(SMALL_BANDS).summarize("word " * 200)

    assert summary.chunk_count == 4
    assert "Chunk 2." not in summary.narrative
    assert summary.narrative.startswith("Chunk 1.")


def test_all_calls_failing_raises():
    with patch("rfpdesk.rag.llm_client.litellm.completion", side_effect=RuntimeError("down")):
        with pytest.raises(SummarizationFailedError, match="4 chunk"):
            DocumentSummarizer(SMALL_BANDS).summarize("word " * 200)


def test_unparsable_output_counts_as_failure():
    with _mock_completion("I cannot help with that."):
        with pytest.raises(SummarizationFailedError):
            DocumentSummarizer().summarize("word " * 1000)


@pytest.mark.parametrize("text", ["", "   \n\t"])
def test_empty_text_raises(text):
    with pytest.raises(NothingToSummarizeError):
        DocumentSummarizer().summarize(text)


# ------------------------------------------------------------------
# Response parsing
# ------------------------------------------------------------------


def test_parse_labelled_response():
    summary = parse_summary_response(RESPONSE)

    assert summary.narrative == "The district is buying Wi-Fi for 12 schools."
    assert summary.key_points == ["Wi-Fi 6E required", "Responses due June 1"]
    assert summary.fields == {
        "scope": "Install access points.",
        "budget": "$250,000",
        "requirements": ["Wi-Fi 6E", "PoE switches"],
    }


def test_parse_tolerates_markdown_labels():
    summary = parse_summary_response("**Summary:** Short one.\n**Evaluation Criteria:** Price 40%")
    assert summary.narrative == "Short one."
    assert summary.fields["evaluation_criteria"] == "Price 40%"


def test_parse_caps_key_points():
    raw = "SUMMARY: x\nKEY_POINTS:\n" + "\n".join(f"- point {i}" for i in range(12))
    assert len(parse_summary_response(raw, max_key_points=3).key_points) == 3


def test_parse_without_narrative_is_none():
    assert parse_summary_response("SCOPE: Something") is None
    assert parse_summary_response("") is None


# ------------------------------------------------------------------
# Chunking and merge helpers
# ------------------------------------------------------------------


def test_chunks_are_contiguous_and_bounded():
    text = "\n".join(f"Line {i} of the solicitation body." for i in range(200))
    chunks = split_into_chunks(text, 500)

    assert "".join(chunks) == text
    assert all(len(c) <= 500 for c in chunks)
    assert all(c.endswith("\n") for c in chunks[:-1])


def test_chunk_cut_moves_to_section_start():
    text = "x " * 100
    span = SectionSpan(name="budget", start=120, end=200, text="")
    chunks = split_into_chunks(text, 150, [span])
    assert [len(c) for c in chunks] == [120, 80]


def test_oversized_section_does_not_pull_cut_back():
    title = "City of Springfield RFP\n"
    text = title + "Requirements:\n" + "The vendor shall comply. " * 1000
    span = SectionSpan(name="requirements", start=len(title), end=len(text), text="")
    chunks = split_into_chunks(text, 15_000, [span])

    assert len(chunks) == 2
    assert chunks[0].startswith(title + "Requirements:")
    assert "".join(chunks) == text


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        split_into_chunks("abc", 0)


def test_merge_keeps_first_field_and_counts_failures():
    merged = merge_summaries(
        [
            Summary(narrative="A", fields={"budget": "$1"}),
            None,
            Summary(narrative="B", fields={"budget": "$2", "scope": "S"}),
        ],
        original_length=900,
    )
    assert merged.narrative == "A\n\nB"
    assert merged.fields == {"budget": "$1", "scope": "S"}
    assert merged.chunk_count == 3
    assert merged.original_length == 900


def test_truncate_for_context():
    assert truncate_for_context("short", 10) == "short"
    assert truncate_for_context("abcdefghij klm", 10) == "abcdefghij..."
