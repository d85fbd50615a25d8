"""Tests for suggested-question parsing and chat reply splitting."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from rfpdesk.db.models import Project
from rfpdesk.errors import GenerationError
from rfpdesk.rag.assembler import ContextBundle
from rfpdesk.rag.assistant import (
    chat_reply,
    generate_smart_questions,
    parse_smart_questions,
    split_suggestions,
)


@pytest.fixture
def project() -> Project:
    return Project(id="p1", name="Library Wi-Fi", project_type="RFI", organization_name="City Library")


@pytest.fixture(autouse=True)
def offline(offline_tokens):
    yield


def _response(text: str) -> MagicMock:
    mock = MagicMock()
    mock.choices = [MagicMock()]
    mock.choices[0].message.content = text
    return mock


def test_parse_questions_blocks():
    raw = (
        "CATEGORY: Security & Compliance\n"
        "QUESTION: Describe your SOC 2 status.\n"
        "PRIORITY: 5\n"
        "\n"
        "**CATEGORY: References & Case Studies**\n"
        "**QUESTION: List three library deployments.**\n"
        "**PRIORITY: 3**\n"
    )
    questions = parse_smart_questions(raw)

    assert [(q.category, q.question, q.priority) for q in questions] == [
        ("Security & Compliance", "Describe your SOC 2 status.", 5),
        ("References & Case Studies", "List three library deployments.", 3),
    ]
    assert [q.required for q in questions] == [True, False]


@pytest.mark.parametrize("priority", ["high", "9", "0", ""])
def test_bad_priority_defaults_to_three(priority):
    raw = f"CATEGORY: Pricing\nQUESTION: Per-site cost?\nPRIORITY: {priority}\n"
    assert parse_smart_questions(raw)[0].priority == 3


def test_incomplete_block_dropped():
    raw = "QUESTION: Orphan question?\nPRIORITY: 4\nCATEGORY: Support\nQUESTION: Hours?\nPRIORITY: 4\n"
    questions = parse_smart_questions(raw)
    assert [q.question for q in questions] == ["Hours?"]


def test_generate_raises_on_empty_reply(project):
    with patch("rfpdesk.rag.llm_client.litellm.completion", return_value=_response("")):
        with pytest.raises(GenerationError, match="no questions"):
            generate_smart_questions(project, ContextBundle())


def test_generate_wraps_provider_error(project):
    with patch("rfpdesk.rag.llm_client.litellm.completion", side_effect=RuntimeError("quota")):
        with pytest.raises(GenerationError, match="quota"):
            generate_smart_questions(project, ContextBundle())


def test_split_suggestions_caps_list():
    reply = split_suggestions("Answer.\n\nSUGGESTIONS:\n- one\n- two\nnot a bullet\n- three\n- four\n")
    assert reply.message == "Answer."
    assert reply.suggestions == ["one", "two", "three"]


def test_split_without_suggestions():
    reply = split_suggestions("  Just text.  ")
    assert reply.message == "Just text."
    assert reply.suggestions == []


def test_chat_empty_reply_is_error(project):
    with patch("rfpdesk.rag.llm_client.litellm.completion", return_value=_response("SUGGESTIONS:\n- x")):
        with pytest.raises(GenerationError, match="empty"):
            chat_reply(project, "hello", ContextBundle(), {})
