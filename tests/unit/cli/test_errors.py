"""Tests for rfpdesk rich error messages."""

from __future__ import annotations

import pytest

from rfpdesk.cli.errors import (
    err_config,
    err_missing_api_key,
    err_no_db,
    err_no_draft,
    err_output_path_unsafe,
    err_project_not_found,
)


def _has_what_and_action(msg: str) -> bool:
    lines = msg.strip().splitlines()
    return len(lines) >= 2 and lines[0].startswith("[red]Error:[/]")


@pytest.mark.parametrize(
    "msg",
    [
        err_no_db("bids.db"),
        err_project_not_found("p1"),
        err_no_draft("p1"),
        err_missing_api_key("Set the OPENAI_API_KEY environment variable."),
        err_output_path_unsafe("../x.docx"),
        err_config("bad level"),
    ],
)
def test_every_message_names_problem_and_fix(msg):
    assert _has_what_and_action(msg)


def test_no_db_points_to_init():
    msg = err_no_db("bids.db")
    assert "'bids.db'" in msg
    assert "rfpdesk init" in msg


def test_project_not_found_points_to_status():
    assert "rfpdesk status" in err_project_not_found("ghost")


def test_no_draft_names_generate_endpoint():
    msg = err_no_draft("p1")
    assert "has no draft yet" in msg
    assert "generate-draft" in msg


def test_missing_api_key_keeps_provider_message():
    msg = err_missing_api_key("Set the OPENAI_API_KEY environment variable.")
    assert "OPENAI_API_KEY" in msg
    assert "never from config files" in msg


def test_output_path_unsafe_quotes_path():
    assert "'../x.docx'" in err_output_path_unsafe("../x.docx")
