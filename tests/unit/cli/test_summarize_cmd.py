"""Tests for rfpdesk summarize."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from rfpdesk.cli.main import app
from rfpdesk.db.connection import Database
from rfpdesk.db.models import Document, Project, WebSource
from rfpdesk.db.repository import Repository
from rfpdesk.db.schema import initialize

runner = CliRunner()

MEDIUM_TEXT = "The district requests managed Wi-Fi for twelve schools.\n" * 60


def _response(text: str) -> MagicMock:
    mock = MagicMock()
    mock.choices = [MagicMock()]
    mock.choices[0].message.content = text
    return mock


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RFPDESK_DB_PATH", raising=False)
    monkeypatch.delenv("RFPDESK_SUMMARY_MODEL", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    path = tmp_path / "rfpdesk.db"
    with Database(path) as conn:
        initialize(conn)
        repo = Repository(conn)
        repo.add_project(Project(id="p1", name="Wi-Fi", project_type="RFP"))
        repo.add_document(
            Document(id="d1", project_id="p1", filename="rfp.txt", file_type="txt",
                     content="Budget: $40,000")
        )
        repo.add_web_source(
            WebSource(id="w1", project_id="p1", url="https://district.example/rfp",
                      title="District RFP", content="Proposals due May 1.")
        )
    return path


def _summarize(db_path, *extra: str):
    return runner.invoke(app, ["summarize", "--project", "p1", "--db", str(db_path), *extra])


def test_summarize_generates_then_caches(db_path):
    first = _summarize(db_path)
    assert first.exit_code == 0, first.output
    assert "2 generated, 0 cached, 0 failed." in first.output

    second = _summarize(db_path)
    assert "0 generated, 2 cached, 0 failed." in second.output

    forced = _summarize(db_path, "--force")
    assert "2 generated, 0 cached, 0 failed." in forced.output


def test_summarize_failure_exits_nonzero(db_path):
    with Database(db_path) as conn:
        Repository(conn).add_document(
            Document(id="d2", project_id="p1", filename="scope.txt", file_type="txt",
                     content=MEDIUM_TEXT)
        )

    with patch("rfpdesk.rag.llm_client.litellm.completion", side_effect=RuntimeError("down")):
        result = _summarize(db_path)

    assert result.exit_code == 1
    assert "2 generated, 0 cached, 1 failed." in result.output


def test_summarize_medium_document_calls_model(db_path):
    with Database(db_path) as conn:
        Repository(conn).add_document(
            Document(id="d2", project_id="p1", filename="scope.txt", file_type="txt",
                     content=MEDIUM_TEXT)
        )

    reply = _response("SUMMARY: Managed Wi-Fi.\nKEY_POINTS:\n- Twelve schools")
    with patch("rfpdesk.rag.llm_client.litellm.completion", return_value=reply) as mock_call:
        result = _summarize(db_path)

    assert result.exit_code == 0, result.output
    assert mock_call.call_count == 1
    assert "3 generated" in result.output


def test_summarize_requires_api_key(db_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY")
    result = _summarize(db_path)
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output


def test_summarize_unknown_project(db_path):
    result = runner.invoke(app, ["summarize", "--project", "ghost", "--db", str(db_path)])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_summarize_without_database(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    result = runner.invoke(app, ["summarize", "-p", "p1", "--db", str(tmp_path / "none.db")])
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_summarize_empty_project(db_path):
    with Database(db_path) as conn:
        Repository(conn).add_project(Project(id="p2", name="Empty", project_type="RFI"))
    result = runner.invoke(app, ["summarize", "-p", "p2", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "Nothing to summarize" in result.output
