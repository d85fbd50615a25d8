"""Shared pytest fixtures."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from rfpdesk.api.app import create_app
from rfpdesk.config import DatabaseCfg, RfpDeskConfig, StorageCfg
from rfpdesk.db.connection import Database
from rfpdesk.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "rfpdesk.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def app_config(tmp_path) -> RfpDeskConfig:
    """Default config pointed at a temporary database and upload directory."""
    return RfpDeskConfig(
        database=DatabaseCfg(path=str(tmp_path / "api.db")),
        storage=StorageCfg(upload_dir=str(tmp_path / "uploads"), max_upload_mb=5),
    )


@pytest.fixture
def offline_tokens():
    """Character-based token counts and a fixed context window; no tokenizer lookups."""
    with patch(
        "rfpdesk.rag.assembler.count_tokens", side_effect=lambda model, text: max(1, len(text) // 4)
    ), patch("rfpdesk.generate.templates.count_tokens", return_value=100), patch(
        "rfpdesk.generate.templates.get_context_window", return_value=128_000
    ):
        yield


@pytest.fixture
def client(app_config, monkeypatch, offline_tokens):
    """TestClient for an app bound to app_config, with a dummy provider key set."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with TestClient(create_app(app_config)) as test_client:
        yield test_client
