"""Tests for draft generation, editing, revisions and .docx downloads."""

from __future__ import annotations

import io
from unittest.mock import MagicMock, patch

import docx
import pytest

from rfpdesk.api.routers.generate import DOCX_MEDIA_TYPE

DRAFT_REPLY = (
    "## executive_summary\nAcme proposes a district-wide WAN refresh.\n\n"
    "## pricing\nFixed fee of $250,000.\n"
)
FORM470_REPLY = "## applicant_summary\nThe library requests Category 2 services."


def _response(text: str) -> MagicMock:
    mock = MagicMock()
    mock.choices = [MagicMock()]
    mock.choices[0].message.content = text
    return mock


def _completion(text: str):
    return patch("rfpdesk.rag.llm_client.litellm.completion", return_value=_response(text))


@pytest.fixture
def project_id(client) -> str:
    body = {"name": "District WAN", "projectType": "RFP", "organizationName": "Springfield USD"}
    return client.post("/projects", json=body).json()["id"]


@pytest.fixture
def drafted(client, project_id) -> dict:
    with _completion(DRAFT_REPLY):
        response = client.post(f"/projects/{project_id}/generate-draft", json={"createdBy": "alice"})
    assert response.status_code == 200, response.text
    return response.json()


# ------------------------------------------------------------------
# Generate and read
# ------------------------------------------------------------------


def test_generate_draft(client, project_id, drafted):
    assert drafted["current_version"] == 1
    assert drafted["sections"]["executive_summary"] == "Acme proposes a district-wide WAN refresh."
    assert drafted["sections"]["pricing"] == "Fixed fee of $250,000."
    assert "conclusion" in drafted["defaulted_sections"]
    assert drafted["metadata"]["generated"] is True
    assert list(drafted["sections"])[0] == "executive_summary"

    assert client.get(f"/projects/{project_id}/draft").json()["id"] == drafted["id"]
    activity = client.get(f"/projects/{project_id}/activity").json()
    assert activity[0]["action_type"] == "draft_generated"
    assert activity[0]["performed_by"] == "alice"


def test_generate_again_adds_revision(client, project_id, drafted):
    with _completion(DRAFT_REPLY.replace("250,000", "240,000")):
        again = client.post(f"/projects/{project_id}/generate-draft").json()
    assert again["id"] == drafted["id"]
    assert again["current_version"] == 2


def test_generate_unusable_reply_is_502(client, project_id):
    with _completion("I'd rather not."):
        response = client.post(f"/projects/{project_id}/generate-draft")
    assert response.status_code == 502
    assert client.get(f"/projects/{project_id}/draft").status_code == 404


def test_get_draft_missing(client, project_id):
    assert client.get(f"/projects/{project_id}/draft").status_code == 404


# ------------------------------------------------------------------
# Edit, concurrency, revisions
# ------------------------------------------------------------------


def test_update_with_expected_version(client, project_id, drafted):
    sections = {**drafted["sections"], "pricing": "Fixed fee of $230,000."}

    ok = client.put(f"/projects/{project_id}/draft", json={"sections": sections, "expectedVersion": 1})
    assert ok.status_code == 200
    assert ok.json()["current_version"] == 2

    stale = client.put(
        f"/projects/{project_id}/draft",
        json={"sections": {**sections, "pricing": "Other"}, "expectedVersion": 1},
    )
    assert stale.status_code == 409
    assert stale.json()["details"] == {"current_version": 2}
    assert client.get(f"/projects/{project_id}/draft").json()["sections"]["pricing"] == "Fixed fee of $230,000."


def test_update_identical_sections_keeps_version(client, project_id, drafted):
    response = client.put(f"/projects/{project_id}/draft", json={"sections": drafted["sections"]})
    assert response.json()["current_version"] == 1


def test_update_without_draft_is_404(client, project_id):
    response = client.put(f"/projects/{project_id}/draft", json={"sections": {"pricing": "x"}})
    assert response.status_code == 404


def test_revisions_and_restore(client, project_id, drafted):
    edited = {**drafted["sections"], "pricing": "Edited."}
    client.put(f"/projects/{project_id}/draft", json={"sections": edited, "updatedBy": "bob"})

    history = client.get(f"/projects/{project_id}/draft/revisions").json()
    assert history["current_version"] == 2
    assert [r["version_number"] for r in history["revisions"]] == [2, 1]
    first = history["revisions"][-1]

    restored = client.post(
        f"/projects/{project_id}/draft/revisions", json={"revisionId": first["id"], "restoredBy": "carol"}
    )

    assert restored.status_code == 200
    body = restored.json()
    assert body["current_version"] == 3
    assert body["draft"]["sections"]["pricing"] == "Fixed fee of $250,000."
    versions = client.get(f"/projects/{project_id}/draft/revisions").json()["revisions"]
    assert [r["version_number"] for r in versions] == [3, 2, 1]


def test_restore_unknown_revision(client, project_id, drafted):
    response = client.post(f"/projects/{project_id}/draft/revisions", json={"revisionId": "ghost"})
    assert response.status_code == 404


def test_delete_draft(client, project_id, drafted):
    assert client.delete(f"/projects/{project_id}/draft").json() == {"success": True, "deleted": 1}
    history = client.get(f"/projects/{project_id}/draft/revisions").json()
    assert history == {"current_version": None, "revisions": []}


# ------------------------------------------------------------------
# Downloads
# ------------------------------------------------------------------


def _document(response):
    assert response.status_code == 200, response.text
    assert response.headers["content-type"] == DOCX_MEDIA_TYPE
    return docx.Document(io.BytesIO(response.content))


def test_export_draft(client, project_id, drafted):
    response = client.post(f"/projects/{project_id}/export-draft")
    document = _document(response)
    assert f'filename="RFP_Draft_{project_id}.docx"' in response.headers["content-disposition"]
    texts = [p.text for p in document.paragraphs]
    assert "Acme proposes a district-wide WAN refresh." in texts


def test_export_without_draft_is_404(client, project_id):
    assert client.post(f"/projects/{project_id}/export-draft").status_code == 404


def test_generate_rfp_uses_saved_draft(client, project_id, drafted):
    with patch("rfpdesk.rag.llm_client.litellm.completion") as mock_call:
        response = client.post(f"/projects/{project_id}/generate")

    mock_call.assert_not_called()
    document = _document(response)
    assert f'filename="RFP_{project_id}.docx"' in response.headers["content-disposition"]
    assert document.paragraphs[0].text == "Proposal Response"
    activity = client.get(f"/projects/{project_id}/activity").json()
    assert activity[0]["action_type"] == "document_generated"


def test_generate_form470_generates_sections(client, project_id, drafted):
    with _completion(FORM470_REPLY) as mock_call:
        response = client.post(f"/projects/{project_id}/generate-form470")

    assert mock_call.call_count == 1
    document = _document(response)
    assert f'filename="Form470_Response_{project_id}.docx"' in response.headers["content-disposition"]
    texts = [p.text for p in document.paragraphs]
    assert "The library requests Category 2 services." in texts


def test_generate_rfi_for_rfp_project(client, project_id):
    reply = "## introduction\nSpringfield USD invites vendors to respond."
    with _completion(reply):
        response = client.post(f"/projects/{project_id}/generate-rfi")
    document = _document(response)
    assert document.paragraphs[0].text == "Request for Information"


def test_generate_without_api_key_is_503(client, project_id, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY")
    assert client.post(f"/projects/{project_id}/generate").status_code == 503
