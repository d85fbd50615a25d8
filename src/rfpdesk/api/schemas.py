"""Request models for the HTTP API.

Request bodies accept camelCase keys (``projectType``, ``projectId``) as well
as their snake_case field names. Responses are plain JSON built from the
database models by the ``*_out`` helpers below.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from rfpdesk.db.models import (
    KNOWLEDGE_CATEGORIES,
    PROJECT_TYPES,
    Document,
    Draft,
    DraftRevision,
    KnowledgeFile,
    Project,
    WebSource,
)
from rfpdesk.ingest.summary_cache import load_summary


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------------------------------------------------
# Projects
# ------------------------------------------------------------------


class ProjectCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=200)
    project_type: str = Field(..., description="RFI or RFP")
    organization_name: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("project_type")
    @classmethod
    def _known_type(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in PROJECT_TYPES:
            raise ValueError(f"projectType must be one of {', '.join(PROJECT_TYPES)}")
        return v


class ProjectAction(ApiModel):
    action: Literal["archive", "restore"]
    performed_by: Optional[str] = None


# ------------------------------------------------------------------
# Sources and summaries
# ------------------------------------------------------------------


class SummarizeRequest(ApiModel):
    force: bool = False


class ScrapeRequest(ApiModel):
    url: str = Field(..., min_length=1)
    project_id: str


class WebSourceUpdate(ApiModel):
    content: Optional[str] = None
    title: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class CompanyInfoIn(ApiModel):
    company_name: str = ""
    description: str = ""
    services: str = ""
    capabilities: str = ""
    differentiators: str = ""
    experience: str = ""
    certifications: str = ""
    team_size: str = ""
    website: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""


def validate_category(category: str) -> str:
    category = category.strip().lower()
    if category not in KNOWLEDGE_CATEGORIES:
        raise ValueError(f"category must be one of {', '.join(KNOWLEDGE_CATEGORIES)}")
    return category


# ------------------------------------------------------------------
# Questions
# ------------------------------------------------------------------


class QuestionCreate(ApiModel):
    question_text: str = Field(..., min_length=1)
    question_type: str = "text"
    category: Optional[str] = None
    answer: Optional[str] = None
    required: bool = False
    position: Optional[int] = Field(default=None, ge=0)


class QuestionUpdate(ApiModel):
    question_text: Optional[str] = Field(default=None, min_length=1)
    question_type: Optional[str] = None
    category: Optional[str] = None
    answer: Optional[str] = None
    required: Optional[bool] = None
    position: Optional[int] = Field(default=None, ge=0)


class QuestionPosition(ApiModel):
    id: str
    position: int


class ReorderRequest(ApiModel):
    questions: list[QuestionPosition] = Field(..., min_length=1)


class RegenerateRequest(ApiModel):
    document_ids: Optional[list[str]] = None
    include_company_knowledge: bool = True


# ------------------------------------------------------------------
# Drafts
# ------------------------------------------------------------------


class DraftUpdate(ApiModel):
    sections: dict[str, Any]
    metadata: Optional[dict[str, Any]] = None
    expected_version: Optional[int] = Field(default=None, ge=1)
    updated_by: Optional[str] = None


class RestoreRequest(ApiModel):
    revision_id: str
    restored_by: Optional[str] = None


class GenerateDraftRequest(ApiModel):
    document_ids: Optional[list[str]] = None
    include_company_knowledge: bool = True
    created_by: Optional[str] = None


# ------------------------------------------------------------------
# Assistant
# ------------------------------------------------------------------


class ChatRequest(ApiModel):
    message: str = Field(..., min_length=1)
    context: dict[str, Any] = Field(default_factory=dict)

    @field_validator("message")
    @classmethod
    def _strip_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("message must not be blank")
        return v


# ------------------------------------------------------------------
# Response shaping
# ------------------------------------------------------------------


def project_out(project: Project) -> dict[str, Any]:
    data = asdict(project)
    data["is_archived"] = project.is_archived
    return data


def document_out(doc: Document, include_content: bool = False) -> dict[str, Any]:
    data = asdict(doc)
    summary = load_summary(doc.summary_cache, doc.filename)
    data["summary"] = summary.to_dict() if summary else None
    data["has_summary"] = summary is not None
    del data["summary_cache"]
    if not include_content:
        data["content_length"] = len(doc.content or "")
        del data["content"]
    return data


def web_source_out(source: WebSource) -> dict[str, Any]:
    data = asdict(source)
    summary = load_summary(source.summary_cache, source.title or source.url)
    data["summary"] = summary.to_dict() if summary else None
    data["has_summary"] = summary is not None
    del data["summary_cache"]
    return data


def knowledge_out(kf: KnowledgeFile) -> dict[str, Any]:
    data = asdict(kf)
    summary = load_summary(kf.summary_cache, kf.original_filename)
    data["has_summary"] = summary is not None
    data["content_length"] = len(kf.content or "")
    del data["summary_cache"]
    del data["content"]
    return data


def draft_out(draft: Draft) -> dict[str, Any]:
    return {
        "id": draft.id,
        "project_id": draft.project_id,
        "sections": draft.content,
        "format": draft.format,
        "metadata": draft.metadata,
        "current_version": draft.current_version,
        "created_at": draft.created_at,
        "updated_at": draft.updated_at,
    }


def revision_out(revision: DraftRevision) -> dict[str, Any]:
    return {
        "id": revision.id,
        "draft_id": revision.draft_id,
        "version_number": revision.version_number,
        "sections": revision.content,
        "metadata": revision.metadata,
        "created_at": revision.created_at,
        "created_by": revision.created_by,
    }
