"""Domain models for the rfpdesk database layer."""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

PROJECT_TYPES: tuple[str, ...] = ("RFI", "RFP")

KNOWLEDGE_CATEGORIES: tuple[str, ...] = (
    "won_proposals",
    "sow",
    "k12_erate",
    "engineering",
    "project_plans",
    "legal",
    "other",
)


def new_id() -> str:
    """Return a fresh UUID4 string for a new row."""
    return str(uuid.uuid4())


@dataclass
class Summary:
    """Structured digest of a document or web source.

    Serialized as JSON into the owning row's ``summary_cache`` column. Only a
    summary with a non-empty narrative is usable; anything else is a miss.
    """

    narrative: str
    key_points: list[str] = field(default_factory=list)
    fields: dict[str, str | list[str]] = field(default_factory=dict)
    chunk_count: int = 1
    original_length: int = 0

    @property
    def is_valid(self) -> bool:
        return bool(self.narrative and self.narrative.strip())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Summary:
        raw_fields = data.get("fields") or {}
        return cls(
            narrative=str(data.get("narrative") or ""),
            key_points=[str(k) for k in data.get("key_points") or []],
            fields={
                str(k): [str(i) for i in v] if isinstance(v, list) else str(v)
                for k, v in raw_fields.items()
            },
            chunk_count=int(data.get("chunk_count") or 1),
            original_length=int(data.get("original_length") or 0),
        )

    @classmethod
    def from_json(cls, raw: str) -> Summary:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("summary cache must be a JSON object")
        return cls.from_dict(data)


@dataclass
class Project:
    id: str
    name: str
    project_type: str
    organization_id: str | None = None
    organization_name: str | None = None
    description: str | None = None
    status: str = "active"
    active_draft_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    archived_at: str | None = None
    archived_by: str | None = None

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


@dataclass
class Document:
    id: str
    project_id: str
    filename: str
    file_type: str
    content: str = ""
    file_path: str | None = None
    size: int = 0
    key_info: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    summary_cache: str | None = None
    summary_generated_at: str | None = None
    is_main_document: bool = False
    uploaded_at: str | None = None


@dataclass
class WebSource:
    id: str
    project_id: str
    url: str
    title: str = ""
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    summary_cache: str | None = None
    summary_generated_at: str | None = None
    scraped_at: str | None = None
    updated_at: str | None = None


@dataclass
class KnowledgeFile:
    id: str
    category: str
    filename: str
    original_filename: str
    file_type: str
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    summary_cache: str | None = None
    summary_generated_at: str | None = None
    uploaded_at: str | None = None


@dataclass
class CompanyInfo:
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
    updated_at: str | None = None

    @property
    def is_empty(self) -> bool:
        return not any(v for k, v in asdict(self).items() if k != "updated_at")


COMPANY_INFO_FIELDS: tuple[str, ...] = tuple(
    f for f in CompanyInfo.__dataclass_fields__ if f != "updated_at"
)


@dataclass
class Question:
    id: str
    project_id: str
    question_text: str
    question_type: str = "text"
    category: str | None = None
    answer: str | None = None
    position: int = 0
    required: bool = False
    created_at: str | None = None


@dataclass
class Draft:
    id: str
    project_id: str
    content: dict[str, Any]
    format: str = "sections"
    metadata: dict[str, Any] = field(default_factory=dict)
    current_version: int = 1
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class DraftRevision:
    id: str
    draft_id: str
    project_id: str
    version_number: int
    content: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    created_by: str | None = None


@dataclass
class Activity:
    project_id: str
    action_type: str
    action_details: str = ""
    performed_by: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    performed_at: str | None = None
    id: int | None = None  # set after insert
