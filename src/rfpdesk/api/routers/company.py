"""Company profile and knowledge-base endpoints."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from rfpdesk.api.deps import get_config, get_repo
from rfpdesk.api.routers.documents import spool_upload
from rfpdesk.api.schemas import CompanyInfoIn, SummarizeRequest, knowledge_out, validate_category
from rfpdesk.config import RfpDeskConfig
from rfpdesk.db.models import CompanyInfo
from rfpdesk.db.repository import Repository
from rfpdesk.errors import InvalidInputError, NotFoundError
from rfpdesk.ingest import get_extractor
from rfpdesk.ingest.pipeline import ingest_knowledge_file, summarize_entity

router = APIRouter(tags=["company"])


@router.get("/company-info")
def get_company_info(repo: Repository = Depends(get_repo)) -> dict:
    info = repo.get_company_info() or CompanyInfo()
    return {**asdict(info), "is_empty": info.is_empty}


@router.post("/company-info")
def save_company_info(body: CompanyInfoIn, repo: Repository = Depends(get_repo)) -> dict:
    info = repo.upsert_company_info(CompanyInfo(**body.model_dump()))
    return {**asdict(info), "is_empty": info.is_empty}


@router.get("/company-knowledge")
def list_knowledge(
    category: Optional[str] = Query(None), repo: Repository = Depends(get_repo)
) -> list[dict]:
    if category is not None:
        try:
            category = validate_category(category)
        except ValueError as exc:
            raise InvalidInputError(str(exc)) from exc
    return [knowledge_out(kf) for kf in repo.list_knowledge_files(category)]


@router.post("/company-knowledge/upload", status_code=status.HTTP_201_CREATED)
def upload_knowledge(
    file: UploadFile = File(...),
    category: str = Form("other"),
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    try:
        category = validate_category(category)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc
    filename = Path(file.filename or "").name
    if not filename:
        raise InvalidInputError("Uploaded file has no name")
    get_extractor(filename)

    tmp_path = spool_upload(file, config.storage.max_upload_mb)
    try:
        kf = ingest_knowledge_file(repo, tmp_path, filename, category, config)
    finally:
        tmp_path.unlink(missing_ok=True)
    return knowledge_out(kf)


@router.delete("/company-knowledge/{knowledge_id}")
def delete_knowledge(
    knowledge_id: str,
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    kf = repo.get_knowledge_file(knowledge_id)
    if kf is None:
        raise NotFoundError("Knowledge file", knowledge_id)
    repo.delete_knowledge_file(kf.id)
    (Path(config.storage.upload_dir) / "knowledge" / kf.filename).unlink(missing_ok=True)
    return {"success": True}


@router.post("/company-knowledge/{knowledge_id}/summarize")
def summarize_knowledge(
    knowledge_id: str,
    body: SummarizeRequest | None = None,
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    kf = repo.get_knowledge_file(knowledge_id)
    if kf is None:
        raise NotFoundError("Knowledge file", knowledge_id)
    summary, cached = summarize_entity(
        repo, "knowledge", kf.id, kf.content, kf.original_filename, "RFP", config,
        force=bool(body and body.force),
    )
    return {"summary": summary.to_dict(), "cached": cached}
