"""Web source endpoints: scrape, list, edit, delete, summaries."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from rfpdesk.api.deps import get_config, get_repo, require_project
from rfpdesk.api.schemas import ScrapeRequest, SummarizeRequest, WebSourceUpdate, web_source_out
from rfpdesk.config import RfpDeskConfig
from rfpdesk.db.models import Activity, Project
from rfpdesk.db.repository import Repository
from rfpdesk.errors import NotFoundError
from rfpdesk.ingest.pipeline import ingest_web_source, summarize_entity
from rfpdesk.ingest.summary_cache import SummaryCache

router = APIRouter(tags=["sources"])


def _require_source(repo: Repository, project_id: str, source_id: str):
    source = repo.get_web_source(project_id, source_id)
    if source is None:
        raise NotFoundError("Web source", source_id)
    return source


@router.post("/scrape", status_code=status.HTTP_201_CREATED)
def scrape(
    body: ScrapeRequest,
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    project = repo.get_project(body.project_id)
    if project is None:
        raise NotFoundError("Project", body.project_id)
    source = ingest_web_source(repo, project.id, project.project_type, body.url.strip(), config)
    repo.log_activity(
        Activity(project_id=project.id, action_type="source_added",
                 action_details=f"Scraped {source.url}", metadata={"source_id": source.id})
    )
    repo.touch_project(project.id)
    return web_source_out(source)


@router.get("/projects/{project_id}/sources")
def list_sources(
    project: Project = Depends(require_project), repo: Repository = Depends(get_repo)
) -> list[dict]:
    return [web_source_out(s) for s in repo.list_web_sources(project.id)]


@router.delete("/projects/{project_id}/sources/{source_id}")
def delete_source(
    source_id: str,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    if not repo.delete_web_source(project.id, source_id):
        raise NotFoundError("Web source", source_id)
    return {"success": True}


@router.put("/projects/{project_id}/sources/{source_id}/update")
def update_source(
    source_id: str,
    body: WebSourceUpdate,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    """Edit a source's text, title or metadata; its cached summary is dropped."""
    source = repo.update_web_source(
        project.id, source_id, content=body.content, title=body.title, metadata=body.metadata
    )
    return web_source_out(source)


@router.post("/projects/{project_id}/sources/{source_id}/summarize")
def summarize_source(
    source_id: str,
    body: SummarizeRequest | None = None,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
    config: RfpDeskConfig = Depends(get_config),
) -> dict:
    source = _require_source(repo, project.id, source_id)
    summary, cached = summarize_entity(
        repo, "web_source", source.id, source.content, source.title or source.url,
        project.project_type, config, force=bool(body and body.force),
    )
    return {"summary": summary.to_dict(), "cached": cached}


@router.delete("/projects/{project_id}/sources/{source_id}/delete-summary")
def delete_source_summary(
    source_id: str,
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    source = _require_source(repo, project.id, source_id)
    SummaryCache(repo, "web_source").invalidate(source.id)
    return {"success": True}
