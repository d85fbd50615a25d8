"""Project endpoints: create, list, archive/restore, delete, activity log."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, status

from rfpdesk.api.deps import get_repo, require_project
from rfpdesk.api.schemas import ProjectAction, ProjectCreate, project_out
from rfpdesk.db.models import Activity, Project, new_id
from rfpdesk.db.repository import Repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
def list_projects(
    include_archived: bool = Query(False), repo: Repository = Depends(get_repo)
) -> list[dict]:
    return [project_out(p) for p in repo.list_projects(include_archived=include_archived)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(body: ProjectCreate, repo: Repository = Depends(get_repo)) -> dict:
    org_id = None
    if body.organization_name and body.organization_name.strip():
        org_id = repo.get_or_create_organization(body.organization_name.strip())
    project = repo.add_project(
        Project(
            id=new_id(),
            name=body.name,
            project_type=body.project_type,
            organization_id=org_id,
            description=body.description,
        )
    )
    repo.log_activity(
        Activity(project_id=project.id, action_type="created",
                 action_details=f"{project.project_type} project created")
    )
    logger.info("Created %s project %s (%s)", project.project_type, project.id, project.name)
    return project_out(project)


@router.get("/{project_id}")
def get_project(project: Project = Depends(require_project)) -> dict:
    return project_out(project)


@router.patch("/{project_id}")
def archive_or_restore(
    project_id: str, body: ProjectAction, repo: Repository = Depends(get_repo)
) -> dict:
    project = repo.set_project_archived(
        project_id, archived=body.action == "archive", performed_by=body.performed_by
    )
    return project_out(project)


@router.delete("/{project_id}")
def delete_project(
    permanent: bool = Query(False),
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> dict:
    """Archive the project, or remove it and everything it owns with ``permanent=true``."""
    if permanent:
        repo.delete_project(project.id)
        logger.info("Permanently deleted project %s", project.id)
        return {"success": True, "permanent": True}
    repo.set_project_archived(project.id, archived=True)
    return {"success": True, "permanent": False}


@router.get("/{project_id}/activity")
def list_activity(
    limit: int = Query(100, ge=1, le=1000),
    project: Project = Depends(require_project),
    repo: Repository = Depends(get_repo),
) -> list[dict]:
    return [asdict(a) for a in repo.list_activity(project.id, limit=limit)]
