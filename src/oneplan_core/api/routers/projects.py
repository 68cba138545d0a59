"""Projects API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ..dependencies import IdempotencyGuard, get_idempotency_guard, list_query

logger = logging.getLogger("oneplan-core.projects")

router = APIRouter(tags=["projects"])


def _with_counts(db: Session, projects: list[models.Project]) -> list[schemas.ProjectResponse]:
    counts = crud.count_project_children(db, [p.id for p in projects])
    responses = []
    for project in projects:
        response = schemas.ProjectResponse.model_validate(project)
        response.counts = counts[project.id]
        responses.append(response)
    return responses


@router.post("", response_model=schemas.ProjectResponse, status_code=201)
def create_project(
    project: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
):
    """
    Create a new project.

    - **name**: Project name (1-100 characters)
    """
    replayed = guard.replay(project)
    if replayed:
        return replayed

    result = crud.create_project(db, project)
    logger.info(f"Created project '{result.name}' (ID: {result.id})")
    return guard.respond(201, _with_counts(db, [result])[0])


@router.get("", response_model=schemas.ProjectListResponse)
def list_projects(
    query: schemas.ProjectListQuery = Depends(list_query(schemas.ProjectListQuery)),
    db: Session = Depends(get_db),
):
    """
    List projects with optional name search and pagination.

    - **search**: Case-insensitive substring of the name
    - **limit** / **offset**: Page window (limit 1-100, default 20)
    - **sortBy** / **sortOrder**: createdAt | updatedAt | name, asc | desc
    """
    projects, total = crud.get_projects(db, query)
    return schemas.ProjectListResponse(
        projects=_with_counts(db, projects),
        total=total,
        limit=query.limit,
        offset=query.offset,
    )


@router.get("/{project_id}", response_model=schemas.ProjectResponse)
def get_project(
    project_id: UUID,
    db: Session = Depends(get_db),
):
    """Get a project with its document, feature and sprint counts."""
    project = crud.get_project(db, project_id)
    return _with_counts(db, [project])[0]


@router.patch("/{project_id}", response_model=schemas.ProjectResponse)
def update_project(
    project_id: UUID,
    project_update: schemas.ProjectUpdate,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
):
    """
    Update a project.

    - **name**: New project name (optional)
    """
    replayed = guard.replay(project_update)
    if replayed:
        return replayed

    result = crud.update_project(db, project_id, project_update)
    logger.info(f"Updated project {project_id}")
    return guard.respond(200, _with_counts(db, [result])[0])


@router.delete("/{project_id}", status_code=204)
def delete_project(
    project_id: UUID,
    db: Session = Depends(get_db),
):
    """Delete a project together with its documents, features and sprints."""
    crud.delete_project(db, project_id)
    logger.info(f"Deleted project {project_id}")
    return Response(status_code=204)
