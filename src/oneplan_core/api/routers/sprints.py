"""Sprints API endpoints, including sprint checklist items."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db
from ...state_machine import TransitionValidator
from ..dependencies import IdempotencyGuard, get_idempotency_guard, get_transition_validator, list_query

logger = logging.getLogger("oneplan-core.sprints")

router = APIRouter(tags=["sprints"])


@router.post("", response_model=schemas.SprintResponse, status_code=201)
def create_sprint(
    sprint: schemas.SprintCreate,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
):
    """
    Create a sprint together with its checklist items.

    - **projectId**: Owning project UUID
    - **code**: Sprint code, SPR-<digits> (unique within the project)
    - **name**: Sprint name
    - **status**: PLANNED | ACTIVE | DONE | CANCELLED
    - **startDate** / **endDate**: Optional ISO-8601 timestamps (end after start)
    - **items**: Checklist items; order defaults to list position
    """
    replayed = guard.replay(sprint)
    if replayed:
        return replayed

    result = crud.create_sprint(db, sprint)
    return guard.respond(201, schemas.SprintResponse.model_validate(result))


@router.get("", response_model=schemas.SprintListResponse)
def list_sprints(
    query: schemas.SprintListQuery = Depends(list_query(schemas.SprintListQuery)),
    db: Session = Depends(get_db),
):
    """
    List sprints with item counts instead of items.

    - **projectId**: Filter by project
    - **status**: Filter by status
    """
    sprints, total = crud.get_sprints(db, query)
    counts = crud.get_sprint_item_counts(db, [s.id for s in sprints])

    rows = []
    for sprint in sprints:
        row = schemas.SprintListItem.model_validate(sprint)
        row.item_count, row.completed_item_count = counts[sprint.id]
        rows.append(row)

    return schemas.SprintListResponse(
        sprints=rows,
        total=total,
        limit=query.limit,
        offset=query.offset,
    )


@router.get("/{sprint_id}", response_model=schemas.SprintResponse)
def get_sprint(
    sprint_id: UUID,
    db: Session = Depends(get_db),
):
    """Get a sprint with its items ordered by their order field."""
    return schemas.SprintResponse.model_validate(crud.get_sprint(db, sprint_id))


@router.patch("/{sprint_id}", response_model=schemas.SprintResponse)
def update_sprint(
    sprint_id: UUID,
    sprint_update: schemas.SprintUpdate,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
    validate_transition: TransitionValidator = Depends(get_transition_validator),
):
    """
    Update a sprint.

    A supplied **items** list replaces every existing item atomically.
    """
    replayed = guard.replay(sprint_update)
    if replayed:
        return replayed

    result = crud.update_sprint(db, sprint_id, sprint_update, validate_transition=validate_transition)
    return guard.respond(200, schemas.SprintResponse.model_validate(result))


@router.delete("/{sprint_id}", status_code=204)
def delete_sprint(
    sprint_id: UUID,
    db: Session = Depends(get_db),
):
    """Delete a sprint and its items."""
    crud.delete_sprint(db, sprint_id)
    return Response(status_code=204)


# Sprint items

@router.post("/{sprint_id}/items", response_model=schemas.SprintItemResponse, status_code=201)
def add_sprint_item(
    sprint_id: UUID,
    item: schemas.SprintItemInput,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
):
    """Append one checklist item to a sprint."""
    replayed = guard.replay(item)
    if replayed:
        return replayed

    result = crud.add_sprint_item(db, sprint_id, item)
    return guard.respond(201, schemas.SprintItemResponse.model_validate(result))


@router.patch("/{sprint_id}/items/{item_id}", response_model=schemas.SprintItemResponse)
def update_sprint_item(
    sprint_id: UUID,
    item_id: UUID,
    item_update: schemas.SprintItemUpdate,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
):
    """Update one checklist item (text, checked, order)."""
    replayed = guard.replay(item_update)
    if replayed:
        return replayed

    result = crud.update_sprint_item(db, sprint_id, item_id, item_update)
    return guard.respond(200, schemas.SprintItemResponse.model_validate(result))


@router.delete("/{sprint_id}/items/{item_id}", status_code=204)
def delete_sprint_item(
    sprint_id: UUID,
    item_id: UUID,
    db: Session = Depends(get_db),
):
    """Delete one checklist item."""
    crud.delete_sprint_item(db, sprint_id, item_id)
    return Response(status_code=204)
