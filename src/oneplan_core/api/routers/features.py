"""Features API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db
from ...state_machine import TransitionValidator
from ..dependencies import IdempotencyGuard, get_idempotency_guard, get_transition_validator, list_query

logger = logging.getLogger("oneplan-core.features")

router = APIRouter(tags=["features"])


@router.post("", response_model=schemas.FeatureResponse, status_code=201)
def create_feature(
    feature: schemas.FeatureCreate,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
):
    """
    Create a new feature in a project.

    - **projectId**: Owning project UUID
    - **featureId**: Feature code, FEAT-<digits> (unique within the project)
    - **title**: Feature title
    - **version**: Semantic version (default 0.1.0)
    - **status**: PLANNED | IN_PROGRESS | COMPLETED | CANCELLED
    - **area**: Functional area (e.g., "auth")
    """
    replayed = guard.replay(feature)
    if replayed:
        return replayed

    result = crud.create_feature(db, feature)
    return guard.respond(201, schemas.FeatureResponse.model_validate(result))


@router.get("", response_model=schemas.FeatureListResponse)
def list_features(
    query: schemas.FeatureListQuery = Depends(list_query(schemas.FeatureListQuery)),
    db: Session = Depends(get_db),
):
    """
    List features with optional filtering and pagination.

    - **projectId**: Filter by project
    - **status**: Filter by status
    - **area**: Case-insensitive substring of the area
    """
    features, total = crud.get_features(db, query)
    return schemas.FeatureListResponse(
        features=[schemas.FeatureResponse.model_validate(f) for f in features],
        total=total,
        limit=query.limit,
        offset=query.offset,
    )


@router.get("/{feature_id}", response_model=schemas.FeatureResponse)
def get_feature(
    feature_id: UUID,
    db: Session = Depends(get_db),
):
    """Get a specific feature by ID."""
    return crud.get_feature(db, feature_id)


@router.patch("/{feature_id}", response_model=schemas.FeatureResponse)
def update_feature(
    feature_id: UUID,
    feature_update: schemas.FeatureUpdate,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
    validate_transition: TransitionValidator = Depends(get_transition_validator),
):
    """
    Update a feature.

    Status changes pass through the configured transition validator
    (permissive unless the app was built with a strict one).
    """
    replayed = guard.replay(feature_update)
    if replayed:
        return replayed

    result = crud.update_feature(db, feature_id, feature_update, validate_transition=validate_transition)
    return guard.respond(200, schemas.FeatureResponse.model_validate(result))


@router.delete("/{feature_id}", status_code=204)
def delete_feature(
    feature_id: UUID,
    db: Session = Depends(get_db),
):
    """Delete a feature."""
    crud.delete_feature(db, feature_id)
    return Response(status_code=204)
