"""Documents API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db
from ..dependencies import IdempotencyGuard, get_idempotency_guard, list_query

logger = logging.getLogger("oneplan-core.documents")

router = APIRouter(tags=["documents"])


@router.post("", response_model=schemas.DocumentResponse, status_code=201)
def create_document(
    document: schemas.DocumentCreate,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
):
    """
    Create a new document in a project.

    - **projectId**: Owning project UUID
    - **kind**: PRD | TECH_OVERVIEW | SPRINT_OVERVIEW | SPRINT | FREEFORM
    - **title**: Document title (1-200 characters)
    - **content**: Markdown body
    - **slug**: Optional; derived from the title when omitted
    """
    replayed = guard.replay(document)
    if replayed:
        return replayed

    result = crud.create_document(db, document)
    return guard.respond(201, schemas.DocumentResponse.model_validate(result))


@router.get("", response_model=schemas.DocumentListResponse)
def list_documents(
    query: schemas.DocumentListQuery = Depends(list_query(schemas.DocumentListQuery)),
    db: Session = Depends(get_db),
):
    """
    List documents with optional filtering and pagination.

    - **projectId**: Filter by project
    - **kind**: Filter by document kind
    - **search**: Case-insensitive substring of the title
    - **limit** / **offset**: Page window (limit 1-100, default 20)
    - **sortBy** / **sortOrder**: createdAt | updatedAt | title, asc | desc
    """
    documents, total = crud.get_documents(db, query)
    logger.debug(f"Listed {len(documents)} of {total} documents")
    return schemas.DocumentListResponse(
        documents=[schemas.DocumentResponse.model_validate(d) for d in documents],
        total=total,
        limit=query.limit,
        offset=query.offset,
    )


@router.get("/{document_id}", response_model=schemas.DocumentResponse)
def get_document(
    document_id: UUID,
    db: Session = Depends(get_db),
):
    """Get a specific document by ID."""
    return crud.get_document(db, document_id)


@router.patch("/{document_id}", response_model=schemas.DocumentResponse)
def update_document(
    document_id: UUID,
    document_update: schemas.DocumentUpdate,
    db: Session = Depends(get_db),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
):
    """
    Update a document.

    Changing the title without a slug regenerates the slug.
    """
    replayed = guard.replay(document_update)
    if replayed:
        return replayed

    result = crud.update_document(db, document_id, document_update)
    return guard.respond(200, schemas.DocumentResponse.model_validate(result))


@router.delete("/{document_id}", status_code=204)
def delete_document(
    document_id: UUID,
    db: Session = Depends(get_db),
):
    """Delete a document."""
    crud.delete_document(db, document_id)
    return Response(status_code=204)
