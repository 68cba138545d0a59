"""CRUD operations for projects, documents, features and sprints.

Every function takes an explicit session. Failures are raised as the
ApiError variants from ``errors`` (NotFoundError, ConflictError,
DomainValidationError) and never swallowed; multi-step writes are rolled
back as a whole before the error propagates.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional
from uuid import UUID

from sqlalchemy import and_, case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from . import models, schemas
from .errors import ConflictError, DomainValidationError, NotFoundError
from .state_machine import TransitionValidator, allow_any_transition

logger = logging.getLogger("oneplan-core.crud")


# ============================================================================
# Shared helpers
# ============================================================================

@contextmanager
def _write(db: Session, conflict_detail: str, **conflict_extras: Any) -> Iterator[None]:
    """
    Run a unit of work and commit it, or roll everything back.

    A uniqueness violation surfacing at commit time (e.g., a concurrent
    writer won the race) becomes a ConflictError.
    """
    try:
        yield
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Integrity error, rolled back: {e.orig}")
        raise ConflictError(conflict_detail, **conflict_extras) from e
    except Exception:
        db.rollback()
        raise


def _like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _paginate(
    query: Query,
    sort_column,
    sort_order: str,
    tie_breaker,
    limit: int,
    offset: int,
) -> tuple[list, int]:
    """
    Apply ordering and offset pagination.

    Returns:
        Tuple of (page, total) where total counts every row matching the filters
    """
    total = query.count()
    ordering = sort_column.asc() if sort_order == "asc" else sort_column.desc()
    rows = query.order_by(ordering, tie_breaker.asc()).offset(offset).limit(limit).all()
    return rows, total


def _check_date_order(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date is not None and end_date is not None and end_date <= start_date:
        raise DomainValidationError(
            "End date must be after start date",
            startDate=start_date.isoformat(),
            endDate=end_date.isoformat(),
        )


def _require_project(db: Session, project_id: UUID) -> models.Project:
    project = db.get(models.Project, project_id)
    if project is None:
        raise NotFoundError(f"Project with ID {project_id} not found")
    return project


# ============================================================================
# Project Operations
# ============================================================================

PROJECT_SORT_COLUMNS = {
    "createdAt": models.Project.created_at,
    "updatedAt": models.Project.updated_at,
    "name": models.Project.name,
}


def create_project(db: Session, data: schemas.ProjectCreate) -> models.Project:
    """
    Create a new project.

    Args:
        db: Database session
        data: Validated project payload

    Returns:
        Created project instance
    """
    db_project = models.Project(name=data.name)
    with _write(db, "Project already exists"):
        db.add(db_project)
    db.refresh(db_project)
    logger.debug(f"Created project {db_project.id} ({db_project.name})")
    return db_project


def get_project(db: Session, project_id: UUID) -> models.Project:
    """
    Get a project by ID.

    Raises:
        NotFoundError: If the project does not exist
    """
    db_project = db.get(models.Project, project_id)
    if db_project is None:
        raise NotFoundError("Project not found")
    return db_project


def get_projects(
    db: Session,
    query: schemas.ProjectListQuery,
) -> tuple[list[models.Project], int]:
    """
    Get projects with optional name search, sorting and pagination.

    Returns:
        Tuple of (projects list, total count)
    """
    q = db.query(models.Project)
    if query.search:
        q = q.filter(models.Project.name.ilike(_like_pattern(query.search), escape="\\"))

    return _paginate(
        q,
        PROJECT_SORT_COLUMNS[query.sort_by],
        query.sort_order,
        models.Project.id,
        query.limit,
        query.offset,
    )


def count_project_children(db: Session, project_ids: list[UUID]) -> dict[UUID, schemas.ProjectCounts]:
    """
    Count documents, features and sprints per project.

    Args:
        db: Database session
        project_ids: Projects to count for

    Returns:
        Mapping of project ID to its child counts (zeros included)
    """
    counts = {project_id: schemas.ProjectCounts() for project_id in project_ids}
    if not project_ids:
        return counts

    for model, field in (
        (models.Document, "documents"),
        (models.Feature, "features"),
        (models.Sprint, "sprints"),
    ):
        rows = (
            db.query(model.project_id, func.count(model.id))
            .filter(model.project_id.in_(project_ids))
            .group_by(model.project_id)
            .all()
        )
        for project_id, count in rows:
            setattr(counts[project_id], field, count)
    return counts


def update_project(db: Session, project_id: UUID, data: schemas.ProjectUpdate) -> models.Project:
    """
    Update a project.

    Raises:
        NotFoundError: If the project does not exist
    """
    db_project = get_project(db, project_id)
    fields = data.model_dump(exclude_unset=True)

    with _write(db, "Project update conflicts with existing data"):
        if fields.get("name") is not None:
            db_project.name = fields["name"]

    db.refresh(db_project)
    logger.debug(f"Updated project {project_id}")
    return db_project


def delete_project(db: Session, project_id: UUID) -> None:
    """
    Delete a project and everything it owns (cascading delete).

    Raises:
        NotFoundError: If the project does not exist
    """
    db_project = get_project(db, project_id)
    with _write(db, "Project could not be deleted"):
        db.delete(db_project)
    logger.debug(f"Deleted project {project_id}")


# ============================================================================
# Document Operations
# ============================================================================

DOCUMENT_SORT_COLUMNS = {
    "createdAt": models.Document.created_at,
    "updatedAt": models.Document.updated_at,
    "title": models.Document.title,
}


def get_document_by_slug(
    db: Session,
    project_id: UUID,
    slug: str,
    exclude_id: Optional[UUID] = None,
) -> Optional[models.Document]:
    """
    Get a document by project and slug.

    Args:
        db: Database session
        project_id: Project UUID
        slug: Document slug
        exclude_id: Ignore this document (its own row during updates)

    Returns:
        Document instance or None if not found
    """
    q = db.query(models.Document).filter(
        and_(
            models.Document.project_id == project_id,
            models.Document.slug == slug,
        )
    )
    if exclude_id is not None:
        q = q.filter(models.Document.id != exclude_id)
    return q.first()


def _slug_conflict(slug: str) -> ConflictError:
    return ConflictError(
        f"Document with slug '{slug}' already exists in this project",
        field="slug",
        value=slug,
    )


def create_document(db: Session, data: schemas.DocumentCreate) -> models.Document:
    """
    Create a new document.

    The slug is derived from the title when not supplied; a title with no
    usable characters leaves the document without a slug.

    Raises:
        NotFoundError: If the project does not exist
        ConflictError: If the slug is already used in the project
    """
    _require_project(db, data.project_id)

    slug = data.slug or generate_slug_or_none(data.title)
    if slug and get_document_by_slug(db, data.project_id, slug):
        raise _slug_conflict(slug)

    db_document = models.Document(
        project_id=data.project_id,
        kind=data.kind,
        title=data.title,
        slug=slug,
        content=data.content,
    )
    with _write(db, f"Document with slug '{slug}' already exists in this project", field="slug", value=slug):
        db.add(db_document)
    db.refresh(db_document)
    logger.info(f"Created document {db_document.id} ({slug}) in project {data.project_id}")
    return db_document


def generate_slug_or_none(title: str) -> Optional[str]:
    return schemas.generate_slug(title) or None


def get_document(db: Session, document_id: UUID) -> models.Document:
    """
    Get a document by ID.

    Raises:
        NotFoundError: If the document does not exist
    """
    db_document = db.get(models.Document, document_id)
    if db_document is None:
        raise NotFoundError("Document not found")
    return db_document


def get_documents(
    db: Session,
    query: schemas.DocumentListQuery,
) -> tuple[list[models.Document], int]:
    """
    Get documents with optional filtering, sorting and pagination.

    Filters: project, kind (exact) and title search (case-insensitive substring).

    Returns:
        Tuple of (documents list, total count)
    """
    q = db.query(models.Document)
    if query.project_id:
        q = q.filter(models.Document.project_id == query.project_id)
    if query.kind:
        q = q.filter(models.Document.kind == query.kind)
    if query.search:
        q = q.filter(models.Document.title.ilike(_like_pattern(query.search), escape="\\"))

    return _paginate(
        q,
        DOCUMENT_SORT_COLUMNS[query.sort_by],
        query.sort_order,
        models.Document.id,
        query.limit,
        query.offset,
    )


def update_document(db: Session, document_id: UUID, data: schemas.DocumentUpdate) -> models.Document:
    """
    Update a document.

    A new title without an explicit slug regenerates the slug. Slug
    uniqueness is re-checked against every other document in the project.

    Raises:
        NotFoundError: If the document does not exist
        ConflictError: If the new slug is already used in the project
    """
    db_document = get_document(db, document_id)
    fields = data.model_dump(exclude_unset=True)

    new_slug = db_document.slug
    if fields.get("slug"):
        new_slug = fields["slug"]
    elif fields.get("title"):
        new_slug = generate_slug_or_none(fields["title"]) or db_document.slug

    if new_slug and new_slug != db_document.slug:
        if get_document_by_slug(db, db_document.project_id, new_slug, exclude_id=db_document.id):
            raise _slug_conflict(new_slug)

    with _write(db, f"Document with slug '{new_slug}' already exists in this project", field="slug", value=new_slug):
        if fields.get("kind") is not None:
            db_document.kind = fields["kind"]
        if fields.get("title") is not None:
            db_document.title = fields["title"]
        if fields.get("content") is not None:
            db_document.content = fields["content"]
        db_document.slug = new_slug

    db.refresh(db_document)
    logger.info(f"Updated document {document_id}")
    return db_document


def delete_document(db: Session, document_id: UUID) -> None:
    """
    Delete a document.

    Raises:
        NotFoundError: If the document does not exist
    """
    db_document = get_document(db, document_id)
    with _write(db, "Document could not be deleted"):
        db.delete(db_document)
    logger.info(f"Deleted document {document_id}")


# ============================================================================
# Feature Operations
# ============================================================================

FEATURE_SORT_COLUMNS = {
    "createdAt": models.Feature.created_at,
    "updatedAt": models.Feature.updated_at,
    "title": models.Feature.title,
    "featureId": models.Feature.feature_code,
}


def get_feature_by_code(
    db: Session,
    project_id: UUID,
    feature_code: str,
    exclude_id: Optional[UUID] = None,
) -> Optional[models.Feature]:
    """Get a feature by project and feature code (e.g., FEAT-001)."""
    q = db.query(models.Feature).filter(
        and_(
            models.Feature.project_id == project_id,
            models.Feature.feature_code == feature_code,
        )
    )
    if exclude_id is not None:
        q = q.filter(models.Feature.id != exclude_id)
    return q.first()


def _feature_conflict(feature_code: str) -> ConflictError:
    return ConflictError(
        f"Feature {feature_code} already exists in this project",
        field="featureId",
        value=feature_code,
    )


def create_feature(db: Session, data: schemas.FeatureCreate) -> models.Feature:
    """
    Create a new feature.

    Raises:
        NotFoundError: If the project does not exist
        ConflictError: If the feature code is already used in the project
    """
    _require_project(db, data.project_id)

    if get_feature_by_code(db, data.project_id, data.feature_code):
        raise _feature_conflict(data.feature_code)

    db_feature = models.Feature(
        project_id=data.project_id,
        feature_code=data.feature_code,
        title=data.title,
        version=data.version,
        status=data.status,
        area=data.area,
    )
    conflict = _feature_conflict(data.feature_code)
    with _write(db, conflict.detail, **conflict.extras):
        db.add(db_feature)
    db.refresh(db_feature)
    logger.info(f"Created feature {db_feature.feature_code} ({db_feature.id}) in project {data.project_id}")
    return db_feature


def get_feature(db: Session, feature_id: UUID) -> models.Feature:
    """
    Get a feature by ID.

    Raises:
        NotFoundError: If the feature does not exist
    """
    db_feature = db.get(models.Feature, feature_id)
    if db_feature is None:
        raise NotFoundError("Feature not found")
    return db_feature


def get_features(
    db: Session,
    query: schemas.FeatureListQuery,
) -> tuple[list[models.Feature], int]:
    """
    Get features with optional filtering, sorting and pagination.

    Filters: project, status (exact) and area (case-insensitive substring).

    Returns:
        Tuple of (features list, total count)
    """
    q = db.query(models.Feature)
    if query.project_id:
        q = q.filter(models.Feature.project_id == query.project_id)
    if query.status:
        q = q.filter(models.Feature.status == query.status)
    if query.area:
        q = q.filter(models.Feature.area.ilike(_like_pattern(query.area), escape="\\"))

    return _paginate(
        q,
        FEATURE_SORT_COLUMNS[query.sort_by],
        query.sort_order,
        models.Feature.id,
        query.limit,
        query.offset,
    )


def update_feature(
    db: Session,
    feature_id: UUID,
    data: schemas.FeatureUpdate,
    validate_transition: TransitionValidator = allow_any_transition,
) -> models.Feature:
    """
    Update a feature.

    Args:
        db: Database session
        feature_id: Feature UUID
        data: Partial update
        validate_transition: Hook consulted when the status changes

    Raises:
        NotFoundError: If the feature does not exist
        ConflictError: If the new feature code is already used in the project
        StateTransitionError: If the transition hook rejects the status change
    """
    db_feature = get_feature(db, feature_id)
    fields = data.model_dump(exclude_unset=True)

    new_code = fields.get("feature_code")
    if new_code and new_code != db_feature.feature_code:
        if get_feature_by_code(db, db_feature.project_id, new_code, exclude_id=db_feature.id):
            raise _feature_conflict(new_code)

    if fields.get("status") is not None:
        validate_transition(db_feature.status, fields["status"])

    conflict = _feature_conflict(new_code or db_feature.feature_code)
    with _write(db, conflict.detail, **conflict.extras):
        for field in ("feature_code", "title", "version", "status", "area"):
            if fields.get(field) is not None:
                setattr(db_feature, field, fields[field])

    db.refresh(db_feature)
    logger.info(f"Updated feature {db_feature.feature_code} ({feature_id})")
    return db_feature


def delete_feature(db: Session, feature_id: UUID) -> None:
    """
    Delete a feature.

    Raises:
        NotFoundError: If the feature does not exist
    """
    db_feature = get_feature(db, feature_id)
    with _write(db, "Feature could not be deleted"):
        db.delete(db_feature)
    logger.info(f"Deleted feature {feature_id}")


# ============================================================================
# Sprint Operations
# ============================================================================

SPRINT_SORT_COLUMNS = {
    "createdAt": models.Sprint.created_at,
    "updatedAt": models.Sprint.updated_at,
    "name": models.Sprint.name,
    "code": models.Sprint.code,
    "startDate": models.Sprint.start_date,
}


def get_sprint_by_code(
    db: Session,
    project_id: UUID,
    code: str,
    exclude_id: Optional[UUID] = None,
) -> Optional[models.Sprint]:
    """Get a sprint by project and sprint code (e.g., SPR-001)."""
    q = db.query(models.Sprint).filter(
        and_(
            models.Sprint.project_id == project_id,
            models.Sprint.code == code,
        )
    )
    if exclude_id is not None:
        q = q.filter(models.Sprint.id != exclude_id)
    return q.first()


def _sprint_conflict(code: str) -> ConflictError:
    return ConflictError(
        f"Sprint {code} already exists in this project",
        field="code",
        value=code,
    )


def _insert_sprint_items(
    db: Session,
    db_sprint: models.Sprint,
    items: list[schemas.SprintItemInput],
) -> list[models.SprintItem]:
    """
    Append items to a sprint, flushing each so failures surface mid-sequence.

    An item without an explicit order takes its position in the list.
    """
    created = []
    for index, item in enumerate(items):
        db_item = models.SprintItem(
            text=item.text,
            checked=item.checked,
            order=item.order if item.order is not None else index,
        )
        db_sprint.items.append(db_item)
        db.flush()
        created.append(db_item)
    return created


def create_sprint(db: Session, data: schemas.SprintCreate) -> models.Sprint:
    """
    Create a sprint and its items in one transaction.

    Either the sprint and all of its items are stored, or nothing is.

    Raises:
        NotFoundError: If the project does not exist
        ConflictError: If the sprint code is already used in the project
        DomainValidationError: If the end date is not after the start date
    """
    _require_project(db, data.project_id)

    if get_sprint_by_code(db, data.project_id, data.code):
        raise _sprint_conflict(data.code)

    _check_date_order(data.start_date, data.end_date)

    db_sprint = models.Sprint(
        project_id=data.project_id,
        code=data.code,
        name=data.name,
        status=data.status,
        start_date=data.start_date,
        end_date=data.end_date,
    )
    conflict = _sprint_conflict(data.code)
    with _write(db, conflict.detail, **conflict.extras):
        db.add(db_sprint)
        db.flush()
        _insert_sprint_items(db, db_sprint, data.items)

    db.refresh(db_sprint)
    logger.info(
        f"Created sprint {db_sprint.code} ({db_sprint.id}) in project {data.project_id} "
        f"with {len(db_sprint.items)} items"
    )
    return db_sprint


def get_sprint(db: Session, sprint_id: UUID) -> models.Sprint:
    """
    Get a sprint by ID (items ordered by their order field).

    Raises:
        NotFoundError: If the sprint does not exist
    """
    db_sprint = db.get(models.Sprint, sprint_id)
    if db_sprint is None:
        raise NotFoundError("Sprint not found")
    return db_sprint


def get_sprints(
    db: Session,
    query: schemas.SprintListQuery,
) -> tuple[list[models.Sprint], int]:
    """
    Get sprints with optional filtering, sorting and pagination.

    Returns:
        Tuple of (sprints list, total count)
    """
    q = db.query(models.Sprint)
    if query.project_id:
        q = q.filter(models.Sprint.project_id == query.project_id)
    if query.status:
        q = q.filter(models.Sprint.status == query.status)

    return _paginate(
        q,
        SPRINT_SORT_COLUMNS[query.sort_by],
        query.sort_order,
        models.Sprint.id,
        query.limit,
        query.offset,
    )


def get_sprint_item_counts(db: Session, sprint_ids: list[UUID]) -> dict[UUID, tuple[int, int]]:
    """
    Count items and checked items per sprint.

    Returns:
        Mapping of sprint ID to (item count, completed item count)
    """
    counts = {sprint_id: (0, 0) for sprint_id in sprint_ids}
    if not sprint_ids:
        return counts

    rows = (
        db.query(
            models.SprintItem.sprint_id,
            func.count(models.SprintItem.id),
            func.sum(case((models.SprintItem.checked.is_(True), 1), else_=0)),
        )
        .filter(models.SprintItem.sprint_id.in_(sprint_ids))
        .group_by(models.SprintItem.sprint_id)
        .all()
    )
    for sprint_id, total, completed in rows:
        counts[sprint_id] = (total, int(completed or 0))
    return counts


def update_sprint(
    db: Session,
    sprint_id: UUID,
    data: schemas.SprintUpdate,
    validate_transition: TransitionValidator = allow_any_transition,
) -> models.Sprint:
    """
    Update a sprint, optionally replacing all of its items.

    Field changes, deletion of the old items and insertion of the new ones
    commit together; if any item insert fails, the whole update is rolled
    back. Date ordering is checked against the merged new/existing values.

    Raises:
        NotFoundError: If the sprint does not exist
        ConflictError: If the new code is already used in the project
        DomainValidationError: If the resulting end date is not after the start date
        StateTransitionError: If the transition hook rejects the status change
    """
    db_sprint = get_sprint(db, sprint_id)
    fields = data.model_dump(exclude_unset=True, exclude={"items"})

    new_code = fields.get("code")
    if new_code and new_code != db_sprint.code:
        if get_sprint_by_code(db, db_sprint.project_id, new_code, exclude_id=db_sprint.id):
            raise _sprint_conflict(new_code)

    start_date = fields["start_date"] if "start_date" in fields else db_sprint.start_date
    end_date = fields["end_date"] if "end_date" in fields else db_sprint.end_date
    _check_date_order(start_date, end_date)

    if fields.get("status") is not None:
        validate_transition(db_sprint.status, fields["status"])

    conflict = _sprint_conflict(new_code or db_sprint.code)
    with _write(db, conflict.detail, **conflict.extras):
        for field in ("code", "name", "status"):
            if fields.get(field) is not None:
                setattr(db_sprint, field, fields[field])
        if "start_date" in fields:
            db_sprint.start_date = fields["start_date"]
        if "end_date" in fields:
            db_sprint.end_date = fields["end_date"]

        if data.items is not None:
            db_sprint.items.clear()
            db.flush()
            _insert_sprint_items(db, db_sprint, data.items)

    db.refresh(db_sprint)
    logger.info(f"Updated sprint {db_sprint.code} ({sprint_id}) with {len(db_sprint.items)} items")
    return db_sprint


def delete_sprint(db: Session, sprint_id: UUID) -> None:
    """
    Delete a sprint and its items.

    Raises:
        NotFoundError: If the sprint does not exist
    """
    db_sprint = get_sprint(db, sprint_id)
    item_count = len(db_sprint.items)
    with _write(db, "Sprint could not be deleted"):
        db.delete(db_sprint)
    logger.info(f"Deleted sprint {sprint_id} and {item_count} items")


# Sprint item mutation (single items)

def _get_sprint_item(db: Session, sprint_id: UUID, item_id: UUID) -> models.SprintItem:
    get_sprint(db, sprint_id)
    db_item = db.get(models.SprintItem, item_id)
    if db_item is None or db_item.sprint_id != sprint_id:
        raise NotFoundError("Sprint item not found")
    return db_item


def add_sprint_item(db: Session, sprint_id: UUID, data: schemas.SprintItemInput) -> models.SprintItem:
    """
    Append one item to a sprint.

    Without an explicit order the item goes after the current last item.

    Raises:
        NotFoundError: If the sprint does not exist
        DomainValidationError: If the last item already holds the largest order
    """
    db_sprint = get_sprint(db, sprint_id)
    if data.order is not None:
        order = data.order
    else:
        order = max((item.order for item in db_sprint.items), default=-1) + 1
        if order > schemas.MAX_INT:
            raise DomainValidationError("Sprint has no order left to append an item; pass an explicit order")

    db_item = models.SprintItem(text=data.text, checked=data.checked, order=order)
    with _write(db, "Sprint item could not be created"):
        db_sprint.items.append(db_item)
    db.refresh(db_item)
    logger.info(f"Added item {db_item.id} to sprint {sprint_id}")
    return db_item


def update_sprint_item(
    db: Session,
    sprint_id: UUID,
    item_id: UUID,
    data: schemas.SprintItemUpdate,
) -> models.SprintItem:
    """
    Update one sprint item (text, checked flag or order).

    Raises:
        NotFoundError: If the sprint or item does not exist
    """
    db_item = _get_sprint_item(db, sprint_id, item_id)
    fields = data.model_dump(exclude_unset=True)

    with _write(db, "Sprint item could not be updated"):
        for field in ("text", "checked", "order"):
            if fields.get(field) is not None:
                setattr(db_item, field, fields[field])

    db.refresh(db_item)
    logger.info(f"Updated item {item_id} in sprint {sprint_id}")
    return db_item


def delete_sprint_item(db: Session, sprint_id: UUID, item_id: UUID) -> None:
    """
    Delete one sprint item.

    Raises:
        NotFoundError: If the sprint or item does not exist
    """
    db_item = _get_sprint_item(db, sprint_id, item_id)
    with _write(db, "Sprint item could not be deleted"):
        db.delete(db_item)
    logger.info(f"Deleted item {item_id} from sprint {sprint_id}")
