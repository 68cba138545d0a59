"""Pydantic schemas for request/response validation.

This is the single schema module shared by the REST routers and the MCP
gateway, so both sides enforce identical field rules. JSON field names are
camelCase (``projectId``, ``startDate``); Python attributes are snake_case.
"""
import re
from datetime import datetime, timezone
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import DocumentKind, FeatureStatus, SprintStatus


FEATURE_CODE_PATTERN = r"^FEAT-\d+$"
SPRINT_CODE_PATTERN = r"^SPR-\d+$"
SLUG_PATTERN = r"^[a-z0-9-]+$"

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

# Largest value a 32-bit INTEGER column or OFFSET accepts on every supported store
MAX_INT = 2**31 - 1

SortOrder = Literal["asc", "desc"]


def generate_slug(title: str) -> str:
    """
    Derive a URL-safe slug from a document title.

    Lower-cases, drops anything outside ``[a-z0-9]``, whitespace and hyphens,
    turns whitespace runs into hyphens, collapses repeated hyphens and trims
    them from both ends.

    Examples:
        "Test & Document!" -> "test-document"
        "-Test Document-"  -> "test-document"
    """
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def schema_errors(exc: Any) -> dict[str, str]:
    """
    Flatten a pydantic/FastAPI validation error into a field -> message map.

    Every violation is reported, keyed by its dotted location (``items.0.text``).
    Transport prefixes (``body``, ``query``, ``path``) are dropped.
    """
    details: dict[str, str] = {}
    for error in exc.errors():
        loc = list(error.get("loc", ()))
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) or "body"
        message = error.get("msg", "Invalid value")
        if field in details:
            details[field] = f"{details[field]}; {message}"
        else:
            details[field] = message
    return details


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _require_iso_timestamp(value: Any) -> Any:
    # Numbers would otherwise be accepted as unix timestamps
    if value is not None and not isinstance(value, (str, datetime)):
        raise ValueError("must be an ISO-8601 timestamp")
    return value


class CamelModel(BaseModel):
    """Base model with camelCase aliases; accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseModel(CamelModel):
    """Base for models built from ORM rows."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


class ListQuery(CamelModel):
    """Pagination shared by every list operation."""

    limit: int = Field(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    offset: int = Field(0, ge=0, le=MAX_INT)
    sort_order: SortOrder = "desc"


# Project Schemas

class ProjectCreate(CamelModel):
    """Schema for creating a project."""

    name: str = Field(..., min_length=1, max_length=100)


class ProjectUpdate(CamelModel):
    """Schema for updating a project."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)


class ProjectCounts(CamelModel):
    documents: int = 0
    features: int = 0
    sprints: int = 0


class ProjectResponse(ResponseModel):
    """Schema for project responses."""

    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime
    counts: Optional[ProjectCounts] = None


class ProjectListQuery(ListQuery):
    """Query parameters for listing projects."""

    search: Optional[str] = Field(None, max_length=100, description="Case-insensitive substring of the name")
    sort_by: Literal["createdAt", "updatedAt", "name"] = "updatedAt"


class ProjectListResponse(CamelModel):
    projects: list[ProjectResponse]
    total: int
    limit: int
    offset: int


# Document Schemas

class DocumentCreate(CamelModel):
    """Schema for creating a document.

    When ``slug`` is omitted it is derived from the title.
    """

    project_id: UUID
    kind: DocumentKind
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)


class DocumentUpdate(CamelModel):
    """Schema for updating a document.

    Changing the title without supplying a slug regenerates the slug.
    """

    kind: Optional[DocumentKind] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)


class DocumentResponse(ResponseModel):
    """Schema for document responses."""

    id: UUID
    project_id: UUID
    kind: DocumentKind
    title: str
    slug: Optional[str] = None
    content: str
    created_at: datetime
    updated_at: datetime


class DocumentListQuery(ListQuery):
    """Query parameters for listing documents."""

    project_id: Optional[UUID] = None
    kind: Optional[DocumentKind] = None
    search: Optional[str] = Field(None, max_length=200, description="Case-insensitive substring of the title")
    sort_by: Literal["createdAt", "updatedAt", "title"] = "updatedAt"


class DocumentListResponse(CamelModel):
    documents: list[DocumentResponse]
    total: int
    limit: int
    offset: int


# Feature Schemas

class FeatureCreate(CamelModel):
    """Schema for creating a feature."""

    project_id: UUID
    feature_code: str = Field(..., alias="featureId", pattern=FEATURE_CODE_PATTERN, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    version: str = Field("0.1.0", min_length=1, max_length=50)
    status: FeatureStatus = FeatureStatus.PLANNED
    area: str = Field(..., min_length=1, max_length=100)


class FeatureUpdate(CamelModel):
    """Schema for updating a feature."""

    feature_code: Optional[str] = Field(None, alias="featureId", pattern=FEATURE_CODE_PATTERN, max_length=50)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    version: Optional[str] = Field(None, min_length=1, max_length=50)
    status: Optional[FeatureStatus] = None
    area: Optional[str] = Field(None, min_length=1, max_length=100)


class FeatureResponse(ResponseModel):
    """Schema for feature responses."""

    id: UUID
    project_id: UUID
    feature_code: str = Field(..., alias="featureId")
    title: str
    version: str
    status: FeatureStatus
    area: str
    created_at: datetime
    updated_at: datetime


class FeatureListQuery(ListQuery):
    """Query parameters for listing features."""

    project_id: Optional[UUID] = None
    status: Optional[FeatureStatus] = None
    area: Optional[str] = Field(None, max_length=100, description="Case-insensitive substring of the area")
    sort_by: Literal["createdAt", "updatedAt", "title", "featureId"] = "updatedAt"


class FeatureListResponse(CamelModel):
    features: list[FeatureResponse]
    total: int
    limit: int
    offset: int


# Sprint Schemas

class SprintItemInput(CamelModel):
    """A sprint checklist item as submitted by clients.

    ``order`` defaults to the item's position in the submitted list.
    """

    text: str = Field(..., min_length=1, max_length=500)
    checked: bool = False
    order: Optional[int] = Field(None, ge=0, le=MAX_INT)


class SprintItemUpdate(CamelModel):
    text: Optional[str] = Field(None, min_length=1, max_length=500)
    checked: Optional[bool] = None
    order: Optional[int] = Field(None, ge=0, le=MAX_INT)


class SprintItemResponse(ResponseModel):
    id: UUID
    sprint_id: UUID
    text: str
    checked: bool
    order: int
    created_at: datetime
    updated_at: datetime


class _SprintDates(CamelModel):
    """Shared handling for optional ISO-8601 start/end dates."""

    @field_validator("start_date", "end_date", mode="before", check_fields=False)
    @classmethod
    def _iso_only(cls, value):
        return _require_iso_timestamp(value)

    @field_validator("start_date", "end_date", check_fields=False)
    @classmethod
    def _normalise(cls, value):
        return _to_naive_utc(value)


class SprintCreate(_SprintDates):
    """Schema for creating a sprint together with its items."""

    project_id: UUID
    code: str = Field(..., pattern=SPRINT_CODE_PATTERN, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    status: SprintStatus = SprintStatus.PLANNED
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    items: list[SprintItemInput] = Field(default_factory=list)


class SprintUpdate(_SprintDates):
    """Schema for updating a sprint.

    A supplied ``items`` list replaces every existing item. Explicit
    ``null`` dates clear the stored value.
    """

    code: Optional[str] = Field(None, pattern=SPRINT_CODE_PATTERN, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[SprintStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    items: Optional[list[SprintItemInput]] = None


class SprintResponse(ResponseModel):
    """Schema for full sprint responses (includes items)."""

    id: UUID
    project_id: UUID
    code: str
    name: str
    status: SprintStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: list[SprintItemResponse] = Field(default_factory=list)


class SprintListItem(ResponseModel):
    """Schema for sprint list rows (item counts instead of items)."""

    id: UUID
    project_id: UUID
    code: str
    name: str
    status: SprintStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    item_count: int = 0
    completed_item_count: int = 0


class SprintListQuery(ListQuery):
    """Query parameters for listing sprints."""

    project_id: Optional[UUID] = None
    status: Optional[SprintStatus] = None
    sort_by: Literal["createdAt", "updatedAt", "name", "code", "startDate"] = "updatedAt"


class SprintListResponse(CamelModel):
    sprints: list[SprintListItem]
    total: int
    limit: int
    offset: int
