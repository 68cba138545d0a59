"""MCP tool definitions for 1Plan.

Tool argument models are built from the shared ``oneplan_core.schemas``
models, so the gateway validates exactly what the API validates. Each
tool's ``inputSchema`` is generated from its argument model.
"""
from typing import Optional, Type
from uuid import UUID

from mcp.types import Tool
from pydantic import BaseModel, Field

from oneplan_core import schemas

# Argument fields that steer the gateway and are never forwarded as payload
GATEWAY_FIELDS = {"id", "sprint_id", "item_id", "request_id", "idempotency_key"}


class RequestArgs(schemas.CamelModel):
    request_id: Optional[str] = Field(None, description="Optional request ID for tracing")


class IdempotentArgs(RequestArgs):
    idempotency_key: Optional[str] = Field(
        None, description="Optional idempotency key; retries with the same key are not applied twice"
    )


class EntityArgs(RequestArgs):
    id: UUID = Field(..., description="Entity ID")


# ============================================================================
# Argument models
# ============================================================================

class CreateProjectArgs(schemas.ProjectCreate, IdempotentArgs):
    pass


class ListProjectsArgs(schemas.ProjectListQuery, RequestArgs):
    pass


class UpdateProjectArgs(schemas.ProjectUpdate, EntityArgs, IdempotentArgs):
    pass


class CreateDocumentArgs(schemas.DocumentCreate, IdempotentArgs):
    pass


class ListDocumentsArgs(schemas.DocumentListQuery, RequestArgs):
    pass


class UpdateDocumentArgs(schemas.DocumentUpdate, EntityArgs, IdempotentArgs):
    pass


class CreateFeatureArgs(schemas.FeatureCreate, IdempotentArgs):
    pass


class ListFeaturesArgs(schemas.FeatureListQuery, RequestArgs):
    pass


class UpdateFeatureArgs(schemas.FeatureUpdate, EntityArgs, IdempotentArgs):
    pass


class CreateSprintArgs(schemas.SprintCreate, IdempotentArgs):
    pass


class ListSprintsArgs(schemas.SprintListQuery, RequestArgs):
    pass


class UpdateSprintArgs(schemas.SprintUpdate, EntityArgs, IdempotentArgs):
    pass


class SprintItemRef(RequestArgs):
    sprint_id: UUID = Field(..., description="Sprint ID")


class AddSprintItemArgs(schemas.SprintItemInput, SprintItemRef, IdempotentArgs):
    pass


class UpdateSprintItemArgs(schemas.SprintItemUpdate, SprintItemRef, IdempotentArgs):
    item_id: UUID = Field(..., description="Sprint item ID")


class DeleteSprintItemArgs(SprintItemRef):
    item_id: UUID = Field(..., description="Sprint item ID")


# ============================================================================
# Catalog
# ============================================================================

# name -> (argument model, description)
TOOL_CATALOG: dict[str, tuple[Type[BaseModel], str]] = {
    # Projects
    "create_project": (CreateProjectArgs, "Create a new project."),
    "get_project": (EntityArgs, "Retrieve a project by ID, including document, feature and sprint counts."),
    "list_projects": (ListProjectsArgs, "List projects with optional name search and pagination."),
    "update_project": (UpdateProjectArgs, "Update a project's name."),
    "delete_project": (
        EntityArgs,
        "Delete a project. This also deletes all of its documents, features and sprints.",
    ),
    # Documents
    "create_document": (
        CreateDocumentArgs,
        "Create a new document in a project. The slug is generated from the title when omitted.",
    ),
    "get_document": (EntityArgs, "Retrieve a document by ID."),
    "list_documents": (
        ListDocumentsArgs,
        "List documents, optionally filtered by project, kind or title search.",
    ),
    "update_document": (
        UpdateDocumentArgs,
        "Update a document. Changing the title without a slug regenerates the slug.",
    ),
    "delete_document": (EntityArgs, "Delete a document."),
    # Features
    "create_feature": (CreateFeatureArgs, "Create a new feature (featureId FEAT-<n>, unique per project)."),
    "get_feature": (EntityArgs, "Retrieve a feature by ID."),
    "list_features": (ListFeaturesArgs, "List features, optionally filtered by project, status or area."),
    "update_feature": (UpdateFeatureArgs, "Update a feature (title, version, status, area or featureId)."),
    "delete_feature": (EntityArgs, "Delete a feature."),
    # Sprints
    "create_sprint": (
        CreateSprintArgs,
        "Create a new sprint (code SPR-<n>, unique per project) together with its checklist items.",
    ),
    "get_sprint": (EntityArgs, "Retrieve a sprint by ID, including its checklist items."),
    "list_sprints": (ListSprintsArgs, "List sprints with item counts, optionally filtered by project or status."),
    "update_sprint": (
        UpdateSprintArgs,
        "Update a sprint. A supplied items list replaces all existing items.",
    ),
    "delete_sprint": (EntityArgs, "Delete a sprint and its items."),
    # Sprint items
    "add_sprint_item": (AddSprintItemArgs, "Append a checklist item to a sprint."),
    "update_sprint_item": (UpdateSprintItemArgs, "Update one sprint checklist item (text, checked, order)."),
    "delete_sprint_item": (DeleteSprintItemArgs, "Delete one sprint checklist item."),
}


def input_schema(model: Type[BaseModel]) -> dict:
    """JSON schema (camelCase properties) for a tool argument model."""
    schema = model.model_json_schema(by_alias=True)
    schema.setdefault("type", "object")
    return schema


def get_tools() -> list[Tool]:
    """Get the list of all MCP tools for 1Plan."""
    return [
        Tool(name=name, description=description, inputSchema=input_schema(model))
        for name, (model, description) in TOOL_CATALOG.items()
    ]
