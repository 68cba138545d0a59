"""MCP tool handlers.

All handlers follow the same pattern:
- Accept: the raw arguments dict and an ApiClient
- Re-validate the arguments with the tool's argument model
  (ToolValidationError lists every offending field)
- Issue the REST call; API failures propagate as ApiRequestError / NetworkError
- Return: [summary text, JSON payload] as TextContent
"""
import json
import logging
from typing import Any, Awaitable, Callable, Optional

from mcp.types import TextContent
from pydantic import BaseModel, ValidationError

from oneplan_core.schemas import schema_errors

from . import formatters, tools
from .api_client import ApiClient
from .errors import ToolValidationError, UnknownToolError

logger = logging.getLogger("oneplan-mcp.handlers")

Handler = Callable[[dict, ApiClient], Awaitable[list[TextContent]]]


def validate_arguments(tool: str, arguments: Optional[dict]) -> Any:
    """
    Validate raw tool arguments against the tool's argument model.

    Raises:
        ToolValidationError: With a field -> message map of every violation
    """
    model, _ = tools.TOOL_CATALOG[tool]
    try:
        return model.model_validate(arguments or {})
    except ValidationError as e:
        details = schema_errors(e)
        logger.warning(f"Rejected arguments for {tool}: {details}")
        raise ToolValidationError(tool, details) from e


def _payload(args: BaseModel) -> dict:
    """Body for create/update calls: only what the caller actually set."""
    return args.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude=tools.GATEWAY_FIELDS)


def _query(args: BaseModel) -> dict:
    return args.model_dump(mode="json", by_alias=True, exclude_none=True, exclude=tools.GATEWAY_FIELDS)


def _result(text: str, data: Any = None) -> list[TextContent]:
    content = [TextContent(type="text", text=text)]
    if data is not None:
        content.append(TextContent(type="text", text=json.dumps(data, indent=2)))
    return content


# ============================================================================
# Project Handlers
# ============================================================================

async def handle_create_project(arguments: dict, client: ApiClient) -> list[TextContent]:
    """Create a new project."""
    args = validate_arguments("create_project", arguments)
    result = await client.post(
        "/projects", json=_payload(args), request_id=args.request_id, idempotency_key=args.idempotency_key
    )
    logger.info(f"Created project: {result['name']} (ID: {result['id']})")
    text = f"Created project: {result['name']}\n\n{formatters.format_project(result)}"
    return _result(text, result)


async def handle_get_project(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("get_project", arguments)
    result = await client.get(f"/projects/{args.id}", request_id=args.request_id)
    logger.info(f"Retrieved project {args.id}")
    return _result(formatters.format_project(result), result)


async def handle_list_projects(arguments: dict, client: ApiClient) -> list[TextContent]:
    """List projects with pagination."""
    args = validate_arguments("list_projects", arguments)
    result = await client.get("/projects", params=_query(args), request_id=args.request_id)
    projects = result["projects"]
    logger.info(f"Listed {len(projects)} of {result['total']} projects")

    summary = formatters.format_list_summary("projects", result, len(projects))
    items_text = "\n\n".join(formatters.format_project(p) for p in projects)
    return _result(f"{summary}\n\n{items_text}".rstrip(), result)


async def handle_update_project(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("update_project", arguments)
    result = await client.patch(
        f"/projects/{args.id}", json=_payload(args), request_id=args.request_id, idempotency_key=args.idempotency_key
    )
    logger.info(f"Updated project {args.id}")
    return _result(f"Updated project: {result['name']}\n\n{formatters.format_project(result)}", result)


async def handle_delete_project(arguments: dict, client: ApiClient) -> list[TextContent]:
    """Delete a project (cascades to its documents, features and sprints)."""
    args = validate_arguments("delete_project", arguments)
    await client.delete(f"/projects/{args.id}", request_id=args.request_id)
    logger.info(f"Deleted project {args.id}")
    return _result(f"Deleted project {args.id} and all of its documents, features and sprints")


# ============================================================================
# Document Handlers
# ============================================================================

async def handle_create_document(arguments: dict, client: ApiClient) -> list[TextContent]:
    """Create a new document."""
    args = validate_arguments("create_document", arguments)
    result = await client.post(
        "/documents", json=_payload(args), request_id=args.request_id, idempotency_key=args.idempotency_key
    )
    logger.info(f"Created document: {result['title']} (ID: {result['id']})")
    text = f"Document \"{result['title']}\" created successfully\n\n{formatters.format_document(result)}"
    return _result(text, result)


async def handle_get_document(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("get_document", arguments)
    result = await client.get(f"/documents/{args.id}", request_id=args.request_id)
    logger.info(f"Retrieved document {args.id}")
    return _result(formatters.format_document(result, include_content=True), result)


async def handle_list_documents(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("list_documents", arguments)
    result = await client.get("/documents", params=_query(args), request_id=args.request_id)
    documents = result["documents"]
    logger.info(f"Listed {len(documents)} of {result['total']} documents")

    summary = formatters.format_list_summary("documents", result, len(documents))
    items_text = "\n\n".join(formatters.format_document(d) for d in documents)
    return _result(f"{summary}\n\n{items_text}".rstrip(), result)


async def handle_update_document(arguments: dict, client: ApiClient) -> list[TextContent]:
    """Update a document (title change regenerates the slug unless one is given)."""
    args = validate_arguments("update_document", arguments)
    result = await client.patch(
        f"/documents/{args.id}", json=_payload(args), request_id=args.request_id, idempotency_key=args.idempotency_key
    )
    logger.info(f"Updated document {args.id}")
    return _result(f"Updated document: {result['title']}\n\n{formatters.format_document(result)}", result)


async def handle_delete_document(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("delete_document", arguments)
    await client.delete(f"/documents/{args.id}", request_id=args.request_id)
    logger.info(f"Deleted document {args.id}")
    return _result(f"Deleted document {args.id}")


# ============================================================================
# Feature Handlers
# ============================================================================

async def handle_create_feature(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("create_feature", arguments)
    result = await client.post(
        "/features", json=_payload(args), request_id=args.request_id, idempotency_key=args.idempotency_key
    )
    logger.info(f"Created feature {result['featureId']} (ID: {result['id']})")
    return _result(f"Created feature {result['featureId']}\n\n{formatters.format_feature(result)}", result)


async def handle_get_feature(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("get_feature", arguments)
    result = await client.get(f"/features/{args.id}", request_id=args.request_id)
    return _result(formatters.format_feature(result), result)


async def handle_list_features(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("list_features", arguments)
    result = await client.get("/features", params=_query(args), request_id=args.request_id)
    features = result["features"]
    logger.info(f"Listed {len(features)} of {result['total']} features")

    summary = formatters.format_list_summary("features", result, len(features))
    items_text = "\n\n".join(formatters.format_feature(f) for f in features)
    return _result(f"{summary}\n\n{items_text}".rstrip(), result)


async def handle_update_feature(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("update_feature", arguments)
    result = await client.patch(
        f"/features/{args.id}", json=_payload(args), request_id=args.request_id, idempotency_key=args.idempotency_key
    )
    logger.info(f"Updated feature {result['featureId']} ({args.id})")
    return _result(f"Updated feature {result['featureId']}\n\n{formatters.format_feature(result)}", result)


async def handle_delete_feature(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("delete_feature", arguments)
    await client.delete(f"/features/{args.id}", request_id=args.request_id)
    logger.info(f"Deleted feature {args.id}")
    return _result(f"Deleted feature {args.id}")


# ============================================================================
# Sprint Handlers
# ============================================================================

async def handle_create_sprint(arguments: dict, client: ApiClient) -> list[TextContent]:
    """Create a sprint with its checklist items (all-or-nothing on the API side)."""
    args = validate_arguments("create_sprint", arguments)
    result = await client.post(
        "/sprints", json=_payload(args), request_id=args.request_id, idempotency_key=args.idempotency_key
    )
    logger.info(f"Created sprint {result['code']} (ID: {result['id']}) with {len(result['items'])} items")
    return _result(f"Created sprint {result['code']}\n\n{formatters.format_sprint(result)}", result)


async def handle_get_sprint(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("get_sprint", arguments)
    result = await client.get(f"/sprints/{args.id}", request_id=args.request_id)
    return _result(formatters.format_sprint(result), result)


async def handle_list_sprints(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("list_sprints", arguments)
    result = await client.get("/sprints", params=_query(args), request_id=args.request_id)
    sprints = result["sprints"]
    logger.info(f"Listed {len(sprints)} of {result['total']} sprints")

    summary = formatters.format_list_summary("sprints", result, len(sprints))
    items_text = "\n\n".join(formatters.format_sprint(s) for s in sprints)
    return _result(f"{summary}\n\n{items_text}".rstrip(), result)


async def handle_update_sprint(arguments: dict, client: ApiClient) -> list[TextContent]:
    """Update a sprint; a supplied items list replaces all existing items."""
    args = validate_arguments("update_sprint", arguments)
    result = await client.patch(
        f"/sprints/{args.id}", json=_payload(args), request_id=args.request_id, idempotency_key=args.idempotency_key
    )
    logger.info(f"Updated sprint {result['code']} ({args.id})")
    return _result(f"Updated sprint {result['code']}\n\n{formatters.format_sprint(result)}", result)


async def handle_delete_sprint(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("delete_sprint", arguments)
    await client.delete(f"/sprints/{args.id}", request_id=args.request_id)
    logger.info(f"Deleted sprint {args.id}")
    return _result(f"Deleted sprint {args.id} and its items")


async def handle_add_sprint_item(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("add_sprint_item", arguments)
    result = await client.post(
        f"/sprints/{args.sprint_id}/items",
        json=_payload(args),
        request_id=args.request_id,
        idempotency_key=args.idempotency_key,
    )
    logger.info(f"Added item {result['id']} to sprint {args.sprint_id}")
    return _result(f"Added item to sprint {args.sprint_id}\n{formatters.format_sprint_item(result)}", result)


async def handle_update_sprint_item(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("update_sprint_item", arguments)
    result = await client.patch(
        f"/sprints/{args.sprint_id}/items/{args.item_id}",
        json=_payload(args),
        request_id=args.request_id,
        idempotency_key=args.idempotency_key,
    )
    logger.info(f"Updated item {args.item_id} in sprint {args.sprint_id}")
    return _result(f"Updated sprint item\n{formatters.format_sprint_item(result)}", result)


async def handle_delete_sprint_item(arguments: dict, client: ApiClient) -> list[TextContent]:
    args = validate_arguments("delete_sprint_item", arguments)
    await client.delete(f"/sprints/{args.sprint_id}/items/{args.item_id}", request_id=args.request_id)
    logger.info(f"Deleted item {args.item_id} from sprint {args.sprint_id}")
    return _result(f"Deleted item {args.item_id} from sprint {args.sprint_id}")


# ============================================================================
# Dispatch
# ============================================================================

HANDLERS: dict[str, Handler] = {
    "create_project": handle_create_project,
    "get_project": handle_get_project,
    "list_projects": handle_list_projects,
    "update_project": handle_update_project,
    "delete_project": handle_delete_project,
    "create_document": handle_create_document,
    "get_document": handle_get_document,
    "list_documents": handle_list_documents,
    "update_document": handle_update_document,
    "delete_document": handle_delete_document,
    "create_feature": handle_create_feature,
    "get_feature": handle_get_feature,
    "list_features": handle_list_features,
    "update_feature": handle_update_feature,
    "delete_feature": handle_delete_feature,
    "create_sprint": handle_create_sprint,
    "get_sprint": handle_get_sprint,
    "list_sprints": handle_list_sprints,
    "update_sprint": handle_update_sprint,
    "delete_sprint": handle_delete_sprint,
    "add_sprint_item": handle_add_sprint_item,
    "update_sprint_item": handle_update_sprint_item,
    "delete_sprint_item": handle_delete_sprint_item,
}


async def dispatch(name: str, arguments: Optional[dict], client: ApiClient) -> list[TextContent]:
    """
    Route a tool call to its handler.

    Raises:
        UnknownToolError: If no tool has this name
    """
    handler = HANDLERS.get(name)
    if handler is None:
        logger.warning(f"Unknown tool requested: {name}")
        raise UnknownToolError(name)
    return await handler(arguments or {}, client)
