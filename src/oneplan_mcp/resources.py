"""Read-only MCP resources.

Every read re-queries the API; nothing is cached.

MCP resource URIs must parse as URLs, whose scheme cannot start with a
digit, so resources are advertised under ``oneplan://``. Reads also accept
the ``1plan://`` spelling.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from oneplan_core.models import DocumentKind
from oneplan_core.schemas import MAX_LIMIT

from .api_client import ApiClient
from .errors import GatewayError, UnknownResourceError

logger = logging.getLogger("oneplan-mcp.resources")

SCHEME = "oneplan://"
LEGACY_SCHEME = "1plan://"

RECENT_DOCUMENTS_LIMIT = 10

DOCUMENT_TYPES = {
    DocumentKind.PRD: (
        "Product Requirements Document",
        "Defines product features, requirements, and specifications",
    ),
    DocumentKind.TECH_OVERVIEW: (
        "Technical Overview",
        "High-level technical architecture and implementation details",
    ),
    DocumentKind.SPRINT_OVERVIEW: ("Sprint Overview", "Overview of all sprints in the project"),
    DocumentKind.SPRINT: ("Sprint Document", "Detailed sprint planning and execution document"),
    DocumentKind.FREEFORM: ("Freeform Document", "General-purpose document for any content"),
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _dump(data: dict) -> str:
    return json.dumps(data, indent=2)


async def read_projects(client: ApiClient) -> str:
    """Every project, fetched page by page at the maximum page size."""
    projects: list[dict] = []
    total = 0
    while True:
        page = await client.get(
            "/projects",
            params={"limit": MAX_LIMIT, "offset": len(projects), "sortBy": "createdAt", "sortOrder": "asc"},
        )
        batch = page.get("projects", [])
        projects.extend(batch)
        total = page.get("total", len(projects))
        if not batch or len(projects) >= total:
            break
    return _dump({
        "projects": projects,
        "total": total,
        "lastUpdated": _now(),
    })


async def read_document_types(client: ApiClient) -> str:
    """Static catalog of document kinds."""
    return _dump({
        "documentTypes": [
            {"kind": kind.value, "name": name, "description": description}
            for kind, (name, description) in DOCUMENT_TYPES.items()
        ],
        "lastUpdated": _now(),
    })


async def read_recent_documents(client: ApiClient) -> str:
    result = await client.get(
        "/documents",
        params={"limit": RECENT_DOCUMENTS_LIMIT, "sortBy": "updatedAt", "sortOrder": "desc"},
    )
    return _dump({
        "recentDocuments": result.get("documents", []),
        "total": result.get("total", 0),
        "lastUpdated": _now(),
    })


async def read_api_health(client: ApiClient) -> str:
    """Health snapshot; an unreachable API is reported, not raised."""
    try:
        api_health = await client.health_check()
    except GatewayError as e:
        logger.error(f"Failed to read API health: {e}")
        api_health = {"status": "unhealthy", "error": str(e)}
    return _dump({
        "apiHealth": api_health,
        "gatewayStatus": "healthy",
        "lastUpdated": _now(),
    })


# path -> (name, description, reader)
RESOURCES: dict[str, tuple[str, str, Callable[[ApiClient], Awaitable[str]]]] = {
    "projects": ("Projects List", "Read-only list of all projects in the system", read_projects),
    "document-types": ("Document Types", "Available document types/kinds in the system", read_document_types),
    "recent-documents": (
        "Recent Documents",
        "Recently updated documents across all projects",
        read_recent_documents,
    ),
    "api-health": ("API Health", "Current health status of the 1Plan API", read_api_health),
}


def resource_uri(path: str) -> str:
    return f"{SCHEME}{path}"


async def read_resource(uri: str, client: ApiClient) -> str:
    """
    Read one resource by URI.

    Raises:
        UnknownResourceError: If the URI names no resource
    """
    uri = str(uri)
    for scheme in (SCHEME, LEGACY_SCHEME):
        if uri.startswith(scheme):
            path = uri[len(scheme):].strip("/")
            if path in RESOURCES:
                logger.debug(f"Reading resource {uri}")
                _, _, reader = RESOURCES[path]
                return await reader(client)
    raise UnknownResourceError(uri)
