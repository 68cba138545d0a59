"""1Plan MCP Server - expose planning entities to AI assistants over stdio."""
import asyncio
import logging
import sys
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from oneplan_core.log import configure_logging

from . import handlers, resources, tools
from .api_client import ApiClient
from .config import GatewaySettings, get_gateway_settings

logger = logging.getLogger("oneplan-mcp")


def create_server(settings: GatewaySettings) -> Server:
    """
    Build the MCP server.

    Each tool call and resource read opens its own API client. Tool failures
    are raised so the protocol layer reports them as error results carrying
    the error text (title, HTTP status, detail, request id).
    """
    app = Server(settings.mcp_server_name, version=settings.mcp_server_version)

    @app.list_tools()
    async def list_tools() -> list[Tool]:
        """List available MCP tools for planning entities."""
        return tools.get_tools()

    @app.call_tool()
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:
        """Handle MCP tool calls by delegating to the handlers."""
        logger.info(f"Tool call: {name}")
        async with ApiClient.from_settings(settings) as client:
            try:
                return await handlers.dispatch(name, arguments, client)
            except Exception as e:
                logger.error(f"Tool {name} failed: {type(e).__name__}: {e}")
                raise

    @app.list_resources()
    async def list_resources() -> list[Resource]:
        return [
            Resource(
                uri=AnyUrl(resources.resource_uri(path)),
                name=name,
                description=description,
                mimeType="application/json",
            )
            for path, (name, description, _) in resources.RESOURCES.items()
        ]

    @app.read_resource()
    async def read_resource(uri: AnyUrl) -> str:
        async with ApiClient.from_settings(settings) as client:
            return await resources.read_resource(str(uri), client)

    return app


async def main(settings: Optional[GatewaySettings] = None) -> None:
    """Run the MCP server over stdio."""
    settings = settings or get_gateway_settings()
    app = create_server(settings)
    logger.info(f"MCP server {settings.mcp_server_name} starting with API_BASE_URL: {settings.api_base_url}")
    if not settings.api_token:
        logger.info("No API_TOKEN configured; calling the API without authentication")

    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run() -> None:
    """Console entry point."""
    settings = get_gateway_settings()
    # stdout is the protocol channel
    configure_logging(settings.log_level, stream=sys.stderr)
    asyncio.run(main(settings))


if __name__ == "__main__":
    run()
