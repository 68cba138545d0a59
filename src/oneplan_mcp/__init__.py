"""1Plan MCP Gateway - Model Context Protocol access to the 1Plan API.

Modules:
- server: stdio MCP server
- api_client: httpx client for the REST API
- tools: tool argument models and definitions
- handlers: tool implementations
- resources: read-only resource views
- formatters: text formatting for tool results
"""

__version__ = "1.0.0"
