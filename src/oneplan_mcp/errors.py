"""Errors raised by the gateway.

Raised from tool handlers, they surface to the MCP client as an error
result whose text is ``str(error)``.
"""
from typing import Any, Optional


class GatewayError(Exception):
    """Base class for gateway failures."""


class ApiRequestError(GatewayError):
    """The REST API answered with a non-2xx status and a problem body."""

    def __init__(self, status: int, problem: Optional[dict[str, Any]] = None):
        self.status = status
        self.problem = problem or {}
        super().__init__(self._message())

    @property
    def title(self) -> str:
        return self.problem.get("title") or "API Error"

    @property
    def detail(self) -> str:
        return self.problem.get("detail") or f"HTTP {self.status}"

    @property
    def request_id(self) -> Optional[str]:
        return self.problem.get("requestId")

    def _message(self) -> str:
        message = f"{self.title} ({self.status}): {self.detail}"
        details = self.problem.get("details")
        if details:
            fields = "; ".join(f"{field}: {msg}" for field, msg in details.items())
            message += f" [{fields}]"
        if self.request_id:
            message += f" (requestId: {self.request_id})"
        return message


class NetworkError(GatewayError):
    """The REST API could not be reached (connection failure or timeout)."""

    def __init__(self, message: str, request_id: Optional[str] = None):
        self.request_id = request_id
        text = f"Network Error: {message}"
        if request_id:
            text += f" (requestId: {request_id})"
        super().__init__(text)


class ToolValidationError(GatewayError):
    """Tool arguments failed validation; lists every offending field."""

    def __init__(self, tool: str, details: dict[str, str]):
        self.tool = tool
        self.details = details
        fields = "; ".join(f"{field}: {msg}" for field, msg in details.items())
        super().__init__(f"Validation Error: invalid arguments for {tool}: {fields}")


class UnknownToolError(GatewayError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class UnknownResourceError(GatewayError):
    def __init__(self, uri: str):
        self.uri = uri
        super().__init__(f"Unknown resource: {uri}")
