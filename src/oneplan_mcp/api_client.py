"""HTTP client for the 1Plan REST API."""
import logging
from typing import Any, Optional
from uuid import uuid4

import httpx

from .config import GatewaySettings
from .errors import ApiRequestError, NetworkError

logger = logging.getLogger("oneplan-mcp.api_client")

REQUEST_ID_HEADER = "X-Request-Id"
IDEMPOTENCY_HEADER = "X-Idempotency-Key"


class ApiClient:
    """
    Thin async wrapper over httpx for the REST API.

    Every call carries an ``X-Request-Id`` (generated when the caller gave
    none). Creates always carry an ``X-Idempotency-Key`` (generated when
    absent); updates carry one only when supplied.

    Usage:
        async with ApiClient(base_url, token=...) as client:
            project = await client.post("/projects", json={"name": "Apollo"})
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "ApiClient":
        return cls(settings.api_base_url, token=settings.api_token, timeout=settings.api_timeout)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        request_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """
        Issue one API call.

        Args:
            method: HTTP method
            path: Path relative to the base URL (e.g., "/documents"), or an absolute URL
            json: Request body
            params: Query parameters
            request_id: Correlation id (generated when omitted)
            idempotency_key: Sent as X-Idempotency-Key when given

        Returns:
            Decoded JSON body, or None for empty (204) responses

        Raises:
            ApiRequestError: Non-2xx response
            NetworkError: Connection failure or timeout
        """
        request_id = request_id or str(uuid4())
        headers = {REQUEST_ID_HEADER: request_id}
        if idempotency_key:
            headers[IDEMPOTENCY_HEADER] = idempotency_key

        logger.debug(f"API request {method} {path} (requestId: {request_id})")
        try:
            response = await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"API request {method} {path} timed out (requestId: {request_id})")
            raise NetworkError(f"Request to {path} timed out", request_id=request_id) from e
        except httpx.RequestError as e:
            logger.error(f"API request {method} {path} failed: {type(e).__name__}: {e}")
            raise NetworkError(f"Connection failed - {e}", request_id=request_id) from e

        body = _decode(response)
        if response.is_success:
            logger.debug(f"API response {response.status_code} for {method} {path}")
            return body

        problem = body if isinstance(body, dict) else {}
        problem.setdefault("status", response.status_code)
        problem.setdefault("requestId", response.headers.get(REQUEST_ID_HEADER, request_id))
        logger.warning(
            f"API error {response.status_code} for {method} {path}: "
            f"{problem.get('detail')} (requestId: {problem['requestId']})"
        )
        raise ApiRequestError(response.status_code, problem)

    async def get(self, path: str, params: Optional[dict[str, Any]] = None, request_id: Optional[str] = None) -> Any:
        return await self.request("GET", path, params=params, request_id=request_id)

    async def post(
        self,
        path: str,
        json: dict[str, Any],
        request_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        # Creates are always deduplicated
        return await self.request(
            "POST", path, json=json, request_id=request_id, idempotency_key=idempotency_key or str(uuid4())
        )

    async def patch(
        self,
        path: str,
        json: dict[str, Any],
        request_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        return await self.request("PATCH", path, json=json, request_id=request_id, idempotency_key=idempotency_key)

    async def delete(self, path: str, request_id: Optional[str] = None) -> Any:
        return await self.request("DELETE", path, request_id=request_id)

    async def health_check(self, request_id: Optional[str] = None) -> Any:
        """
        Read the liveness probe, which lives outside the versioned API root.

        A 503 (unhealthy) still returns its body rather than raising.
        """
        url = httpx.URL(self.base_url).copy_with(path="/health/live", query=None)
        try:
            return await self.request("GET", str(url), request_id=request_id)
        except ApiRequestError as e:
            if e.status == 503:
                return e.problem
            raise


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        logger.warning(f"Failed to parse response JSON ({response.status_code})")
        return {"rawResponse": response.text}
