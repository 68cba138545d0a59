"""Shared FastAPI dependencies for the 1Plan routers."""
import json
import logging
from datetime import timedelta
from typing import Any, Callable, Optional, Type, TypeVar

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from .. import idempotency
from ..database import get_db
from ..errors import SchemaValidationError
from ..state_machine import TransitionValidator

logger = logging.getLogger("oneplan-core.dependencies")

QueryModel = TypeVar("QueryModel", bound=BaseModel)


def list_query(model: Type[QueryModel]) -> Callable[[Request], QueryModel]:
    """
    Build a dependency that validates the query string against a model.

    Every violation is reported in one 400 response.
    """

    def dependency(request: Request) -> QueryModel:
        try:
            return model.model_validate(dict(request.query_params))
        except ValidationError as e:
            raise SchemaValidationError.from_pydantic(e, "Invalid query parameters") from e

    return dependency


def get_transition_validator(request: Request) -> TransitionValidator:
    return request.app.state.transition_validator


def serialize(model: BaseModel) -> Any:
    """Render a response model the way the API returns it (camelCase JSON)."""
    return model.model_dump(mode="json", by_alias=True)


class IdempotencyGuard:
    """
    Per-request access to the idempotency store.

    Routes call ``replay`` before mutating and ``respond`` afterwards; both
    are no-ops when the client sent no ``X-Idempotency-Key``.
    """

    def __init__(self, request: Request, db: Session):
        self.db = db
        self.key: Optional[str] = request.headers.get(idempotency.IDEMPOTENCY_HEADER) or None
        self.scope = f"{request.method} {request.url.path}"
        self.ttl = timedelta(hours=request.app.state.settings.idempotency_ttl_hours)
        self._request_hash: Optional[str] = None

    def replay(self, payload: BaseModel) -> Optional[JSONResponse]:
        """
        Return the stored response for a repeated request, if any.

        Raises:
            ConflictError: If the key was used with a different payload
        """
        if not self.key:
            return None
        self._request_hash = idempotency.fingerprint(
            payload.model_dump(mode="json", by_alias=True, exclude_unset=True)
        )
        record = idempotency.find_replay(self.db, self.key, self.scope, self._request_hash, self.ttl)
        if record is None:
            return None
        body = json.loads(record.response_body) if record.response_body else None
        return JSONResponse(
            content=body,
            status_code=record.status_code,
            headers={idempotency.REPLAYED_HEADER: "true"},
        )

    def respond(self, status_code: int, model: BaseModel) -> JSONResponse:
        """Serialize the response and store it under the key (if one was sent)."""
        body = serialize(model)
        if self.key and self._request_hash:
            idempotency.remember(self.db, self.key, self.scope, self._request_hash, status_code, body)
        return JSONResponse(content=body, status_code=status_code)


def get_idempotency_guard(request: Request, db: Session = Depends(get_db)) -> IdempotencyGuard:
    return IdempotencyGuard(request, db)
