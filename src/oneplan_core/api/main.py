"""1Plan Core FastAPI application."""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import Settings, get_settings
from ..database import Database
from ..errors import (
    PROBLEM_CONTENT_TYPE,
    ApiError,
    NotFoundError,
    RateLimitedError,
    SchemaValidationError,
    classify,
    problem_detail,
)
from ..log import configure_logging, request_id_var
from ..metrics import Metrics, route_label
from ..rate_limit import RateLimiter
from ..state_machine import StateTransitionError, TransitionValidator, allow_any_transition
from .routers import documents, features, health, projects, sprints

logger = logging.getLogger("oneplan-core")

REQUEST_ID_HEADER = "X-Request-Id"
CORRELATION_ID_HEADER = "X-Correlation-Id"

# Probes and scrapes never count against the caller's quota
RATE_LIMIT_EXEMPT_PREFIXES = ("/health", "/metrics")


def problem_response(request: Request, error: ApiError) -> JSONResponse:
    """Render an ApiError as an application/problem+json response."""
    request_id = getattr(request.state, "request_id", None)
    headers = {}
    if isinstance(error, RateLimitedError):
        headers["Retry-After"] = str(error.retry_after)
    return JSONResponse(
        content=problem_detail(error, request.url.path, request_id),
        status_code=error.status,
        media_type=PROBLEM_CONTENT_TYPE,
        headers=headers,
    )


def body_too_large(limit: int) -> SchemaValidationError:
    return SchemaValidationError(
        "Request body too large",
        details={"body": f"Request body must not exceed {limit} bytes"},
    )


def _log_error(request: Request, error: ApiError) -> None:
    message = f"{request.method} {request.url.path} failed: {error.status} {error.title}: {error.detail}"
    if error.status >= 500:
        logger.error(message)
    else:
        logger.warning(message)


# ============================================================================
# Exception handlers
# ============================================================================

async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    _log_error(request, exc)
    return problem_response(request, exc)


async def handle_classified_error(request: Request, exc: Exception) -> JSONResponse:
    """Validation, transition and integrity errors raised outside the taxonomy."""
    error = classify(exc)
    _log_error(request, error)
    return problem_response(request, error)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing failures (unknown path or method) are reported as Not Found."""
    if exc.status_code in (404, 405):
        error: ApiError = NotFoundError(f"Route {request.method} {request.url.path} not found")
    elif exc.status_code == 413:
        error = body_too_large(request.app.state.settings.body_limit)
    elif exc.status_code < 500:
        error = SchemaValidationError(str(exc.detail))
    else:
        error = classify(exc)
    _log_error(request, error)
    return problem_response(request, error)


class BodyLimitMiddleware:
    """
    Count the request body bytes actually received against a cap.

    Chunked uploads carry no Content-Length, so the cap is enforced on the
    stream itself. Going past it raises a 413 HTTPException while the route
    reads its body; ``handle_http_exception`` reports it as a Validation Error.
    """

    def __init__(self, app, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    raise HTTPException(status_code=413, detail="Request body too large")
            return message

        await self.app(scope, limited_receive, send)


# ============================================================================
# Application factory
# ============================================================================

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    transition_validator: Optional[TransitionValidator] = None,
) -> FastAPI:
    """
    Build the 1Plan API application.

    Args:
        settings: Process settings (environment when omitted)
        database: Store resource (built from settings when omitted)
        transition_validator: Status transition hook (permissive when omitted)

    Returns:
        Configured FastAPI app; the store is disposed when the app shuts down
    """
    settings = settings or get_settings()
    database = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.create_schema:
            database.create_all()
        logger.info(f"1Plan API {__version__} ready at {settings.api_root}")
        yield
        database.dispose()

    app = FastAPI(
        title="1Plan API",
        description="Planning API for projects, documents, features and sprints",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.transition_validator = transition_validator or allow_any_transition
    app.state.metrics = Metrics()
    app.state.rate_limiter = RateLimiter(settings.rate_limit_max, settings.rate_limit_window)
    app.state.started_at = time.monotonic()

    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_classified_error)
    app.add_exception_handler(StateTransitionError, handle_classified_error)
    app.add_exception_handler(IntegrityError, handle_classified_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)

    # Added first so it sits innermost, directly around the routes that read bodies
    app.add_middleware(BodyLimitMiddleware, max_bytes=settings.body_limit)

    @app.middleware("http")
    async def enforce_limits(request: Request, call_next):
        if not request.url.path.startswith(RATE_LIMIT_EXEMPT_PREFIXES):
            caller = request.client.host if request.client else "unknown"
            retry_after = app.state.rate_limiter.hit(caller)
            if retry_after is not None:
                error = RateLimitedError(retry_after)
                _log_error(request, error)
                return problem_response(request, error)

        # Declared sizes are rejected up front; BodyLimitMiddleware covers the rest
        content_length = request.headers.get("content-length", "")
        if content_length.isdigit() and int(content_length) > settings.body_limit:
            error = body_too_large(settings.body_limit)
            _log_error(request, error)
            return problem_response(request, error)

        return await call_next(request)

    # Registered last so it wraps everything above: every response (errors
    # included) carries the request id and is counted.
    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = (
            request.headers.get(REQUEST_ID_HEADER)
            or request.headers.get(CORRELATION_ID_HEADER)
            or str(uuid4())
        )
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(f"Unhandled error on {request.method} {request.url.path}: {e}", exc_info=True)
                response = problem_response(request, classify(e))

            duration = time.perf_counter() - started
            app.state.metrics.observe(request.method, route_label(request.scope), response.status_code, duration)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({duration * 1000:.1f}ms)")
            return response
        finally:
            request_id_var.reset(token)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    api_root = settings.api_root
    app.include_router(projects.router, prefix=f"{api_root}/projects")
    app.include_router(documents.router, prefix=f"{api_root}/documents")
    app.include_router(features.router, prefix=f"{api_root}/features")
    app.include_router(sprints.router, prefix=f"{api_root}/sprints")
    app.include_router(health.router)

    @app.get("/")
    def root():
        """Root endpoint with server info."""
        return {
            "name": "1Plan API",
            "version": __version__,
            "api": api_root,
            "docs": "/docs",
            "health": "/health/live",
        }

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Starting 1Plan API on {settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
