"""
REST API Layer for Rivu Core.

Provides:
- FastAPI application with CORS middleware
- JWT bearer authentication
- Envelope-shaped exception handlers for domain errors
- Score, nudge, user and ledger endpoints under /api/v1
- Root-level /health and Prometheus /metrics
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException
from starlette.responses import Response

from rivu.api.auth import AuthService, validate_secrets
from rivu.api.routes import router
from rivu.api.schemas import error_response
from rivu.config.settings import Settings, get_settings
from rivu.infra.database import get_session_factory
from rivu.infra.monitoring import PrometheusMetrics, track_request
from rivu.lib.errors import (
    AUTH_REQUIRED,
    INTERNAL_ERROR,
    INVALID_STATE,
    NOT_FOUND,
    VALIDATION_ERROR,
)
from rivu.lib.exceptions import InvalidStateError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_ALLOWED_HEADERS: list[str] = [
    "Authorization",
    "Content-Type",
    "Accept",
    "X-Request-ID",
]


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=error_response(NOT_FOUND, str(exc)))

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content=error_response(VALIDATION_ERROR, str(exc)))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Request validation failed on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=422,
            content=error_response(VALIDATION_ERROR, details={"errors": jsonable_encoder(exc.errors())}),
        )

    @app.exception_handler(InvalidStateError)
    async def invalid_state_handler(request: Request, exc: InvalidStateError) -> JSONResponse:
        return JSONResponse(status_code=409, content=error_response(INVALID_STATE, str(exc)))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        code = {401: AUTH_REQUIRED, 404: NOT_FOUND}.get(exc.status_code, INTERNAL_ERROR)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(code, str(exc.detail)),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_response(INTERNAL_ERROR))


async def _metrics_dispatch(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    with track_request(request.method, request.url.path) as ctx:
        response = await call_next(request)
        route = request.scope.get("route")
        if route is not None:
            ctx["endpoint"] = getattr(route, "path", request.url.path)
        ctx["status"] = response.status_code
        return response


def create_app(
    settings: Settings | None = None,
    session_factory: Callable[[], Session] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration (default: from environment)
        session_factory: Session source (default: the configured database)

    Returns:
        Configured FastAPI application instance.

    Raises:
        ConfigurationError: Missing API secret or invalid CORS configuration
    """
    settings = settings or get_settings()
    settings.validate()
    validate_secrets(settings)

    app = FastAPI(
        title="Rivu Core",
        description="Rivu Score and behavioral nudges",
        version="0.1.0",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
    )
    app.state.settings = settings
    app.state.auth_service = AuthService(settings.api_secret_key)
    app.state.session_factory = session_factory or get_session_factory()

    _register_exception_handlers(app)

    cors_origins = list(settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=_ALLOWED_HEADERS,
    )
    if cors_origins:
        logger.info("CORS enabled for origins: %s", cors_origins)
    else:
        logger.info("CORS: no origins configured (restrictive default)")

    app.middleware("http")(_metrics_dispatch)

    app.include_router(router)

    @app.get("/health")
    async def root_health_check() -> dict[str, str]:
        """Root health check for infrastructure probes."""
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(
            content=PrometheusMetrics.generate_metrics(),
            media_type=PrometheusMetrics.CONTENT_TYPE,
        )

    return app


__all__ = ["create_app", "router"]
