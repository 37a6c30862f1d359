"""
Multigov - FastAPI Application

Application factory, exception mapping and health endpoints.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from multigov import __version__
from multigov.config import Settings, get_settings
from multigov.counting.errors import AlreadyVotedError, CountingError
from multigov.monitoring.logging import configure_logging
from multigov.monitoring.metrics import create_metrics_endpoint
from multigov.services.governor import (
    GovernorError,
    GovernorService,
    ProposalAlreadyExistsError,
    ProposalNotActiveError,
    ProposalNotFoundError,
    ProposalNotReadyError,
    create_governor,
)
from multigov.services.lifecycle import RecordingExecutor, StaticVotingPower

logger = structlog.get_logger(__name__)

_CONFLICT_ERRORS = (
    ProposalAlreadyExistsError,
    ProposalNotActiveError,
    ProposalNotReadyError,
    AlreadyVotedError,
)


def status_for_error(exc: Exception) -> int:
    """HTTP status for a governor or counting error."""
    if isinstance(exc, ProposalNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, _CONFLICT_ERRORS):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, CountingError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_503_SERVICE_UNAVAILABLE


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("multigov_starting", version=__version__)
    try:
        yield
    finally:
        logger.info("multigov_stopped", stats=app.state.governor.get_stats())


def create_app(
    governor: GovernorService | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        governor: Governor to serve (defaults to an in-memory one)
        settings: Application settings (defaults to environment)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_output=settings.log_json)

    if governor is None:
        governor = create_governor(
            voting_power=StaticVotingPower(),
            executor=RecordingExecutor(),
            settings=settings,
        )

    app = FastAPI(
        title=settings.app_name,
        description="Multi-option governance vote counting",
        version=__version__,
        docs_url=None if settings.is_production else "/docs",
        lifespan=lifespan,
    )
    app.state.governor = governor

    # Exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.detail,
                "status_code": exc.status_code,
                "path": str(request.url.path),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "loc": error.get("loc", []),
                "type": error.get("type", "unknown"),
                "msg": error.get("msg", "Validation failed"),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "Validation error",
                "details": errors,
                "path": str(request.url.path),
            },
        )

    async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
        status_code = status_for_error(exc)
        logger.warning(
            "request_rejected",
            path=str(request.url.path),
            error_type=type(exc).__name__,
            error=str(exc),
            status_code=status_code,
        )
        return JSONResponse(
            status_code=status_code,
            content={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "status_code": status_code,
                "path": str(request.url.path),
            },
        )

    app.add_exception_handler(CountingError, domain_error_handler)
    app.add_exception_handler(GovernorError, domain_error_handler)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_exception",
            path=str(request.url.path),
            error=str(exc),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "path": str(request.url.path),
            },
        )

    from multigov.api.routes import governance

    app.include_router(governance.router, prefix="/api/v1/governance", tags=["governance"])

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "healthy", "version": __version__}

    create_metrics_endpoint(app)

    logger.info("fastapi_app_created", title=settings.app_name, version=__version__)

    return app


def run_server(reload: bool = False) -> None:
    """
    Run the Multigov server.

    For development use:
        python -m multigov.api.app
    """
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "multigov.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run_server(reload=True)
