"""Callflow - FastAPI Application Entry Point.

Receives telephony webhooks (call start, transcripts, hang-up) and drives
each call through its flow.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from callflow import __version__
from callflow.api.routes import calls, flows, health
from callflow.config.settings import get_settings
from callflow.exceptions import (
    CallFlowError,
    DuplicateSessionError,
    GatewayError,
    GatewayTimeoutError,
    SessionLimitError,
    SessionNotFoundError,
    SessionStateError,
    UnsupportedNodeError,
)
from callflow.observability.logging import get_logger, init_logging
from callflow.utils.async_timeout import AsyncTimeoutError

logger = get_logger(__name__)

# First match wins; subclasses before their bases
_ERROR_STATUS: list[tuple[type[CallFlowError], int]] = [
    (SessionNotFoundError, 404),
    (DuplicateSessionError, 409),
    (SessionStateError, 409),
    (SessionLimitError, 503),
    (UnsupportedNodeError, 422),
    (GatewayTimeoutError, 504),
    (AsyncTimeoutError, 504),
    (GatewayError, 502),
]


def status_for(exc: CallFlowError) -> int:
    """HTTP status for a domain error."""
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown of components.
    """
    settings = get_settings()
    init_logging(
        json_format=settings.environment == "production",
        level=settings.log_level,
    )
    logger.info(
        "callflow_starting",
        version=__version__,
        environment=settings.environment,
        port=settings.api_port,
    )

    try:
        controller = calls.get_controller()
        health.set_component_health("session_registry", True)
        health.set_component_health("gateways", True)
        logger.info(
            "controller_initialized",
            max_sessions=controller.registry.max_sessions,
            flow_state_url=controller.gateways.flow_state.base_url,
        )

        health.set_ready(True)
        logger.info("callflow_ready", components=health.get_component_health())

    except Exception as e:
        logger.error("callflow_startup_failed", error=str(e))
        raise

    yield  # Application runs here

    logger.info("callflow_shutting_down")
    health.set_ready(False)

    # End all active calls, cancelling their pending continuations
    ended_count = await controller.shutdown()
    logger.info("sessions_ended", count=ended_count)

    await controller.gateways.close()
    health.set_component_health("gateways", False)
    health.set_component_health("session_registry", False)
    calls.set_controller(None)

    logger.info("callflow_shutdown_complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Callflow",
        description="Execution orchestrator for automated voice-call flows",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(calls.router)
    app.include_router(flows.router)
    if settings.metrics_enabled:
        app.include_router(health.metrics_router)

    @app.exception_handler(CallFlowError)
    async def callflow_exception_handler(request: Request, exc: CallFlowError) -> JSONResponse:
        status_code = status_for(exc)
        logger.warning(
            "request_failed",
            path=request.url.path,
            method=request.method,
            status_code=status_code,
            error_type=type(exc).__name__,
            error=exc.message,
        )
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "callflow.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level="warning" if settings.log_level == "WARN" else settings.log_level.lower(),
        reload=settings.environment == "development",
    )
