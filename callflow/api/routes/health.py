"""Health check endpoints.

- /healthz: Liveness probe (is the process alive?)
- /readyz: Readiness probe (can calls be executed?)
- /health: Combined status
- /metrics: Prometheus metrics endpoint
"""

from typing import Any

from fastapi import APIRouter, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["health"])
metrics_router = APIRouter(tags=["metrics"])


# Health status tracking
_ready: bool = False
_components: dict[str, bool] = {
    "session_registry": False,
    "gateways": False,
}


def set_ready(ready: bool) -> None:
    """Set overall readiness status."""
    global _ready
    _ready = ready


def set_component_health(component: str, healthy: bool) -> None:
    """Set health status for a specific component."""
    if component in _components:
        _components[component] = healthy


def get_component_health() -> dict[str, bool]:
    """Get health status of all components."""
    return _components.copy()


def _all_ready() -> bool:
    return _ready and all(_components.values())


@router.get("/healthz", response_model=dict[str, str])
async def healthz() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}


@router.get("/readyz")
async def readyz(response: Response) -> dict[str, Any]:
    """Readiness probe.

    Returns 503 until the registry and gateways are initialized.
    """
    if _all_ready():
        return {"status": "ready", "components": _components}

    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "components": _components}


@router.get("/health")
async def health(response: Response) -> dict[str, Any]:
    """Combined health endpoint."""
    if not _all_ready():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if _all_ready() else "degraded",
        "ready": _ready,
        "components": _components,
    }


@metrics_router.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
