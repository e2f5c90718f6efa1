"""Health and metrics endpoints.

- /healthz: liveness, always 200 while the process serves requests
- /readyz: readiness, 503 until the route policy is built and the
  identity verifier has started
- /health: readiness plus the gateway's active configuration
- /metrics: Prometheus exposition (mounted only when metrics are enabled)

These paths are in the default public route table, so probes never need
a session.
"""

from typing import Any

from fastapi import APIRouter, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from src import __version__

router = APIRouter(tags=["health"])
metrics_router = APIRouter(tags=["metrics"])

COMPONENTS = ("route_policy", "identity_verifier")

_ready: bool = False
_components: dict[str, bool] = {name: False for name in COMPONENTS}


def set_ready(ready: bool) -> None:
    """Set overall readiness status."""
    global _ready
    _ready = ready


def set_component_health(component: str, healthy: bool) -> None:
    """Set health status for a known component; unknown names are ignored."""
    if component in _components:
        _components[component] = healthy


def get_component_health() -> dict[str, bool]:
    """Get a copy of the component health map."""
    return dict(_components)


def is_ready() -> bool:
    """Check whether the gateway can make allow/challenge decisions."""
    return _ready and all(_components.values())


@router.get("/healthz", response_model=dict[str, str])
async def healthz() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}


@router.get("/readyz")
async def readyz(response: Response) -> dict[str, Any]:
    """Readiness probe.

    Protected routes cannot be served without a started verifier, so the
    gateway reports not ready until both components are up.
    """
    ready = is_ready()
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "ready" if ready else "not_ready",
        "components": get_component_health(),
    }


@router.get("/health")
async def health(request: Request, response: Response) -> dict[str, Any]:
    """Combined status with the active gateway configuration."""
    ready = is_ready()
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    state = request.app.state
    return {
        "status": "healthy" if ready else "degraded",
        "ready": _ready,
        "version": __version__,
        "components": get_component_health(),
        "identity_backend": state.identity_verifier.name,
        "unclassified_policy": state.route_policy.unclassified,
    }


@metrics_router.get("/metrics")
async def metrics() -> Response:
    """Prometheus exposition."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
