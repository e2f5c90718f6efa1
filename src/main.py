"""Campus Stream Gateway - FastAPI Application Entry Point.

Route protection in front of the streaming application's pages and API
routes: every request is classified against the public/protected route
tables and protected requests need a session verified by the identity
provider.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src import __version__
from src.api.middleware.request_id import RequestIDMiddleware
from src.api.routes import health
from src.api.routes import session
from src.config.settings import Settings, get_settings
from src.gatekeeper.identity import IdentityVerifier, create_identity_verifier
from src.gatekeeper.matcher import RequestMatcher
from src.gatekeeper.middleware import GatekeeperMiddleware
from src.gatekeeper.routes import RoutePolicy, default_route_policy, find_overlaps
from src.observability.logging import get_logger, init_logging
from src.observability.metrics import set_build_info
from src.observability.telemetry import init_error_telemetry

logger = get_logger(__name__)


def _log_route_overlaps(policy: RoutePolicy) -> None:
    for public, protected in find_overlaps(policy):
        logger.warning(
            "route_table_overlap",
            public_pattern=public.raw,
            protected_pattern=protected.raw,
            effect="public wins; overlapping paths are not protected",
        )


def create_app(
    settings: Settings | None = None,
    verifier: IdentityVerifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to get_settings())
        verifier: Identity verifier (defaults to the configured backend)
    """
    settings = settings or get_settings()
    policy = default_route_policy(settings)
    verifier = verifier or create_identity_verifier(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager.

        Handles startup and shutdown of components.
        """
        init_logging(
            json_format=settings.environment == "production",
            level=settings.log_level,
        )
        logger.info(
            "gateway_starting",
            version=__version__,
            environment=settings.environment,
            identity_backend=verifier.name,
            unclassified_policy=policy.unclassified,
        )

        try:
            init_error_telemetry(settings)
            set_build_info(settings.app_version, settings.environment)

            _log_route_overlaps(policy)
            health.set_component_health("route_policy", True)

            await verifier.start()
            health.set_component_health("identity_verifier", True)

            health.set_ready(True)
            logger.info("gateway_ready", components=health.get_component_health())

        except Exception as e:
            logger.error("gateway_startup_failed", error=str(e))
            raise

        yield  # Application runs here

        logger.info("gateway_shutting_down")
        health.set_ready(False)
        health.set_component_health("identity_verifier", False)

        await verifier.stop()
        logger.info("gateway_shutdown_complete")

    app = FastAPI(
        title="Campus Stream Gateway",
        description="Route protection for the campus streaming application",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )
    app.state.settings = settings
    app.state.route_policy = policy
    app.state.identity_verifier = verifier

    # Added first so it runs innermost, after CORS preflight handling
    app.add_middleware(
        GatekeeperMiddleware,
        policy=policy,
        verifier=verifier,
        matcher=RequestMatcher(),
        identity_timeout_s=settings.identity_timeout_s,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.environment == "development" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestIDMiddleware)

    app.include_router(health.router)
    if settings.metrics_enabled:
        app.include_router(health.metrics_router)
    app.include_router(session.router)

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


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    log_level = settings.log_level.lower()

    # Configure root logger
    logging.basicConfig(
        format="%(message)s",
        level=logging.WARNING if settings.log_level == "WARN" else getattr(logging, settings.log_level),
    )

    uvicorn.run(
        "src.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level="warning" if log_level == "warn" else log_level,
        reload=settings.environment == "development",
    )
