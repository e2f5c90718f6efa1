"""Error telemetry setup (Sentry).

Usage:
    from src.observability.telemetry import init_error_telemetry

    init_error_telemetry(get_settings())

Sentry auto-enables its Starlette and FastAPI integrations when those
packages are importable, so unhandled exceptions in handlers and
middleware are reported without further wiring.
"""

from typing import Any

import sentry_sdk

from src.config.settings import Settings
from src.observability.logging import get_logger

logger = get_logger(__name__)

# Transient client-side network failures that are noise during development
_DEV_NOISE_MARKERS = ("Failed to fetch", "NetworkError", "ERR_NETWORK")


def _traces_sample_rate(settings: Settings) -> float:
    if settings.sentry_traces_sample_rate is not None:
        return settings.sentry_traces_sample_rate
    return 0.1 if settings.environment == "production" else 1.0


def make_before_send(environment: str):
    """Build the before_send hook for the given environment.

    In development, events caused by common network errors are dropped.
    """

    def before_send(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
        if environment != "development":
            return event
        exc_info = hint.get("exc_info")
        if exc_info:
            message = str(exc_info[1])
            if any(marker in message for marker in _DEV_NOISE_MARKERS):
                return None
        return event

    return before_send


def init_error_telemetry(settings: Settings) -> bool:
    """Initialize Sentry error reporting.

    Args:
        settings: Application settings

    Returns:
        True if Sentry was initialized, False if no DSN is configured
    """
    if not settings.sentry_dsn:
        logger.info("error_telemetry_disabled", reason="no_dsn")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=settings.app_version,
        traces_sample_rate=_traces_sample_rate(settings),
        debug=settings.environment == "development",
        before_send=make_before_send(settings.environment),
    )
    logger.info(
        "error_telemetry_initialized",
        environment=settings.environment,
        release=settings.app_version,
    )
    return True
