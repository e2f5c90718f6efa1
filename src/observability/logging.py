"""Structured Logging - JSON logs with correlation.

Provides structured logging for:
- Gatekeeper decisions (allow, challenge)
- Identity provider failures
- Application lifecycle

All request-scoped logs include request_id for correlation.
"""

import logging
import sys

import structlog


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; else human-readable
    """
    level = "WARNING" if level.upper() == "WARN" else level.upper()

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Also configure standard logging (uvicorn, httpx)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name)


def bind_request(request_id: str) -> None:
    """Bind request_id to all logs in current context.

    Args:
        request_id: Request identifier
    """
    structlog.contextvars.bind_contextvars(request_id=request_id)


def unbind_request() -> None:
    """Remove request_id from log context."""
    structlog.contextvars.unbind_contextvars("request_id")


# -----------------------------------------------------------------------------
# Event-specific logging functions
# -----------------------------------------------------------------------------


class GatekeeperLogger:
    """Logger for route-protection decisions."""

    def __init__(self) -> None:
        self._log = get_logger("gatekeeper")

    def request_allowed(self, path: str, method: str, route_class: str) -> None:
        """Log a request forwarded without a session check."""
        self._log.debug(
            "request_allowed",
            event_type="gatekeeper.allowed",
            path=path,
            method=method,
            route_class=route_class,
        )

    def session_verified(self, path: str, user_id: str, elapsed_ms: float) -> None:
        """Log a protected request forwarded with a verified session."""
        self._log.debug(
            "session_verified",
            event_type="gatekeeper.verified",
            path=path,
            user_id=user_id,
            elapsed_ms=elapsed_ms,
        )

    def challenge_issued(
        self,
        path: str,
        method: str,
        reason: str,
        status_code: int,
    ) -> None:
        """Log a request halted with an authentication challenge."""
        self._log.info(
            "challenge_issued",
            event_type="gatekeeper.challenge",
            path=path,
            method=method,
            reason=reason,
            status_code=status_code,
        )

    def identity_failure(self, path: str, error: str, elapsed_ms: float) -> None:
        """Log an identity collaborator failure (request fails closed)."""
        self._log.error(
            "identity_failure",
            event_type="gatekeeper.identity_failure",
            path=path,
            error=error,
            elapsed_ms=elapsed_ms,
        )


# Initialize default logging configuration
def init_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Initialize logging with defaults.

    Call this once at application startup.
    """
    configure_logging(level=level, json_format=json_format)
