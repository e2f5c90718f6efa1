"""Prometheus Metrics - Gateway observability.

Exports:
- Gatekeeper decisions by route class and outcome
- Identity provider check latency
- Identity provider failures

Served on /metrics by the health router.
"""

from prometheus_client import Counter, Histogram, Info

# -----------------------------------------------------------------------------
# Counters
# -----------------------------------------------------------------------------

GATEKEEPER_DECISIONS = Counter(
    "campus_stream_gatekeeper_decisions_total",
    "Gatekeeper decisions",
    ["route_class", "outcome"],  # public/protected/unclassified/skipped, allowed/challenged
)

IDENTITY_FAILURES = Counter(
    "campus_stream_identity_failures_total",
    "Identity provider failures (request failed closed)",
    ["reason"],  # unavailable, timeout, error
)

# -----------------------------------------------------------------------------
# Histograms
# -----------------------------------------------------------------------------

IDENTITY_CHECK_LATENCY = Histogram(
    "campus_stream_identity_check_seconds",
    "Session verification latency",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# -----------------------------------------------------------------------------
# Info
# -----------------------------------------------------------------------------

BUILD_INFO = Info(
    "campus_stream_build",
    "Build information",
)


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def record_decision(route_class: str, outcome: str) -> None:
    """Record a gatekeeper decision."""
    GATEKEEPER_DECISIONS.labels(route_class=route_class, outcome=outcome).inc()


def record_identity_check(latency_ms: float) -> None:
    """Record session verification latency in milliseconds."""
    IDENTITY_CHECK_LATENCY.observe(latency_ms / 1000.0)


def record_identity_failure(reason: str) -> None:
    """Record an identity provider failure."""
    IDENTITY_FAILURES.labels(reason=reason).inc()


def set_build_info(version: str, environment: str) -> None:
    """Set build information."""
    BUILD_INFO.info({
        "version": version,
        "environment": environment,
    })
