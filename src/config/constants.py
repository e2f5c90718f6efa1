"""Gateway Constants - Default route tables and request filters.

These are the values the gateway starts with when no override is
configured. Settings may replace the route tables, but the defaults below
are the product's route map.
"""

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class GatewayConstants:
    """Immutable gateway defaults.

    Route patterns use a literal path prefix with an optional ``(.*)``
    wildcard suffix that matches the path itself and every sub-path.
    """

    # Route tables
    PROTECTED_ROUTES: Final[tuple[str, ...]] = (
        "/library(.*)",
        "/analytics(.*)",
        "/settings(.*)",
        "/admin(.*)",
        "/live(.*)",
    )
    PUBLIC_ROUTES: Final[tuple[str, ...]] = (
        "/",
        "/sign-in(.*)",
        "/sign-up(.*)",
        "/api/webhooks(.*)",
        "/api/public(.*)",
    )
    # Health probes and Prometheus scraping never need a session
    HEALTH_ROUTES: Final[tuple[str, ...]] = (
        "/health",
        "/healthz",
        "/readyz",
        "/metrics",
    )

    # Matcher exclusion filter
    INTERNAL_PATH_PREFIXES: Final[tuple[str, ...]] = ("/_next", "/static")
    FORCE_INCLUDE_PREFIXES: Final[tuple[str, ...]] = ("/api", "/trpc")
    STATIC_EXTENSIONS: Final[frozenset[str]] = frozenset({
        "html", "htm",
        "css",
        "js",  # .json is deliberately absent
        "jpg", "jpeg", "webp", "png", "gif", "svg",
        "ttf", "woff", "woff2",
        "ico",
        "csv", "doc", "docx", "xls", "xlsx",
        "zip",
        "webmanifest",
    })

    # Identity provider
    SESSION_COOKIE_NAME: Final[str] = "__session"
    SIGN_IN_URL: Final[str] = "/sign-in"
    REDIRECT_PARAM: Final[str] = "redirect_url"
    IDENTITY_TIMEOUT_S: Final[float] = 5.0


# Singleton instance for import convenience
GATEWAY = GatewayConstants()
