"""Gatekeeper module - Route protection.

Components:
- patterns: path-segment aware route patterns
- routes: immutable public/protected route tables and the classifier
- matcher: exclusion filter for static assets and framework internals
- identity: session verification backends (http, mock)
- middleware: the per-request allow/challenge decision
"""

from src.gatekeeper.identity import (
    HTTPIdentityVerifier,
    IdentityVerifier,
    MockIdentityVerifier,
    SessionContext,
    create_identity_verifier,
    extract_session_token,
)
from src.gatekeeper.matcher import RequestMatcher
from src.gatekeeper.middleware import GatekeeperMiddleware
from src.gatekeeper.patterns import RoutePattern, normalize_path
from src.gatekeeper.routes import (
    RouteClass,
    RoutePolicy,
    RouteTable,
    default_route_policy,
    find_overlaps,
)

__all__ = [
    # Patterns
    "RoutePattern",
    "normalize_path",
    # Route tables
    "RouteClass",
    "RoutePolicy",
    "RouteTable",
    "default_route_policy",
    "find_overlaps",
    # Matcher
    "RequestMatcher",
    # Identity
    "IdentityVerifier",
    "HTTPIdentityVerifier",
    "MockIdentityVerifier",
    "SessionContext",
    "create_identity_verifier",
    "extract_session_token",
    # Middleware
    "GatekeeperMiddleware",
]
