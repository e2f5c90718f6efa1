"""Gatekeeper Middleware - Route protection for every inbound request.

Decision per request:
1. Matcher excludes the path (static asset, framework internal) -> forward
2. PUBLIC                                      -> forward, verifier never called
3. PROTECTED (or UNCLASSIFIED under "deny")    -> verifier.protect()
       session        -> forward unchanged, session on request.state.session
       no session     -> challenge
       any failure    -> challenge (fail closed, no retry)
4. UNCLASSIFIED under "allow"                  -> forward

Usage:
    app.add_middleware(
        GatekeeperMiddleware,
        policy=policy,
        verifier=verifier,
    )
"""

import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.config.constants import GATEWAY
from src.exceptions import AuthenticationRequiredError, IdentityProviderError
from src.gatekeeper.identity import IdentityVerifier
from src.gatekeeper.matcher import RequestMatcher
from src.gatekeeper.routes import RouteClass, RoutePolicy
from src.observability.logging import GatekeeperLogger
from src.observability.metrics import (
    record_decision,
    record_identity_check,
    record_identity_failure,
)
from src.utils.async_timeout import AsyncTimeoutError, with_timeout


class GatekeeperMiddleware(BaseHTTPMiddleware):
    """Allow or challenge each request before any handler runs.

    The policy and matcher are immutable; the middleware holds no other
    state shared between requests.
    """

    def __init__(
        self,
        app: ASGIApp,
        policy: RoutePolicy,
        verifier: IdentityVerifier,
        matcher: RequestMatcher | None = None,
        identity_timeout_s: float = GATEWAY.IDENTITY_TIMEOUT_S,
    ) -> None:
        super().__init__(app)
        self.policy = policy
        self.verifier = verifier
        self.matcher = matcher or RequestMatcher()
        self.identity_timeout_s = identity_timeout_s
        self._log = GatekeeperLogger()

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request through the route policy."""
        path = request.url.path

        if not self.matcher.should_evaluate(path):
            record_decision("skipped", "allowed")
            return await call_next(request)

        route_class = self.policy.classify(path)

        if not self.policy.session_required_for(route_class):
            self._log.request_allowed(path, request.method, route_class.value)
            record_decision(route_class.value, "allowed")
            return await call_next(request)

        start = time.perf_counter()
        try:
            session = await with_timeout(
                self.verifier.protect(request),
                timeout_s=self.identity_timeout_s,
                operation="identity check",
                details={"path": path},
            )
        except AuthenticationRequiredError as e:
            record_identity_check((time.perf_counter() - start) * 1000)
            return self._challenge(request, route_class, e.reason)
        except Exception as e:
            # Fail closed: a protected route never passes on a collaborator error
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._log.identity_failure(path, str(e) or type(e).__name__, elapsed_ms)
            record_identity_failure(_failure_reason(e))
            return self._challenge(request, route_class, "identity_unavailable")

        elapsed_ms = (time.perf_counter() - start) * 1000
        record_identity_check(elapsed_ms)
        self._log.session_verified(path, session.user_id, elapsed_ms)
        record_decision(route_class.value, "allowed")

        request.state.session = session
        return await call_next(request)

    def _challenge(self, request: Request, route_class: RouteClass, reason: str) -> Response:
        response = self.verifier.challenge(request, reason)
        self._log.challenge_issued(
            request.url.path,
            request.method,
            reason,
            response.status_code,
        )
        record_decision(route_class.value, "challenged")
        return response


def _failure_reason(error: Exception) -> str:
    if isinstance(error, AsyncTimeoutError):
        return "timeout"
    if isinstance(error, IdentityProviderError):
        return "unavailable"
    return "error"
