"""Identity Verification - Session checks against the identity provider.

The gatekeeper never authenticates anyone itself. It orchestrates two
primitives of an IdentityVerifier:

    get_session(request)  -> SessionContext | None    (query)
    protect(request)      -> SessionContext           (require or raise)

and asks the verifier to build the challenge response when a request is
halted.

Backends:
- http: verifies session tokens with the managed identity provider's API
- mock: in-memory token map for development and tests
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping
from urllib.parse import urlencode

import httpx
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from src.config.constants import GATEWAY
from src.config.settings import Settings, get_settings
from src.exceptions import (
    AuthenticationRequiredError,
    IdentityProviderError,
    IdentityProviderUnavailableError,
    MissingConfigError,
)
from src.gatekeeper.patterns import normalize_path
from src.observability.logging import get_logger

logger = get_logger(__name__)

# Namespaces whose clients get a 401 instead of a sign-in redirect
API_PREFIXES = GATEWAY.FORCE_INCLUDE_PREFIXES


@dataclass(frozen=True)
class SessionContext:
    """A verified session.

    Attributes:
        user_id: Identity provider user id
        session_id: Identity provider session id
        claims: Extra claims returned by the provider (read-only)
    """

    user_id: str
    session_id: str
    claims: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            "user_id": self.user_id,
            "session_id": self.session_id,
            "claims": dict(self.claims),
        }


def extract_session_token(
    request: Request,
    cookie_name: str = GATEWAY.SESSION_COOKIE_NAME,
) -> str | None:
    """Extract the session token from a request.

    An ``Authorization: Bearer`` header wins over the session cookie.

    Returns:
        Token string, or None if the request carries none
    """
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    cookie = request.cookies.get(cookie_name)
    if cookie:
        return cookie
    return None


def is_interactive_request(request: Request) -> bool:
    """Check whether a request comes from a browser navigation.

    Interactive requests are safe-method HTML requests outside the API
    namespaces; they are redirected to sign in instead of receiving a 401.
    """
    if request.method not in ("GET", "HEAD"):
        return False
    path = normalize_path(request.url.path)
    if any(path == prefix or path.startswith(prefix + "/") for prefix in API_PREFIXES):
        return False
    return "text/html" in request.headers.get("accept", "")


class IdentityVerifier(ABC):
    """Base class for identity verification backends.

    Subclasses implement get_session(); protect() and challenge() are
    shared.
    """

    name: str = "base"

    def __init__(
        self,
        sign_in_url: str = GATEWAY.SIGN_IN_URL,
        cookie_name: str = GATEWAY.SESSION_COOKIE_NAME,
    ) -> None:
        self._sign_in_url = sign_in_url
        self._cookie_name = cookie_name

    @property
    def sign_in_url(self) -> str:
        return self._sign_in_url

    async def start(self) -> None:
        """Acquire backend resources."""

    async def stop(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def get_session(self, request: Request) -> SessionContext | None:
        """Look up the valid session for a request.

        Returns:
            SessionContext, or None if the request has no valid session

        Raises:
            IdentityProviderError: If the provider cannot answer
        """
        ...

    async def protect(self, request: Request) -> SessionContext:
        """Require a valid session.

        Raises:
            AuthenticationRequiredError: If the request has no valid session
            IdentityProviderError: If the provider cannot answer
        """
        session = await self.get_session(request)
        if session is None:
            reason = (
                "invalid_session"
                if extract_session_token(request, self._cookie_name)
                else "missing_session"
            )
            raise AuthenticationRequiredError(request.url.path, reason=reason)
        return session

    def challenge(self, request: Request, reason: str = "missing_session") -> Response:
        """Build the authentication challenge for a halted request.

        Browser navigations are redirected to the sign-in page with the
        original URL in the redirect parameter; every other client gets a
        401.
        """
        if is_interactive_request(request):
            query = urlencode({GATEWAY.REDIRECT_PARAM: str(request.url)})
            separator = "&" if "?" in self._sign_in_url else "?"
            return RedirectResponse(
                url=f"{self._sign_in_url}{separator}{query}",
                status_code=307,
            )

        return JSONResponse(
            status_code=401,
            content={"detail": "Authentication required", "reason": reason},
            headers={"WWW-Authenticate": "Bearer"},
        )


class HTTPIdentityVerifier(IdentityVerifier):
    """Verifies session tokens with the identity provider's HTTP API.

    Contract:
        POST {api_url}/sessions/verify
        Authorization: Bearer <secret key>
        {"token": "<session token>"}

        200 {"status": "active", "user_id": ..., "session_id": ..., ...}
        401 / 403 / 404 -> token not valid

    Usage:
        verifier = HTTPIdentityVerifier(api_url, secret_key)
        await verifier.start()
        session = await verifier.get_session(request)
        await verifier.stop()
    """

    name = "http"

    _REJECTED_STATUSES = frozenset({401, 403, 404})

    def __init__(
        self,
        api_url: str,
        secret_key: str,
        timeout_s: float = GATEWAY.IDENTITY_TIMEOUT_S,
        sign_in_url: str = GATEWAY.SIGN_IN_URL,
        cookie_name: str = GATEWAY.SESSION_COOKIE_NAME,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(sign_in_url=sign_in_url, cookie_name=cookie_name)
        self._api_url = api_url.rstrip("/")
        self._secret_key = secret_key
        self._timeout_s = timeout_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_running(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        """Open the HTTP connection pool."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._api_url,
                timeout=self._timeout_s,
                headers={"Authorization": f"Bearer {self._secret_key}"},
                transport=self._transport,
            )

    async def stop(self) -> None:
        """Close the HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_session(self, request: Request) -> SessionContext | None:
        token = extract_session_token(request, self._cookie_name)
        if token is None:
            return None

        if self._client is None:
            raise IdentityProviderUnavailableError(self.name, "client not started")

        start = time.perf_counter()
        try:
            response = await self._client.post("/sessions/verify", json={"token": token})
        except httpx.HTTPError as e:
            raise IdentityProviderUnavailableError(self.name, str(e) or type(e).__name__) from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "identity_verify_response",
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
        )

        if response.status_code in self._REJECTED_STATUSES:
            return None
        if response.status_code != 200:
            raise IdentityProviderUnavailableError(
                self.name,
                f"unexpected status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise IdentityProviderError(self.name, "invalid JSON in response", 200) from e

        return self._session_from_payload(payload)

    def _session_from_payload(self, payload: Any) -> SessionContext | None:
        if not isinstance(payload, dict):
            raise IdentityProviderError(self.name, "response is not an object", 200)
        if payload.get("status") != "active":
            return None

        user_id = payload.get("user_id")
        session_id = payload.get("session_id")
        if not user_id or not session_id:
            raise IdentityProviderError(self.name, "response missing user_id/session_id", 200)

        claims = {
            key: value
            for key, value in payload.items()
            if key not in ("status", "user_id", "session_id")
        }
        return SessionContext(
            user_id=str(user_id),
            session_id=str(session_id),
            claims=MappingProxyType(claims),
        )


class MockIdentityVerifier(IdentityVerifier):
    """In-memory verifier for development and tests.

    Tokens map to user ids; the session id is derived from the token.
    Call fail_with() to simulate an identity provider outage.
    """

    name = "mock"

    def __init__(
        self,
        sessions: Mapping[str, str] | None = None,
        sign_in_url: str = GATEWAY.SIGN_IN_URL,
        cookie_name: str = GATEWAY.SESSION_COOKIE_NAME,
    ) -> None:
        super().__init__(sign_in_url=sign_in_url, cookie_name=cookie_name)
        self._sessions = dict(sessions or {})
        self._failure: Exception | None = None
        self.calls = 0

    def fail_with(self, error: Exception | None) -> None:
        """Make every subsequent lookup raise error (None to recover)."""
        self._failure = error

    async def get_session(self, request: Request) -> SessionContext | None:
        self.calls += 1
        if self._failure is not None:
            raise self._failure

        token = extract_session_token(request, self._cookie_name)
        if token is None or token not in self._sessions:
            return None
        return SessionContext(user_id=self._sessions[token], session_id=f"sess_{token}")


def create_identity_verifier(settings: Settings | None = None) -> IdentityVerifier:
    """Create the identity verifier selected by configuration.

    Args:
        settings: Settings to use (defaults to get_settings())

    Returns:
        Unstarted IdentityVerifier

    Raises:
        MissingConfigError: If the http backend lacks its URL or secret key
        ValueError: If the backend is unknown
    """
    settings = settings or get_settings()

    if settings.identity_backend == "http":
        if not settings.identity_api_url:
            raise MissingConfigError("identity_api_url", "required for identity_backend=http")
        if not settings.identity_secret_key:
            raise MissingConfigError("identity_secret_key", "required for identity_backend=http")
        return HTTPIdentityVerifier(
            api_url=settings.identity_api_url,
            secret_key=settings.identity_secret_key,
            timeout_s=settings.identity_timeout_s,
            sign_in_url=settings.sign_in_url,
            cookie_name=settings.session_cookie_name,
        )
    if settings.identity_backend == "mock":
        return MockIdentityVerifier(
            sessions=settings.mock_session_tokens,
            sign_in_url=settings.sign_in_url,
            cookie_name=settings.session_cookie_name,
        )

    raise ValueError(
        f"Unknown identity backend: {settings.identity_backend}. Available: mock, http"
    )
