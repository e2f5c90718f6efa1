"""API Authentication - Session helpers for route handlers.

The gatekeeper has already verified the session for protected routes and
left it on request.state.session. Handlers on other routes can still ask
who the caller is:

    @router.get("/api/me")
    async def me(session: SessionContext = Depends(require_session)):
        ...
"""

from fastapi import HTTPException, Request, status

from src.exceptions import IdentityError
from src.gatekeeper.identity import IdentityVerifier, SessionContext
from src.observability.logging import get_logger

logger = get_logger(__name__)


def get_verifier(request: Request) -> IdentityVerifier:
    """Get the application's identity verifier."""
    return request.app.state.identity_verifier


async def get_current_session(request: Request) -> SessionContext | None:
    """Get the caller's session, or None if not signed in.

    Uses the session attached by the gatekeeper when present; otherwise
    queries the identity verifier. Provider failures are treated as
    "not signed in".
    """
    session = getattr(request.state, "session", None)
    if session is not None:
        return session

    try:
        session = await get_verifier(request).get_session(request)
    except IdentityError as e:
        logger.warning(
            "session_lookup_failed",
            path=request.url.path,
            error=str(e),
        )
        return None

    if session is not None:
        request.state.session = session
    return session


async def require_session(request: Request) -> SessionContext:
    """Require a signed-in caller.

    Raises:
        HTTPException: 401 if the caller has no valid session
    """
    session = await get_current_session(request)
    if session is None:
        logger.info(
            "auth_failed",
            reason="missing_session",
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


async def get_current_user_id(request: Request) -> str | None:
    """Get the caller's user id, or None if not signed in."""
    session = await get_current_session(request)
    return session.user_id if session else None
