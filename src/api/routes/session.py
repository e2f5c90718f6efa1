"""Session endpoint - who is the caller?

GET /api/session is not in either route table, so it is reachable without
a session and reports the caller's sign-in state.
"""

from typing import Any

from fastapi import APIRouter, Depends

from src.api.auth import get_current_session
from src.gatekeeper.identity import SessionContext

router = APIRouter(prefix="/api", tags=["session"])


@router.get("/session")
async def current_session(
    session: SessionContext | None = Depends(get_current_session),
) -> dict[str, Any]:
    """Report the caller's session."""
    if session is None:
        return {"authenticated": False}

    return {
        "authenticated": True,
        "user_id": session.user_id,
        "session_id": session.session_id,
    }
