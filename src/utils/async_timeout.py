"""Deadlines for calls to external collaborators.

Every identity provider round trip made on behalf of a request is bounded,
so a slow provider turns into a challenge instead of a hung request.
"""

import asyncio
from typing import Any, Awaitable, TypeVar

from src.exceptions import CampusStreamError

T = TypeVar("T")


class AsyncTimeoutError(CampusStreamError):
    """An awaited collaborator call exceeded its deadline.

    Attributes:
        operation: What was being awaited
        timeout_s: The deadline that was exceeded
    """

    def __init__(
        self,
        operation: str,
        timeout_s: float,
        details: dict[str, Any] | None = None,
    ) -> None:
        context: dict[str, Any] = {"operation": operation, "timeout_s": timeout_s}
        context.update(details or {})
        super().__init__(
            message=f"{operation} exceeded its {timeout_s}s deadline",
            details=context,
            recoverable=True,
        )
        self.operation = operation
        self.timeout_s = timeout_s


async def with_timeout(
    coro: Awaitable[T],
    timeout_s: float,
    operation: str = "operation",
    details: dict[str, Any] | None = None,
) -> T:
    """Await a collaborator call under a deadline.

    The awaited call is cancelled when the deadline passes. Exceptions it
    raises before then propagate unchanged.

    Args:
        coro: Awaitable to run
        timeout_s: Deadline in seconds (must be positive)
        operation: Name used in the error message
        details: Extra context attached to the error

    Raises:
        AsyncTimeoutError: If the deadline passes first
        ValueError: If timeout_s is not positive

    Example:
        session = await with_timeout(
            verifier.protect(request),
            timeout_s=settings.identity_timeout_s,
            operation="identity check",
            details={"path": request.url.path},
        )
    """
    if timeout_s <= 0:
        raise ValueError(f"timeout_s must be positive, got {timeout_s}")

    try:
        return await asyncio.wait_for(coro, timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise AsyncTimeoutError(operation, timeout_s, details) from e
