"""Request Matcher - Decides which requests the gatekeeper evaluates.

Framework internals and static files bypass the gatekeeper entirely.
API/RPC namespaces are always evaluated, even when the path looks like a
static file (e.g. "/api/export.csv").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from src.config.constants import GATEWAY
from src.gatekeeper.patterns import normalize_path


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


@dataclass(frozen=True)
class RequestMatcher:
    """Path exclusion filter applied before classification.

    Attributes:
        force_include_prefixes: Namespaces always evaluated
        internal_prefixes: Framework/static namespaces never evaluated
        static_extensions: File extensions (lowercase, no dot) never evaluated
    """

    force_include_prefixes: tuple[str, ...] = GATEWAY.FORCE_INCLUDE_PREFIXES
    internal_prefixes: tuple[str, ...] = GATEWAY.INTERNAL_PATH_PREFIXES
    static_extensions: frozenset[str] = GATEWAY.STATIC_EXTENSIONS

    @classmethod
    def create(
        cls,
        force_include_prefixes: Iterable[str] | None = None,
        internal_prefixes: Iterable[str] | None = None,
        static_extensions: Iterable[str] | None = None,
    ) -> RequestMatcher:
        """Build a matcher, falling back to the defaults for omitted parts."""
        return cls(
            force_include_prefixes=tuple(
                force_include_prefixes
                if force_include_prefixes is not None
                else GATEWAY.FORCE_INCLUDE_PREFIXES
            ),
            internal_prefixes=tuple(
                internal_prefixes
                if internal_prefixes is not None
                else GATEWAY.INTERNAL_PATH_PREFIXES
            ),
            static_extensions=frozenset(
                ext.lower().lstrip(".")
                for ext in (
                    static_extensions
                    if static_extensions is not None
                    else GATEWAY.STATIC_EXTENSIONS
                )
            ),
        )

    def is_static_asset(self, path: str) -> bool:
        """Check whether the last path segment has a static file extension."""
        segment = path.rsplit("/", 1)[-1]
        if "." not in segment:
            return False
        extension = segment.rsplit(".", 1)[-1].lower()
        return extension in self.static_extensions

    def should_evaluate(self, path: str) -> bool:
        """Decide whether the gatekeeper evaluates a request path.

        A path is skipped only when both its raw and normalised forms would
        be skipped, so "/admin/../static/x" is still evaluated.

        Example:
            >>> matcher.should_evaluate("/static/app.css")
            False
            >>> matcher.should_evaluate("/api/export.csv")
            True
        """
        normalized = normalize_path(path)
        if self._evaluates(normalized):
            return True
        return bool(path) and path != normalized and self._evaluates(path)

    def _evaluates(self, path: str) -> bool:
        if any(_under(path, prefix) for prefix in self.force_include_prefixes):
            return True
        if any(_under(path, prefix) for prefix in self.internal_prefixes):
            return False
        if self.is_static_asset(path):
            return False
        return True
