"""Route Patterns - Path-segment aware prefix matching.

A pattern is a literal path, optionally followed by the ``(.*)`` wildcard
suffix:

    "/"               matches "/" only
    "/sign-in(.*)"    matches "/sign-in", "/sign-in/reset", "/sign-in/oauth/callback"
    "/library(.*)"    never matches "/librarysomething"

Matching always runs against a normalised path (see normalize_path), so
dot segments and duplicate slashes cannot be used to walk out of a public
prefix into a protected one.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass

from src.exceptions import InvalidRoutePatternError

WILDCARD_SUFFIX = "(.*)"

_METACHARACTERS = frozenset("()*?[]{}+|^$\\")
_SLASH_RUN = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """Normalise a request path for classification.

    Collapses repeated slashes, resolves "." and ".." segments and drops a
    trailing slash. An empty path becomes "/".

    Example:
        >>> normalize_path("/settings/")
        '/settings'
        >>> normalize_path("/api/webhooks/../../admin")
        '/admin'
    """
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    # Collapse first: normpath preserves a leading "//"
    return posixpath.normpath(_SLASH_RUN.sub("/", path))


@dataclass(frozen=True)
class RoutePattern:
    """A parsed route pattern.

    Attributes:
        raw: Pattern text as configured
        prefix: Literal path part, without trailing slash ("/" for root)
        wildcard: True if the pattern also matches every sub-path
    """

    raw: str
    prefix: str
    wildcard: bool

    @classmethod
    def parse(cls, raw: str) -> RoutePattern:
        """Parse pattern text.

        Raises:
            InvalidRoutePatternError: If the text is not a valid pattern
        """
        if not raw or not raw.startswith("/"):
            raise InvalidRoutePatternError(raw, "pattern must start with '/'")

        wildcard = raw.endswith(WILDCARD_SUFFIX)
        literal = raw[: -len(WILDCARD_SUFFIX)] if wildcard else raw
        if not literal:
            literal = "/"

        bad = sorted(set(literal) & _METACHARACTERS)
        if bad:
            raise InvalidRoutePatternError(
                raw, f"unsupported characters in literal part: {''.join(bad)}"
            )
        if "//" in literal:
            raise InvalidRoutePatternError(raw, "empty path segment")

        prefix = literal.rstrip("/") or "/"
        return cls(raw=raw, prefix=prefix, wildcard=wildcard)

    def matches(self, path: str) -> bool:
        """Check whether a normalised path matches this pattern.

        Args:
            path: Path already passed through normalize_path

        Returns:
            True if the path is the prefix itself or, for wildcard
            patterns, lies beneath it on a segment boundary
        """
        if path == self.prefix:
            return True
        if not self.wildcard:
            return False
        if self.prefix == "/":
            return True
        return path.startswith(self.prefix + "/")

    def overlaps(self, other: RoutePattern) -> bool:
        """Check whether some path matches both patterns."""
        return self.matches(other.prefix) or other.matches(self.prefix)

    def __str__(self) -> str:
        return self.raw
