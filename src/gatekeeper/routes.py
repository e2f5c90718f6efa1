"""Route Tables - Public/protected classification.

The route policy is built once at process start and never mutated, so
concurrent requests can classify against the same value without locking.

Classification is two-phase and its precedence is part of the contract:

    1. public table     -> RouteClass.PUBLIC   (wins over protected)
    2. protected table  -> RouteClass.PROTECTED
    3. otherwise        -> RouteClass.UNCLASSIFIED

What happens to UNCLASSIFIED paths is an explicit policy: "allow" (open by
default, the product's choice) or "deny" (treat as protected).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Literal

from src.config.constants import GATEWAY
from src.config.settings import Settings
from src.exceptions import InvalidConfigError, InvalidRoutePatternError
from src.gatekeeper.patterns import RoutePattern, normalize_path

UnclassifiedPolicy = Literal["allow", "deny"]


class RouteClass(str, Enum):
    """Classification of a request path."""

    PUBLIC = "public"
    PROTECTED = "protected"
    UNCLASSIFIED = "unclassified"


_STRICTNESS = {
    RouteClass.PUBLIC: 0,
    RouteClass.UNCLASSIFIED: 1,
    RouteClass.PROTECTED: 2,
}


@dataclass(frozen=True)
class RouteTable:
    """Ordered, immutable set of route patterns."""

    patterns: tuple[RoutePattern, ...] = ()

    @classmethod
    def from_patterns(cls, patterns: Iterable[str | RoutePattern]) -> RouteTable:
        """Build a table, parsing pattern text and dropping duplicates.

        Raises:
            InvalidRoutePatternError: If any pattern is invalid
        """
        parsed: list[RoutePattern] = []
        for pattern in patterns:
            if isinstance(pattern, str):
                pattern = RoutePattern.parse(pattern)
            if pattern not in parsed:
                parsed.append(pattern)
        return cls(patterns=tuple(parsed))

    def match(self, path: str) -> RoutePattern | None:
        """Return the first pattern matching a normalised path."""
        for pattern in self.patterns:
            if pattern.matches(path):
                return pattern
        return None

    def contains(self, path: str) -> bool:
        """Check whether any pattern matches a normalised path."""
        return self.match(path) is not None

    def __iter__(self) -> Iterator[RoutePattern]:
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)


@dataclass(frozen=True)
class RoutePolicy:
    """Immutable route protection policy.

    Attributes:
        public: Patterns exempt from authentication
        protected: Patterns requiring a verified session
        unclassified: Decision for paths in neither table
    """

    public: RouteTable
    protected: RouteTable
    unclassified: UnclassifiedPolicy = "allow"

    @classmethod
    def from_patterns(
        cls,
        public: Iterable[str],
        protected: Iterable[str],
        unclassified: UnclassifiedPolicy = "allow",
    ) -> RoutePolicy:
        """Build a policy from pattern text."""
        return cls(
            public=RouteTable.from_patterns(public),
            protected=RouteTable.from_patterns(protected),
            unclassified=unclassified,
        )

    def classify(self, path: str) -> RouteClass:
        """Classify a request path.

        The router dispatches on the raw path while the tables are meant
        for the normalised one, so both are classified and the stricter
        class wins. "/library/.." is protected even though it normalises
        to "/".

        Args:
            path: Request path as the router will see it

        Returns:
            RouteClass for the path. Within one form of the path, public
            always wins over protected.

        Example:
            >>> policy.classify("/settings/profile")
            <RouteClass.PROTECTED: 'protected'>
            >>> policy.classify("/api/webhooks/identity-provider")
            <RouteClass.PUBLIC: 'public'>
        """
        normalized = normalize_path(path)
        route_class = self._match(normalized)
        if path and path != normalized:
            raw_class = self._match(path)
            if _STRICTNESS[raw_class] > _STRICTNESS[route_class]:
                return raw_class
        return route_class

    def _match(self, path: str) -> RouteClass:
        if self.public.contains(path):
            return RouteClass.PUBLIC
        if self.protected.contains(path):
            return RouteClass.PROTECTED
        return RouteClass.UNCLASSIFIED

    def requires_session(self, path: str) -> bool:
        """Check whether a request to path must carry a verified session."""
        return self.session_required_for(self.classify(path))

    def session_required_for(self, route_class: RouteClass) -> bool:
        """Check whether a route class must carry a verified session."""
        if route_class is RouteClass.PROTECTED:
            return True
        if route_class is RouteClass.UNCLASSIFIED:
            return self.unclassified == "deny"
        return False


def find_overlaps(policy: RoutePolicy) -> list[tuple[RoutePattern, RoutePattern]]:
    """Find (public, protected) pattern pairs that some path matches both.

    Public wins for every such path, so each overlap silently exempts part
    of a protected area. Used for startup validation and tests; never run
    per request.
    """
    return [
        (public, protected)
        for public in policy.public
        for protected in policy.protected
        if public.overlaps(protected)
    ]


def default_route_policy(settings: Settings) -> RoutePolicy:
    """Build the route policy from configuration.

    Health and metrics paths are always public, whatever public_routes
    holds, so probes keep working under unclassified_policy="deny".

    Raises:
        InvalidConfigError: If a configured pattern is invalid
    """
    configured = {
        "public_routes": [*settings.public_routes, *GATEWAY.HEALTH_ROUTES],
        "protected_routes": settings.protected_routes,
    }
    tables = {}
    for key, patterns in configured.items():
        try:
            tables[key] = RouteTable.from_patterns(patterns)
        except InvalidRoutePatternError as e:
            raise InvalidConfigError(key, e.pattern, e.details["reason"]) from e

    return RoutePolicy(
        public=tables["public_routes"],
        protected=tables["protected_routes"],
        unclassified=settings.unclassified_policy,
    )
