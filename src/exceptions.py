"""Campus Stream Exception Hierarchy.

Provides structured exception classes for the gateway.

Hierarchy:
    CampusStreamError (base)
    ├── ConfigurationError
    │   ├── MissingConfigError
    │   └── InvalidConfigError
    ├── RouteTableError
    │   └── InvalidRoutePatternError
    └── IdentityError
        ├── AuthenticationRequiredError
        └── IdentityProviderError
            └── IdentityProviderUnavailableError
"""

from typing import Any


class CampusStreamError(Exception):
    """Base exception for all Campus Stream errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(CampusStreamError):
    """Base exception for configuration-related errors."""

    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""

    def __init__(self, config_key: str, description: str | None = None) -> None:
        message = f"Missing required configuration: {config_key}"
        if description:
            message += f" - {description}"
        super().__init__(
            message=message,
            details={"config_key": config_key},
            recoverable=False,
        )


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""

    def __init__(
        self,
        config_key: str,
        value: Any,
        reason: str,
    ) -> None:
        super().__init__(
            message=f"Invalid configuration for {config_key}: {reason}",
            details={
                "config_key": config_key,
                "value": str(value),
                "reason": reason,
            },
            recoverable=False,
        )


# =============================================================================
# Route Table Errors
# =============================================================================


class RouteTableError(CampusStreamError):
    """Base exception for route table construction errors."""

    pass


class InvalidRoutePatternError(RouteTableError):
    """Raised when a route pattern cannot be parsed."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(
            message=f"Invalid route pattern {pattern!r}: {reason}",
            details={"pattern": pattern, "reason": reason},
            recoverable=False,
        )
        self.pattern = pattern


# =============================================================================
# Identity Errors
# =============================================================================


class IdentityError(CampusStreamError):
    """Base exception for identity verification errors."""

    pass


class AuthenticationRequiredError(IdentityError):
    """Raised when a request needs a valid session and has none."""

    def __init__(self, path: str, reason: str = "missing_session") -> None:
        super().__init__(
            message=f"Authentication required for {path}",
            details={"path": path, "reason": reason},
            recoverable=True,  # Client can sign in and retry
        )
        self.path = path
        self.reason = reason


class IdentityProviderError(IdentityError):
    """Raised when the identity provider returns an unusable answer."""

    def __init__(
        self,
        provider: str,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        details: dict[str, Any] = {"provider": provider, "reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=f"Identity provider {provider} failed: {reason}",
            details=details,
            recoverable=False,
        )
        self.provider = provider
        self.reason = reason
        self.status_code = status_code


class IdentityProviderUnavailableError(IdentityProviderError):
    """Raised when the identity provider cannot be reached."""

    def __init__(self, provider: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(provider, reason, status_code)
        self.message = f"Identity provider {provider} unavailable: {reason}"
        self.recoverable = True
