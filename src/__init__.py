"""Campus Stream Gateway - Route protection for the campus streaming app."""

__version__ = "1.0.0"

# Export exception hierarchy for easy importing
from src.exceptions import (
    CampusStreamError,
    ConfigurationError,
    MissingConfigError,
    InvalidConfigError,
    RouteTableError,
    InvalidRoutePatternError,
    IdentityError,
    AuthenticationRequiredError,
    IdentityProviderError,
    IdentityProviderUnavailableError,
)

__all__ = [
    "__version__",
    # Base
    "CampusStreamError",
    # Configuration
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    # Route tables
    "RouteTableError",
    "InvalidRoutePatternError",
    # Identity
    "IdentityError",
    "AuthenticationRequiredError",
    "IdentityProviderError",
    "IdentityProviderUnavailableError",
]
