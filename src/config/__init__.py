"""Configuration module."""

from src.config.constants import GATEWAY, GatewayConstants
from src.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "GatewayConstants", "GATEWAY"]
