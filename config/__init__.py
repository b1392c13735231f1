"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Function to get settings (cached)
    configure_logging: structlog setup for scripts
"""

from config.settings import settings, get_settings, Settings
from config.logging import configure_logging

__all__ = [
    # Settings
    "settings",
    "get_settings",
    "Settings",

    # Logging
    "configure_logging",
]
