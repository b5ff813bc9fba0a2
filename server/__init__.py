"""Server package exports."""

from server.config import get_settings
from server.logging import configure_logging

__all__ = [
    "configure_logging",
    "get_settings",
]
