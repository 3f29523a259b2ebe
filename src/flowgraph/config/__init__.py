"""Configuration package."""
from flowgraph.config.settings import (
    DEFAULT_CHAT_MESSAGE,
    Settings,
    get_settings,
    reset_settings,
)

__all__ = ["DEFAULT_CHAT_MESSAGE", "get_settings", "reset_settings", "Settings"]
