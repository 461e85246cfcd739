"""Runtime configuration."""

from .runtime import McpMode, RuntimeSettings, StoreBackend, get_settings

__all__ = ["McpMode", "RuntimeSettings", "StoreBackend", "get_settings"]
