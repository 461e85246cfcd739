"""MCP servers: Engine (visitor-facing) and Studio (authoring)."""

from .server import create_server

__all__ = ["create_server"]
