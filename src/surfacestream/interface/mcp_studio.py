"""Studio entrypoint.

Starts the MCP Studio server (authoring: surfaces, segments, visitors).
Use for CI/CD, backoffice, or trusted operators.

Usage:
    python -m surfacestream.interface.mcp_studio
    # or:
    surfacestream-studio
"""

from __future__ import annotations

from ..config import get_settings
from .mcp.auth import check_scope
from .mcp.observability import configure_logging
from .mcp.server import create_server


def main() -> None:
    configure_logging(get_settings().log_level)
    check_scope("studio")
    server = create_server(mode="studio")
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
