"""Engine entrypoint.

Starts the MCP Engine server (visitor-facing: eligibility and impressions).
This module avoids importing any CLI or studio modules so it can be used as
a minimal container entrypoint.

Usage:
    python -m surfacestream.interface.mcp_engine
    # or via the script entrypoint:
    surfacestream-engine
"""

from __future__ import annotations

from ..config import get_settings
from .mcp.server import create_server


def main() -> None:
    from .mcp.auth import check_scope
    from .mcp.observability import configure_logging

    configure_logging(get_settings().log_level)
    check_scope("engine")
    server = create_server(mode="engine")
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
