"""Per-server access gates for the MCP surfaces.

The Engine serves visitor traffic and the Studio edits catalogs; each can be
locked behind its own key. A locked server refuses every tool call until the
key is present in the environment.
"""

from __future__ import annotations

import os

from .observability import record_auth_denied

# mode -> (settings flag that locks it, environment variable holding the key)
_SCOPES: dict[str, tuple[str, str]] = {
    "engine": ("require_engine_key", "MCP_ENGINE_KEY"),
    "studio": ("require_studio_key", "MCP_STUDIO_KEY"),
}


def require_scope(mode: str) -> None:
    """Raise PermissionError if ``mode`` is locked and its key is missing."""
    from ...config.runtime import get_settings

    if mode not in _SCOPES:
        raise ValueError(f"Unknown mode: {mode!r}")
    flag, env_var = _SCOPES[mode]
    if not getattr(get_settings(), flag):
        return
    if not os.environ.get(env_var, "").strip():
        record_auth_denied(mode)
        raise PermissionError(f"{mode.capitalize()} requires {env_var} to be set")


def require_engine_scope() -> None:
    require_scope("engine")


def require_studio_scope() -> None:
    require_scope("studio")


def check_scope(mode: str) -> None:
    """Fail fast at server start when the chosen server is locked."""
    require_scope(mode)
