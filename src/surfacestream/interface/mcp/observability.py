"""Observability for the MCP servers.

Every tool call is logged as ``tool_invocation`` with its trace id and
latency. In-process counters track calls, errors, auth refusals and how
eligibility decisions break down by reason.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

_LOGGER = logging.getLogger("surfacestream.mcp")

METRICS: dict[str, dict[str, int]] = {
    "tool_calls": {},
    "errors": {},
    "auth_denied": {},
    "decisions": {},
}


def get_logger() -> logging.Logger:
    return _LOGGER


def configure_logging(level: str) -> None:
    """Log to stderr at ``level``; stdout carries the stdio transport."""
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _bump(counter: str, key: str, by: int = 1) -> None:
    METRICS[counter][key] = METRICS[counter].get(key, 0) + by


def log_tool_invocation(
    tool: str,
    trace_id: str | None,
    latency_ms: float,
    error: str | None = None,
    extra: dict[str, Any] | None = None,
) -> None:
    payload: dict[str, Any] = {
        "tool": tool,
        "trace_id": trace_id,
        "latency_ms": round(latency_ms, 2),
        **(extra or {}),
    }
    if error:
        payload["error"] = error
        _LOGGER.warning("tool_invocation", extra=payload)
        _bump("errors", tool)
    else:
        _LOGGER.info("tool_invocation", extra=payload)
    _bump("tool_calls", tool)


def record_decisions(reasons: Iterable[str]) -> None:
    """Count eligibility outcomes, keyed by reason string."""
    for reason in reasons:
        _bump("decisions", reason)


def record_auth_denied(mode: str) -> None:
    _bump("auth_denied", mode)


def metrics_snapshot() -> dict[str, dict[str, int]]:
    return {name: dict(counter) for name, counter in METRICS.items()}


def reset_metrics() -> None:
    for counter in METRICS.values():
        counter.clear()
