"""Port: visitor profiles."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..domain.visitors import VisitorRecord


@runtime_checkable
class VisitorStorePort(Protocol):
    """Read/write interface for visitor records."""

    def get(self, visitor_id: str) -> VisitorRecord | None: ...

    def upsert(self, record: VisitorRecord) -> None: ...

    def list_by_workspace(self, workspace_id: str) -> list[VisitorRecord]: ...
