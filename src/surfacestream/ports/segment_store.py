"""Port: saved audience segments."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..domain.surfaces import Segment


@runtime_checkable
class SegmentStorePort(Protocol):
    """Read/write interface for segments."""

    def get(self, segment_id: str) -> Segment | None: ...

    def insert(self, segment: Segment) -> None: ...

    def delete(self, segment_id: str) -> bool: ...

    def list_by_workspace(self, workspace_id: str) -> list[Segment]: ...
