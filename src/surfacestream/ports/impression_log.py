"""Port: append-only impression log."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..domain.impressions import ImpressionRecord


@runtime_checkable
class ImpressionLogPort(Protocol):
    """Impression storage. Terminal writes must be atomic per (surface, visitor)."""

    def insert(self, record: ImpressionRecord) -> None: ...

    def insert_terminal_if_absent(self, record: ImpressionRecord) -> ImpressionRecord:
        """Insert ``record`` unless a terminal impression already exists.

        Returns the stored terminal record: ``record`` itself when it won,
        otherwise the earlier one. Two concurrent callers must never both win.
        """
        ...

    def find_terminal(self, surface_id: str, visitor_id: str) -> ImpressionRecord | None: ...

    def list_for_visitor(self, visitor_id: str) -> list[ImpressionRecord]: ...

    def list_for_surface(self, surface_id: str) -> list[ImpressionRecord]: ...

    def delete_for_surface(self, surface_id: str) -> int: ...

    def delete(self, impression_id: str) -> bool: ...
