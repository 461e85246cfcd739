"""In-memory adapters for every storage port.

Each store keeps deep copies so callers never alias stored state. A single
``threading.Lock`` per store serializes access; the impression log's
terminal compare-and-swap runs entirely under that lock.
"""

from __future__ import annotations

import threading

from ..domain.impressions import ImpressionRecord
from ..domain.surfaces import DeliverableSurface, Segment, SurfaceKind, SurfaceStatus
from ..domain.visitors import VisitorRecord


class InMemorySurfaceStore:
    """Dict-backed SurfaceStorePort; dict insertion order is catalog order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._surfaces: dict[str, DeliverableSurface] = {}

    def get(self, surface_id: str) -> DeliverableSurface | None:
        with self._lock:
            surface = self._surfaces.get(surface_id)
            return surface.model_copy(deep=True) if surface else None

    def list_by_workspace(
        self,
        workspace_id: str,
        status: SurfaceStatus | None = None,
        kind: SurfaceKind | None = None,
    ) -> list[DeliverableSurface]:
        with self._lock:
            return [
                surface.model_copy(deep=True)
                for surface in self._surfaces.values()
                if surface.workspace_id == workspace_id
                and (status is None or surface.status == status)
                and (kind is None or surface.kind == kind)
            ]

    def insert(self, surface: DeliverableSurface) -> None:
        with self._lock:
            if surface.surface_id in self._surfaces:
                raise ValueError(f"surface {surface.surface_id!r} already exists")
            self._surfaces[surface.surface_id] = surface.model_copy(deep=True)

    def save(self, surface: DeliverableSurface) -> None:
        with self._lock:
            if surface.surface_id not in self._surfaces:
                raise KeyError(surface.surface_id)
            self._surfaces[surface.surface_id] = surface.model_copy(deep=True)

    def delete(self, surface_id: str) -> bool:
        with self._lock:
            return self._surfaces.pop(surface_id, None) is not None


class InMemoryImpressionLog:
    """List-backed ImpressionLogPort."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[ImpressionRecord] = []

    def insert(self, record: ImpressionRecord) -> None:
        with self._lock:
            self._records.append(record.model_copy())

    def _find_terminal_locked(self, surface_id: str, visitor_id: str) -> ImpressionRecord | None:
        for existing in self._records:
            if existing.is_terminal and existing.surface_id == surface_id and existing.visitor_id == visitor_id:
                return existing
        return None

    def insert_terminal_if_absent(self, record: ImpressionRecord) -> ImpressionRecord:
        with self._lock:
            existing = self._find_terminal_locked(record.surface_id, record.visitor_id)
            if existing is not None:
                return existing.model_copy()
            self._records.append(record.model_copy())
            return record

    def find_terminal(self, surface_id: str, visitor_id: str) -> ImpressionRecord | None:
        with self._lock:
            existing = self._find_terminal_locked(surface_id, visitor_id)
            return existing.model_copy() if existing else None

    def list_for_visitor(self, visitor_id: str) -> list[ImpressionRecord]:
        with self._lock:
            return [r.model_copy() for r in self._records if r.visitor_id == visitor_id]

    def list_for_surface(self, surface_id: str) -> list[ImpressionRecord]:
        with self._lock:
            return [r.model_copy() for r in self._records if r.surface_id == surface_id]

    def delete_for_surface(self, surface_id: str) -> int:
        with self._lock:
            kept = [r for r in self._records if r.surface_id != surface_id]
            removed = len(self._records) - len(kept)
            self._records = kept
            return removed

    def delete(self, impression_id: str) -> bool:
        with self._lock:
            kept = [r for r in self._records if r.impression_id != impression_id]
            removed = len(kept) != len(self._records)
            self._records = kept
            return removed


class InMemoryVisitorStore:
    """Dict-backed VisitorStorePort."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._visitors: dict[str, VisitorRecord] = {}

    def get(self, visitor_id: str) -> VisitorRecord | None:
        with self._lock:
            visitor = self._visitors.get(visitor_id)
            return visitor.model_copy(deep=True) if visitor else None

    def upsert(self, record: VisitorRecord) -> None:
        with self._lock:
            self._visitors[record.visitor_id] = record.model_copy(deep=True)

    def list_by_workspace(self, workspace_id: str) -> list[VisitorRecord]:
        with self._lock:
            return [
                v.model_copy(deep=True) for v in self._visitors.values() if v.workspace_id == workspace_id
            ]


class InMemorySegmentStore:
    """Dict-backed SegmentStorePort."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._segments: dict[str, Segment] = {}

    def get(self, segment_id: str) -> Segment | None:
        with self._lock:
            segment = self._segments.get(segment_id)
            return segment.model_copy(deep=True) if segment else None

    def insert(self, segment: Segment) -> None:
        with self._lock:
            if segment.segment_id in self._segments:
                raise ValueError(f"segment {segment.segment_id!r} already exists")
            self._segments[segment.segment_id] = segment.model_copy(deep=True)

    def delete(self, segment_id: str) -> bool:
        with self._lock:
            return self._segments.pop(segment_id, None) is not None

    def list_by_workspace(self, workspace_id: str) -> list[Segment]:
        with self._lock:
            return [
                s.model_copy(deep=True) for s in self._segments.values() if s.workspace_id == workspace_id
            ]
