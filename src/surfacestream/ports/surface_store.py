"""Port: catalog of deliverable surfaces."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..domain.surfaces import DeliverableSurface, SurfaceKind, SurfaceStatus


@runtime_checkable
class SurfaceStorePort(Protocol):
    """Read/write interface for surface definitions."""

    # --- queries ---

    def get(self, surface_id: str) -> DeliverableSurface | None: ...

    def list_by_workspace(
        self,
        workspace_id: str,
        status: SurfaceStatus | None = None,
        kind: SurfaceKind | None = None,
    ) -> list[DeliverableSurface]:
        """Surfaces of one workspace in catalog (insertion) order."""
        ...

    # --- mutations ---

    def insert(self, surface: DeliverableSurface) -> None: ...

    def save(self, surface: DeliverableSurface) -> None: ...

    def delete(self, surface_id: str) -> bool: ...
