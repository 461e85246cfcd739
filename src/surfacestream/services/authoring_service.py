"""AuthoringService: surface definitions and their lifecycle."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..domain.audience import SegmentReference, parse_targeting
from ..domain.errors import SegmentNotFoundError, SurfaceInUseError, SurfaceNotFoundError
from ..domain.lifecycle import LifecycleStateMachine
from ..domain.surfaces import DeliverableSurface, SurfaceKind, SurfaceStatus
from ..ports.id_gen import IdProvider, UuidIdProvider
from ..ports.impression_log import ImpressionLogPort
from ..ports.segment_store import SegmentStorePort
from ..ports.surface_store import SurfaceStorePort

_UPDATABLE_FIELDS = frozenset(
    {"name", "audience_rules", "schedule", "frequency", "triggers", "priority", "content"}
)


class AuthoringService:
    """Create, edit and move surfaces through their lifecycle.

    Every call is scoped to a workspace: a surface owned by another workspace
    is reported as not found.
    """

    def __init__(
        self,
        surface_store: SurfaceStorePort,
        impression_log: ImpressionLogPort,
        segment_store: SegmentStorePort,
        id_provider: IdProvider | None = None,
        lifecycle: LifecycleStateMachine | None = None,
        logger: Any = None,
    ) -> None:
        self._surfaces = surface_store
        self._impressions = impression_log
        self._segments = segment_store
        self._ids = id_provider or UuidIdProvider()
        self._lifecycle = lifecycle or LifecycleStateMachine()
        self._logger = logger

    def _validate_targeting(self, workspace_id: str, raw: dict | None) -> None:
        target = parse_targeting(raw)
        if isinstance(target, SegmentReference):
            segment = self._segments.get(target.segment_id)
            if segment is None or segment.workspace_id != workspace_id:
                raise SegmentNotFoundError(f"Segment {target.segment_id!r} not found")

    def create(
        self,
        workspace_id: str,
        kind: SurfaceKind | str,
        name: str,
        *,
        audience_rules: dict | None = None,
        schedule: Any = None,
        frequency: str = "once",
        triggers: Any = None,
        priority: int | None = None,
        content: dict | None = None,
        now: datetime | None = None,
    ) -> DeliverableSurface:
        """Create a new draft surface. Raises RuleValidationError on a bad rule."""
        self._validate_targeting(workspace_id, audience_rules)
        now = now or datetime.now(timezone.utc)
        surface = DeliverableSurface(
            surface_id=self._ids.new_id(),
            workspace_id=workspace_id,
            kind=kind,
            name=name,
            status=SurfaceStatus.draft,
            audience_rules=audience_rules,
            schedule=schedule,
            frequency=frequency,
            triggers=triggers,
            priority=priority,
            content=content or {},
            created_at=now,
            updated_at=now,
        )
        self._surfaces.insert(surface)
        return surface

    def get(self, workspace_id: str, surface_id: str) -> DeliverableSurface:
        surface = self._surfaces.get(surface_id)
        if surface is None or surface.workspace_id != workspace_id:
            raise SurfaceNotFoundError(f"Surface {surface_id!r} not found")
        return surface

    def list(
        self,
        workspace_id: str,
        status: SurfaceStatus | None = None,
        kind: SurfaceKind | None = None,
    ) -> list[DeliverableSurface]:
        return self._surfaces.list_by_workspace(workspace_id, status=status, kind=kind)

    def update(self, workspace_id: str, surface_id: str, changes: dict[str, Any]) -> DeliverableSurface:
        """Apply a partial edit. Status is only changed through lifecycle actions."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
        surface = self.get(workspace_id, surface_id)
        if "audience_rules" in changes:
            self._validate_targeting(workspace_id, changes["audience_rules"])
        updated = DeliverableSurface.model_validate(
            {**surface.model_dump(), **changes, "updated_at": datetime.now(timezone.utc)}
        )
        self._surfaces.save(updated)
        return updated

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _transition(self, workspace_id: str, surface_id: str, action: str) -> DeliverableSurface:
        surface = self.get(workspace_id, surface_id)
        target = self._lifecycle.target_for(surface, action)
        updated = surface.model_copy(update={"status": target, "updated_at": datetime.now(timezone.utc)})
        self._surfaces.save(updated)
        if self._logger:
            self._logger.info(
                "surface_transition",
                extra={
                    "surface_id": surface_id,
                    "kind": surface.kind.value,
                    "from_status": surface.status.value,
                    "to_status": target.value,
                },
            )
        return updated

    def activate(self, workspace_id: str, surface_id: str) -> DeliverableSurface:
        return self._transition(workspace_id, surface_id, "activate")

    def pause(self, workspace_id: str, surface_id: str) -> DeliverableSurface:
        return self._transition(workspace_id, surface_id, "pause")

    def archive(self, workspace_id: str, surface_id: str) -> DeliverableSurface:
        return self._transition(workspace_id, surface_id, "archive")

    def duplicate(self, workspace_id: str, surface_id: str) -> DeliverableSurface:
        """Copy a surface into a fresh draft with its schedule cleared."""
        source = self.get(workspace_id, surface_id)
        now = datetime.now(timezone.utc)
        copy = source.model_copy(
            deep=True,
            update={
                "surface_id": self._ids.new_id(),
                "name": f"{source.name} (Copy)",
                "status": SurfaceStatus.draft,
                "schedule": None,
                "created_at": now,
                "updated_at": now,
            },
        )
        self._surfaces.insert(copy)
        return copy

    def remove(self, workspace_id: str, surface_id: str) -> int:
        """Delete a surface and its impressions. Returns impressions removed."""
        surface = self.get(workspace_id, surface_id)
        self._lifecycle.assert_removable(surface)
        for other in self._surfaces.list_by_workspace(workspace_id):
            if other.surface_id != surface_id and surface_id in other.linked_surface_ids():
                raise SurfaceInUseError(
                    f"Cannot delete {surface.kind.value} while {other.kind.value} {other.name!r} links to it"
                )
        self._surfaces.delete(surface_id)
        removed = self._impressions.delete_for_surface(surface_id)
        if self._logger:
            self._logger.info(
                "surface_removed",
                extra={"surface_id": surface_id, "impressions_removed": removed},
            )
        return removed
