"""ImpressionService: record delivery events and report per-surface stats."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..domain.errors import SurfaceNotActiveError, SurfaceNotFoundError, VisitorNotFoundError
from ..domain.impressions import ImpressionAction, ImpressionRecord
from ..domain.surfaces import SurfaceStatus
from ..modules.stats.fold import SurfaceStats, fold_stats
from ..ports.id_gen import IdProvider, UuidIdProvider
from ..ports.impression_log import ImpressionLogPort
from ..ports.surface_store import SurfaceStorePort
from ..ports.visitor_store import VisitorStorePort


class ImpressionService:
    """Validate and append impressions; terminal actions settle exactly once."""

    def __init__(
        self,
        surface_store: SurfaceStorePort,
        visitor_store: VisitorStorePort,
        impression_log: ImpressionLogPort,
        id_provider: IdProvider | None = None,
        logger: Any = None,
    ) -> None:
        self._surfaces = surface_store
        self._visitors = visitor_store
        self._log = impression_log
        self._ids = id_provider or UuidIdProvider()
        self._logger = logger

    def track_impression(
        self,
        surface_id: str,
        visitor_id: str,
        action: ImpressionAction | str,
        session_id: str | None = None,
        screen_index: int | None = None,
        button_index: int | None = None,
        now: datetime | None = None,
    ) -> str | None:
        """Record one event and return the impression id.

        Returns None when the surface no longer exists, including a delete
        that lands while this call is writing; no row is left behind. A repeated terminal action returns the id of
        the terminal impression already stored.
        """
        action = ImpressionAction(action)
        surface = self._surfaces.get(surface_id)
        if surface is None:
            if self._logger:
                self._logger.info(
                    "impression_dropped",
                    extra={"surface_id": surface_id, "visitor_id": visitor_id, "action": action.value},
                )
            return None
        if surface.status is not SurfaceStatus.active:
            raise SurfaceNotActiveError(
                f"{surface.kind.value.capitalize()} {surface_id!r} is {surface.status.value}, not active"
            )
        visitor = self._visitors.get(visitor_id)
        if visitor is None or visitor.workspace_id != surface.workspace_id:
            raise VisitorNotFoundError(
                f"Visitor {visitor_id!r} not found in workspace {surface.workspace_id!r}"
            )

        record = ImpressionRecord(
            impression_id=self._ids.new_id(),
            surface_id=surface_id,
            visitor_id=visitor_id,
            session_id=session_id,
            action=action,
            screen_index=screen_index,
            button_index=button_index,
            created_at=now or datetime.now(timezone.utc),
        )
        if not record.is_terminal:
            self._log.insert(record)
            stored = record
        else:
            stored = self._log.insert_terminal_if_absent(record)

        # A remove that ran after the read above may have cascaded before this
        # write landed; the surface must still exist for the row to stay.
        if self._surfaces.get(surface_id) is None:
            if stored.impression_id == record.impression_id:
                self._log.delete(record.impression_id)
            if self._logger:
                self._logger.info(
                    "impression_dropped",
                    extra={"surface_id": surface_id, "visitor_id": visitor_id, "action": action.value},
                )
            return None

        if self._logger:
            event = "impression_recorded" if stored.impression_id == record.impression_id else "impression_replayed"
            self._logger.info(
                event,
                extra={
                    "impression_id": stored.impression_id,
                    "surface_id": surface_id,
                    "visitor_id": visitor_id,
                    "action": action.value,
                    "stored_action": stored.action.value,
                },
            )
        return stored.impression_id

    def stats(self, surface_id: str, workspace_id: str | None = None) -> SurfaceStats:
        """Fold the surface's full impression log into delivery stats."""
        if workspace_id is not None:
            surface = self._surfaces.get(surface_id)
            if surface is None or surface.workspace_id != workspace_id:
                raise SurfaceNotFoundError(f"Surface {surface_id!r} not found")
        return fold_stats(self._log.list_for_surface(surface_id))
