"""SQLite adapters: persistence round trips and the terminal-impression guard."""

import threading

import pytest

from surfacestream.domain.impressions import ImpressionAction, ImpressionRecord
from surfacestream.domain.surfaces import DeliverableSurface, Segment, SurfaceKind, SurfaceStatus
from surfacestream.domain.visitors import VisitorRecord
from surfacestream.wiring import sqlite_stores


@pytest.fixture
def stores(tmp_path):
    return sqlite_stores(str(tmp_path / "nested" / "surfacestream.db"))


def _surface(surface_id: str, workspace_id: str = "ws-1", **fields) -> DeliverableSurface:
    fields.setdefault("kind", SurfaceKind.message)
    return DeliverableSurface(surface_id=surface_id, workspace_id=workspace_id, name=surface_id, **fields)


def _impression(impression_id: str, action: str = "completed") -> ImpressionRecord:
    return ImpressionRecord(
        impression_id=impression_id, surface_id="s-1", visitor_id="v-1", action=ImpressionAction(action)
    )


class TestSurfaceStore:
    def test_round_trip_keeps_nested_fields(self, stores):
        surface = _surface(
            "s-1",
            audience_rules={"type": "group", "operator": "and", "conditions": []},
            schedule={"startDate": "2026-01-01T00:00:00Z"},
            triggers={"type": "page_visit", "pageUrl": "/pricing", "pageUrlMatch": "contains"},
            content={"body": "Hi"},
            priority=3,
        )
        stores.surfaces.insert(surface)
        loaded = stores.surfaces.get("s-1")
        assert loaded == surface

    def test_list_keeps_catalog_order_and_filters(self, stores):
        for surface_id in ("c", "a", "b"):
            stores.surfaces.insert(_surface(surface_id))
        stores.surfaces.insert(_surface("other", workspace_id="ws-2"))
        stores.surfaces.insert(_surface("t", kind=SurfaceKind.tour, status=SurfaceStatus.active))
        assert [s.surface_id for s in stores.surfaces.list_by_workspace("ws-1")] == ["c", "a", "b", "t"]
        assert [s.surface_id for s in stores.surfaces.list_by_workspace("ws-1", status=SurfaceStatus.active)] == ["t"]
        assert [s.surface_id for s in stores.surfaces.list_by_workspace("ws-1", kind=SurfaceKind.tour)] == ["t"]

    def test_save_updates_status_column(self, stores):
        stores.surfaces.insert(_surface("s-1"))
        stores.surfaces.save(stores.surfaces.get("s-1").model_copy(update={"status": SurfaceStatus.active}))
        assert [s.surface_id for s in stores.surfaces.list_by_workspace("ws-1", status=SurfaceStatus.active)] == ["s-1"]

    def test_delete(self, stores):
        stores.surfaces.insert(_surface("s-1"))
        assert stores.surfaces.delete("s-1") is True
        assert stores.surfaces.delete("s-1") is False
        assert stores.surfaces.get("s-1") is None


class TestVisitorAndSegmentStores:
    def test_visitor_upsert_replaces(self, stores):
        stores.visitors.upsert(VisitorRecord(visitor_id="v-1", workspace_id="ws-1", email="a@x.io"))
        stores.visitors.upsert(
            VisitorRecord(visitor_id="v-1", workspace_id="ws-1", customAttributes={"plan": "pro", "seats": 3})
        )
        visitor = stores.visitors.get("v-1")
        assert visitor.email is None
        assert visitor.custom_attributes == {"plan": "pro", "seats": 3}
        assert len(stores.visitors.list_by_workspace("ws-1")) == 1

    def test_segment_round_trip(self, stores):
        segment = Segment(segment_id="seg-1", workspace_id="ws-1", name="Pro", audience_rules={"type": "group", "operator": "or", "conditions": []})
        stores.segments.insert(segment)
        assert stores.segments.get("seg-1") == segment
        assert stores.segments.list_by_workspace("ws-2") == []
        assert stores.segments.delete("seg-1") is True


class TestImpressionLog:
    def test_terminal_insert_then_replay(self, stores):
        first = stores.impressions.insert_terminal_if_absent(_impression("imp-1"))
        second = stores.impressions.insert_terminal_if_absent(_impression("imp-2", "dismissed"))
        assert first.impression_id == "imp-1"
        assert second.impression_id == "imp-1"
        assert second.action is ImpressionAction.completed
        assert len(stores.impressions.list_for_surface("s-1")) == 1

    def test_concurrent_terminal_writes_have_one_winner(self, stores):
        results: list[str] = []
        errors: list[BaseException] = []
        lock = threading.Lock()

        def worker(index: int) -> None:
            try:
                stored = stores.impressions.insert_terminal_if_absent(_impression(f"imp-{index}"))
            except BaseException as exc:  # surfaced by the assertion below
                with lock:
                    errors.append(exc)
                return
            with lock:
                results.append(stored.impression_id)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(set(results)) == 1
        terminal = [r for r in stores.impressions.list_for_surface("s-1") if r.is_terminal]
        assert len(terminal) == 1
        assert terminal[0].impression_id == results[0]

    def test_non_terminal_rows_are_unrestricted(self, stores):
        stores.impressions.insert(_impression("imp-1", "shown"))
        stores.impressions.insert(_impression("imp-2", "shown"))
        stores.impressions.insert_terminal_if_absent(_impression("imp-3"))
        assert [r.action.value for r in stores.impressions.list_for_visitor("v-1")] == ["shown", "shown", "completed"]

    def test_delete_for_surface(self, stores):
        stores.impressions.insert(_impression("imp-1", "shown"))
        stores.impressions.insert_terminal_if_absent(_impression("imp-2"))
        assert stores.impressions.delete_for_surface("s-1") == 2
        assert stores.impressions.find_terminal("s-1", "v-1") is None

    def test_delete_single_impression(self, stores):
        stores.impressions.insert(_impression("imp-1", "shown"))
        stores.impressions.insert_terminal_if_absent(_impression("imp-2"))
        assert stores.impressions.delete("imp-2") is True
        assert stores.impressions.delete("imp-2") is False
        assert stores.impressions.find_terminal("s-1", "v-1") is None
        assert [r.impression_id for r in stores.impressions.list_for_surface("s-1")] == ["imp-1"]
