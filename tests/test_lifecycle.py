"""Lifecycle state machine and AuthoringService tests."""

import pytest

from surfacestream.domain.errors import (
    InvalidTransitionError,
    RuleValidationError,
    SegmentNotFoundError,
    SurfaceInUseError,
    SurfaceNotFoundError,
)
from surfacestream.domain.impressions import ImpressionAction, ImpressionRecord
from surfacestream.domain.lifecycle import LifecycleStateMachine
from surfacestream.domain.surfaces import DeliverableSurface, SurfaceKind, SurfaceStatus
from surfacestream.services.authoring_service import AuthoringService
from surfacestream.wiring import memory_stores

WS = "ws-1"


def _make_surface(kind: SurfaceKind = SurfaceKind.message, status: SurfaceStatus = SurfaceStatus.draft, **fields):
    return DeliverableSurface(
        surface_id="s-1", workspace_id=WS, kind=kind, name="Welcome", status=status, **fields
    )


@pytest.fixture
def stores():
    return memory_stores()


@pytest.fixture
def authoring(stores):
    return AuthoringService(
        surface_store=stores.surfaces,
        impression_log=stores.impressions,
        segment_store=stores.segments,
    )


class TestStateMachine:
    machine = LifecycleStateMachine()

    def test_pause_on_draft_raises(self):
        with pytest.raises(InvalidTransitionError):
            self.machine.target_for(_make_surface(), "pause")

    def test_activate_on_active_raises(self):
        with pytest.raises(InvalidTransitionError, match="already active"):
            self.machine.target_for(_make_surface(status=SurfaceStatus.active), "activate")

    def test_archived_is_terminal(self):
        archived = _make_surface(status=SurfaceStatus.archived)
        for action in ("activate", "pause", "archive"):
            with pytest.raises(InvalidTransitionError):
                self.machine.target_for(archived, action)

    def test_tours_cannot_be_archived(self):
        with pytest.raises(InvalidTransitionError):
            self.machine.target_for(_make_surface(kind=SurfaceKind.tour, status=SurfaceStatus.active), "archive")

    @pytest.mark.parametrize("status", [SurfaceStatus.draft, SurfaceStatus.active, SurfaceStatus.paused])
    def test_archive_legal_for_other_kinds(self, status):
        surface = _make_surface(kind=SurfaceKind.survey, status=status)
        assert self.machine.target_for(surface, "archive") is SurfaceStatus.archived

    def test_survey_needs_a_question(self):
        with pytest.raises(InvalidTransitionError, match="question"):
            self.machine.target_for(_make_surface(kind=SurfaceKind.survey), "activate")

    def test_carousel_screens_need_title_or_body(self):
        empty = _make_surface(kind=SurfaceKind.carousel, content={"screens": [{"title": "One"}, {"image": "x.png"}]})
        with pytest.raises(InvalidTransitionError, match="Screen 2"):
            self.machine.target_for(empty, "activate")
        ok = _make_surface(kind=SurfaceKind.carousel, content={"screens": [{"title": "One"}, {"body": "Two"}]})
        assert self.machine.target_for(ok, "activate") is SurfaceStatus.active

    def test_unknown_action(self):
        with pytest.raises(InvalidTransitionError):
            self.machine.target_for(_make_surface(), "publish")


class TestAuthoringLifecycle:
    def test_create_is_always_draft(self, authoring):
        surface = authoring.create(WS, "message", "Hello")
        assert surface.status is SurfaceStatus.draft
        assert authoring.get(WS, surface.surface_id).name == "Hello"

    def test_create_rejects_malformed_rule(self, authoring):
        with pytest.raises(RuleValidationError):
            authoring.create(WS, "message", "Bad", audience_rules={"type": "condition"})

    def test_create_rejects_unknown_segment(self, authoring):
        with pytest.raises(SegmentNotFoundError):
            authoring.create(WS, "message", "Seg", audience_rules={"segmentId": "missing"})

    def test_activate_pause_activate_round_trip(self, authoring):
        surface = authoring.create(WS, "message", "Hello")
        authoring.activate(WS, surface.surface_id)
        authoring.pause(WS, surface.surface_id)
        final = authoring.activate(WS, surface.surface_id)
        assert final.status is SurfaceStatus.active
        assert authoring.get(WS, surface.surface_id).status is SurfaceStatus.active

    def test_pause_draft_raises(self, authoring):
        surface = authoring.create(WS, "message", "Hello")
        with pytest.raises(InvalidTransitionError):
            authoring.pause(WS, surface.surface_id)
        assert authoring.get(WS, surface.surface_id).status is SurfaceStatus.draft

    def test_other_workspace_is_not_found(self, authoring):
        surface = authoring.create(WS, "message", "Hello")
        with pytest.raises(SurfaceNotFoundError):
            authoring.activate("ws-2", surface.surface_id)

    def test_duplicate(self, authoring):
        surface = authoring.create(
            WS,
            "survey",
            "NPS",
            schedule={"startDate": "2026-01-01T00:00:00Z"},
            content={"questions": [{"prompt": "?"}]},
        )
        authoring.activate(WS, surface.surface_id)
        copy = authoring.duplicate(WS, surface.surface_id)
        assert copy.surface_id != surface.surface_id
        assert copy.name == "NPS (Copy)"
        assert copy.status is SurfaceStatus.draft
        assert copy.schedule is None
        assert copy.content == surface.content
        assert [s.surface_id for s in authoring.list(WS)] == [surface.surface_id, copy.surface_id]

    def test_update_partial(self, authoring):
        surface = authoring.create(WS, "message", "Hello", priority=1)
        updated = authoring.update(WS, surface.surface_id, {"name": "Hi", "priority": 7})
        assert updated.name == "Hi"
        assert updated.priority == 7
        assert updated.kind is SurfaceKind.message

    def test_update_cannot_change_status(self, authoring):
        surface = authoring.create(WS, "message", "Hello")
        with pytest.raises(ValueError):
            authoring.update(WS, surface.surface_id, {"status": "active"})

    def test_list_filters(self, authoring):
        a = authoring.create(WS, "message", "A")
        authoring.create(WS, "tour", "B")
        authoring.activate(WS, a.surface_id)
        assert [s.name for s in authoring.list(WS, status=SurfaceStatus.active)] == ["A"]
        assert [s.name for s in authoring.list(WS, kind=SurfaceKind.tour)] == ["B"]


class TestRemove:
    def test_remove_active_rejected(self, authoring):
        surface = authoring.create(WS, "message", "Hello")
        authoring.activate(WS, surface.surface_id)
        with pytest.raises(InvalidTransitionError):
            authoring.remove(WS, surface.surface_id)

    def test_remove_deletes_impressions(self, authoring, stores):
        surface = authoring.create(WS, "message", "Hello")
        stores.impressions.insert(
            ImpressionRecord(
                impression_id="imp-1", surface_id=surface.surface_id, visitor_id="v-1", action=ImpressionAction.shown
            )
        )
        assert authoring.remove(WS, surface.surface_id) == 1
        assert stores.surfaces.get(surface.surface_id) is None
        assert stores.impressions.list_for_surface(surface.surface_id) == []

    def test_remove_rejected_while_linked(self, authoring):
        tour = authoring.create(WS, "tour", "Product tour")
        authoring.create(
            WS,
            "message",
            "Announcement",
            content={"buttons": [{"text": "Start", "action": "tour", "tourId": tour.surface_id}]},
        )
        with pytest.raises(SurfaceInUseError):
            authoring.remove(WS, tour.surface_id)
