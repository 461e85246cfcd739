"""EligibilityService tests: stage order, suppression, priority and isolation."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from surfacestream.domain.errors import VisitorNotFoundError
from surfacestream.domain.impressions import ImpressionAction, ImpressionRecord
from surfacestream.domain.surfaces import DeliverableSurface, Segment, SurfaceKind, SurfaceStatus
from surfacestream.domain.visitors import VisitorRecord
from surfacestream.models.mcp_requests import EligibilityContext, EligibilityRequest
from surfacestream.modules.suppression.engine import SuppressionEngine
from surfacestream.services.eligibility_service import EligibilityService
from surfacestream.wiring import memory_stores

NOW = datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)
WS = "ws-1"


def _make_surface(surface_id: str, **fields) -> DeliverableSurface:
    defaults = {
        "surface_id": surface_id,
        "workspace_id": WS,
        "kind": SurfaceKind.message,
        "name": f"Surface {surface_id}",
        "status": SurfaceStatus.active,
    }
    defaults.update(fields)
    return DeliverableSurface(**defaults)


def _cond(source: str, key: str, operator: str, value=None) -> dict:
    raw = {"type": "condition", "property": {"source": source, "key": key}, "operator": operator}
    if value is not None:
        raw["value"] = value
    return raw


def _impression(surface_id: str, visitor_id: str, action: str, session_id: str | None = None) -> ImpressionRecord:
    return ImpressionRecord(
        impression_id=f"imp-{surface_id}-{visitor_id}-{action}-{session_id}",
        surface_id=surface_id,
        visitor_id=visitor_id,
        session_id=session_id,
        action=ImpressionAction(action),
    )


class _Harness:
    def __init__(self, until_completed_respects_session: bool = True, logger=None):
        self.stores = memory_stores()
        self.service = EligibilityService(
            surface_store=self.stores.surfaces,
            visitor_store=self.stores.visitors,
            impression_log=self.stores.impressions,
            segment_store=self.stores.segments,
            suppression_engine=SuppressionEngine(until_completed_respects_session),
            logger=logger,
        )
        self.add_visitor("v-1", email="alice@acme.com")

    def add_visitor(self, visitor_id: str, workspace_id: str = WS, **fields) -> None:
        self.stores.visitors.upsert(VisitorRecord(visitor_id=visitor_id, workspace_id=workspace_id, **fields))

    def add(self, *surfaces: DeliverableSurface) -> None:
        for surface in surfaces:
            self.stores.surfaces.insert(surface)

    def eligible_ids(self, visitor_id: str = "v-1", **context) -> list[str]:
        ctx = EligibilityContext(now=NOW, **context)
        return [s.surface_id for s in self.service.get_eligible(WS, visitor_id, ctx)]


@pytest.fixture
def harness():
    return _Harness()


class TestStatusAndSchedule:
    @pytest.mark.parametrize("status", [SurfaceStatus.draft, SurfaceStatus.paused, SurfaceStatus.archived])
    def test_only_active_surfaces(self, harness, status):
        harness.add(_make_surface("s-1", status=status), _make_surface("s-2"))
        assert harness.eligible_ids() == ["s-2"]

    def test_schedule_bounds_inclusive(self, harness):
        harness.add(_make_surface("s-1", schedule={"startDate": NOW, "endDate": NOW}))
        assert harness.eligible_ids() == ["s-1"]

    def test_schedule_outside_window(self, harness):
        harness.add(
            _make_surface("future", schedule={"startDate": NOW + timedelta(seconds=1)}),
            _make_surface("past", schedule={"endDate": NOW - timedelta(seconds=1)}),
        )
        assert harness.eligible_ids() == []

    def test_explain_reports_first_failing_stage(self, harness):
        harness.add(
            _make_surface("draft", status=SurfaceStatus.draft),
            _make_surface("closed", schedule={"endDate": NOW - timedelta(days=1)}),
            _make_surface("audience", audience_rules=_cond("custom", "plan", "equals", "pro")),
            _make_surface("trigger", triggers={"type": "page_visit", "pageUrl": "/pricing"}),
            _make_surface("ok"),
        )
        decisions = harness.service.explain(WS, "v-1", EligibilityContext(now=NOW))
        reasons = {d.surface_id: d.reason for d in decisions}
        assert reasons == {
            "draft": "denied: inactive",
            "closed": "denied: schedule_closed",
            "audience": "denied: audience",
            "trigger": "denied: trigger",
            "ok": "allowed",
        }


class TestSuppression:
    def test_once_surface_hidden_after_shown(self, harness):
        harness.add_visitor("v-2")
        harness.add(_make_surface("s-1", frequency="once"))
        harness.stores.impressions.insert(_impression("s-1", "v-1", "shown"))
        assert harness.eligible_ids("v-1") == []
        assert harness.eligible_ids("v-2") == ["s-1"]

    def test_terminal_settles_every_frequency(self, harness):
        harness.add(
            _make_surface("a", frequency="once_per_session"),
            _make_surface("b", frequency="until_completed"),
        )
        harness.stores.impressions.insert(_impression("a", "v-1", "dismissed"))
        harness.stores.impressions.insert(_impression("b", "v-1", "completed"))
        assert harness.eligible_ids(session_id="new-session") == []

    def test_once_per_session(self, harness):
        harness.add(_make_surface("s-1", frequency="once_per_session"))
        harness.stores.impressions.insert(_impression("s-1", "v-1", "shown", session_id="sess-1"))
        assert harness.eligible_ids(session_id="sess-1") == []
        assert harness.eligible_ids(session_id="sess-2") == ["s-1"]

    def test_until_completed_respects_session_by_default(self, harness):
        harness.add(_make_surface("s-1", frequency="until_completed"))
        harness.stores.impressions.insert(_impression("s-1", "v-1", "shown", session_id="sess-1"))
        assert harness.eligible_ids(session_id="sess-1") == []
        assert harness.eligible_ids(session_id="sess-2") == ["s-1"]

    def test_until_completed_can_ignore_session(self):
        harness = _Harness(until_completed_respects_session=False)
        harness.add(_make_surface("s-1", frequency="until_completed"))
        harness.stores.impressions.insert(_impression("s-1", "v-1", "shown", session_id="sess-1"))
        assert harness.eligible_ids(session_id="sess-1") == ["s-1"]

    def test_clicks_do_not_suppress(self, harness):
        harness.add(_make_surface("s-1", frequency="once"))
        harness.stores.impressions.insert(_impression("s-1", "v-1", "clicked"))
        assert harness.eligible_ids() == ["s-1"]


class TestAudienceAndSegments:
    def test_scenario_email_set_and_plan_absent(self, harness):
        harness.add(
            _make_surface("email", audience_rules=_cond("system", "email", "is_set")),
            _make_surface("plan", audience_rules=_cond("custom", "plan", "equals", "pro")),
        )
        assert harness.eligible_ids() == ["email"]

    def test_segment_reference_resolved(self, harness):
        harness.stores.segments.insert(
            Segment(segment_id="seg-1", workspace_id=WS, name="Acme", audience_rules=_cond("system", "email", "ends_with", "@acme.com"))
        )
        harness.add(_make_surface("s-1", audience_rules={"segmentId": "seg-1"}))
        assert harness.eligible_ids() == ["s-1"]

    def test_missing_segment_denies_only_that_surface(self, harness):
        harness.add(_make_surface("s-1", audience_rules={"segmentId": "gone"}), _make_surface("s-2"))
        assert harness.eligible_ids() == ["s-2"]
        reasons = {d.surface_id: d.reason for d in harness.service.explain(WS, "v-1", EligibilityContext(now=NOW))}
        assert reasons["s-1"] == "denied: segment_missing"

    def test_segment_from_other_workspace_is_missing(self, harness):
        harness.stores.segments.insert(
            Segment(segment_id="seg-x", workspace_id="ws-other", name="Other", audience_rules={"type": "group", "operator": "and", "conditions": []})
        )
        harness.add(_make_surface("s-1", audience_rules={"segmentId": "seg-x"}))
        assert harness.eligible_ids() == []

    def test_malformed_rule_isolated_and_logged(self, caplog):
        harness = _Harness(logger=logging.getLogger("surfacestream.test"))
        harness.add(
            _make_surface("broken", audience_rules={"type": "condition", "operator": "equals"}),
            _make_surface("fine"),
        )
        with caplog.at_level(logging.WARNING, logger="surfacestream.test"):
            assert harness.eligible_ids() == ["fine"]
        assert any(r.getMessage() == "surface_denied_invalid_rule" for r in caplog.records)


class TestOrdering:
    def test_priority_descending_then_catalog_order(self, harness):
        harness.add(
            _make_surface("a"),
            _make_surface("b", priority=5),
            _make_surface("c", priority=-1),
            _make_surface("d"),
            _make_surface("e", priority=5),
        )
        assert harness.eligible_ids() == ["b", "e", "a", "d", "c"]

    def test_by_kind_lists_are_independent(self, harness):
        harness.add(
            _make_surface("tour", kind=SurfaceKind.tour),
            _make_surface("msg-low", priority=1),
            _make_surface("msg-high", priority=9),
        )
        grouped = harness.service.get_eligible_by_kind(WS, "v-1", EligibilityContext(now=NOW))
        assert [s.surface_id for s in grouped[SurfaceKind.message]] == ["msg-high", "msg-low"]
        assert [s.surface_id for s in grouped[SurfaceKind.tour]] == ["tour"]
        assert grouped[SurfaceKind.survey] == []

    def test_kind_filter(self, harness):
        harness.add(_make_surface("tour", kind=SurfaceKind.tour), _make_surface("msg"))
        surfaces = harness.service.get_eligible(WS, "v-1", EligibilityContext(now=NOW), kind=SurfaceKind.tour)
        assert [s.surface_id for s in surfaces] == ["tour"]


class TestVisitorScoping:
    def test_unknown_visitor_raises(self, harness):
        with pytest.raises(VisitorNotFoundError):
            harness.service.get_eligible(WS, "nobody")

    def test_visitor_from_other_workspace_raises(self, harness):
        harness.add_visitor("v-other", workspace_id="ws-2")
        with pytest.raises(VisitorNotFoundError):
            harness.service.get_eligible(WS, "v-other")


class TestEvaluate:
    def test_response_and_audit_trace(self, harness):
        harness.add(_make_surface("s-1", content={"body": "hi"}), _make_surface("s-2", status=SurfaceStatus.paused))
        request = EligibilityRequest(workspace_id=WS, visitor_id="v-1", context=EligibilityContext(now=NOW))
        response, trace = harness.service.evaluate(request)
        assert [s.surface_id for s in response.surfaces] == ["s-1"]
        assert response.surfaces[0].content == {"body": "hi"}
        assert trace["request_id"] == response.request_id
        assert [d["surface_id"] for d in trace["decisions"]] == ["s-1"]


def test_reason_strings_are_distinct_and_prefixed():
    from surfacestream.domain import delivery_semantics

    reasons = {name: value for name, value in vars(delivery_semantics).items() if name.isupper()}
    assert reasons.pop("REASON_ALLOWED") == "allowed"
    assert all(name.startswith("DENIED_") for name in reasons)
    assert all(value.startswith("denied: ") for value in reasons.values())
    assert len(set(reasons.values())) == len(reasons)
