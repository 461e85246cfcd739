"""EligibilityService: which surfaces a visitor may see right now."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..domain.audience import AudienceCondition, AudienceGroup, SegmentReference, parse_audience_rule, parse_targeting
from ..domain.delivery_semantics import DENIED_INVALID_RULE, DENIED_SEGMENT_MISSING, REASON_ALLOWED
from ..domain.eligibility_policy import EligibilityPolicy
from ..domain.errors import SegmentNotFoundError, VisitorNotFoundError
from ..domain.surfaces import DeliverableSurface, Segment, SurfaceKind, SurfaceStatus
from ..domain.visitors import VisitorAttributes
from ..models.mcp_requests import EligibilityContext, EligibilityRequest
from ..models.mcp_responses import EligibilityResponse, SurfaceDecision, SurfaceSummary
from ..modules.suppression.engine import NEVER_SEEN, SuppressionEngine
from ..ports.id_gen import IdProvider, UuidIdProvider
from ..ports.impression_log import ImpressionLogPort
from ..ports.segment_store import SegmentStorePort
from ..ports.surface_store import SurfaceStorePort
from ..ports.visitor_store import VisitorStorePort


def order_by_priority(surfaces: list[DeliverableSurface]) -> list[DeliverableSurface]:
    """Descending priority (missing = 0); ties keep catalog order."""
    return sorted(surfaces, key=lambda surface: -(surface.priority or 0))


class _SegmentRuleLookup:
    """Resolve a surface's audience rule, following segment references.

    Segments are fetched at most once per eligibility call.
    """

    def __init__(self, segment_store: SegmentStorePort, workspace_id: str) -> None:
        self._segments = segment_store
        self._workspace_id = workspace_id
        self._cache: dict[str, Segment | None] = {}

    def _segment(self, segment_id: str) -> Segment | None:
        if segment_id not in self._cache:
            segment = self._segments.get(segment_id)
            if segment is not None and segment.workspace_id != self._workspace_id:
                segment = None
            self._cache[segment_id] = segment
        return self._cache[segment_id]

    def __call__(self, surface: DeliverableSurface) -> AudienceCondition | AudienceGroup | None:
        target = parse_targeting(surface.audience_rules)
        if not isinstance(target, SegmentReference):
            return target
        segment = self._segment(target.segment_id)
        if segment is None:
            raise SegmentNotFoundError(target.segment_id)
        return parse_audience_rule(segment.audience_rules)


class EligibilityService:
    """Run the eligibility pipeline over a workspace's catalog for one visitor."""

    def __init__(
        self,
        surface_store: SurfaceStorePort,
        visitor_store: VisitorStorePort,
        impression_log: ImpressionLogPort,
        segment_store: SegmentStorePort,
        policy: EligibilityPolicy | None = None,
        suppression_engine: SuppressionEngine | None = None,
        request_id_provider: IdProvider | None = None,
        logger: Any = None,
    ) -> None:
        self._surfaces = surface_store
        self._visitors = visitor_store
        self._impressions = impression_log
        self._segments = segment_store
        self._policy = policy or EligibilityPolicy()
        self._suppression = suppression_engine or SuppressionEngine()
        self._req_id = request_id_provider or UuidIdProvider()
        self._logger = logger

    # ------------------------------------------------------------------
    # Core pipeline
    # ------------------------------------------------------------------

    def _load_visitor(self, workspace_id: str, visitor_id: str, now: datetime) -> VisitorAttributes:
        record = self._visitors.get(visitor_id)
        if record is None or record.workspace_id != workspace_id:
            raise VisitorNotFoundError(f"Visitor {visitor_id!r} not found in workspace {workspace_id!r}")
        return VisitorAttributes.from_record(record, now=now)

    def _decide(
        self,
        workspace_id: str,
        visitor_id: str,
        context: EligibilityContext,
        kind: SurfaceKind | None,
        active_only: bool,
    ) -> list[tuple[DeliverableSurface, str]]:
        now = context.now or datetime.now(timezone.utc)
        attributes = self._load_visitor(workspace_id, visitor_id, now)
        states = self._suppression.build(self._impressions.list_for_visitor(visitor_id), context.session_id)
        surfaces = self._surfaces.list_by_workspace(
            workspace_id,
            status=SurfaceStatus.active if active_only else None,
            kind=kind,
        )
        trigger_context = context.to_trigger_context()
        rule_lookup = _SegmentRuleLookup(self._segments, workspace_id)

        decisions: list[tuple[DeliverableSurface, str]] = []
        for surface in surfaces:
            suppression = self._suppression.evaluate(
                states.get(surface.surface_id, NEVER_SEEN), surface.frequency
            )
            reason = self._policy.reason(
                surface,
                attributes=attributes,
                suppression=suppression,
                trigger_context=trigger_context,
                rule_lookup=rule_lookup,
                now=now,
            )
            if reason in (DENIED_INVALID_RULE, DENIED_SEGMENT_MISSING) and self._logger:
                self._logger.warning(
                    "surface_denied_invalid_rule",
                    extra={
                        "surface_id": surface.surface_id,
                        "workspace_id": workspace_id,
                        "reason": reason,
                    },
                )
            decisions.append((surface, reason))
        return decisions

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def get_eligible(
        self,
        workspace_id: str,
        visitor_id: str,
        context: EligibilityContext | None = None,
        kind: SurfaceKind | None = None,
    ) -> list[DeliverableSurface]:
        """Return the surfaces ``visitor_id`` may see, highest priority first."""
        context = context or EligibilityContext()
        decisions = self._decide(workspace_id, visitor_id, context, kind, active_only=True)
        return order_by_priority([surface for surface, reason in decisions if reason == REASON_ALLOWED])

    def get_eligible_by_kind(
        self,
        workspace_id: str,
        visitor_id: str,
        context: EligibilityContext | None = None,
    ) -> dict[SurfaceKind, list[DeliverableSurface]]:
        """Eligible surfaces grouped per kind; each list is ordered independently."""
        eligible = self.get_eligible(workspace_id, visitor_id, context)
        return {kind: [s for s in eligible if s.kind is kind] for kind in SurfaceKind}

    def explain(
        self,
        workspace_id: str,
        visitor_id: str,
        context: EligibilityContext | None = None,
        kind: SurfaceKind | None = None,
    ) -> list[SurfaceDecision]:
        """Per-surface decision reasons for every surface in the workspace."""
        context = context or EligibilityContext()
        return [
            SurfaceDecision(
                surface_id=surface.surface_id,
                kind=surface.kind.value,
                name=surface.name,
                reason=reason,
            )
            for surface, reason in self._decide(workspace_id, visitor_id, context, kind, active_only=False)
        ]

    def evaluate(self, request: EligibilityRequest) -> tuple[EligibilityResponse, dict[str, Any]]:
        """Eligibility for an MCP request, plus an audit trace of every decision."""
        request_id = self._req_id.new_id()
        if self._logger:
            self._logger.info(
                "eligibility_start",
                extra={
                    "trace_id": request_id,
                    "workspace_id": request.workspace_id,
                    "visitor_id": request.visitor_id,
                    "kind": request.kind.value if request.kind else None,
                },
            )
        decisions = self._decide(
            request.workspace_id, request.visitor_id, request.context, request.kind, active_only=True
        )
        eligible = order_by_priority([surface for surface, reason in decisions if reason == REASON_ALLOWED])
        response = EligibilityResponse(
            surfaces=[SurfaceSummary.from_surface(surface) for surface in eligible],
            request_id=request_id,
            visitor_id=request.visitor_id,
        )
        audit_trace: dict[str, Any] = {
            "request_id": request_id,
            "workspace_id": request.workspace_id,
            "visitor_id": request.visitor_id,
            "session_id": request.context.session_id,
            "decisions": [
                {"surface_id": surface.surface_id, "kind": surface.kind.value, "reason": reason}
                for surface, reason in decisions
            ],
        }
        if self._logger:
            self._logger.info(
                "eligibility_done",
                extra={
                    "trace_id": request_id,
                    "visitor_id": request.visitor_id,
                    "eligible_count": len(eligible),
                    "evaluated_count": len(decisions),
                },
            )
        return response, audit_trace
