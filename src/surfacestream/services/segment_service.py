"""SegmentService: saved audiences and population previews."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..domain.audience import parse_audience_rule, segment_id_of
from ..domain.errors import SegmentNotFoundError, SurfaceInUseError
from ..domain.rule_evaluator import RuleEvaluator
from ..domain.surfaces import DeliverableSurface, Segment
from ..domain.visitors import VisitorAttributes
from ..models.mcp_responses import SegmentPreview
from ..ports.id_gen import IdProvider, UuidIdProvider
from ..ports.segment_store import SegmentStorePort
from ..ports.surface_store import SurfaceStorePort
from ..ports.visitor_store import VisitorStorePort


class SegmentService:
    """Manage segments and count how many visitors a rule would reach."""

    def __init__(
        self,
        segment_store: SegmentStorePort,
        surface_store: SurfaceStorePort,
        visitor_store: VisitorStorePort,
        evaluator: RuleEvaluator | None = None,
        id_provider: IdProvider | None = None,
        usage_limit: int = 50,
    ) -> None:
        self._segments = segment_store
        self._surfaces = surface_store
        self._visitors = visitor_store
        self._evaluator = evaluator or RuleEvaluator()
        self._ids = id_provider or UuidIdProvider()
        self._usage_limit = usage_limit

    def preview(self, workspace_id: str, rule: Any, now: datetime | None = None) -> SegmentPreview:
        """Evaluate ``rule`` against every visitor in the workspace.

        Raises RuleValidationError if the rule is malformed. No rule matches
        everyone.
        """
        parsed = parse_audience_rule(rule)
        now = now or datetime.now(timezone.utc)
        visitors = self._visitors.list_by_workspace(workspace_id)
        matching = sum(
            1
            for visitor in visitors
            if self._evaluator.evaluate(parsed, VisitorAttributes.from_record(visitor, now=now))
        )
        return SegmentPreview(total=len(visitors), matching=matching)

    def create(self, workspace_id: str, name: str, audience_rules: dict) -> Segment:
        parse_audience_rule(audience_rules)
        segment = Segment(
            segment_id=self._ids.new_id(),
            workspace_id=workspace_id,
            name=name,
            audience_rules=audience_rules,
        )
        self._segments.insert(segment)
        return segment

    def get(self, workspace_id: str, segment_id: str) -> Segment:
        segment = self._segments.get(segment_id)
        if segment is None or segment.workspace_id != workspace_id:
            raise SegmentNotFoundError(f"Segment {segment_id!r} not found")
        return segment

    def list(self, workspace_id: str) -> list[Segment]:
        return self._segments.list_by_workspace(workspace_id)

    def usage(self, workspace_id: str, segment_id: str, limit: int | None = None) -> list[DeliverableSurface]:
        """Surfaces whose targeting references ``segment_id``, in catalog order."""
        self.get(workspace_id, segment_id)
        limit = limit or self._usage_limit
        using = [
            surface
            for surface in self._surfaces.list_by_workspace(workspace_id)
            if segment_id_of(surface.audience_rules) == segment_id
        ]
        return using[:limit]

    def remove(self, workspace_id: str, segment_id: str) -> None:
        if self.usage(workspace_id, segment_id, limit=1):
            raise SurfaceInUseError("Cannot delete segment that is in use")
        self._segments.delete(segment_id)
