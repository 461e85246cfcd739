"""Tool registry for MCP servers.

Strict JSON schemas via Pydantic; request shaping (limits);
response allowlists (field-level).
"""

from __future__ import annotations

import json
import time
from typing import Any, Callable

from pydantic import ValidationError

from .observability import log_tool_invocation, metrics_snapshot, record_decisions

from surfacestream.config.runtime import get_settings
from surfacestream.domain.audience import ConditionOperator
from surfacestream.domain.errors import DeliveryError
from surfacestream.domain.impressions import ImpressionAction
from surfacestream.domain.properties import SYSTEM_PROPERTY_KEYS
from surfacestream.domain.surfaces import DeliverableSurface, SurfaceKind, SurfaceStatus
from surfacestream.domain.visitors import VisitorRecord
from surfacestream.interface.validation import validate_audience_rule, validate_surface_definition
from surfacestream.models.mcp_requests import (
    EligibilityContext,
    EligibilityRequest,
    ImpressionRequest,
    SurfaceCreateRequest,
    SurfaceUpdateRequest,
)

# ---------------------------------------------------------------------------
# Response allowlists (field-level)
# ---------------------------------------------------------------------------
ALLOWED_SURFACE_SUMMARY_KEYS = frozenset({
    "surface_id",
    "kind",
    "name",
    "priority",
    "frequency",
    "triggers",
    "content",
})
ALLOWED_ELIGIBILITY_RESPONSE_KEYS = frozenset({"surfaces", "request_id", "visitor_id"})
ALLOWED_SURFACE_KEYS = frozenset({
    "surface_id",
    "workspace_id",
    "kind",
    "name",
    "status",
    "audience_rules",
    "schedule",
    "frequency",
    "triggers",
    "priority",
    "content",
    "created_at",
    "updated_at",
})
ALLOWED_SEGMENT_KEYS = frozenset({"segment_id", "workspace_id", "name", "audience_rules", "created_at"})

# Tool surface per server; the Engine never exposes authoring tools.
ENGINE_ALLOWED_TOOLS = frozenset({
    "surfaces_eligible",
    "surfaces_explain",
    "impressions_track",
    "rules_validate",
    "engine_capabilities",
})
STUDIO_ALLOWED_TOOLS = frozenset({
    "surfaces_create",
    "surfaces_update",
    "surfaces_get",
    "surfaces_list",
    "surfaces_activate",
    "surfaces_pause",
    "surfaces_archive",
    "surfaces_duplicate",
    "surfaces_remove",
    "surfaces_stats",
    "segments_create",
    "segments_remove",
    "segments_preview",
    "segments_usage",
    "visitors_upsert",
    "metrics_snapshot",
})


def _shape_eligibility_response(response: Any) -> dict:
    """Return only allowed fields for surfaces_eligible."""
    d = response.model_dump(mode="json") if hasattr(response, "model_dump") else response
    out: dict = {k: d[k] for k in ALLOWED_ELIGIBILITY_RESPONSE_KEYS if k in d}
    if "surfaces" in out:
        out["surfaces"] = [
            {k: s.get(k) for k in ALLOWED_SURFACE_SUMMARY_KEYS if k in s}
            for s in out["surfaces"]
        ]
    return out


def _shape_surface(surface: DeliverableSurface) -> dict:
    d = surface.model_dump(mode="json", exclude_none=True)
    return {k: d[k] for k in ALLOWED_SURFACE_KEYS if k in d}


def _shape_segment(segment: Any) -> dict:
    d = segment.model_dump(mode="json")
    return {k: d[k] for k in ALLOWED_SEGMENT_KEYS if k in d}


def _parse_json_arg(raw: str | None, name: str) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{name} is not valid JSON: {exc}") from exc


def _invoke(tool: str, handler: Callable[[], dict], trace_id: str | None = None) -> str:
    """Run ``handler`` and serialize its result; domain and input errors become {"error": ...}."""
    t0 = time.monotonic()
    try:
        result = handler()
    except (DeliveryError, ValidationError, ValueError, PermissionError) as exc:
        latency_ms = (time.monotonic() - t0) * 1000
        log_tool_invocation(tool, trace_id, latency_ms, error=type(exc).__name__)
        return json.dumps({"error": type(exc).__name__, "detail": str(exc)})
    latency_ms = (time.monotonic() - t0) * 1000
    log_tool_invocation(tool, result.get("request_id", trace_id), latency_ms)
    return json.dumps(result, indent=2, default=str)


def _get_eligibility_service():
    from ...wiring import build_eligibility_service
    return build_eligibility_service()


def _get_impression_service():
    from ...wiring import build_impression_service
    return build_impression_service()


def _get_authoring_service():
    from ...wiring import build_authoring_service
    return build_authoring_service()


def _get_segment_service():
    from ...wiring import build_segment_service
    return build_segment_service()


def _get_stores():
    from ...wiring import build_stores
    return build_stores()


def _summarize_reasons(decisions: list[dict]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for d in decisions:
        counts[d["reason"]] = counts.get(d["reason"], 0) + 1
    return counts


def register_engine_tools(mcp):
    """Register Engine (visitor-facing) tools with request shaping and response allowlist."""

    @mcp.tool()
    def surfaces_eligible(
        workspace_id: str,
        visitor_id: str,
        kind: str | None = None,
        current_url: str | None = None,
        time_on_page_seconds: float | None = None,
        scroll_percent: float | None = None,
        fired_event_name: str | None = None,
        fired_event_properties: dict[str, Any] | None = None,
        is_exit_intent: bool = False,
        session_id: str | None = None,
    ) -> str:
        """Return the surfaces a visitor may see right now, highest priority first.

        Args:
            workspace_id: Workspace to evaluate
            visitor_id: Visitor to evaluate for
            kind: Optional surface kind filter ('tour', 'survey', 'carousel', 'message')
            current_url: Page the visitor is on (page_visit triggers)
            time_on_page_seconds: Seconds on the page (time_on_page triggers)
            scroll_percent: Scroll depth 0-100 (scroll_depth triggers)
            fired_event_name: Event that just fired (event triggers)
            fired_event_properties: Properties of that event
            is_exit_intent: Client detected exit intent
            session_id: Client session, for once_per_session suppression

        Returns:
            JSON with surfaces (surface_id, kind, name, priority, frequency, triggers, content), request_id, visitor_id
        """

        def handler() -> dict:
            from .auth import require_engine_scope
            require_engine_scope()
            request = EligibilityRequest(
                workspace_id=workspace_id,
                visitor_id=visitor_id,
                kind=kind,
                context=EligibilityContext(
                    current_url=current_url,
                    time_on_page_seconds=time_on_page_seconds,
                    scroll_percent=scroll_percent,
                    fired_event_name=fired_event_name,
                    fired_event_properties=fired_event_properties,
                    is_exit_intent=is_exit_intent,
                    session_id=session_id,
                ),
            )
            response, audit_trace = _get_eligibility_service().evaluate(request)
            record_decisions(d["reason"] for d in audit_trace["decisions"])
            return _shape_eligibility_response(response)

        return _invoke("surfaces_eligible", handler)

    @mcp.tool()
    def surfaces_explain(
        workspace_id: str,
        visitor_id: str,
        kind: str | None = None,
        current_url: str | None = None,
        time_on_page_seconds: float | None = None,
        scroll_percent: float | None = None,
        fired_event_name: str | None = None,
        fired_event_properties: dict[str, Any] | None = None,
        is_exit_intent: bool = False,
        session_id: str | None = None,
    ) -> str:
        """Explain, per surface, why it is or is not eligible for this visitor.

        Returns:
            JSON with decisions (surface_id, kind, name, reason) and reason counts
        """

        def handler() -> dict:
            from .auth import require_engine_scope
            require_engine_scope()
            context = EligibilityContext(
                current_url=current_url,
                time_on_page_seconds=time_on_page_seconds,
                scroll_percent=scroll_percent,
                fired_event_name=fired_event_name,
                fired_event_properties=fired_event_properties,
                is_exit_intent=is_exit_intent,
                session_id=session_id,
            )
            decisions = [
                d.model_dump()
                for d in _get_eligibility_service().explain(
                    workspace_id, visitor_id, context, SurfaceKind(kind) if kind else None
                )
            ]
            return {
                "workspace_id": workspace_id,
                "visitor_id": visitor_id,
                "decisions": decisions,
                "analysis": {
                    "total": len(decisions),
                    "allowed": sum(1 for d in decisions if d["reason"] == "allowed"),
                    "reasons": _summarize_reasons(decisions),
                },
            }

        return _invoke("surfaces_explain", handler)

    @mcp.tool()
    def impressions_track(
        surface_id: str,
        visitor_id: str,
        action: str,
        session_id: str | None = None,
        screen_index: int | None = None,
        button_index: int | None = None,
    ) -> str:
        """Record a delivery event. completed/dismissed settle the surface for the visitor.

        Args:
            surface_id: Surface the event belongs to
            visitor_id: Visitor who produced it
            action: 'shown', 'clicked', 'completed', 'dismissed' or 'screen_progressed'
            session_id: Client session
            screen_index: Screen the event happened on (carousels, tours)
            button_index: Button that was clicked

        Returns:
            JSON with impression_id (null when the surface no longer exists)
        """

        def handler() -> dict:
            from .auth import require_engine_scope
            require_engine_scope()
            request = ImpressionRequest(
                surface_id=surface_id,
                visitor_id=visitor_id,
                action=action,
                session_id=session_id,
                screen_index=screen_index,
                button_index=button_index,
            )
            impression_id = _get_impression_service().track_impression(
                request.surface_id,
                request.visitor_id,
                request.action,
                session_id=request.session_id,
                screen_index=request.screen_index,
                button_index=request.button_index,
            )
            return {"impression_id": impression_id, "surface_id": surface_id}

        return _invoke("impressions_track", handler)

    @mcp.tool()
    def rules_validate(rule_json: str) -> str:
        """Validate an audience rule tree (or segment reference) without saving it.

        Args:
            rule_json: JSON object of the rule tree, or {"segmentId": "..."}

        Returns:
            JSON with valid, errors, warnings
        """

        def handler() -> dict:
            return validate_audience_rule(_parse_json_arg(rule_json, "rule_json")).to_dict()

        return _invoke("rules_validate", handler)

    @mcp.tool()
    def engine_capabilities() -> str:
        """Supported surface kinds, operators, property keys, triggers and impression actions."""
        return json.dumps({
            "surface_kinds": [k.value for k in SurfaceKind],
            "operators": [op.value for op in ConditionOperator],
            "property_sources": ["system", "custom", "event"],
            "system_properties": sorted(SYSTEM_PROPERTY_KEYS),
            "trigger_types": ["immediate", "page_visit", "time_on_page", "event", "scroll_depth", "exit_intent"],
            "frequencies": ["once", "once_per_session", "until_completed"],
            "impression_actions": [a.value for a in ImpressionAction],
            "until_completed_respects_session": get_settings().until_completed_respects_session,
        })


def register_studio_tools(mcp):
    """Register Studio (authoring) tools with response allowlists."""

    @mcp.tool()
    def surfaces_create(
        workspace_id: str,
        kind: str,
        name: str,
        audience_rules_json: str | None = None,
        schedule_json: str | None = None,
        frequency: str = "once",
        triggers_json: str | None = None,
        priority: int | None = None,
        content_json: str | None = None,
    ) -> str:
        """Create a draft surface.

        Args:
            workspace_id: Owning workspace
            kind: 'tour', 'survey', 'carousel' or 'message'
            name: Display name
            audience_rules_json: Rule tree or {"segmentId": "..."}
            schedule_json: {"startDate": ..., "endDate": ...}
            frequency: 'once', 'once_per_session' or 'until_completed'
            triggers_json: Trigger config, e.g. {"type": "page_visit", "pageUrl": "/pricing"}
            priority: Higher sorts first
            content_json: Rendering payload (steps, questions, screens, buttons)

        Returns:
            JSON with the created surface and validation warnings
        """

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            request = SurfaceCreateRequest(
                workspace_id=workspace_id,
                kind=kind,
                name=name,
                audience_rules=_parse_json_arg(audience_rules_json, "audience_rules_json"),
                schedule=_parse_json_arg(schedule_json, "schedule_json"),
                frequency=frequency,
                triggers=_parse_json_arg(triggers_json, "triggers_json"),
                priority=priority,
                content=_parse_json_arg(content_json, "content_json") or {},
            )
            check = validate_surface_definition(
                request.kind, request.audience_rules, request.triggers, request.content
            )
            if not check.is_valid:
                return {"error": "ValidationFailed", **check.to_dict()}
            surface = _get_authoring_service().create(
                request.workspace_id,
                request.kind,
                request.name,
                audience_rules=request.audience_rules,
                schedule=request.schedule,
                frequency=request.frequency,
                triggers=request.triggers,
                priority=request.priority,
                content=request.content,
            )
            return {"surface": _shape_surface(surface), "warnings": check.warnings}

        return _invoke("surfaces_create", handler)

    @mcp.tool()
    def surfaces_update(workspace_id: str, surface_id: str, changes_json: str) -> str:
        """Partially update a surface's definition (not its status).

        Args:
            workspace_id: Owning workspace
            surface_id: Surface to edit
            changes_json: JSON object with any of name, audience_rules, schedule,
                frequency, triggers, priority, content

        Returns:
            JSON with the updated surface
        """

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            raw = _parse_json_arg(changes_json, "changes_json")
            if not isinstance(raw, dict):
                raise ValueError("changes_json must be a JSON object")
            request = SurfaceUpdateRequest.model_validate(raw)
            changes = request.model_dump(exclude_unset=True)
            surface = _get_authoring_service().update(workspace_id, surface_id, changes)
            return {"surface": _shape_surface(surface)}

        return _invoke("surfaces_update", handler)

    @mcp.tool()
    def surfaces_get(workspace_id: str, surface_id: str) -> str:
        """Get a single surface by ID."""

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            return {"surface": _shape_surface(_get_authoring_service().get(workspace_id, surface_id))}

        return _invoke("surfaces_get", handler)

    @mcp.tool()
    def surfaces_list(workspace_id: str, status: str | None = None, kind: str | None = None) -> str:
        """List a workspace's surfaces in catalog order, optionally by status and kind."""

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            surfaces = _get_authoring_service().list(
                workspace_id,
                status=SurfaceStatus(status) if status else None,
                kind=SurfaceKind(kind) if kind else None,
            )
            return {"surfaces": [_shape_surface(s) for s in surfaces], "count": len(surfaces)}

        return _invoke("surfaces_list", handler)

    def _lifecycle_tool(tool: str, action: str, workspace_id: str, surface_id: str) -> str:
        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            surface = getattr(_get_authoring_service(), action)(workspace_id, surface_id)
            return {"surface_id": surface.surface_id, "status": surface.status.value}

        return _invoke(tool, handler)

    @mcp.tool()
    def surfaces_activate(workspace_id: str, surface_id: str) -> str:
        """Activate a draft or paused surface. Surveys need questions, carousels need screens."""
        return _lifecycle_tool("surfaces_activate", "activate", workspace_id, surface_id)

    @mcp.tool()
    def surfaces_pause(workspace_id: str, surface_id: str) -> str:
        """Pause an active surface."""
        return _lifecycle_tool("surfaces_pause", "pause", workspace_id, surface_id)

    @mcp.tool()
    def surfaces_archive(workspace_id: str, surface_id: str) -> str:
        """Archive a survey, carousel or message. Archived surfaces cannot be reactivated."""
        return _lifecycle_tool("surfaces_archive", "archive", workspace_id, surface_id)

    @mcp.tool()
    def surfaces_duplicate(workspace_id: str, surface_id: str) -> str:
        """Copy a surface into a new draft named '<name> (Copy)' with no schedule."""

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            return {"surface": _shape_surface(_get_authoring_service().duplicate(workspace_id, surface_id))}

        return _invoke("surfaces_duplicate", handler)

    @mcp.tool()
    def surfaces_remove(workspace_id: str, surface_id: str) -> str:
        """Delete a non-active surface and its impressions."""

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            removed = _get_authoring_service().remove(workspace_id, surface_id)
            return {"deleted": surface_id, "impressions_removed": removed}

        return _invoke("surfaces_remove", handler)

    @mcp.tool()
    def surfaces_stats(workspace_id: str, surface_id: str) -> str:
        """Delivery stats: counts per action, unique visitors, and rates as percentages of shown."""

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            stats = _get_impression_service().stats(surface_id, workspace_id=workspace_id)
            return {"surface_id": surface_id, **stats.to_dict()}

        return _invoke("surfaces_stats", handler)

    @mcp.tool()
    def segments_create(workspace_id: str, name: str, audience_rules_json: str) -> str:
        """Save an audience rule as a named segment."""

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            rules = _parse_json_arg(audience_rules_json, "audience_rules_json")
            segment = _get_segment_service().create(workspace_id, name, rules)
            return {"segment": _shape_segment(segment)}

        return _invoke("segments_create", handler)

    @mcp.tool()
    def segments_remove(workspace_id: str, segment_id: str) -> str:
        """Delete a segment that no surface references."""

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            _get_segment_service().remove(workspace_id, segment_id)
            return {"deleted": segment_id}

        return _invoke("segments_remove", handler)

    @mcp.tool()
    def segments_preview(workspace_id: str, audience_rules_json: str | None = None) -> str:
        """Count how many of the workspace's visitors a rule matches."""

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            rules = _parse_json_arg(audience_rules_json, "audience_rules_json")
            return _get_segment_service().preview(workspace_id, rules).model_dump()

        return _invoke("segments_preview", handler)

    @mcp.tool()
    def segments_usage(workspace_id: str, segment_id: str, limit: int | None = None) -> str:
        """List surfaces that target a segment."""

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            surfaces = _get_segment_service().usage(workspace_id, segment_id, limit=limit)
            return {
                "segment_id": segment_id,
                "surfaces": [
                    {"surface_id": s.surface_id, "kind": s.kind.value, "name": s.name, "status": s.status.value}
                    for s in surfaces
                ],
            }

        return _invoke("segments_usage", handler)

    @mcp.tool()
    def visitors_upsert(visitors_json: str) -> str:
        """Insert or replace visitor records. Batch size limit from config.

        Args:
            visitors_json: JSON array of visitor objects (visitorId, workspaceId, customAttributes, ...)

        Returns:
            JSON with upserted count
        """

        def handler() -> dict:
            from .auth import require_studio_scope
            require_studio_scope()
            raw = _parse_json_arg(visitors_json, "visitors_json")
            if not isinstance(raw, list):
                raise ValueError("visitors_json must be a JSON array")
            limit = get_settings().max_import_batch
            if len(raw) > limit:
                raise ValueError(f"at most {limit} visitors per call (got {len(raw)})")
            records = [VisitorRecord.model_validate(item) for item in raw]
            store = _get_stores().visitors
            for record in records:
                store.upsert(record)
            return {"upserted": len(records)}

        return _invoke("visitors_upsert", handler)

    @mcp.tool(name="metrics_snapshot")
    def metrics_snapshot_tool() -> str:
        """Tool call and error counters for this process."""
        return json.dumps(metrics_snapshot())
