"""MCP request DTOs for the Engine and Studio tools."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..domain.impressions import ImpressionAction
from ..domain.surfaces import Frequency, SurfaceKind, SurfaceSchedule
from ..domain.triggers import TriggerConfig, TriggerContext
from ..domain.visitors import normalize_dt


class EligibilityContext(BaseModel):
    """Situational context the client sends with an eligibility request."""

    current_url: str | None = Field(default=None, description="URL of the page being viewed")
    time_on_page_seconds: float | None = Field(default=None, ge=0, description="Seconds on current page")
    scroll_percent: float | None = Field(default=None, ge=0, le=100, description="Scroll depth percent")
    fired_event_name: str | None = Field(default=None, description="Event that just fired, if any")
    fired_event_properties: dict[str, Any] | None = Field(default=None, description="Properties of that event")
    is_exit_intent: bool = Field(default=False, description="Client detected exit intent")
    session_id: str | None = Field(default=None, description="Client session for per-session suppression")
    now: datetime | None = Field(default=None, description="Evaluation time (defaults to server clock)")

    @field_validator("now")
    @classmethod
    def _ensure_tz(cls, value: datetime | None) -> datetime | None:
        return normalize_dt(value)

    def to_trigger_context(self) -> TriggerContext:
        return TriggerContext(
            current_url=self.current_url,
            time_on_page_seconds=self.time_on_page_seconds,
            scroll_percent=self.scroll_percent,
            fired_event_name=self.fired_event_name,
            fired_event_properties=self.fired_event_properties,
            is_exit_intent=self.is_exit_intent,
        )


class EligibilityRequest(BaseModel):
    """Input DTO for the surfaces_eligible and surfaces_explain tools."""

    workspace_id: str = Field(..., min_length=1, description="Workspace to evaluate")
    visitor_id: str = Field(..., min_length=1, description="Visitor to evaluate for")
    kind: SurfaceKind | None = Field(default=None, description="Restrict to one surface kind")
    context: EligibilityContext = Field(default_factory=EligibilityContext)


class ImpressionRequest(BaseModel):
    """Input DTO for the impressions_track tool."""

    surface_id: str = Field(..., min_length=1)
    visitor_id: str = Field(..., min_length=1)
    action: ImpressionAction
    session_id: str | None = None
    screen_index: int | None = Field(default=None, ge=0)
    button_index: int | None = Field(default=None, ge=0)


class SurfaceCreateRequest(BaseModel):
    """Input DTO for surfaces_create. New surfaces always start as drafts."""

    workspace_id: str = Field(..., min_length=1)
    kind: SurfaceKind
    name: str = Field(..., min_length=1, max_length=200)
    audience_rules: dict[str, Any] | None = Field(default=None, description="Rule tree or {'segmentId': ...}")
    schedule: SurfaceSchedule | None = None
    frequency: Frequency = "once"
    triggers: TriggerConfig | None = None
    priority: int | None = None
    content: dict[str, Any] = Field(default_factory=dict)


class SurfaceUpdateRequest(BaseModel):
    """Partial update for surfaces_update; unset fields are left alone."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    audience_rules: dict[str, Any] | None = None
    schedule: SurfaceSchedule | None = None
    frequency: Frequency | None = None
    triggers: TriggerConfig | None = None
    priority: int | None = None
    content: dict[str, Any] | None = None
