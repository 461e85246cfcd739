"""Deliverable surface and segment domain models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .triggers import TriggerConfig
from .visitors import normalize_dt


class SurfaceKind(str, Enum):
    tour = "tour"
    survey = "survey"
    carousel = "carousel"
    message = "message"


class SurfaceStatus(str, Enum):
    draft = "draft"
    active = "active"
    paused = "paused"
    archived = "archived"


Frequency = Literal["once", "once_per_session", "until_completed"]


class SurfaceSchedule(BaseModel):
    """Delivery window for a surface. Both bounds are inclusive."""

    model_config = ConfigDict(populate_by_name=True)

    start_date: datetime | None = Field(default=None, alias="startDate", description="UTC start")
    end_date: datetime | None = Field(default=None, alias="endDate", description="UTC end")

    @field_validator("start_date", "end_date")
    @classmethod
    def _ensure_tz(cls, value: datetime | None) -> datetime | None:
        return normalize_dt(value)

    def is_open(self, now: datetime | None = None) -> bool:
        """Return True if ``now`` falls inside the window."""
        now = normalize_dt(now or datetime.now(timezone.utc))
        if self.start_date and now < self.start_date:
            return False
        if self.end_date and now > self.end_date:
            return False
        return True


class DeliverableSurface(BaseModel):
    """A tour, survey, carousel or outbound message owned by one workspace."""

    model_config = ConfigDict(populate_by_name=True)

    surface_id: str = Field(..., alias="surfaceId", description="Surface identifier")
    workspace_id: str = Field(..., alias="workspaceId", description="Owning workspace")
    kind: SurfaceKind = Field(..., description="Surface type")
    name: str = Field(..., min_length=1, description="Display name in the authoring UI")
    status: SurfaceStatus = Field(default=SurfaceStatus.draft, description="Lifecycle status")
    audience_rules: dict[str, Any] | None = Field(
        default=None,
        alias="audienceRules",
        description="Rule tree or {'segmentId': ...}, stored verbatim",
    )
    schedule: SurfaceSchedule | None = Field(default=None, description="Delivery window")
    frequency: Frequency = Field(default="once", description="Re-display policy")
    triggers: TriggerConfig | None = Field(default=None, description="Situational trigger")
    priority: int | None = Field(default=None, description="Higher sorts first")
    content: dict[str, Any] = Field(default_factory=dict, description="Rendering payload")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="updatedAt")

    @field_validator("created_at", "updated_at")
    @classmethod
    def _ensure_tz(cls, value: datetime) -> datetime:
        return normalize_dt(value)

    def linked_surface_ids(self) -> set[str]:
        """Ids of other surfaces this one launches (e.g. a button that starts a tour)."""
        linked: set[str] = set()
        buttons = list(self.content.get("buttons") or [])
        for screen in self.content.get("screens") or []:
            if isinstance(screen, dict):
                buttons.extend(screen.get("buttons") or [])
        for button in buttons:
            if not isinstance(button, dict):
                continue
            for key in ("tourId", "surfaceId"):
                target = button.get(key)
                if isinstance(target, str) and target:
                    linked.add(target)
        return linked

    def to_summary_payload(self) -> dict:
        """Minimal fields a client needs to render the surface."""
        return {
            "surface_id": self.surface_id,
            "kind": self.kind.value,
            "name": self.name,
            "priority": self.priority,
            "frequency": self.frequency,
            "triggers": self.triggers.model_dump(by_alias=True, exclude_none=True) if self.triggers else None,
            "content": self.content,
        }


class Segment(BaseModel):
    """Saved audience rule that surfaces may reference by id."""

    model_config = ConfigDict(populate_by_name=True)

    segment_id: str = Field(..., alias="segmentId")
    workspace_id: str = Field(..., alias="workspaceId")
    name: str = Field(..., min_length=1)
    audience_rules: dict[str, Any] = Field(..., alias="audienceRules")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")
