"""Impression records: one row per delivery event."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .visitors import normalize_dt


class ImpressionAction(str, Enum):
    shown = "shown"
    clicked = "clicked"
    completed = "completed"
    dismissed = "dismissed"
    screen_progressed = "screen_progressed"


# At most one of these may exist per (surface, visitor).
TERMINAL_ACTIONS = frozenset({ImpressionAction.completed, ImpressionAction.dismissed})


class ImpressionRecord(BaseModel):
    """A single delivery event for a (surface, visitor) pair."""

    impression_id: str = Field(..., description="Impression identifier")
    surface_id: str = Field(..., description="Surface the event belongs to")
    visitor_id: str = Field(..., description="Visitor who produced the event")
    session_id: str | None = Field(default=None, description="Client session, if known")
    action: ImpressionAction = Field(..., description="Event type")
    screen_index: int | None = Field(default=None, ge=0)
    button_index: int | None = Field(default=None, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("created_at")
    @classmethod
    def _ensure_tz(cls, value: datetime) -> datetime:
        return normalize_dt(value)

    @property
    def is_terminal(self) -> bool:
        return self.action in TERMINAL_ACTIONS
