"""Situational triggers: when an otherwise eligible surface may appear."""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

TriggerType = Literal["immediate", "page_visit", "time_on_page", "event", "scroll_depth", "exit_intent"]


class TriggerConfig(BaseModel):
    """Trigger configuration attached to a surface."""

    model_config = ConfigDict(populate_by_name=True)

    type: TriggerType = Field(default="immediate", description="Trigger kind")
    page_url: str | None = Field(default=None, alias="pageUrl", description="URL pattern for page_visit")
    page_url_match: Literal["exact", "contains", "regex"] = Field(
        default="contains", alias="pageUrlMatch", description="How page_url is matched"
    )
    delay_seconds: float | None = Field(default=None, alias="delaySeconds", ge=0)
    scroll_percent: float | None = Field(default=None, alias="scrollPercent", ge=0, le=100)
    event_name: str | None = Field(default=None, alias="eventName")
    event_properties: dict[str, Any] | None = Field(default=None, alias="eventProperties")


class TriggerContext(BaseModel):
    """What the client observed when it asked for eligible surfaces."""

    current_url: str | None = None
    time_on_page_seconds: float | None = None
    scroll_percent: float | None = None
    fired_event_name: str | None = None
    fired_event_properties: dict[str, Any] | None = None
    is_exit_intent: bool = False


def match_url(url: str, pattern: str, match_type: str) -> bool:
    """Match ``url`` against ``pattern``; an invalid regex never matches."""
    if match_type == "exact":
        return url == pattern
    if match_type == "contains":
        return pattern in url
    if match_type == "regex":
        try:
            return re.search(pattern, url) is not None
        except re.error:
            return False
    return False


def evaluate_trigger(trigger: TriggerConfig | None, context: TriggerContext) -> bool:
    """Return True if ``context`` satisfies ``trigger`` (no trigger means True)."""
    if trigger is None or trigger.type == "immediate":
        return True

    if trigger.type == "page_visit":
        if not trigger.page_url or not context.current_url:
            return False
        return match_url(context.current_url, trigger.page_url, trigger.page_url_match)

    if trigger.type == "time_on_page":
        if trigger.delay_seconds is None or context.time_on_page_seconds is None:
            return False
        return context.time_on_page_seconds >= trigger.delay_seconds

    if trigger.type == "event":
        if not context.fired_event_name:
            return False
        if trigger.event_name and trigger.event_name != context.fired_event_name:
            return False
        if trigger.event_properties and context.fired_event_properties is not None:
            for key, value in trigger.event_properties.items():
                if context.fired_event_properties.get(key) != value:
                    return False
        return True

    if trigger.type == "scroll_depth":
        if trigger.scroll_percent is None or context.scroll_percent is None:
            return False
        return context.scroll_percent >= trigger.scroll_percent

    if trigger.type == "exit_intent":
        return context.is_exit_intent is True

    return False
