"""Suppression engine: prior-exposure facts derived from the impression log."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ...domain.delivery_semantics import (
    DENIED_SETTLED,
    DENIED_SHOWN_ONCE,
    DENIED_SHOWN_THIS_SESSION,
    REASON_ALLOWED,
)
from ...domain.impressions import ImpressionAction, ImpressionRecord


@dataclass(frozen=True)
class SuppressionState:
    """Per (surface, visitor) exposure facts for one eligibility call."""

    settled: bool = False
    ever_shown: bool = False
    shown_this_session: bool = False


@dataclass(frozen=True)
class SuppressionDecision:
    """Decision returned by the suppression engine."""

    allow: bool
    reason: str


NEVER_SEEN = SuppressionState()


class SuppressionEngine:
    """Fold a visitor's impressions into suppression states and judge them."""

    def __init__(self, until_completed_respects_session: bool = True) -> None:
        self._until_completed_respects_session = until_completed_respects_session

    def build(
        self,
        impressions: Iterable[ImpressionRecord],
        session_id: str | None = None,
    ) -> dict[str, SuppressionState]:
        """Return surface_id -> SuppressionState for one visitor's impressions."""
        settled: set[str] = set()
        shown: set[str] = set()
        shown_session: set[str] = set()
        for impression in impressions:
            if impression.is_terminal:
                settled.add(impression.surface_id)
            elif impression.action is ImpressionAction.shown:
                shown.add(impression.surface_id)
                if session_id is not None and impression.session_id == session_id:
                    shown_session.add(impression.surface_id)
        return {
            surface_id: SuppressionState(
                settled=surface_id in settled,
                ever_shown=surface_id in shown,
                shown_this_session=surface_id in shown_session,
            )
            for surface_id in settled | shown
        }

    def evaluate(self, state: SuppressionState, frequency: str) -> SuppressionDecision:
        if state.settled:
            return SuppressionDecision(allow=False, reason=DENIED_SETTLED)
        if frequency == "once" and state.ever_shown:
            return SuppressionDecision(allow=False, reason=DENIED_SHOWN_ONCE)
        if state.shown_this_session:
            if frequency != "until_completed" or self._until_completed_respects_session:
                return SuppressionDecision(allow=False, reason=DENIED_SHOWN_THIS_SESSION)
        return SuppressionDecision(allow=True, reason=REASON_ALLOWED)
