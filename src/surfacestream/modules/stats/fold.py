"""Delivery stats derived by folding a surface's full impression log."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable

from ...domain.impressions import ImpressionAction, ImpressionRecord


@dataclass(frozen=True)
class SurfaceStats:
    """Aggregated delivery stats for one surface. Rates are percentages."""

    shown: int = 0
    clicked: int = 0
    completed: int = 0
    dismissed: int = 0
    screen_progressed: int = 0
    unique_visitors: int = 0
    completion_rate: float = 0.0
    click_rate: float = 0.0
    dismiss_rate: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def _rate(count: int, shown: int) -> float:
    return (count / shown) * 100 if shown > 0 else 0.0


def fold_stats(impressions: Iterable[ImpressionRecord]) -> SurfaceStats:
    counts = {action: 0 for action in ImpressionAction}
    visitors: set[str] = set()
    for impression in impressions:
        counts[impression.action] += 1
        visitors.add(impression.visitor_id)
    shown = counts[ImpressionAction.shown]
    return SurfaceStats(
        shown=shown,
        clicked=counts[ImpressionAction.clicked],
        completed=counts[ImpressionAction.completed],
        dismissed=counts[ImpressionAction.dismissed],
        screen_progressed=counts[ImpressionAction.screen_progressed],
        unique_visitors=len(visitors),
        completion_rate=_rate(counts[ImpressionAction.completed], shown),
        click_rate=_rate(counts[ImpressionAction.clicked], shown),
        dismiss_rate=_rate(counts[ImpressionAction.dismissed], shown),
    )
