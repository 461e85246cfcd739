"""EligibilityPolicy: the five-stage go/no-go decision for one surface."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from .audience import AudienceCondition, AudienceGroup
from .delivery_semantics import (
    DENIED_AUDIENCE,
    DENIED_INACTIVE,
    DENIED_INVALID_RULE,
    DENIED_SCHEDULE,
    DENIED_SEGMENT_MISSING,
    DENIED_TRIGGER,
    REASON_ALLOWED,
)
from .errors import RuleValidationError, SegmentNotFoundError
from .rule_evaluator import RuleEvaluator
from .surfaces import DeliverableSurface, SurfaceStatus
from .triggers import TriggerContext, evaluate_trigger
from .visitors import VisitorAttributes

if TYPE_CHECKING:
    from ..modules.suppression.engine import SuppressionDecision

RuleLookup = Callable[[DeliverableSurface], "AudienceCondition | AudienceGroup | None"]


class EligibilityPolicy:
    """Run status -> schedule -> suppression -> audience -> trigger, in order."""

    def __init__(self, evaluator: RuleEvaluator | None = None) -> None:
        self._evaluator = evaluator or RuleEvaluator()

    def reason(
        self,
        surface: DeliverableSurface,
        *,
        attributes: VisitorAttributes,
        suppression: SuppressionDecision,
        trigger_context: TriggerContext,
        rule_lookup: RuleLookup,
        now: datetime | None = None,
    ) -> str:
        """Return 'allowed' or 'denied: <reason>' for the first failing stage.

        ``rule_lookup`` is only invoked once the earlier stages pass. It may
        raise RuleValidationError or SegmentNotFoundError; either denies this
        surface alone.
        """
        now = now or datetime.now(timezone.utc)
        if surface.status is not SurfaceStatus.active:
            return DENIED_INACTIVE
        if surface.schedule is not None and not surface.schedule.is_open(now):
            return DENIED_SCHEDULE
        if not suppression.allow:
            return suppression.reason
        try:
            rule = rule_lookup(surface)
        except RuleValidationError:
            return DENIED_INVALID_RULE
        except SegmentNotFoundError:
            return DENIED_SEGMENT_MISSING
        if not self._evaluator.evaluate(rule, attributes):
            return DENIED_AUDIENCE
        if not evaluate_trigger(surface.triggers, trigger_context):
            return DENIED_TRIGGER
        return REASON_ALLOWED

    def allowed(self, surface: DeliverableSurface, **kwargs) -> bool:
        return self.reason(surface, **kwargs) == REASON_ALLOWED
