"""Domain layer for SurfaceStream."""

from .audience import (
    AudienceCondition,
    AudienceGroup,
    AudienceRule,
    ConditionOperator,
    EventFilter,
    PropertyReference,
    SegmentReference,
    parse_audience_rule,
    parse_targeting,
    rule_to_json,
    segment_id_of,
)
from .delivery_semantics import (
    DENIED_AUDIENCE,
    DENIED_INACTIVE,
    DENIED_INVALID_RULE,
    DENIED_SCHEDULE,
    DENIED_SEGMENT_MISSING,
    DENIED_SETTLED,
    DENIED_SHOWN_ONCE,
    DENIED_SHOWN_THIS_SESSION,
    DENIED_TRIGGER,
    REASON_ALLOWED,
)
from .eligibility_policy import EligibilityPolicy
from .errors import (
    DeliveryError,
    InvalidTransitionError,
    RuleValidationError,
    SegmentNotFoundError,
    SurfaceInUseError,
    SurfaceNotActiveError,
    SurfaceNotFoundError,
    VisitorNotFoundError,
)
from .impressions import TERMINAL_ACTIONS, ImpressionAction, ImpressionRecord
from .lifecycle import LifecycleStateMachine
from .rule_evaluator import RuleEvaluator
from .surfaces import DeliverableSurface, Segment, SurfaceKind, SurfaceSchedule, SurfaceStatus
from .triggers import TriggerConfig, TriggerContext, evaluate_trigger
from .visitors import VisitorAttributes, VisitorEvent, VisitorRecord

__all__ = [
    "AudienceCondition",
    "AudienceGroup",
    "AudienceRule",
    "ConditionOperator",
    "DeliverableSurface",
    "DeliveryError",
    "EligibilityPolicy",
    "EventFilter",
    "ImpressionAction",
    "ImpressionRecord",
    "InvalidTransitionError",
    "LifecycleStateMachine",
    "PropertyReference",
    "RuleEvaluator",
    "RuleValidationError",
    "Segment",
    "SegmentNotFoundError",
    "SegmentReference",
    "SurfaceInUseError",
    "SurfaceKind",
    "SurfaceNotActiveError",
    "SurfaceNotFoundError",
    "SurfaceSchedule",
    "SurfaceStatus",
    "TERMINAL_ACTIONS",
    "TriggerConfig",
    "TriggerContext",
    "VisitorAttributes",
    "VisitorEvent",
    "VisitorNotFoundError",
    "VisitorRecord",
    "evaluate_trigger",
    "parse_audience_rule",
    "parse_targeting",
    "rule_to_json",
    "segment_id_of",
    "DENIED_AUDIENCE",
    "DENIED_INACTIVE",
    "DENIED_INVALID_RULE",
    "DENIED_SCHEDULE",
    "DENIED_SEGMENT_MISSING",
    "DENIED_SETTLED",
    "DENIED_SHOWN_ONCE",
    "DENIED_SHOWN_THIS_SESSION",
    "DENIED_TRIGGER",
    "REASON_ALLOWED",
]
