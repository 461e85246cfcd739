"""Services: eligibility, impressions, authoring, segments; engines in domain."""

from ..domain.eligibility_policy import EligibilityPolicy
from ..domain.rule_evaluator import RuleEvaluator
from .authoring_service import AuthoringService
from .eligibility_service import EligibilityService
from .impression_service import ImpressionService
from .segment_service import SegmentService

__all__ = [
    "AuthoringService",
    "EligibilityPolicy",
    "EligibilityService",
    "ImpressionService",
    "RuleEvaluator",
    "SegmentService",
]
