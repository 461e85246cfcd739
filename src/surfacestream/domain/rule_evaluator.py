"""RuleEvaluator: pure boolean evaluation of an audience rule tree."""

from __future__ import annotations

from typing import Callable

from .audience import AudienceCondition, AudienceGroup, ConditionOperator, PropertyReference
from .properties import resolve_property
from .visitors import VisitorAttributes

Resolver = Callable[[PropertyReference, VisitorAttributes], object]


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_present(value: object) -> bool:
    return value is not None and value != ""


def _strict_equals(actual: object, expected: object) -> bool:
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual is expected
    if _is_number(actual) and _is_number(expected):
        return actual == expected
    if isinstance(actual, str) and isinstance(expected, str):
        return actual == expected
    return False


def _both_strings(actual: object, expected: object) -> bool:
    return isinstance(actual, str) and isinstance(expected, str)


def compare(operator: ConditionOperator, actual: object, expected: object) -> bool:
    """Apply one operator. An absent ``actual`` satisfies only ``is_not_set``."""
    if operator is ConditionOperator.is_set:
        return _is_present(actual)
    if operator is ConditionOperator.is_not_set:
        return not _is_present(actual)
    if actual is None:
        return False

    if operator is ConditionOperator.equals:
        return _strict_equals(actual, expected)
    if operator is ConditionOperator.not_equals:
        return not _strict_equals(actual, expected)

    if operator in (
        ConditionOperator.contains,
        ConditionOperator.not_contains,
        ConditionOperator.starts_with,
        ConditionOperator.ends_with,
    ):
        if not _both_strings(actual, expected):
            return False
        haystack, needle = actual.lower(), expected.lower()
        if operator is ConditionOperator.contains:
            return needle in haystack
        if operator is ConditionOperator.not_contains:
            return needle not in haystack
        if operator is ConditionOperator.starts_with:
            return haystack.startswith(needle)
        return haystack.endswith(needle)

    if not (_is_number(actual) and _is_number(expected)):
        return False
    if operator is ConditionOperator.greater_than:
        return actual > expected
    if operator is ConditionOperator.less_than:
        return actual < expected
    if operator is ConditionOperator.greater_than_or_equals:
        return actual >= expected
    if operator is ConditionOperator.less_than_or_equals:
        return actual <= expected
    return False


def _event_count_matches(count: int, condition: AudienceCondition) -> bool:
    event_filter = condition.property.event_filter
    target = event_filter.count if event_filter.count is not None else 1
    if event_filter.count_operator == "at_most":
        return count <= target
    if event_filter.count_operator == "exactly":
        return count == target
    return count >= target


class RuleEvaluator:
    """Evaluate audience rules against resolved visitor attributes.

    Stateless apart from the injected resolver; safe to share across threads.
    """

    def __init__(self, resolver: Resolver | None = None) -> None:
        self._resolve = resolver or resolve_property

    def evaluate(
        self,
        rule: AudienceCondition | AudienceGroup | None,
        attributes: VisitorAttributes,
    ) -> bool:
        """Return True if ``attributes`` satisfy ``rule`` (no rule means True)."""
        if rule is None:
            return True
        if isinstance(rule, AudienceGroup):
            return self._evaluate_group(rule, attributes)
        if isinstance(rule, AudienceCondition):
            return self._evaluate_condition(rule, attributes)
        raise TypeError(f"unsupported rule node: {type(rule).__name__}")

    def _evaluate_group(self, group: AudienceGroup, attributes: VisitorAttributes) -> bool:
        if group.operator == "and":
            for child in group.conditions:
                if not self.evaluate(child, attributes):
                    return False
            return True
        for child in group.conditions:
            if self.evaluate(child, attributes):
                return True
        return False

    def _evaluate_condition(self, condition: AudienceCondition, attributes: VisitorAttributes) -> bool:
        actual = self._resolve(condition.property, attributes)
        if condition.property.source == "event":
            if actual is None:
                return False
            return _event_count_matches(actual, condition)
        return compare(condition.operator, actual, condition.value)
