"""Authoring-time validation for MCP tools.

Non-raising checks that report every problem at once, with warnings for
rules that are legal but probably not what the author meant.
"""

from __future__ import annotations

import re
from typing import Any

from surfacestream.domain.audience import (
    AudienceCondition,
    AudienceGroup,
    SegmentReference,
    parse_targeting,
)
from surfacestream.domain.errors import RuleValidationError
from surfacestream.domain.properties import SYSTEM_PROPERTY_KEYS
from surfacestream.domain.surfaces import SurfaceKind
from surfacestream.domain.triggers import TriggerConfig

MAX_RECOMMENDED_DEPTH = 4
MAX_RECOMMENDED_CONDITIONS = 50


class ValidationResult:
    """Result of authoring validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None, warnings: list[str] | None = None):
        self.is_valid = is_valid
        self.errors = errors or []
        self.warnings = warnings or []

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON response."""
        return {
            "valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
        }

    def add_error(self, error: str) -> ValidationResult:
        """Add an error and return self for chaining."""
        self.errors.append(error)
        self.is_valid = False
        return self

    def add_warning(self, warning: str) -> ValidationResult:
        """Add a warning and return self for chaining."""
        self.warnings.append(warning)
        return self


def _walk(rule: AudienceCondition | AudienceGroup, depth: int, path: str, result: ValidationResult) -> int:
    """Collect warnings for ``rule``; returns the number of conditions seen."""
    if isinstance(rule, AudienceCondition):
        prop = rule.property
        if prop.source == "system" and prop.key not in SYSTEM_PROPERTY_KEYS:
            result.add_warning(f"{path}: unknown system property {prop.key!r} is never set")
        if prop.source == "custom" and not prop.key.strip():
            result.add_error(f"{path}: custom property key cannot be empty")
        return 1

    if depth > MAX_RECOMMENDED_DEPTH:
        result.add_warning(f"{path}: nesting deeper than {MAX_RECOMMENDED_DEPTH} levels is hard to reason about")
    if not rule.conditions:
        if rule.operator == "and":
            result.add_warning(f"{path}: empty 'and' group matches every visitor")
        else:
            result.add_warning(f"{path}: empty 'or' group matches no visitor")
    count = 0
    for index, child in enumerate(rule.conditions):
        count += _walk(child, depth + 1, f"{path}.conditions[{index}]", result)
    return count


def validate_audience_rule(raw: Any) -> ValidationResult:
    """Validate a rule tree or segment reference.

    Returns:
        ValidationResult with errors and warnings
    """
    result = ValidationResult(is_valid=True)
    if raw is None:
        return result.add_warning("no audience rule: every visitor matches")
    try:
        parsed = parse_targeting(raw)
    except RuleValidationError as exc:
        return result.add_error(str(exc))
    if isinstance(parsed, SegmentReference):
        return result
    total = _walk(parsed, 1, "rule", result)
    if total > MAX_RECOMMENDED_CONDITIONS:
        result.add_warning(f"rule has {total} conditions; consider saving parts as segments")
    return result


def validate_trigger(raw: Any) -> ValidationResult:
    result = ValidationResult(is_valid=True)
    if raw is None:
        return result
    try:
        trigger = raw if isinstance(raw, TriggerConfig) else TriggerConfig.model_validate(raw)
    except ValueError as exc:
        return result.add_error(f"invalid trigger: {exc}")

    if trigger.type == "page_visit":
        if not trigger.page_url:
            result.add_error("page_visit trigger requires pageUrl")
        elif trigger.page_url_match == "regex":
            try:
                re.compile(trigger.page_url)
            except re.error as exc:
                result.add_error(f"pageUrl is not a valid regex ({exc}); the trigger would never fire")
    elif trigger.type == "time_on_page" and trigger.delay_seconds is None:
        result.add_error("time_on_page trigger requires delaySeconds")
    elif trigger.type == "scroll_depth" and trigger.scroll_percent is None:
        result.add_error("scroll_depth trigger requires scrollPercent")
    elif trigger.type == "event" and not trigger.event_name:
        result.add_warning("event trigger without eventName fires on any event")
    return result


def validate_surface_definition(
    kind: SurfaceKind | str,
    audience_rules: Any = None,
    triggers: Any = None,
    content: dict | None = None,
) -> ValidationResult:
    """Validate a surface before create/update; content gaps are warnings until activation."""
    result = validate_audience_rule(audience_rules) if audience_rules is not None else ValidationResult(True)
    trigger_result = validate_trigger(triggers)
    for error in trigger_result.errors:
        result.add_error(error)
    for warning in trigger_result.warnings:
        result.add_warning(warning)

    try:
        kind = SurfaceKind(kind)
    except ValueError:
        return result.add_error(f"unknown surface kind {kind!r}")
    content = content or {}
    if kind is SurfaceKind.survey and not content.get("questions"):
        result.add_warning("survey has no questions; it cannot be activated yet")
    if kind is SurfaceKind.carousel and not content.get("screens"):
        result.add_warning("carousel has no screens; it cannot be activated yet")
    return result
