"""Typed audience rule tree (condition / group) and its parsing boundary."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from .errors import RuleValidationError

PrimitiveValue = Union[str, int, float, bool, None]


class ConditionOperator(str, Enum):
    """Supported condition operators."""

    equals = "equals"
    not_equals = "not_equals"
    contains = "contains"
    not_contains = "not_contains"
    starts_with = "starts_with"
    ends_with = "ends_with"
    greater_than = "greater_than"
    less_than = "less_than"
    greater_than_or_equals = "greater_than_or_equals"
    less_than_or_equals = "less_than_or_equals"
    is_set = "is_set"
    is_not_set = "is_not_set"


# Operators that compare against ``value`` and therefore require one.
VALUE_OPERATORS = frozenset(
    op for op in ConditionOperator if op not in (ConditionOperator.is_set, ConditionOperator.is_not_set)
)


class EventFilter(BaseModel):
    """Event-count constraint for ``source="event"`` property references."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Event name to count")
    count_operator: Literal["at_least", "at_most", "exactly"] | None = Field(
        default=None, alias="countOperator", description="How the count is compared"
    )
    count: int | None = Field(default=None, ge=0, description="Target count (default 1)")
    within_days: float | None = Field(
        default=None, alias="withinDays", gt=0, description="Only count events this recent"
    )


class PropertyReference(BaseModel):
    """Where a condition reads its value from."""

    model_config = ConfigDict(populate_by_name=True)

    source: Literal["system", "custom", "event"] = Field(..., description="Property source")
    key: str = Field(..., description="Property key within the source")
    event_filter: EventFilter | None = Field(
        default=None, alias="eventFilter", description="Event filter (event source only)"
    )


class AudienceCondition(BaseModel):
    """Leaf node: compare one visitor property with a value."""

    type: Literal["condition"] = "condition"
    property: PropertyReference
    operator: ConditionOperator
    value: PrimitiveValue = None

    @model_validator(mode="after")
    def _check_value(self) -> AudienceCondition:
        if self.property.source == "event":
            if self.property.event_filter is None:
                raise ValueError("event conditions require an eventFilter")
            return self
        if self.operator in VALUE_OPERATORS and self.value is None:
            raise ValueError(f"operator {self.operator.value!r} requires a value")
        return self


class AudienceGroup(BaseModel):
    """Inner node: combine child rules with ``and`` / ``or``."""

    type: Literal["group"] = "group"
    operator: Literal["and", "or"]
    conditions: list[AudienceRule]


AudienceRule = Annotated[Union[AudienceCondition, AudienceGroup], Field(discriminator="type")]

AudienceGroup.model_rebuild()


class SegmentReference(BaseModel):
    """Pointer to a saved segment used in place of an inline rule tree."""

    model_config = ConfigDict(populate_by_name=True)

    segment_id: str = Field(..., alias="segmentId", min_length=1)


_RULE_ADAPTER: TypeAdapter[AudienceRule] = TypeAdapter(AudienceRule)


def parse_audience_rule(raw: Any) -> AudienceCondition | AudienceGroup | None:
    """Parse a JSON rule tree verbatim into the typed union.

    Raises RuleValidationError for unknown tags or missing required fields.
    A segment reference is rejected here; use ``parse_targeting`` for fields
    that may hold one.
    """
    if raw is None:
        return None
    if isinstance(raw, (AudienceCondition, AudienceGroup)):
        return raw
    if not isinstance(raw, dict):
        raise RuleValidationError(f"audience rule must be an object, got {type(raw).__name__}")
    try:
        return _RULE_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        raise RuleValidationError(f"invalid audience rule: {exc}") from exc


def parse_targeting(raw: Any) -> AudienceCondition | AudienceGroup | SegmentReference | None:
    """Parse a surface's targeting field: inline rule tree or ``{"segmentId": ...}``."""
    if isinstance(raw, SegmentReference):
        return raw
    if isinstance(raw, dict) and "segmentId" in raw and "type" not in raw:
        try:
            return SegmentReference.model_validate(raw)
        except ValidationError as exc:
            raise RuleValidationError(f"invalid segment reference: {exc}") from exc
    return parse_audience_rule(raw)


def rule_to_json(rule: AudienceCondition | AudienceGroup | SegmentReference | None) -> dict | None:
    """Serialize a typed rule back to the authoring JSON shape."""
    if rule is None:
        return None
    return rule.model_dump(mode="json", by_alias=True, exclude_none=True)


def segment_id_of(raw: Any) -> str | None:
    """Return the referenced segment id if ``raw`` is a segment reference."""
    if isinstance(raw, SegmentReference):
        return raw.segment_id
    if isinstance(raw, dict) and isinstance(raw.get("segmentId"), str) and "type" not in raw:
        return raw["segmentId"]
    return None
