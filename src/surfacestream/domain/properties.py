"""Property resolver: maps a rule's property reference to a visitor value.

Absence is always ``None``; this module never raises, so the closed-world
evaluation policy lives only in the rule evaluator.
"""

from __future__ import annotations

from datetime import timedelta

from .audience import PropertyReference
from .visitors import VisitorAttributes

SYSTEM_PROPERTY_KEYS = frozenset(
    {
        "email",
        "name",
        "externalUserId",
        "firstSeenAt",
        "lastSeenAt",
        "device",
        "browser",
        "os",
        "referrer",
        "country",
        "countryCode",
        "city",
        "region",
    }
)


def resolve_property(ref: PropertyReference, attributes: VisitorAttributes) -> object | None:
    """Return the visitor value addressed by ``ref`` or None when absent."""
    if ref.source == "system":
        if ref.key not in SYSTEM_PROPERTY_KEYS:
            return None
        return attributes.system.get(ref.key)
    if ref.source == "custom":
        return attributes.custom_attributes.get(ref.key)
    if ref.source == "event":
        return _event_count(ref, attributes)
    return None


def _event_count(ref: PropertyReference, attributes: VisitorAttributes) -> int | None:
    event_filter = ref.event_filter
    if event_filter is None:
        return None
    cutoff = None
    if event_filter.within_days is not None:
        cutoff = attributes.evaluated_at - timedelta(days=event_filter.within_days)
    return sum(
        1
        for event in attributes.events
        if event.name == event_filter.name and (cutoff is None or event.timestamp >= cutoff)
    )
