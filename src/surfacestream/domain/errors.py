"""Error taxonomy for targeting, lifecycle and impression operations."""

from __future__ import annotations


class DeliveryError(Exception):
    """Base class for errors surfaced to the immediate caller."""


class RuleValidationError(DeliveryError, ValueError):
    """Audience rule tree is malformed (authoring-time error)."""


class InvalidTransitionError(DeliveryError):
    """Requested lifecycle transition is not legal from the current status."""


class SurfaceNotActiveError(DeliveryError):
    """Impression recorded against a surface that is not active."""


class SurfaceNotFoundError(DeliveryError, LookupError):
    """Surface does not exist in the caller's workspace."""


class VisitorNotFoundError(DeliveryError, LookupError):
    """Visitor does not exist in the requested workspace."""


class SegmentNotFoundError(DeliveryError, LookupError):
    """Segment does not exist in the caller's workspace."""


class SurfaceInUseError(DeliveryError):
    """Deletion rejected while another record still references the target."""
