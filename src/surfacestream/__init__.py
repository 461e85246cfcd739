"""SurfaceStream application package."""

from .domain import (
    AudienceCondition,
    AudienceGroup,
    DeliverableSurface,
    ImpressionAction,
    ImpressionRecord,
    Segment,
    SurfaceKind,
    SurfaceStatus,
    VisitorRecord,
)

__version__ = "0.1.0"
__all__ = [
    "AudienceCondition",
    "AudienceGroup",
    "DeliverableSurface",
    "ImpressionAction",
    "ImpressionRecord",
    "Segment",
    "SurfaceKind",
    "SurfaceStatus",
    "VisitorRecord",
]
