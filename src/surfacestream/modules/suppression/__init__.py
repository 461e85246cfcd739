"""Suppression module for SurfaceStream."""

from .engine import NEVER_SEEN, SuppressionDecision, SuppressionEngine, SuppressionState

__all__ = ["NEVER_SEEN", "SuppressionDecision", "SuppressionEngine", "SuppressionState"]
