"""Stats module for SurfaceStream."""

from .fold import SurfaceStats, fold_stats

__all__ = ["SurfaceStats", "fold_stats"]
