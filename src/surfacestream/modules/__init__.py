"""Derived-state modules (suppression, stats) for SurfaceStream."""
