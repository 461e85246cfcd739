"""MCP request/response models."""

from .mcp_requests import (
    EligibilityContext,
    EligibilityRequest,
    ImpressionRequest,
    SurfaceCreateRequest,
    SurfaceUpdateRequest,
)
from .mcp_responses import EligibilityResponse, SegmentPreview, SurfaceDecision, SurfaceSummary

__all__ = [
    # MCP requests
    "EligibilityContext",
    "EligibilityRequest",
    "ImpressionRequest",
    "SurfaceCreateRequest",
    "SurfaceUpdateRequest",
    # MCP responses
    "EligibilityResponse",
    "SegmentPreview",
    "SurfaceDecision",
    "SurfaceSummary",
]
