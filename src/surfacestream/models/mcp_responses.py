"""MCP response DTOs for the Engine and Studio tools."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ..domain.surfaces import DeliverableSurface


class SurfaceSummary(BaseModel):
    """A single eligible surface, shaped for the client renderer."""

    surface_id: str = Field(..., description="Surface identifier")
    kind: str = Field(..., description="tour, survey, carousel or message")
    name: str = Field(..., description="Display name")
    priority: int | None = Field(default=None, description="Higher sorts first")
    frequency: str = Field(..., description="Re-display policy")
    triggers: dict[str, Any] | None = Field(default=None, description="Trigger config, for client timing")
    content: dict[str, Any] = Field(default_factory=dict, description="Rendering payload")

    @classmethod
    def from_surface(cls, surface: DeliverableSurface) -> SurfaceSummary:
        return cls(**surface.to_summary_payload())


class EligibilityResponse(BaseModel):
    """Output DTO for surfaces_eligible."""

    surfaces: list[SurfaceSummary] = Field(default_factory=list, description="Eligible surfaces, ordered")
    request_id: str = Field(..., description="Trace ID for this request")
    visitor_id: str = Field(..., description="Visitor that was evaluated")


class SurfaceDecision(BaseModel):
    """Audit entry: why one surface was or was not eligible."""

    surface_id: str
    kind: str
    name: str
    reason: str = Field(..., description="'allowed' or 'denied: <reason>'")


class SegmentPreview(BaseModel):
    """Output DTO for segments_preview."""

    total: int = Field(..., ge=0, description="Visitors in the workspace")
    matching: int = Field(..., ge=0, description="Visitors the rule matches")
