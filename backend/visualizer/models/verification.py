"""Structured verdict returned by the structure-validation vision call."""

from pydantic import BaseModel, Field


class StructureVerdict(BaseModel):
    structure_preserved: bool = Field(
        default=True, description="Are the room dimensions and architecture preserved?"
    )
    windows_doors_intact: bool = Field(
        default=True, description="Are windows and doors in the same positions?"
    )
    perspective_matches: bool = Field(
        default=True, description="Does the camera angle/perspective match the original?"
    )
    lighting_consistent: bool = Field(
        default=True, description="Is the lighting direction consistent with the original?"
    )
    overall_score: float = Field(
        ge=0.0, le=1.0,
        description="Overall structure preservation score (0=different room, 1=perfect)",
    )
    issues: list[str] = Field(
        default_factory=list,
        description="Specific places where the structure was not preserved",
    )
    recommendations: list[str] = Field(default_factory=list)
