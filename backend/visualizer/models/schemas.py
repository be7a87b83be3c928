"""Pydantic models for the visualization API."""

from enum import Enum

from pydantic import BaseModel, Field


class RoomType(str, Enum):
    KITCHEN = "kitchen"
    BATHROOM = "bathroom"
    LIVING_ROOM = "living_room"
    BEDROOM = "bedroom"
    BASEMENT = "basement"
    DINING_ROOM = "dining_room"
    EXTERIOR = "exterior"
    OTHER = "other"


class DesignStyle(str, Enum):
    MODERN = "modern"
    TRADITIONAL = "traditional"
    FARMHOUSE = "farmhouse"
    INDUSTRIAL = "industrial"
    MINIMALIST = "minimalist"
    CONTEMPORARY = "contemporary"
    OTHER = "other"


class VisualizationMode(str, Enum):
    QUICK = "quick"
    CONVERSATION = "conversation"
    STREAMLINED = "streamlined"


class ErrorCode(str, Enum):
    INVALID_IMAGE = "INVALID_IMAGE"
    STORAGE_ERROR = "STORAGE_ERROR"
    GENERATION_FAILED = "GENERATION_FAILED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


# --- Request ---


class DesignIntent(BaseModel):
    """What the homeowner wants changed, kept, and built with."""

    desired_changes: list[str] = Field(default_factory=list)
    constraints_to_preserve: list[str] = Field(default_factory=list)
    material_preferences: list[str] = Field(default_factory=list)


class VisualizeRequest(BaseModel):
    image: str = Field(description="Room photo as a base64 data URL (data:image/jpeg;base64,...)")
    room_type: RoomType
    custom_room_type: str | None = Field(default=None, max_length=100)
    style: DesignStyle
    custom_style: str | None = Field(default=None, max_length=100)
    constraints: str | None = Field(default=None, max_length=1000)
    count: int = Field(default=4, ge=1, le=4)
    skip_analysis: bool = False
    photo_analysis: dict | None = None
    design_intent: DesignIntent | None = None
    voice_preferences_summary: str | None = None
    conversation_context: dict | None = None
    mode: VisualizationMode = VisualizationMode.QUICK

    class Config:
        json_schema_extra = {
            "example": {
                "image": "data:image/jpeg;base64,/9j/4AAQSkZJRg...",
                "room_type": "kitchen",
                "style": "farmhouse",
                "constraints": "keep the island",
                "count": 4,
                "mode": "quick",
            }
        }


# --- Room analysis (vision model output) ---


class WallDimension(BaseModel):
    wall: str
    estimated_length: str = ""
    has_window: bool = False
    has_door: bool = False


class Opening(BaseModel):
    type: str  # window, door, archway
    wall: str = ""
    approximate_size: str = ""
    approximate_position: str = ""


class RoomAnalysis(BaseModel):
    room_type: str = ""
    current_condition: str = ""  # excellent, good, dated, needs_renovation
    structural_elements: list[str] = []
    identified_fixtures: list[str] = []
    layout_type: str = ""
    lighting_conditions: str = ""
    perspective_notes: str = ""
    preservation_constraints: list[str] = []
    confidence_score: float = Field(default=0.0, ge=0, le=1)
    current_style: str | None = None
    estimated_dimensions: str | None = None
    potential_focal_points: list[str] | None = None
    wall_count: int | None = None
    wall_dimensions: list[WallDimension] | None = None
    estimated_ceiling_height: str | None = None
    openings: list[Opening] | None = None


# --- Response ---


class GeneratedConcept(BaseModel):
    id: str
    image_url: str
    description: str
    generated_at: str


class VisualizationResponse(BaseModel):
    id: str
    original_image_url: str
    room_type: str
    style: str
    constraints: str | None = None
    concepts: list[GeneratedConcept]
    generation_time_ms: int
    created_at: str


class VisualizationErrorBody(BaseModel):
    error: str
    code: ErrorCode
    details: str | None = None


# --- Admin ---


class VisualizationAssessment(BaseModel):
    """Contractor review fields. The concept list itself is never editable."""

    admin_notes: str | None = None
    selected_concept_index: int | None = Field(default=None, ge=0, le=3)
    contractor_feasibility_score: int | None = Field(default=None, ge=1, le=5)
    estimated_cost_impact: str | None = None
    technical_concerns: list[str] | None = None


class MetricsSummary(BaseModel):
    total_visualizations: int = 0
    avg_generation_time_ms: int = 0
    avg_validation_score: float | None = None
    retry_rate: float = 0
    quote_conversion_rate: float = 0  # percentages from here on
    admin_selection_rate: float = 0
    conversation_mode_rate: float = 0
    total_cost_usd: float = 0
    avg_cost_per_visualization: float = 0
