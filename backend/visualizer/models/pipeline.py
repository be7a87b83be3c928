"""In-process data types for the concept generation pipeline.

Everything here is built once per request and treated as read-only afterwards;
the refinement pass derives a new GenerationConfig with dataclasses.replace
instead of mutating the shared one.
"""

import base64
from dataclasses import dataclass, field
from typing import Literal

from .schemas import DesignIntent, DesignStyle, RoomType, VisualizationMode

ConditioningRole = Literal["source", "depth", "edge"]

# Custom ("other") selections are stored under these enum values
DEFAULT_ROOM_TYPE = RoomType.LIVING_ROOM
DEFAULT_STYLE = DesignStyle.CONTEMPORARY

# Depth range used when the estimator omits or garbles one (metres)
DEFAULT_MIN_DEPTH_M = 0.1
DEFAULT_MAX_DEPTH_M = 10.0


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode()}"


@dataclass(frozen=True)
class SourceImage:
    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def data_url(self) -> str:
        return to_data_url(self.data, self.mime_type)


@dataclass(frozen=True)
class GenerationRequest:
    """One visualize call, decoded and validated."""
    source: SourceImage
    room_type: RoomType
    style: DesignStyle
    count: int = 4
    custom_room_type: str | None = None
    custom_style: str | None = None
    constraints: str | None = None
    photo_analysis: dict | None = None
    design_intent: DesignIntent | None = None
    voice_preferences_summary: str | None = None
    conversation_context: dict | None = None
    mode: VisualizationMode = VisualizationMode.QUICK
    skip_analysis: bool = False
    user_agent: str = ""

    @property
    def effective_room_type(self) -> RoomType:
        return DEFAULT_ROOM_TYPE if self.room_type == RoomType.OTHER else self.room_type

    @property
    def stored_room_type(self) -> RoomType:
        # visualizations.room_type has no exterior or other value
        if self.room_type in (RoomType.EXTERIOR, RoomType.OTHER):
            return DEFAULT_ROOM_TYPE
        return self.room_type

    @property
    def effective_style(self) -> DesignStyle:
        return DEFAULT_STYLE if self.style == DesignStyle.OTHER else self.style


@dataclass(frozen=True)
class DepthRange:
    min_m: float = DEFAULT_MIN_DEPTH_M
    max_m: float = DEFAULT_MAX_DEPTH_M


@dataclass(frozen=True)
class ConditioningImage:
    role: ConditioningRole
    data: bytes
    mime_type: str
    depth_range: DepthRange | None = None

    @property
    def data_url(self) -> str:
        return to_data_url(self.data, self.mime_type)


@dataclass(frozen=True)
class ConditioningBundle:
    """Reference images in the order they are handed to the model: source, depth, edge."""
    images: tuple[ConditioningImage, ...] = ()

    @classmethod
    def assemble(
        cls,
        source: SourceImage,
        depth: ConditioningImage | None = None,
        edge: ConditioningImage | None = None,
    ) -> "ConditioningBundle":
        images = [ConditioningImage(role="source", data=source.data, mime_type=source.mime_type)]
        if depth is not None:
            images.append(depth)
        if edge is not None:
            images.append(edge)
        return cls(images=tuple(images))

    @property
    def roles(self) -> list[str]:
        return [img.role for img in self.images]

    def get(self, role: ConditioningRole) -> ConditioningImage | None:
        return next((img for img in self.images if img.role == role), None)

    @property
    def has_depth_map(self) -> bool:
        return self.get("depth") is not None

    @property
    def has_edge_map(self) -> bool:
        return self.get("edge") is not None


@dataclass(frozen=True)
class GenerationConfig:
    room_type: RoomType
    style: DesignStyle
    bundle: ConditioningBundle = field(default_factory=ConditioningBundle)
    custom_room_type: str | None = None
    custom_style: str | None = None
    constraints: str | None = None
    photo_analysis: dict | None = None
    design_intent: DesignIntent | None = None
    voice_preferences_summary: str | None = None
    structure_strength: float = 0.90
    style_strength: float = 0.4
    refinement_guidance: str | None = None

    @property
    def has_depth_map(self) -> bool:
        return self.bundle.has_depth_map

    @property
    def has_edge_map(self) -> bool:
        return self.bundle.has_edge_map

    @property
    def depth_range(self) -> DepthRange | None:
        depth = self.bundle.get("depth")
        return depth.depth_range if depth else None

    @property
    def room_label(self) -> str:
        return self.custom_room_type or self.room_type.value.replace("_", " ")

    @property
    def style_label(self) -> str:
        return self.custom_style or self.style.value


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str = "image/png"

    @property
    def data_url(self) -> str:
        return to_data_url(self.data, self.mime_type)


@dataclass(frozen=True)
class ValidationOutcome:
    score: float
    passed: bool
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class RefinementResult:
    image: GeneratedImage
    was_refined: bool = False
    validation_score: float | None = None
    generation_calls: int = 1


# --- Stored references: durable URL or inline fallback ---


@dataclass(frozen=True)
class DurableReference:
    public_url: str

    @property
    def url(self) -> str:
        return self.public_url

    @property
    def is_inline(self) -> bool:
        return False


@dataclass(frozen=True)
class InlineReference:
    data: bytes
    mime_type: str

    @property
    def url(self) -> str:
        return to_data_url(self.data, self.mime_type)

    @property
    def is_inline(self) -> bool:
        return True


StoredReference = DurableReference | InlineReference


@dataclass(frozen=True)
class Concept:
    id: str
    index: int
    image: StoredReference
    description: str
    generated_at: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "image_url": self.image.url,
            "description": self.description,
            "generated_at": self.generated_at,
        }


@dataclass(frozen=True)
class VisualizationResult:
    """Successful pipeline output, mirrors the persisted visualization row."""
    id: str
    original_image: StoredReference
    room_type: RoomType
    style: DesignStyle
    constraints: str | None
    concepts: tuple[Concept, ...]
    generation_time_ms: int
    created_at: str
    share_token: str
    bundle_roles: tuple[str, ...] = ()
    was_refined: bool = False
    validation_score: float | None = None

    def to_response(self) -> dict:
        return {
            "id": self.id,
            "original_image_url": self.original_image.url,
            "room_type": self.room_type.value,
            "style": self.style.value,
            "constraints": self.constraints,
            "concepts": [c.to_dict() for c in self.concepts],
            "generation_time_ms": self.generation_time_ms,
            "created_at": self.created_at,
        }


@dataclass
class MetricsRecord:
    generation_time_ms: int
    concepts_requested: int
    concepts_generated: int
    mode: str
    visualization_id: str | None = None
    retry_count: int = 0
    validation_score: float | None = None
    photo_analyzed: bool = False
    conversation_turns: int = 0
    analysis_cost_usd: float = 0.0
    depth_cost_usd: float = 0.0
    generation_cost_usd: float = 0.0
    validation_cost_usd: float = 0.0
    error_occurred: bool = False
    error_code: str | None = None
    error_message: str | None = None

    @property
    def validation_passed(self) -> bool | None:
        if self.validation_score is None:
            return None
        return self.validation_score >= 0.7

    @property
    def estimated_cost_usd(self) -> float:
        return round(
            self.analysis_cost_usd
            + self.depth_cost_usd
            + self.generation_cost_usd
            + self.validation_cost_usd,
            4,
        )

    def to_row(self) -> dict:
        return {
            "visualization_id": self.visualization_id,
            "generation_time_ms": self.generation_time_ms,
            "retry_count": self.retry_count,
            "concepts_requested": self.concepts_requested,
            "concepts_generated": self.concepts_generated,
            "structure_validation_score": self.validation_score,
            "validation_passed": self.validation_passed,
            "mode": self.mode,
            "photo_analyzed": self.photo_analyzed,
            "conversation_turns": self.conversation_turns,
            "estimated_cost_usd": self.estimated_cost_usd,
            "analysis_cost_usd": self.analysis_cost_usd,
            "generation_cost_usd": self.generation_cost_usd,
            "validation_cost_usd": self.validation_cost_usd,
            "error_occurred": self.error_occurred,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
