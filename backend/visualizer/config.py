"""Configuration and environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent.parent / ".env"
if not _env_path.exists():
    _env_path = Path(__file__).parent / ".env"
load_dotenv(_env_path)


def _flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() == "true"


# --- API Keys ---
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
FAL_KEY = os.getenv("FAL_KEY", "")

# --- OpenRouter Models ---
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "google/gemini-3-pro-image-preview")
VISION_MODEL = os.getenv("VISION_MODEL", "openai/gpt-5.2")

# --- fal.ai Models ---
DEPTH_MODEL = os.getenv("DEPTH_MODEL", "fal-ai/image-preprocessors/depth-anything/v2")

# --- Supabase ---
SUPABASE_URL = os.getenv("NEXT_PUBLIC_SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
STORAGE_BUCKET = os.getenv("VISUALIZATION_BUCKET", "visualizations")

# --- Feature Flags ---
ENABLE_PHOTO_ANALYSIS = _flag("ENABLE_PHOTO_ANALYSIS")
ENABLE_DEPTH_ESTIMATION = _flag("ENABLE_DEPTH_ESTIMATION")
ENABLE_EDGE_DETECTION = _flag("ENABLE_EDGE_DETECTION")
ENABLE_ITERATIVE_REFINEMENT = _flag("ENABLE_ITERATIVE_REFINEMENT")

# --- Pipeline limits (seconds) ---
PIPELINE_TIMEOUT_S = float(os.getenv("PIPELINE_TIMEOUT_S", "90"))
DEPTH_TIMEOUT_S = float(os.getenv("DEPTH_TIMEOUT_S", "25"))
EDGE_TIMEOUT_S = float(os.getenv("EDGE_TIMEOUT_S", "10"))
MAX_CONCEPTS = int(os.getenv("MAX_CONCEPTS", "4"))

# --- Generation parameters ---
STRUCTURE_STRENGTH = 0.90
STYLE_STRENGTH = 0.4

# Structure validation pass mark and refinement retry cap
VALIDATION_PASS_THRESHOLD = 0.7
MAX_REFINEMENT_RETRIES = 1


@dataclass(frozen=True)
class PipelineSettings:
    """Resolved pipeline toggles and limits, handed to the orchestrator once."""
    enable_photo_analysis: bool = True
    enable_depth_estimation: bool = True
    enable_edge_detection: bool = True
    enable_iterative_refinement: bool = True
    timeout_s: float = 90.0
    depth_timeout_s: float = 25.0
    edge_timeout_s: float = 10.0
    max_concepts: int = 4
    structure_strength: float = STRUCTURE_STRENGTH
    style_strength: float = STYLE_STRENGTH
    storage_bucket: str = "visualizations"


def load_pipeline_settings() -> PipelineSettings:
    return PipelineSettings(
        enable_photo_analysis=ENABLE_PHOTO_ANALYSIS and bool(OPENROUTER_API_KEY),
        enable_depth_estimation=ENABLE_DEPTH_ESTIMATION,
        enable_edge_detection=ENABLE_EDGE_DETECTION,
        enable_iterative_refinement=ENABLE_ITERATIVE_REFINEMENT,
        timeout_s=PIPELINE_TIMEOUT_S,
        depth_timeout_s=DEPTH_TIMEOUT_S,
        edge_timeout_s=EDGE_TIMEOUT_S,
        max_concepts=MAX_CONCEPTS,
        storage_bucket=STORAGE_BUCKET,
    )
