"""In-memory stand-ins for the pipeline's external collaborators (tests only)."""

import asyncio
import io

from PIL import Image

from visualizer.config import PipelineSettings
from visualizer.models.pipeline import (
    ConditioningImage,
    GeneratedImage,
    GenerationRequest,
    SourceImage,
    ValidationOutcome,
)
from visualizer.models.schemas import DesignStyle, RoomType
from visualizer.workflow.conditioning import ConditioningExtractor
from visualizer.workflow.metrics import MetricsRecorder
from visualizer.workflow.pipeline import VisualizationPipeline


def png_bytes(size=(64, 48), color=(200, 180, 160)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def make_source() -> SourceImage:
    return SourceImage(data=png_bytes(), mime_type="image/png")


def make_request(**overrides) -> GenerationRequest:
    fields = {
        "source": make_source(),
        "room_type": RoomType.KITCHEN,
        "style": DesignStyle.MODERN,
        "count": 4,
    }
    fields.update(overrides)
    return GenerationRequest(**fields)


def bare_settings(**overrides) -> PipelineSettings:
    """Everything optional switched off; tests turn on what they exercise."""
    fields = {
        "enable_photo_analysis": False,
        "enable_depth_estimation": False,
        "enable_edge_detection": False,
        "enable_iterative_refinement": False,
        "timeout_s": 5.0,
    }
    fields.update(overrides)
    return PipelineSettings(**fields)


class FakeGenerator:
    def __init__(self, fail_indices=(), delay: float = 0.0, results=None):
        self.fail_indices = set(fail_indices)
        self.delay = delay
        self.results = list(results or [])
        self.calls = []
        self.attempts = {}

    async def generate_one(self, source, config, index=0):
        self.calls.append((index, config))
        attempt = self.attempts[index] = self.attempts.get(index, 0) + 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if index in self.fail_indices:
            raise RuntimeError(f"model error on concept {index}")
        if self.results:
            return self.results.pop(0)
        name = f"concept-{index}" if attempt == 1 else f"concept-{index}-attempt-{attempt}"
        return GeneratedImage(data=name.encode(), mime_type="image/png")


class FakeValidator:
    def __init__(self, score: float = 0.9, error: Exception | None = None):
        self.score_value = score
        self.error = error
        self.calls = 0

    async def score(self, original, candidate):
        self.calls += 1
        if self.error:
            raise self.error
        return ValidationOutcome(score=self.score_value, passed=self.score_value >= 0.7)


class FakeStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.keys = []
        self.blobs = {}

    async def put(self, key, data, content_type):
        if self.fail:
            raise ConnectionError("bucket unreachable")
        self.keys.append(key)
        self.blobs[key] = data
        return f"https://cdn.test/{key}"


class FakeRepository:
    def __init__(self, fail_insert: bool = False, fail_metrics: bool = False):
        self.fail_insert = fail_insert
        self.fail_metrics = fail_metrics
        self.rows = {}
        self.metrics = []

    async def insert(self, row):
        if self.fail_insert:
            raise RuntimeError("visualizations insert failed")
        saved = {**row, "id": f"viz-{len(self.rows) + 1}", "created_at": "2026-01-01T00:00:00+00:00"}
        self.rows[saved["id"]] = saved
        return saved

    async def get(self, visualization_id):
        return self.rows.get(visualization_id)

    async def update(self, visualization_id, updates):
        row = self.rows.get(visualization_id)
        if row is None:
            return None
        row.update(updates)
        return row

    async def insert_metrics(self, row):
        if self.fail_metrics:
            raise RuntimeError("metrics table missing")
        self.metrics.append(row)
        return row

    async def list_metrics(self, since_iso):
        return list(self.metrics)


class StaticExtractor(ConditioningExtractor):
    """Returns a fixed image, raises a fixed error, or hangs."""

    def __init__(self, role, *, image=None, error=None, hang=False, timeout_s=1.0, enabled=True):
        super().__init__(enabled=enabled, timeout_s=timeout_s)
        self.role = role
        self.image = image
        self.error = error
        self.hang = hang
        self.calls = 0

    async def _run(self, source):
        self.calls += 1
        if self.hang:
            await asyncio.sleep(3600)
        if self.error:
            raise self.error
        return self.image or ConditioningImage(role=self.role, data=png_bytes(), mime_type="image/png")


def make_pipeline(settings=None, **collaborators) -> VisualizationPipeline:
    repository = collaborators.pop("repository", None) or FakeRepository()
    fields = {
        "generator": FakeGenerator(),
        "repository": repository,
        "store": FakeStore(),
        "metrics": MetricsRecorder(insert=repository.insert_metrics),
    }
    fields.update(collaborators)
    return VisualizationPipeline(settings or bare_settings(), **fields)
