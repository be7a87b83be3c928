"""Tests for the visualization pipeline orchestrator.

All external collaborators are in-memory fakes (see fakes.py), so these run
without network access or API keys.
"""

import asyncio
import logging

import pytest

from fakes import (
    FakeGenerator,
    FakeRepository,
    FakeStore,
    FakeValidator,
    StaticExtractor,
    bare_settings,
    make_pipeline,
    make_request,
    png_bytes,
)
from visualizer.errors import VisualizationError
from visualizer.models.pipeline import ConditioningImage, DepthRange
from visualizer.models.schemas import (
    DesignIntent,
    DesignStyle,
    ErrorCode,
    RoomType,
    VisualizationMode,
    VisualizeRequest,
)
from visualizer.workflow.pipeline import build_request, device_type, share_token


# --- Happy path ---


@pytest.mark.asyncio
async def test_four_concepts_in_index_order():
    repo = FakeRepository()
    pipeline = make_pipeline(repository=repo)

    result = await pipeline.generate(make_request())

    assert [c.index for c in result.concepts] == [0, 1, 2, 3]
    assert [c.id.split("-")[1] for c in result.concepts] == ["1", "2", "3", "4"]
    assert all(c.image.url.startswith("https://cdn.test/generated/") for c in result.concepts)
    assert result.original_image.url.startswith("https://cdn.test/original/")
    assert result.concepts[0].description == "Modern kitchen design - Concept 1"

    row = repo.rows[result.id]
    assert len(row["generated_concepts"]) == 4
    assert row["source"] == "visualizer"
    assert row["device_type"] == "desktop"
    assert len(row["share_token"]) == 12


@pytest.mark.asyncio
async def test_response_shape():
    pipeline = make_pipeline()
    result = await pipeline.generate(make_request(constraints="keep the island"))

    body = result.to_response()
    assert set(body) == {
        "id", "original_image_url", "room_type", "style", "constraints",
        "concepts", "generation_time_ms", "created_at",
    }
    assert body["room_type"] == "kitchen"
    assert body["style"] == "modern"
    assert body["constraints"] == "keep the island"
    assert set(body["concepts"][0]) == {"id", "image_url", "description", "generated_at"}


@pytest.mark.asyncio
async def test_concepts_are_generated_concurrently():
    in_flight = 0
    peak = 0

    class CountingGenerator(FakeGenerator):
        async def generate_one(self, source, config, index=0):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.05)
            in_flight -= 1
            return await super().generate_one(source, config, index)

    pipeline = make_pipeline(generator=CountingGenerator())
    await pipeline.generate(make_request())
    assert peak == 4


@pytest.mark.asyncio
async def test_count_is_capped_by_settings():
    generator = FakeGenerator()
    pipeline = make_pipeline(bare_settings(max_concepts=2), generator=generator)

    result = await pipeline.generate(make_request(count=4))
    assert len(result.concepts) == 2
    assert len(generator.calls) == 2


# --- Partial and total failure ---


@pytest.mark.asyncio
async def test_one_failed_concept_is_tolerated(caplog):
    pipeline = make_pipeline(generator=FakeGenerator(fail_indices={1}))

    with caplog.at_level(logging.WARNING):
        result = await pipeline.generate(make_request())

    assert [c.index for c in result.concepts] == [0, 2, 3]
    assert "only generated 3/4 concepts" in caplog.text
    assert "Concept 1: generation failed" in caplog.text


@pytest.mark.asyncio
async def test_all_concepts_failing_raises_generation_failed():
    repo = FakeRepository()
    pipeline = make_pipeline(repository=repo, generator=FakeGenerator(fail_indices={0, 1, 2, 3}))

    with pytest.raises(VisualizationError) as exc_info:
        await pipeline.generate(make_request())

    err = exc_info.value
    assert err.code == ErrorCode.GENERATION_FAILED
    assert err.status_code == 500
    assert err.details == "model error on concept 0"
    assert repo.rows == {}

    await pipeline.metrics.drain()
    assert repo.metrics[0]["error_occurred"] is True
    assert repo.metrics[0]["error_code"] == "GENERATION_FAILED"
    assert repo.metrics[0]["visualization_id"] is None


@pytest.mark.asyncio
async def test_missing_generator_is_503():
    pipeline = make_pipeline(generator=None)

    with pytest.raises(VisualizationError) as exc_info:
        await pipeline.generate(make_request())
    assert exc_info.value.code == ErrorCode.GENERATION_FAILED
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_record_insert_failure_is_storage_error():
    pipeline = make_pipeline(repository=FakeRepository(fail_insert=True))

    with pytest.raises(VisualizationError) as exc_info:
        await pipeline.generate(make_request())
    assert exc_info.value.code == ErrorCode.STORAGE_ERROR
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_timeout_is_distinct_from_generation_failure():
    repo = FakeRepository()
    pipeline = make_pipeline(
        bare_settings(timeout_s=0.1), repository=repo, generator=FakeGenerator(delay=2.0),
    )

    with pytest.raises(VisualizationError) as exc_info:
        await pipeline.generate(make_request())
    assert exc_info.value.code == ErrorCode.TIMEOUT
    assert exc_info.value.status_code == 504

    await pipeline.metrics.drain()
    assert repo.metrics[0]["error_code"] == "TIMEOUT"


@pytest.mark.asyncio
async def test_unexpected_error_is_unknown():
    class BrokenRepository(FakeRepository):
        async def insert(self, row):
            return {}  # no id

    pipeline = make_pipeline(repository=BrokenRepository())

    with pytest.raises(VisualizationError) as exc_info:
        await pipeline.generate(make_request())
    assert exc_info.value.code == ErrorCode.UNKNOWN


# --- Storage degradation ---


@pytest.mark.asyncio
async def test_store_failure_falls_back_to_inline(caplog):
    repo = FakeRepository()
    pipeline = make_pipeline(repository=repo, store=FakeStore(fail=True))

    with caplog.at_level(logging.WARNING):
        result = await pipeline.generate(make_request())

    assert len(result.concepts) == 4
    assert result.original_image.is_inline
    assert result.original_image.url.startswith("data:image/png;base64,")
    assert all(c.image.url.startswith("data:image/png;base64,") for c in result.concepts)
    assert repo.rows[result.id]["original_photo_url"].startswith("data:")
    assert "upload failed, using inline data" in caplog.text


@pytest.mark.asyncio
async def test_missing_store_falls_back_to_inline():
    pipeline = make_pipeline(store=None)
    result = await pipeline.generate(make_request(count=1))
    assert result.concepts[0].image.is_inline


# --- Metrics ---


@pytest.mark.asyncio
async def test_metrics_written_after_response():
    repo = FakeRepository()
    pipeline = make_pipeline(repository=repo)

    result = await pipeline.generate(make_request())
    await pipeline.metrics.drain()

    row = repo.metrics[0]
    assert row["visualization_id"] == result.id
    assert row["concepts_requested"] == 4
    assert row["concepts_generated"] == 4
    assert row["generation_cost_usd"] == pytest.approx(0.4)
    assert row["analysis_cost_usd"] == 0
    assert row["error_occurred"] is False
    assert row["mode"] == "quick"


@pytest.mark.asyncio
async def test_metrics_failure_does_not_affect_response(caplog):
    repo = FakeRepository(fail_metrics=True)
    pipeline = make_pipeline(repository=repo)

    with caplog.at_level(logging.ERROR):
        result = await pipeline.generate(make_request())
        await pipeline.metrics.drain()

    assert len(result.concepts) == 4
    assert "Metrics: write failed" in caplog.text
    assert pipeline.metrics.pending == 0


@pytest.mark.asyncio
async def test_streamlined_mode_is_recorded_as_quick():
    repo = FakeRepository()
    pipeline = make_pipeline(repository=repo)

    await pipeline.generate(make_request(mode=VisualizationMode.STREAMLINED, count=1))
    await pipeline.metrics.drain()
    assert repo.metrics[0]["mode"] == "quick"


@pytest.mark.asyncio
async def test_conversation_mode():
    repo = FakeRepository()
    pipeline = make_pipeline(repository=repo)

    result = await pipeline.generate(make_request(
        mode=VisualizationMode.CONVERSATION,
        conversation_context={"messages": [{"role": "user"}, {"role": "assistant"}]},
        count=1,
    ))
    await pipeline.metrics.drain()

    assert repo.rows[result.id]["source"] == "visualizer_conversation"
    assert repo.metrics[0]["mode"] == "conversation"
    assert repo.metrics[0]["conversation_turns"] == 2


# --- Analysis ---


class FakeAnalyzer:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    async def analyze(self, source, room_type=None):
        self.calls += 1
        if self.error:
            raise self.error
        return {"structural_elements": ["window on back wall"], "preservation_constraints": []}


@pytest.mark.asyncio
async def test_analyzer_result_reaches_generator_and_record():
    repo = FakeRepository()
    generator = FakeGenerator()
    analyzer = FakeAnalyzer()
    pipeline = make_pipeline(
        bare_settings(enable_photo_analysis=True),
        repository=repo, generator=generator, analyzer=analyzer,
    )

    result = await pipeline.generate(make_request(count=1))
    await pipeline.metrics.drain()

    config = generator.calls[0][1]
    assert config.photo_analysis["structural_elements"] == ["window on back wall"]
    assert repo.rows[result.id]["photo_analysis"] == config.photo_analysis
    assert repo.metrics[0]["photo_analyzed"] is True
    assert repo.metrics[0]["analysis_cost_usd"] == pytest.approx(0.015)


@pytest.mark.asyncio
async def test_supplied_analysis_skips_analyzer():
    analyzer = FakeAnalyzer()
    generator = FakeGenerator()
    pipeline = make_pipeline(
        bare_settings(enable_photo_analysis=True), generator=generator, analyzer=analyzer,
    )

    supplied = {"layout_type": "galley"}
    await pipeline.generate(make_request(photo_analysis=supplied, count=1))

    assert analyzer.calls == 0
    assert generator.calls[0][1].photo_analysis == supplied


@pytest.mark.asyncio
async def test_skip_analysis_flag():
    analyzer = FakeAnalyzer()
    pipeline = make_pipeline(bare_settings(enable_photo_analysis=True), analyzer=analyzer)

    await pipeline.generate(make_request(skip_analysis=True, count=1))
    assert analyzer.calls == 0


@pytest.mark.asyncio
async def test_analyzer_failure_continues_without_analysis(caplog):
    generator = FakeGenerator()
    pipeline = make_pipeline(
        bare_settings(enable_photo_analysis=True),
        generator=generator, analyzer=FakeAnalyzer(error=ValueError("bad json")),
    )

    with caplog.at_level(logging.WARNING):
        result = await pipeline.generate(make_request(count=2))

    assert len(result.concepts) == 2
    assert generator.calls[0][1].photo_analysis is None
    assert "Analysis: failed" in caplog.text


# --- Conditioning ---


@pytest.mark.asyncio
async def test_depth_failure_keeps_edge_map():
    generator = FakeGenerator()
    pipeline = make_pipeline(
        generator=generator,
        depth=StaticExtractor("depth", error=ConnectionError("fal down")),
        edge=StaticExtractor("edge"),
    )

    result = await pipeline.generate(make_request(count=1))

    config = generator.calls[0][1]
    assert config.bundle.roles == ["source", "edge"]
    assert config.has_edge_map and not config.has_depth_map
    assert result.bundle_roles == ("source", "edge")


@pytest.mark.asyncio
async def test_full_bundle_order_and_depth_cost():
    repo = FakeRepository()
    generator = FakeGenerator()
    depth_image = ConditioningImage(
        role="depth", data=png_bytes(), mime_type="image/png", depth_range=DepthRange(0.5, 6.0),
    )
    pipeline = make_pipeline(
        repository=repo,
        generator=generator,
        depth=StaticExtractor("depth", image=depth_image),
        edge=StaticExtractor("edge"),
    )

    await pipeline.generate(make_request(count=1))
    await pipeline.metrics.drain()

    config = generator.calls[0][1]
    assert config.bundle.roles == ["source", "depth", "edge"]
    assert config.depth_range == DepthRange(0.5, 6.0)
    assert repo.metrics[0]["estimated_cost_usd"] == pytest.approx(0.102)


@pytest.mark.asyncio
async def test_all_stages_healthy_logs_no_warnings(caplog):
    generator = FakeGenerator()
    pipeline = make_pipeline(
        generator=generator,
        depth=StaticExtractor("depth"),
        edge=StaticExtractor("edge"),
    )

    with caplog.at_level(logging.WARNING):
        result = await pipeline.generate(make_request(count=4))

    assert [c.index for c in result.concepts] == [0, 1, 2, 3]
    assert result.bundle_roles == ("source", "depth", "edge")
    assert all(cfg.bundle.roles == ["source", "depth", "edge"] for _, cfg in generator.calls)
    assert [r for r in caplog.records if r.levelno >= logging.WARNING] == []


@pytest.mark.asyncio
async def test_both_extractors_failing_still_generates():
    generator = FakeGenerator()
    pipeline = make_pipeline(
        generator=generator,
        depth=StaticExtractor("depth", hang=True, timeout_s=0.05),
        edge=StaticExtractor("edge", error=ValueError("not an image")),
    )

    result = await pipeline.generate(make_request(count=2))
    assert len(result.concepts) == 2
    assert generator.calls[0][1].bundle.roles == ["source"]


# --- Refinement ---


@pytest.mark.asyncio
async def test_primary_concept_goes_through_refinement():
    repo = FakeRepository()
    store = FakeStore()
    generator = FakeGenerator()
    validator = FakeValidator(score=0.5)
    pipeline = make_pipeline(
        bare_settings(enable_iterative_refinement=True),
        repository=repo, generator=generator, validator=validator, store=store,
    )

    result = await pipeline.generate(make_request())
    await pipeline.metrics.drain()

    indices = [index for index, _ in generator.calls]
    assert sorted(indices) == [0, 0, 1, 2, 3]
    assert validator.calls == 1
    assert result.was_refined
    assert result.validation_score == 0.5
    refined = [cfg for index, cfg in generator.calls if cfg.refinement_guidance]
    assert len(refined) == 1

    primary_key = result.concepts[0].image.url.removeprefix("https://cdn.test/")
    assert store.blobs[primary_key] == b"concept-0-attempt-2"

    row = repo.metrics[0]
    assert row["retry_count"] == 1
    assert row["structure_validation_score"] == 0.5
    assert row["validation_passed"] is False
    assert row["generation_cost_usd"] == pytest.approx(0.5)
    assert row["validation_cost_usd"] == pytest.approx(0.01)


@pytest.mark.asyncio
async def test_refinement_disabled_means_direct_generation():
    generator = FakeGenerator()
    validator = FakeValidator(score=0.1)
    pipeline = make_pipeline(generator=generator, validator=validator)

    result = await pipeline.generate(make_request())
    assert len(generator.calls) == 4
    assert validator.calls == 0
    assert not result.was_refined


# --- Request building and mapping ---


@pytest.mark.asyncio
async def test_other_room_and_style_map_to_defaults():
    repo = FakeRepository()
    generator = FakeGenerator()
    pipeline = make_pipeline(repository=repo, generator=generator)

    result = await pipeline.generate(make_request(
        room_type=RoomType.OTHER,
        custom_room_type="home office",
        style=DesignStyle.OTHER,
        custom_style="japandi",
        design_intent=DesignIntent(desired_changes=["oak desk", "built-in shelves", "rug"]),
        count=1,
    ))

    assert result.room_type == RoomType.LIVING_ROOM
    assert result.style == DesignStyle.CONTEMPORARY
    assert repo.rows[result.id]["room_type"] == "living_room"
    assert repo.rows[result.id]["style"] == "contemporary"
    assert result.concepts[0].description == (
        "Japandi home office design - Concept 1 featuring oak desk and built-in shelves"
    )


@pytest.mark.asyncio
async def test_exterior_is_stored_as_living_room():
    repo = FakeRepository()
    generator = FakeGenerator()
    pipeline = make_pipeline(repository=repo, generator=generator)

    result = await pipeline.generate(make_request(room_type=RoomType.EXTERIOR, count=1))

    assert repo.rows[result.id]["room_type"] == "living_room"
    assert generator.calls[0][1].room_type == RoomType.EXTERIOR
    assert result.room_type == RoomType.EXTERIOR


def test_build_request_decodes_image():
    import base64

    body = VisualizeRequest(
        image="data:image/jpeg;base64," + base64.b64encode(png_bytes()).decode(),
        room_type="bathroom",
        style="industrial",
    )
    request = build_request(body, "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile")

    # sniffed format wins over the declared one
    assert request.source.mime_type == "image/png"
    assert request.room_type == RoomType.BATHROOM
    assert request.count == 4


@pytest.mark.parametrize("image", [
    "data:image/png;base64,!!!not-base64!!!",
    "data:image/png;base64," + "aGVsbG8gd29ybGQ=",  # "hello world"
    "",
])
def test_build_request_rejects_bad_images(image):
    body = VisualizeRequest(image=image, room_type="kitchen", style="modern")
    with pytest.raises(VisualizationError) as exc_info:
        build_request(body)
    assert exc_info.value.code == ErrorCode.INVALID_IMAGE
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize("user_agent,expected", [
    ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148", "mobile"),
    ("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X)", "tablet"),
    ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0", "desktop"),
    ("", "desktop"),
])
def test_device_type(user_agent, expected):
    assert device_type(user_agent) == expected


def test_share_token():
    token = share_token()
    assert len(token) == 12
    assert token.isalnum()
