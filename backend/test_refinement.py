"""Tests for the bounded refinement loop and the structure validator."""

import json
from unittest.mock import AsyncMock

import pytest

from fakes import FakeGenerator, FakeValidator, make_source
from visualizer.models.pipeline import GeneratedImage, GenerationConfig
from visualizer.models.schemas import DesignStyle, RoomType
from visualizer.workflow.refinement import RefinementController
from visualizer.workflow.validation import StructureValidator

FIRST = GeneratedImage(data=b"first", mime_type="image/png")
SECOND = GeneratedImage(data=b"second", mime_type="image/png")


def _config() -> GenerationConfig:
    return GenerationConfig(room_type=RoomType.KITCHEN, style=DesignStyle.FARMHOUSE)


class TestRefinementController:
    @pytest.mark.asyncio
    async def test_passing_score_keeps_first_candidate(self):
        generator = FakeGenerator(results=[FIRST, SECOND])
        controller = RefinementController(generator, FakeValidator(score=0.85))

        result = await controller.generate_with_refinement(make_source(), _config())

        assert result.image == FIRST
        assert result.generation_calls == 1
        assert not result.was_refined
        assert result.validation_score == 0.85

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self):
        generator = FakeGenerator(results=[FIRST, SECOND])
        controller = RefinementController(generator, FakeValidator(score=0.7))

        result = await controller.generate_with_refinement(make_source(), _config())
        assert result.image == FIRST
        assert len(generator.calls) == 1

    @pytest.mark.asyncio
    async def test_low_score_regenerates_once_with_guidance(self):
        generator = FakeGenerator(results=[FIRST, SECOND])
        validator = FakeValidator(score=0.5)
        controller = RefinementController(generator, validator)

        result = await controller.generate_with_refinement(make_source(), _config())

        assert result.image == SECOND
        assert result.was_refined
        assert result.generation_calls == 2
        assert validator.calls == 1  # second candidate is not re-validated

        first_config, second_config = generator.calls[0][1], generator.calls[1][1]
        assert first_config.refinement_guidance is None
        assert "Validation score was 0.50" in second_config.refinement_guidance
        # the shared config is never mutated
        assert _config().refinement_guidance is None

    @pytest.mark.asyncio
    async def test_never_more_than_two_calls(self):
        generator = FakeGenerator()
        controller = RefinementController(generator, FakeValidator(score=0.0))

        await controller.generate_with_refinement(make_source(), _config())
        assert len(generator.calls) == 2

    @pytest.mark.asyncio
    async def test_validator_error_fails_open(self):
        generator = FakeGenerator(results=[FIRST, SECOND])
        controller = RefinementController(generator, FakeValidator(error=TimeoutError("vision timeout")))

        result = await controller.generate_with_refinement(make_source(), _config())

        assert result.image == FIRST
        assert result.validation_score is None
        assert len(generator.calls) == 1

    @pytest.mark.asyncio
    async def test_missing_validator_fails_open(self):
        generator = FakeGenerator(results=[FIRST])
        controller = RefinementController(generator, None)

        result = await controller.generate_with_refinement(make_source(), _config())
        assert result.image == FIRST
        assert result.generation_calls == 1

    @pytest.mark.asyncio
    async def test_second_generation_failure_falls_back_to_first(self):
        class FlakyGenerator(FakeGenerator):
            async def generate_one(self, source, config, index=0):
                if config.refinement_guidance:
                    self.calls.append((index, config))
                    raise RuntimeError("rate limited")
                return await super().generate_one(source, config, index)

        generator = FlakyGenerator(results=[FIRST])
        controller = RefinementController(generator, FakeValidator(score=0.3))

        result = await controller.generate_with_refinement(make_source(), _config())
        assert result.image == FIRST
        assert not result.was_refined
        assert result.generation_calls == 2

    @pytest.mark.asyncio
    async def test_first_generation_failure_propagates(self):
        controller = RefinementController(FakeGenerator(fail_indices={0}), FakeValidator())
        with pytest.raises(RuntimeError):
            await controller.generate_with_refinement(make_source(), _config())


class TestStructureValidator:
    @pytest.mark.asyncio
    async def test_parses_fenced_json(self):
        reply = "```json\n" + json.dumps({
            "structure_preserved": False,
            "windows_doors_intact": True,
            "perspective_matches": True,
            "overall_score": 0.62,
            "issues": ["window moved to the left"],
        }) + "\n```"
        call = AsyncMock(return_value=reply)
        validator = StructureValidator(call=call)

        outcome = await validator.score(make_source(), FIRST)

        assert outcome.score == 0.62
        assert not outcome.passed
        assert outcome.issues == ("window moved to the left",)
        images = call.call_args.args[1]
        assert len(images) == 2
        assert images[1].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_out_of_range_score_raises(self):
        validator = StructureValidator(call=AsyncMock(return_value='{"overall_score": 3}'))
        with pytest.raises(ValueError):
            await validator.score(make_source(), FIRST)
