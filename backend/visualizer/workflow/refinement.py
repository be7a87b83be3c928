"""Bounded generate -> validate -> regenerate loop for the primary concept.

At most two generation calls. A low score triggers exactly one retry with
refinement guidance; the retry result is returned whatever its own score.
A missing or failing validator is fail-open: the first candidate is returned.
"""

import dataclasses
import logging

from ..config import MAX_REFINEMENT_RETRIES
from ..models.pipeline import GenerationConfig, RefinementResult, SourceImage
from ..prompts.renovation import refinement_guidance
from .generator import ConceptGenerator
from .validation import StructureValidator

logger = logging.getLogger(__name__)


class RefinementController:
    def __init__(
        self,
        generator: ConceptGenerator,
        validator: StructureValidator | None,
        *,
        max_retries: int = MAX_REFINEMENT_RETRIES,
    ):
        self.generator = generator
        self.validator = validator
        self.max_retries = max_retries

    async def generate_with_refinement(
        self, source: SourceImage, config: GenerationConfig, index: int = 0,
    ) -> RefinementResult:
        first = await self.generator.generate_one(source, config, index)

        if self.validator is None:
            return RefinementResult(image=first)

        try:
            outcome = await self.validator.score(source, first)
        except Exception as e:
            logger.warning("Concept %d: structure validation failed, keeping first pass: %s", index, e)
            return RefinementResult(image=first)

        if outcome.passed or self.max_retries < 1:
            return RefinementResult(image=first, validation_score=outcome.score)

        logger.info("Concept %d: validation score %.2f below threshold, refining", index, outcome.score)
        refined_config = dataclasses.replace(
            config, refinement_guidance=refinement_guidance(outcome.score, outcome.issues),
        )
        try:
            second = await self.generator.generate_one(source, refined_config, index)
        except Exception as e:
            logger.warning("Concept %d: refinement generation failed, keeping first pass: %s", index, e)
            return RefinementResult(image=first, validation_score=outcome.score, generation_calls=2)

        return RefinementResult(
            image=second,
            was_refined=True,
            validation_score=outcome.score,
            generation_calls=2,
        )
