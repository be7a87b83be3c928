"""Structure validator: scores how faithfully a concept keeps the original room."""

import logging

from ..config import VALIDATION_PASS_THRESHOLD
from ..models.pipeline import GeneratedImage, SourceImage, ValidationOutcome
from ..models.verification import StructureVerdict
from ..prompts.structure_validation import structure_validation_prompt
from ..tools.llm import call_vision
from .analysis import parse_model_json

logger = logging.getLogger(__name__)


class StructureValidator:
    def __init__(self, call=call_vision, threshold: float = VALIDATION_PASS_THRESHOLD):
        self._call = call
        self.threshold = threshold

    async def score(self, original: SourceImage, candidate: GeneratedImage) -> ValidationOutcome:
        """Compare original and candidate. Raises if the model call or its JSON fails."""
        raw = await self._call(
            structure_validation_prompt(),
            [original.data_url, candidate.data_url],
            0.2,
            500,
        )
        verdict = StructureVerdict.model_validate(parse_model_json(raw))
        outcome = ValidationOutcome(
            score=verdict.overall_score,
            passed=verdict.overall_score >= self.threshold,
            issues=tuple(verdict.issues),
        )
        logger.info(
            "Structure validation: score=%.2f passed=%s issues=%d",
            outcome.score, outcome.passed, len(outcome.issues),
        )
        return outcome
