"""Structural room analysis: one vision call that describes what must be preserved."""

import json
import logging
import re

from ..models.pipeline import SourceImage
from ..models.schemas import RoomAnalysis, RoomType
from ..prompts.room_analysis import room_analysis_prompt
from ..tools.llm import call_vision

logger = logging.getLogger(__name__)


def _extract_json(text: str) -> str:
    """Strip markdown fences or surrounding prose to isolate JSON."""
    m = re.search(r"```(?:json)?\s*(\{[\s\S]*\})\s*```", text)
    if m:
        return m.group(1)
    m = re.search(r"(\{[\s\S]*\})", text)
    if m:
        return m.group(1)
    return text


def parse_model_json(text: str) -> dict:
    """Parse a JSON object out of a model reply. Raises ValueError if there isn't one."""
    data = json.loads(_extract_json(text))
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data


class RoomAnalyzer:
    """Describes fixtures, layout, lighting and preservation constraints of a room photo."""

    def __init__(self, call=call_vision):
        self._call = call

    async def analyze(self, source: SourceImage, room_type: RoomType | None = None) -> dict:
        raw = await self._call(room_analysis_prompt(room_type), [source.data_url], 0.3, 2500)
        analysis = RoomAnalysis.model_validate(parse_model_json(raw))
        logger.info(
            "Room analysis: layout=%s confidence=%.2f, %d structural elements",
            analysis.layout_type or "?",
            analysis.confidence_score,
            len(analysis.structural_elements),
        )
        return analysis.model_dump()
