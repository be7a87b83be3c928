"""Concept generator: one prompt + reference images -> one candidate image."""

import logging

from ..models.pipeline import GeneratedImage, GenerationConfig, SourceImage
from ..prompts.renovation import build_renovation_prompt
from ..tools.image_gen import generate_image

logger = logging.getLogger(__name__)


class ConceptGenerator:
    """Stateless adapter over the image model. Errors propagate to the caller."""

    def __init__(self, render=generate_image):
        self._render = render

    async def generate_one(
        self, source: SourceImage, config: GenerationConfig, index: int = 0,
    ) -> GeneratedImage:
        prompt = build_renovation_prompt(config, index)
        # Bundle order is source, depth, edge; fall back to the bare source
        references = [img.data_url for img in config.bundle.images] or [source.data_url]
        logger.info(
            "Concept %d: generating with %d reference image(s)%s",
            index, len(references), " (refinement)" if config.refinement_guidance else "",
        )
        return await self._render(prompt, references)
