"""Gemini image generation via OpenRouter.

One call: prompt + reference images (source photo first) -> one rendered concept.
"""

import logging

from ..config import IMAGE_MODEL
from ..models.pipeline import GeneratedImage
from .images import parse_data_url
from .llm import EXTRA_HEADERS, get_client, user_message

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """\
You are a professional interior design visualization AI for a renovation company.

CRITICAL REQUIREMENTS:
- Preserve the EXACT room geometry, camera angle, and structural elements from the input photo
- Transform ONLY the finishes, fixtures, colors, and decor according to the style requested
- Maintain realistic lighting consistent with the original photo
- Keep windows, doors, and architectural features in their exact positions
- Never generate a completely different room, transform the existing one

COMMON PITFALLS TO AVOID:
- Do NOT change the room's dimensions or ceiling height
- Do NOT alter window or door positions/sizes
- Do NOT change the camera perspective or viewing angle
- Do NOT introduce architectural features not present in the original (e.g., arches, beams)
- Do NOT remove structural elements like columns or load-bearing walls
- Do NOT apply styles that require structural changes (e.g., vaulted ceilings)

OUTPUT: A single high-resolution photorealistic renovation visualization."""


def _extract_image_from_response(resp) -> str | None:
    """Extract a generated image data-URL from an OpenRouter multimodal response."""
    message = resp.choices[0].message

    # OpenRouter non-standard images field
    images = getattr(message, "images", None)
    if images:
        try:
            return images[0]["image_url"]["url"]
        except (KeyError, TypeError, IndexError):
            pass

    # Inline data URL in content string
    content = message.content or ""
    if isinstance(content, str) and content.startswith("data:image"):
        return content

    # Content array with image parts
    raw = resp.model_dump()
    choices = raw.get("choices", [])
    if choices:
        msg_content = choices[0].get("message", {}).get("content")
        if isinstance(msg_content, list):
            for part in msg_content:
                if not isinstance(part, dict):
                    continue
                img_url = part.get("image_url") or {}
                if isinstance(img_url, dict) and img_url.get("url", "").startswith("data:image"):
                    return img_url["url"]
                text = part.get("text") or ""
                if text.startswith("data:image"):
                    return text

    return None


async def generate_image(prompt: str, reference_images: list[str]) -> GeneratedImage:
    """Render one image from a prompt and ordered reference data-URLs.

    Raises ValueError when the model answers without an image.
    """
    resp = await get_client().chat.completions.create(
        model=IMAGE_MODEL,
        messages=[
            {"role": "system", "content": SYSTEM_INSTRUCTION},
            *user_message(prompt, reference_images),
        ],
        extra_body={"modalities": ["image", "text"]},
        extra_headers=EXTRA_HEADERS,
    )

    data_url = _extract_image_from_response(resp)
    if not data_url:
        raise ValueError("No image in generation response")

    mime_type, data = parse_data_url(data_url)
    logger.info("Image model: generated %d bytes (%s)", len(data), mime_type)
    return GeneratedImage(data=data, mime_type=mime_type)
