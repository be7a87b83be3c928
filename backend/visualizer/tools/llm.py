"""OpenRouter client for the vision (analysis, validation) and image models."""

import logging

from openai import AsyncOpenAI

from ..config import OPENROUTER_API_KEY, VISION_MODEL

logger = logging.getLogger(__name__)

_client: AsyncOpenAI | None = None

EXTRA_HEADERS = {
    "HTTP-Referer": "https://roomvisualizer.app",
    "X-Title": "Room Visualizer",
}


def get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        if not OPENROUTER_API_KEY:
            raise RuntimeError("OPENROUTER_API_KEY is not set")
        _client = AsyncOpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=OPENROUTER_API_KEY,
            timeout=120.0,
        )
    return _client


def image_content_part(image_url_or_base64: str) -> dict:
    """Build an image_url content part from a URL or base64 string."""
    if image_url_or_base64.startswith(("data:", "http")):
        url = image_url_or_base64
    else:
        # Treat as raw base64, guess JPEG
        url = f"data:image/jpeg;base64,{image_url_or_base64}"

    return {"type": "image_url", "image_url": {"url": url}}


def user_message(prompt: str, images: list[str]) -> list[dict]:
    """Text first, then the images in the given order."""
    content = [{"type": "text", "text": prompt}]
    content.extend(image_content_part(img) for img in images)
    return [{"role": "user", "content": content}]


async def call_vision(
    prompt: str,
    images: list[str],
    temperature: float = 0.3,
    max_tokens: int | None = None,
) -> str:
    """Call the vision model with a prompt and one or more images. Returns the text content."""
    kwargs = {}
    if max_tokens:
        kwargs["max_tokens"] = max_tokens
    resp = await get_client().chat.completions.create(
        model=VISION_MODEL,
        messages=user_message(prompt, images),
        temperature=temperature,
        extra_headers=EXTRA_HEADERS,
        **kwargs,
    )
    return resp.choices[0].message.content or ""
