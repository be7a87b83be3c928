"""fal.ai wrapper: monocular depth estimation + FAL storage upload."""

import logging
import os

import fal_client
import httpx

from ..config import DEPTH_MODEL, FAL_KEY

logger = logging.getLogger(__name__)

# fal_client reads FAL_KEY from the environment automatically
os.environ.setdefault("FAL_KEY", FAL_KEY)


class DepthOutputError(ValueError):
    """The depth model answered, but not with a usable depth map."""


async def upload_to_fal(image_bytes: bytes, content_type: str = "image/png") -> str:
    """Upload image bytes to fal.ai storage and return a public URL.

    The depth model only accepts publicly-reachable URLs.
    """
    url = await fal_client.upload_async(image_bytes, content_type)
    logger.info("fal.ai: uploaded to storage → %s", url)
    return url


def _map_url(result) -> str:
    if not isinstance(result, dict):
        raise DepthOutputError(f"Unexpected depth result type {type(result).__name__}")
    image = result.get("image") or result.get("depth_map")
    if isinstance(image, dict):
        image = image.get("url")
    if not isinstance(image, str) or not image:
        raise DepthOutputError("No depth map URL in result")
    return image


def _range_value(result: dict, *keys: str) -> float | None:
    for key in keys:
        value = result.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return None


async def estimate_depth(image_bytes: bytes, content_type: str = "image/jpeg") -> dict:
    """Estimate a depth map for a room photo.

    Returns:
        {"data": bytes, "mime_type": str, "min_depth": float | None, "max_depth": float | None}.
        The range is None where the model doesn't report one.

    Raises:
        DepthOutputError: when the model output has no depth map.
        httpx.HTTPError / fal_client errors: when the service is unreachable.
    """
    image_url = await upload_to_fal(image_bytes, content_type)

    logger.info("fal.ai: estimating depth with %s", DEPTH_MODEL)
    result = await fal_client.subscribe_async(
        DEPTH_MODEL,
        arguments={"image_url": image_url},
    )
    map_url = _map_url(result)

    transport = httpx.AsyncHTTPTransport(retries=2)
    async with httpx.AsyncClient(transport=transport, timeout=httpx.Timeout(15.0)) as http:
        resp = await http.get(map_url)
        resp.raise_for_status()

    if not resp.content:
        raise DepthOutputError("Depth map download was empty")

    return {
        "data": resp.content,
        "mime_type": resp.headers.get("content-type", "image/png").split(";")[0],
        "min_depth": _range_value(result, "min_depth", "minDepth"),
        "max_depth": _range_value(result, "max_depth", "maxDepth"),
    }
