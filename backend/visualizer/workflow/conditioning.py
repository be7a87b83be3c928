"""Best-effort structural conditioning: depth map and edge map.

Extractors never raise. A skipped extraction is logged with its reason and
comes back as None, so the bundle may be source-only, source+depth,
source+edge or complete.
"""

import asyncio
import logging
from enum import Enum

from ..models.pipeline import (
    DEFAULT_MAX_DEPTH_M,
    DEFAULT_MIN_DEPTH_M,
    ConditioningBundle,
    ConditioningImage,
    DepthRange,
    SourceImage,
)
from ..tools.depth import DepthOutputError, estimate_depth
from ..tools.edges import extract_edge_map

logger = logging.getLogger(__name__)


class SkipReason(str, Enum):
    DISABLED = "disabled"
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    MALFORMED = "malformed"


def normalize_depth_range(min_depth, max_depth) -> DepthRange:
    """Fall back to 0.1-10.0 m unless the estimator gave a sane positive range."""
    valid = (
        isinstance(min_depth, (int, float))
        and isinstance(max_depth, (int, float))
        and 0 <= min_depth < max_depth
    )
    if not valid:
        return DepthRange(DEFAULT_MIN_DEPTH_M, DEFAULT_MAX_DEPTH_M)
    return DepthRange(float(min_depth), float(max_depth))


class ConditioningExtractor:
    """Base class: timeout + error classification around `_run`."""

    role = "source"

    def __init__(self, *, enabled: bool = True, timeout_s: float = 10.0):
        self.enabled = enabled
        self.timeout_s = timeout_s

    async def _run(self, source: SourceImage) -> ConditioningImage:
        raise NotImplementedError

    def _skip(self, reason: SkipReason, error: object = None) -> None:
        if reason is SkipReason.DISABLED:
            logger.info("Conditioning[%s]: skipped (disabled)", self.role)
        else:
            logger.warning("Conditioning[%s]: skipped (%s): %s", self.role, reason.value, error)
        return None

    async def extract(self, source: SourceImage) -> ConditioningImage | None:
        if not self.enabled:
            return self._skip(SkipReason.DISABLED)
        try:
            image = await asyncio.wait_for(self._run(source), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            return self._skip(SkipReason.TIMEOUT, f"no result after {self.timeout_s:.0f}s")
        except ValueError as e:
            return self._skip(SkipReason.MALFORMED, e)
        except Exception as e:
            # httpx, fal_client and network errors alike
            return self._skip(SkipReason.UNREACHABLE, e)
        logger.info("Conditioning[%s]: %d bytes", self.role, len(image.data))
        return image


class DepthExtractor(ConditioningExtractor):
    role = "depth"

    def __init__(self, *, enabled: bool = True, timeout_s: float = 25.0, estimate=estimate_depth):
        super().__init__(enabled=enabled, timeout_s=timeout_s)
        self._estimate = estimate

    async def _run(self, source: SourceImage) -> ConditioningImage:
        result = await self._estimate(source.data, source.mime_type)
        if not result or not result.get("data"):
            raise DepthOutputError("Depth estimator returned no map")
        return ConditioningImage(
            role="depth",
            data=result["data"],
            mime_type=result.get("mime_type") or "image/png",
            depth_range=normalize_depth_range(result.get("min_depth"), result.get("max_depth")),
        )


class EdgeExtractor(ConditioningExtractor):
    role = "edge"

    def __init__(self, *, enabled: bool = True, timeout_s: float = 10.0, extract=extract_edge_map):
        super().__init__(enabled=enabled, timeout_s=timeout_s)
        self._extract = extract

    async def _run(self, source: SourceImage) -> ConditioningImage:
        png = await asyncio.to_thread(self._extract, source.data)
        return ConditioningImage(role="edge", data=png, mime_type="image/png")


async def extract_conditioning(
    source: SourceImage,
    depth: ConditioningExtractor,
    edge: ConditioningExtractor,
) -> ConditioningBundle:
    """Run both extractors concurrently and assemble the bundle in source, depth, edge order."""
    depth_image, edge_image = await asyncio.gather(
        depth.extract(source),
        edge.extract(source),
        return_exceptions=True,
    )
    # extract() doesn't raise; a stray exception here is treated as a skip
    if isinstance(depth_image, BaseException):
        logger.warning("Conditioning[depth]: skipped (unreachable): %s", depth_image)
        depth_image = None
    if isinstance(edge_image, BaseException):
        logger.warning("Conditioning[edge]: skipped (unreachable): %s", edge_image)
        edge_image = None
    return ConditioningBundle.assemble(source, depth_image, edge_image)
