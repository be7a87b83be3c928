"""Per-request metrics: cost estimation, detached writes, and the admin summary.

Metrics writes run as detached tasks. The request never awaits them; the
recorder keeps a strong reference until each task finishes and logs failures
from its done-callback. `drain()` lets shutdown and tests wait for stragglers.
"""

import asyncio
import logging

from ..models.pipeline import MetricsRecord
from ..models.schemas import MetricsSummary, VisualizationMode

logger = logging.getLogger(__name__)

# Estimated USD cost per stage
ANALYSIS_COST_USD = 0.015
DEPTH_COST_USD = 0.002
GENERATION_COST_USD = 0.10
VALIDATION_COST_USD = 0.01


def metrics_mode(mode: VisualizationMode) -> str:
    """Metrics only distinguish quick and conversation."""
    return "conversation" if mode == VisualizationMode.CONVERSATION else "quick"


def conversation_turns(conversation_context: dict | None) -> int:
    if not conversation_context:
        return 0
    turns = conversation_context.get("turn_count")
    if isinstance(turns, int):
        return turns
    messages = conversation_context.get("messages")
    return len(messages) if isinstance(messages, list) else 0


def apply_costs(
    record: MetricsRecord,
    *,
    analyzed: bool,
    has_depth: bool,
    generation_calls: int,
    validated: bool,
) -> MetricsRecord:
    record.analysis_cost_usd = ANALYSIS_COST_USD if analyzed else 0.0
    record.depth_cost_usd = DEPTH_COST_USD if has_depth else 0.0
    record.generation_cost_usd = round(GENERATION_COST_USD * generation_calls, 4)
    record.validation_cost_usd = VALIDATION_COST_USD if validated else 0.0
    return record


class MetricsRecorder:
    def __init__(self, insert):
        self._insert = insert
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, record: MetricsRecord) -> asyncio.Task:
        task = asyncio.create_task(self._write(record))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def _write(self, record: MetricsRecord) -> None:
        await self._insert(record.to_row())
        logger.info(
            "Metrics: recorded %d/%d concepts in %dms (est. $%.3f)",
            record.concepts_generated,
            record.concepts_requested,
            record.generation_time_ms,
            record.estimated_cost_usd,
        )

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Metrics: write failed: %s", exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def summarize_metrics(rows: list[dict]) -> MetricsSummary:
    total = len(rows)
    if total == 0:
        return MetricsSummary()

    scores = [r["structure_validation_score"] for r in rows if r.get("structure_validation_score")]
    total_cost = sum(r.get("estimated_cost_usd") or 0 for r in rows)

    def pct(predicate) -> float:
        return sum(1 for r in rows if predicate(r)) / total * 100

    return MetricsSummary(
        total_visualizations=total,
        avg_generation_time_ms=round(sum(r.get("generation_time_ms") or 0 for r in rows) / total),
        avg_validation_score=sum(scores) / len(scores) if scores else None,
        retry_rate=sum(r.get("retry_count") or 0 for r in rows) / total,
        quote_conversion_rate=pct(lambda r: r.get("proceeded_to_quote")),
        admin_selection_rate=pct(lambda r: r.get("admin_selected")),
        conversation_mode_rate=pct(lambda r: r.get("mode") == "conversation"),
        total_cost_usd=round(total_cost, 4),
        avg_cost_per_visualization=round(total_cost / total, 4),
    )
