"""Visualize endpoint plus the small admin surface over stored visualizations."""

import logging
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ..errors import VisualizationError
from ..models.schemas import (
    MetricsSummary,
    VisualizationAssessment,
    VisualizationResponse,
    VisualizeRequest,
)
from ..workflow.metrics import summarize_metrics
from ..workflow.pipeline import VisualizationPipeline, build_pipeline, build_request
from ..workflow.storage import VisualizationRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["visualizations"])

_pipeline: VisualizationPipeline | None = None


def get_pipeline() -> VisualizationPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
    return _pipeline


def get_repository(
    pipeline: VisualizationPipeline = Depends(get_pipeline),
) -> VisualizationRepository:
    return pipeline.repository


def _error_response(err: VisualizationError) -> JSONResponse:
    return JSONResponse(status_code=err.status_code, content=err.to_body())


@router.post("/api/ai/visualize", response_model=VisualizationResponse)
async def visualize(
    body: VisualizeRequest,
    request: Request,
    pipeline: VisualizationPipeline = Depends(get_pipeline),
):
    """Generate renovation concepts for a room photo."""
    try:
        gen_request = build_request(body, request.headers.get("user-agent", ""))
        result = await pipeline.generate(gen_request)
    except VisualizationError as err:
        logger.warning("Visualize: %s (%s): %s", err.code.value, err.message, err.details)
        return _error_response(err)
    return result.to_response()


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

@router.get("/api/admin/visualizations/metrics")
async def metrics_summary(
    days: int = Query(default=30, ge=1, le=365),
    repository: VisualizationRepository = Depends(get_repository),
) -> dict:
    since = (datetime.now(UTC) - timedelta(days=days)).isoformat()
    try:
        rows = await repository.list_metrics(since)
    except Exception:
        logger.exception("Admin: failed to fetch metrics")
        raise HTTPException(status_code=500, detail="Failed to fetch metrics")
    summary: MetricsSummary = summarize_metrics(rows)
    return {"summary": summary.model_dump(), "days": days}


@router.get("/api/admin/visualizations/{visualization_id}")
async def get_visualization(
    visualization_id: str,
    repository: VisualizationRepository = Depends(get_repository),
) -> dict:
    row = await repository.get(visualization_id)
    if not row:
        raise HTTPException(status_code=404, detail="Visualization not found")
    return row


@router.patch("/api/admin/visualizations/{visualization_id}")
async def update_visualization(
    visualization_id: str,
    body: VisualizationAssessment,
    repository: VisualizationRepository = Depends(get_repository),
) -> dict:
    """Update contractor review fields. Concepts are never writable here."""
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    row = await repository.update(visualization_id, updates)
    if not row:
        raise HTTPException(status_code=404, detail="Visualization not found")
    return row
