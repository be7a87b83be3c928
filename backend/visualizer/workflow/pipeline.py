"""Visualization pipeline orchestrator.

photo → persist original → (analysis ∥ depth ∥ edge) → N concepts in parallel
(concept 0 through the refinement loop) → persist concepts → record → response,
with a detached metrics write on success and on failure.
"""

import asyncio
import logging
import secrets
import string
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from .. import config as app_config
from ..config import PipelineSettings, load_pipeline_settings
from ..errors import VisualizationError
from ..models.pipeline import (
    Concept,
    ConditioningBundle,
    GenerationConfig,
    GenerationRequest,
    MetricsRecord,
    RefinementResult,
    SourceImage,
    VisualizationResult,
)
from ..models.schemas import ErrorCode, RoomType, VisualizationMode, VisualizeRequest
from ..prompts.renovation import build_concept_description
from ..tools.images import decode_image_data_url
from .analysis import RoomAnalyzer
from .conditioning import ConditioningExtractor, DepthExtractor, EdgeExtractor, extract_conditioning
from .generator import ConceptGenerator
from .metrics import MetricsRecorder, apply_costs, conversation_turns, metrics_mode
from .refinement import RefinementController
from .storage import (
    SupabaseArtifactStore,
    VisualizationRepository,
    generated_key,
    original_key,
    persist_image,
)
from .validation import StructureValidator

logger = logging.getLogger(__name__)

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def share_token(length: int = 12) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def device_type(user_agent: str) -> str:
    ua = (user_agent or "").lower()
    if "ipad" in ua or "tablet" in ua:
        return "tablet"
    if "mobi" in ua or "iphone" in ua or "android" in ua:
        return "mobile"
    return "desktop"


def build_request(body: VisualizeRequest, user_agent: str = "") -> GenerationRequest:
    """Decode and check the uploaded photo. Raises INVALID_IMAGE before any external call."""
    try:
        mime_type, data = decode_image_data_url(body.image)
    except ValueError as e:
        raise VisualizationError.invalid_image(str(e)) from e

    return GenerationRequest(
        source=SourceImage(data=data, mime_type=mime_type),
        room_type=body.room_type,
        style=body.style,
        count=body.count,
        custom_room_type=body.custom_room_type,
        custom_style=body.custom_style,
        constraints=body.constraints,
        photo_analysis=body.photo_analysis,
        design_intent=body.design_intent,
        voice_preferences_summary=body.voice_preferences_summary,
        conversation_context=body.conversation_context,
        mode=body.mode,
        skip_analysis=body.skip_analysis,
        user_agent=user_agent,
    )


@dataclass
class _RunStats:
    """What one run actually did, for the metrics row."""
    analyzed: bool = False
    has_depth: bool = False
    generation_calls: int = 0
    validation_score: float | None = None
    retry_count: int = 0
    concepts_generated: int = 0
    visualization_id: str | None = None


class VisualizationPipeline:
    """Turns one GenerationRequest into persisted concepts.

    Collaborators are injected; anything left as None is treated as disabled
    (no analyzer, no validator) or unavailable (no store means inline images,
    no generator means GENERATION_FAILED with 503).
    """

    def __init__(
        self,
        settings: PipelineSettings,
        *,
        generator: ConceptGenerator | None,
        repository: VisualizationRepository,
        analyzer: RoomAnalyzer | None = None,
        depth: ConditioningExtractor | None = None,
        edge: ConditioningExtractor | None = None,
        validator: StructureValidator | None = None,
        store: SupabaseArtifactStore | None = None,
        metrics: MetricsRecorder | None = None,
    ):
        self.settings = settings
        self.generator = generator
        self.repository = repository
        self.analyzer = analyzer
        self.depth = depth or DepthExtractor(enabled=False)
        self.edge = edge or EdgeExtractor(enabled=False)
        self.validator = validator
        self.store = store
        self.metrics = metrics

    async def generate(self, request: GenerationRequest) -> VisualizationResult:
        if self.generator is None:
            raise VisualizationError.not_configured()

        started = time.monotonic()
        stats = _RunStats()
        count = max(1, min(request.count, self.settings.max_concepts))
        try:
            result = await asyncio.wait_for(
                self._run(request, count, started, stats), timeout=self.settings.timeout_s,
            )
        except asyncio.TimeoutError:
            err = VisualizationError(
                ErrorCode.TIMEOUT,
                "Visualization timed out",
                f"No result after {self.settings.timeout_s:.0f}s",
            )
            logger.error("Pipeline: %s", err.details)
            self._emit_metrics(request, count, started, stats, error=err)
            raise err from None
        except VisualizationError as err:
            self._emit_metrics(request, count, started, stats, error=err)
            raise
        except Exception as e:
            logger.exception("Pipeline: unexpected failure")
            err = VisualizationError(ErrorCode.UNKNOWN, "Visualization failed", str(e))
            self._emit_metrics(request, count, started, stats, error=err)
            raise err from e

        self._emit_metrics(request, count, started, stats)
        return result

    # ------------------------------------------------------------------

    async def _run(
        self, request: GenerationRequest, count: int, started: float, stats: _RunStats,
    ) -> VisualizationResult:
        source = request.source

        # 1. Original photo (degrades to inline)
        original = await persist_image(
            self.store, original_key(source.mime_type), source.data, source.mime_type,
            label="original",
        )

        # 2+3. Analysis alongside depth and edge extraction
        analysis, bundle = await asyncio.gather(
            self._resolve_analysis(request, stats),
            extract_conditioning(source, self.depth, self.edge),
        )
        stats.has_depth = bundle.has_depth_map
        logger.info("Pipeline: conditioning bundle %s", "+".join(bundle.roles))

        # 4. One config shared by every concept
        gen_config = self._build_config(request, analysis, bundle)

        # 5+6. Fan out and settle
        outcomes = await asyncio.gather(
            *(self._generate_concept(source, gen_config, i) for i in range(count)),
            return_exceptions=True,
        )

        successes: list[tuple[int, RefinementResult]] = []
        errors: list[BaseException] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Concept %d: generation failed: %s", index, outcome)
                errors.append(outcome)
                stats.generation_calls += 1
            else:
                successes.append((index, outcome))
                stats.generation_calls += outcome.generation_calls
                if outcome.validation_score is not None:
                    stats.validation_score = outcome.validation_score
                if outcome.generation_calls > 1:
                    stats.retry_count += outcome.generation_calls - 1

        # 7. Partial success is fine, total failure is not
        if not successes:
            message = str(errors[0]) if errors and str(errors[0]) else "All concept generations failed"
            raise VisualizationError(
                ErrorCode.GENERATION_FAILED, "Failed to generate visualizations", message,
            )
        if len(successes) < count:
            logger.warning("Pipeline: only generated %d/%d concepts", len(successes), count)
        stats.concepts_generated = len(successes)

        # 8. Persist concepts, ordered by index
        epoch_ms = int(time.time() * 1000)
        refs = await asyncio.gather(*(
            persist_image(
                self.store, generated_key(index, res.image.mime_type), res.image.data,
                res.image.mime_type, label=f"concept {index}",
            )
            for index, res in successes
        ))
        generated_at = datetime.now(UTC).isoformat()
        concepts = tuple(
            Concept(
                id=f"concept-{index + 1}-{epoch_ms}",
                index=index,
                image=ref,
                description=build_concept_description(gen_config, index),
                generated_at=generated_at,
            )
            for (index, _), ref in zip(successes, refs)
        )
        generation_time_ms = int((time.monotonic() - started) * 1000)

        # 9. Visualization record; failure here is fatal
        token = share_token()
        row = {
            "original_photo_url": original.url,
            "room_type": request.stored_room_type.value,
            "style": request.effective_style.value,
            "constraints": request.constraints,
            "generated_concepts": [c.to_dict() for c in concepts],
            "generation_time_ms": generation_time_ms,
            "share_token": token,
            "source": (
                "visualizer_conversation"
                if request.mode == VisualizationMode.CONVERSATION
                else "visualizer"
            ),
            "device_type": device_type(request.user_agent),
            "user_agent": request.user_agent or None,
            "photo_analysis": analysis,
            "conversation_context": request.conversation_context,
        }
        try:
            saved = await self.repository.insert(row)
        except Exception as e:
            logger.error("Pipeline: failed to save visualization record: %s", e)
            raise VisualizationError(
                ErrorCode.STORAGE_ERROR, "Failed to save visualization", str(e),
            ) from e
        stats.visualization_id = saved["id"]

        logger.info(
            "Pipeline: visualization %s with %d/%d concepts in %dms",
            saved["id"], len(concepts), count, generation_time_ms,
        )
        primary = next((res for index, res in successes if index == 0), None)
        return VisualizationResult(
            id=saved["id"],
            original_image=original,
            room_type=request.effective_room_type,
            style=request.effective_style,
            constraints=request.constraints,
            concepts=concepts,
            generation_time_ms=generation_time_ms,
            created_at=saved.get("created_at") or generated_at,
            share_token=token,
            bundle_roles=tuple(bundle.roles),
            was_refined=bool(primary and primary.was_refined),
            validation_score=stats.validation_score,
        )

    async def _resolve_analysis(self, request: GenerationRequest, stats: _RunStats) -> dict | None:
        if request.photo_analysis:
            return request.photo_analysis
        if request.skip_analysis or not self.settings.enable_photo_analysis or self.analyzer is None:
            return None
        hint = None if request.room_type == RoomType.OTHER else request.room_type
        try:
            analysis = await self.analyzer.analyze(request.source, hint)
        except Exception as e:
            logger.warning("Analysis: failed, continuing without: %s", e)
            return None
        stats.analyzed = True
        return analysis

    def _build_config(
        self, request: GenerationRequest, analysis: dict | None, bundle: ConditioningBundle,
    ) -> GenerationConfig:
        return GenerationConfig(
            room_type=request.effective_room_type,
            style=request.effective_style,
            bundle=bundle,
            custom_room_type=request.custom_room_type,
            custom_style=request.custom_style,
            constraints=request.constraints,
            photo_analysis=analysis,
            design_intent=request.design_intent,
            voice_preferences_summary=request.voice_preferences_summary,
            structure_strength=self.settings.structure_strength,
            style_strength=self.settings.style_strength,
        )

    async def _generate_concept(
        self, source: SourceImage, gen_config: GenerationConfig, index: int,
    ) -> RefinementResult:
        if index == 0 and self.settings.enable_iterative_refinement:
            controller = RefinementController(self.generator, self.validator)
            return await controller.generate_with_refinement(source, gen_config, index)
        image = await self.generator.generate_one(source, gen_config, index)
        return RefinementResult(image=image)

    def _emit_metrics(
        self,
        request: GenerationRequest,
        count: int,
        started: float,
        stats: _RunStats,
        *,
        error: VisualizationError | None = None,
    ) -> None:
        if self.metrics is None:
            return
        record = MetricsRecord(
            generation_time_ms=int((time.monotonic() - started) * 1000),
            concepts_requested=count,
            concepts_generated=0 if error else stats.concepts_generated,
            mode=metrics_mode(request.mode),
            visualization_id=None if error else stats.visualization_id,
            retry_count=stats.retry_count,
            validation_score=stats.validation_score,
            photo_analyzed=bool(request.photo_analysis) or stats.analyzed,
            conversation_turns=conversation_turns(request.conversation_context),
        )
        if error is not None:
            record.error_occurred = True
            record.error_code = error.code.value
            record.error_message = error.details or error.message
        apply_costs(
            record,
            analyzed=stats.analyzed,
            has_depth=stats.has_depth,
            generation_calls=stats.generation_calls,
            validated=stats.validation_score is not None,
        )
        try:
            self.metrics.dispatch(record)
        except Exception as e:
            logger.error("Metrics: dispatch failed: %s", e)


def build_pipeline(settings: PipelineSettings | None = None) -> VisualizationPipeline:
    """Wire the production collaborators from config."""
    settings = settings or load_pipeline_settings()
    has_openrouter = bool(app_config.OPENROUTER_API_KEY)
    has_supabase = bool(app_config.SUPABASE_URL and app_config.SUPABASE_SERVICE_ROLE_KEY)

    repository = VisualizationRepository()
    generator = ConceptGenerator() if has_openrouter else None
    if generator is None:
        logger.warning("OPENROUTER_API_KEY not set, visualize requests will fail with 503")

    return VisualizationPipeline(
        settings,
        generator=generator,
        repository=repository,
        analyzer=RoomAnalyzer() if settings.enable_photo_analysis else None,
        depth=DepthExtractor(
            enabled=settings.enable_depth_estimation and bool(app_config.FAL_KEY),
            timeout_s=settings.depth_timeout_s,
        ),
        edge=EdgeExtractor(
            enabled=settings.enable_edge_detection, timeout_s=settings.edge_timeout_s,
        ),
        validator=StructureValidator() if has_openrouter else None,
        store=SupabaseArtifactStore(settings.storage_bucket) if has_supabase else None,
        metrics=MetricsRecorder(insert=repository.insert_metrics),
    )
