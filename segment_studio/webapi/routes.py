"""HTTP routes for segmentation, story configuration and image generation."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from ..errors import ChunkingError, InvalidRequestError, StoryConfigError
from ..images.enrichment import PromptEnricher
from ..images.providers import ImageProviderRegistry
from ..personas import parse_story_config
from ..services.orchestrator import INVALID_REQUEST_MESSAGE, run_segmented_generation
from ..services.segmentation import segment_document
from .dependencies import get_prompt_enricher, get_provider_registry, get_settings
from .schemas import (
    GenerateImagesRequest,
    GenerateImagesResponse,
    ProviderListResponse,
    SegmentTextRequest,
    SegmentTextResponse,
    StoryConfigValidationResponse,
)

logger = log_mgr.get_logger().getChild("webapi")

router = APIRouter()


def _invalid_request() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": INVALID_REQUEST_MESSAGE},
    )


@router.post("/generate-images", response_model=GenerateImagesResponse)
async def generate_images(
    payload: Any = Body(default=None),
    registry: ImageProviderRegistry = Depends(get_provider_registry),
    enricher: Optional[PromptEnricher] = Depends(get_prompt_enricher),
    settings: cfg.SegmentStudioSettings = Depends(get_settings),
):
    """Generate one image per segment and return the results in segment order."""

    if not isinstance(payload, dict):
        return _invalid_request()
    try:
        request = GenerateImagesRequest.model_validate(payload)
    except ValidationError as exc:
        logger.warning(
            "Rejected image generation request: %s",
            exc.error_count(),
            extra={"event": "webapi.generate.invalid"},
        )
        return _invalid_request()

    try:
        summary = await run_segmented_generation(
            request.segments,
            provider=request.provider,
            model_id=request.model_id,
            registry=registry,
            story_config=request.story_config_data,
            use_raw_prompts=request.use_raw_prompts,
            original_segment_index=request.original_segment_index,
            aspect_ratio=request.aspect_ratio,
            enricher=enricher,
            settings=settings,
        )
    except (InvalidRequestError, StoryConfigError) as exc:
        logger.warning(
            "Rejected image generation request: %s",
            exc,
            extra={"event": "webapi.generate.invalid"},
        )
        return _invalid_request()

    return GenerateImagesResponse.model_validate(summary.to_payload())


@router.post("/segments", response_model=SegmentTextResponse)
async def create_segments(
    payload: SegmentTextRequest,
    settings: cfg.SegmentStudioSettings = Depends(get_settings),
):
    """Split the supplied text into sentence-respecting segments."""

    try:
        result = await run_in_threadpool(
            segment_document,
            payload.text,
            words_per_segment=payload.words_per_segment,
            strategy=payload.strategy,
            settings=settings,
        )
    except ChunkingError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return SegmentTextResponse.model_validate(result.to_payload())


@router.post("/story-config/validate", response_model=StoryConfigValidationResponse)
async def validate_story_config(payload: Dict[str, Any] = Body(...)):
    """Validate a story configuration and return its normalised form."""

    try:
        config = parse_story_config(payload)
    except StoryConfigError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(exc), "errors": exc.errors},
        ) from exc
    return StoryConfigValidationResponse(
        valid=True,
        config=config.model_dump(mode="json") if config is not None else None,
    )


@router.get("/providers", response_model=ProviderListResponse)
async def list_providers(
    registry: ImageProviderRegistry = Depends(get_provider_registry),
    settings: cfg.SegmentStudioSettings = Depends(get_settings),
):
    """Return the configured image providers and their models."""

    return ProviderListResponse.model_validate(
        {"providers": registry.describe(), "defaultProvider": settings.image_provider}
    )


__all__ = ["router"]
