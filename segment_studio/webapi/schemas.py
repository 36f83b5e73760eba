"""Request and response schemas for the segment-studio API."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AspectRatio = Literal["1:1", "9:16", "16:9"]
SegmentStatusValue = Literal["pending", "generating", "succeeded", "failed"]


class GenerateImagesRequest(BaseModel):
    """Payload accepted by ``POST /api/generate-images``."""

    segments: List[str] = Field(min_length=1, description="Segment texts, in order.")
    provider: str = Field(min_length=1, description="Key of the image provider to use.")
    model_id: str = Field(alias="modelId", min_length=1, description="Provider model identifier.")
    story_config_data: Optional[Dict[str, Any]] = Field(
        default=None,
        alias="storyConfigData",
        description="Nested story configuration applied to every segment prompt.",
    )
    use_raw_prompts: bool = Field(
        default=False,
        alias="useRawPrompts",
        description="Send each segment text to the provider verbatim.",
    )
    original_segment_index: Optional[int] = Field(
        default=None,
        alias="originalSegmentIndex",
        ge=0,
        description="Index of the segment being edited; forces raw prompts for the single segment.",
    )
    aspect_ratio: Optional[AspectRatio] = Field(default=None, alias="aspectRatio")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GenerationResultPayload(BaseModel):
    segment_index: int = Field(alias="segmentIndex")
    image: Optional[str] = None
    error: Optional[str] = None
    prompt: str
    status: SegmentStatusValue

    model_config = ConfigDict(populate_by_name=True)


class GenerateImagesResponse(BaseModel):
    results: List[GenerationResultPayload]
    total_segments: int = Field(alias="totalSegments")
    success_count: int = Field(alias="successCount")
    provider: str

    model_config = ConfigDict(populate_by_name=True)


class SegmentTextRequest(BaseModel):
    """Payload accepted by ``POST /api/segments``."""

    text: str = Field(description="Source text to split into segments.")
    words_per_segment: Optional[int] = Field(
        default=None,
        alias="wordsPerSegment",
        description="Target words per segment; defaults to the configured value.",
    )
    strategy: Optional[str] = Field(
        default=None, description="Chunking strategy: 'greedy' or 'sliding_window'."
    )

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class SegmentPayload(BaseModel):
    text: str
    index: int
    word_count: int = Field(alias="wordCount")

    model_config = ConfigDict(populate_by_name=True)


class SegmentTextResponse(BaseModel):
    original_text: str = Field(alias="originalText")
    segments: List[SegmentPayload] = Field(default_factory=list)
    total_segments: int = Field(alias="totalSegments")
    words_per_segment: int = Field(alias="wordsPerSegment")
    strategy: str

    model_config = ConfigDict(populate_by_name=True)


class StoryConfigValidationResponse(BaseModel):
    """Normalised story configuration returned after validation."""

    valid: bool = True
    config: Optional[Dict[str, Any]] = None


class ProviderDescriptor(BaseModel):
    key: str
    display_name: str = Field(alias="displayName")
    dimension_format: str = Field(alias="dimensionFormat")
    models: List[str] = Field(default_factory=list)
    default_models: Dict[str, str] = Field(default_factory=dict, alias="defaultModels")

    model_config = ConfigDict(populate_by_name=True)


class ProviderListResponse(BaseModel):
    providers: List[ProviderDescriptor] = Field(default_factory=list)
    default_provider: str = Field(alias="defaultProvider")

    model_config = ConfigDict(populate_by_name=True)


__all__ = [
    "AspectRatio",
    "GenerateImagesRequest",
    "GenerateImagesResponse",
    "GenerationResultPayload",
    "ProviderDescriptor",
    "ProviderListResponse",
    "SegmentPayload",
    "SegmentTextRequest",
    "SegmentTextResponse",
    "StoryConfigValidationResponse",
]
