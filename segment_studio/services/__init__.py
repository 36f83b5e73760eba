"""Service layer for segment-studio."""

from .orchestrator import (
    GENERIC_SEGMENT_ERROR,
    GenerationResult,
    GenerationSummary,
    SegmentOrchestrator,
    SegmentOutcome,
    SegmentStatus,
    run_segmented_generation,
)
from .segmentation import SegmentationResult, segment_document

__all__ = [
    "GENERIC_SEGMENT_ERROR",
    "GenerationResult",
    "GenerationSummary",
    "SegmentOrchestrator",
    "SegmentOutcome",
    "SegmentStatus",
    "SegmentationResult",
    "run_segmented_generation",
    "segment_document",
]
