"""Text to segment facade shared by the HTTP routes and the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .. import config_manager as cfg
from .. import logging_manager as log_mgr
from .. import observability
from ..text import ChunkingStrategy, Segment, normalize_whitespace, segment_text

logger = log_mgr.get_logger().getChild("services.segmentation")


@dataclass(frozen=True, slots=True)
class SegmentationResult:
    original_text: str
    segments: List[Segment]
    strategy: ChunkingStrategy
    words_per_segment: int

    @property
    def total_segments(self) -> int:
        return len(self.segments)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "originalText": self.original_text,
            "segments": [
                {"text": segment.text, "index": segment.index, "wordCount": segment.word_count}
                for segment in self.segments
            ],
            "totalSegments": self.total_segments,
            "wordsPerSegment": self.words_per_segment,
            "strategy": self.strategy.value,
        }


def segment_document(
    text: str,
    *,
    words_per_segment: Optional[int] = None,
    strategy: ChunkingStrategy | str | None = None,
    settings: Optional[cfg.SegmentStudioSettings] = None,
) -> SegmentationResult:
    """Split ``text`` into segments using configured defaults for missing options.

    Raises :class:`~segment_studio.errors.ChunkingError` for a non-positive
    target or an unknown strategy.
    """

    resolved_settings = settings or cfg.get_settings()
    target = resolved_settings.words_per_segment if words_per_segment is None else words_per_segment
    resolved_strategy = ChunkingStrategy.resolve(
        strategy if strategy is not None else resolved_settings.chunking_strategy
    )

    with observability.pipeline_operation(
        "segment_text",
        attributes={"strategy": resolved_strategy.value, "words_per_segment": target},
    ) as operation:
        segments = segment_text(text or "", target, strategy=resolved_strategy)
        operation.annotate(segments=len(segments))

    logger.debug(
        "Segmented %s words into %s segments",
        len(normalize_whitespace(text or "").split()),
        len(segments),
        extra={"event": "text.segmentation.complete", "console_suppress": True},
    )
    return SegmentationResult(
        original_text=text or "",
        segments=segments,
        strategy=resolved_strategy,
        words_per_segment=target,
    )


__all__ = ["SegmentationResult", "segment_document"]
