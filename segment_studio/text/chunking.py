"""Group sentences into word-bounded segments."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence

from segment_studio.errors import ChunkingError

from .sentences import split_sentences
from .tokenization import count_words, tokenize

GREEDY_OVERFLOW_RATIO = 1.4
WINDOW_PRIMARY_COVERAGE = 0.7
WINDOW_COMBINED_COVERAGE = 0.8
WINDOW_MAX_SENTENCES = 3


class ChunkingStrategy(str, enum.Enum):
    """Available strategies for turning sentences into segments."""

    GREEDY = "greedy"
    SLIDING_WINDOW = "sliding_window"

    @classmethod
    def resolve(cls, value: "ChunkingStrategy | str | None") -> "ChunkingStrategy":
        if value is None:
            return cls.GREEDY
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ChunkingError(f"Unknown chunking strategy: {value!r}") from exc


@dataclass(frozen=True, slots=True)
class Segment:
    """A contiguous span of source text that receives one image."""

    text: str
    word_count: int
    index: int

    @classmethod
    def create(cls, text: str, index: int) -> "Segment":
        return cls(text=text, word_count=count_words(text), index=index)

    def with_text(self, text: str) -> "Segment":
        """Return a copy carrying user-edited ``text`` at the same index."""

        return replace(self, text=text, word_count=count_words(text))


def validate_target(target_words_per_segment: object) -> int:
    """Return ``target_words_per_segment`` when it is a positive integer."""

    if isinstance(target_words_per_segment, bool) or not isinstance(
        target_words_per_segment, int
    ):
        raise ChunkingError("target_words_per_segment must be an integer")
    if target_words_per_segment <= 0:
        raise ChunkingError("target_words_per_segment must be greater than zero")
    return target_words_per_segment


def _pack_greedy(sentences: Sequence[str], target: int) -> List[str]:
    limit = target * GREEDY_OVERFLOW_RATIO
    chunks: List[str] = []
    current: List[str] = []
    current_words = 0
    last_position = len(sentences) - 1

    for position, sentence in enumerate(sentences):
        words = count_words(sentence)
        if current and current_words + words > limit:
            chunks.append(" ".join(current))
            current = []
            current_words = 0

        current.append(sentence)
        current_words += words

        if current_words >= target or position == last_position:
            chunks.append(" ".join(current))
            current = []
            current_words = 0

    return chunks


def _sentence_spans(sentences: Sequence[str]) -> List[tuple[int, int]]:
    spans: List[tuple[int, int]] = []
    position = 0
    for sentence in sentences:
        length = count_words(sentence)
        spans.append((position, position + length))
        position += length
    return spans


def _select_window_text(
    window: Sequence[str],
    window_start: int,
    sentences: Sequence[str],
    spans: Sequence[tuple[int, int]],
) -> str:
    window_end = window_start + len(window)
    intersecting: List[tuple[int, int]] = []
    for sentence_index, (start, end) in enumerate(spans):
        overlap = min(end, window_end) - max(start, window_start)
        if overlap > 0:
            intersecting.append((sentence_index, overlap))

    if not intersecting:
        return " ".join(window) + "."

    # Stable sort keeps earlier sentences first among equal overlaps.
    ranked = sorted(intersecting, key=lambda item: item[1], reverse=True)
    primary_index, primary_overlap = ranked[0]
    if primary_overlap >= len(window) * WINDOW_PRIMARY_COVERAGE:
        return sentences[primary_index]

    selected: List[int] = []
    covered = 0
    for sentence_index, overlap in ranked:
        selected.append(sentence_index)
        covered += overlap
        if covered >= len(window) * WINDOW_COMBINED_COVERAGE or len(selected) >= WINDOW_MAX_SENTENCES:
            break
    return " ".join(sentences[index] for index in sorted(selected))


def _pack_sliding_window(sentences: Sequence[str], target: int, step: int) -> List[str]:
    tokens = [token for sentence in sentences for token in tokenize(sentence)]
    if not tokens:
        return []
    spans = _sentence_spans(sentences)
    chunks: List[str] = []
    for window_start in range(0, len(tokens), step):
        window = tokens[window_start : window_start + target]
        if window:
            chunks.append(_select_window_text(window, window_start, sentences, spans))
    return chunks


def chunk_sentences(
    sentences: Iterable[str],
    target_words_per_segment: int,
    *,
    strategy: ChunkingStrategy | str = ChunkingStrategy.GREEDY,
    step: Optional[int] = None,
) -> List[Segment]:
    """Group ``sentences`` into segments of roughly ``target_words_per_segment`` words.

    ``step`` only applies to the sliding-window strategy and defaults to the
    window size, so windows do not overlap.
    """

    target = validate_target(target_words_per_segment)
    resolved = ChunkingStrategy.resolve(strategy)
    cleaned = [sentence.strip() for sentence in sentences if sentence and sentence.strip()]
    if not cleaned:
        return []

    if resolved is ChunkingStrategy.SLIDING_WINDOW:
        window_step = target if step is None else validate_target(step)
        texts = _pack_sliding_window(cleaned, target, window_step)
    else:
        texts = _pack_greedy(cleaned, target)

    return [Segment.create(text, index) for index, text in enumerate(texts)]


def segment_text(
    text: str,
    target_words_per_segment: int,
    *,
    strategy: ChunkingStrategy | str = ChunkingStrategy.GREEDY,
    step: Optional[int] = None,
    abbreviations: Optional[Iterable[str]] = None,
) -> List[Segment]:
    """Split ``text`` into sentences and chunk them into segments."""

    validate_target(target_words_per_segment)
    sentences = split_sentences(text, abbreviations=abbreviations)
    return chunk_sentences(
        sentences, target_words_per_segment, strategy=strategy, step=step
    )


__all__ = [
    "ChunkingStrategy",
    "GREEDY_OVERFLOW_RATIO",
    "Segment",
    "chunk_sentences",
    "segment_text",
    "validate_target",
]
