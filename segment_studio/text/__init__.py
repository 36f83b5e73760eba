"""Text helpers: tokenization, sentence splitting and chunking."""

from .chunking import ChunkingStrategy, Segment, chunk_sentences, segment_text
from .sentences import SentenceSplitter, split_sentences
from .tokenization import count_words, normalize_whitespace, tokenize

__all__ = [
    "ChunkingStrategy",
    "Segment",
    "SentenceSplitter",
    "chunk_sentences",
    "count_words",
    "normalize_whitespace",
    "segment_text",
    "split_sentences",
    "tokenize",
]
