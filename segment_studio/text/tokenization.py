"""Whitespace tokenization shared by the splitter and chunkers."""

from __future__ import annotations

from typing import List

import regex

_WHITESPACE_RUN = regex.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space and trim the ends."""

    if not text:
        return ""
    return _WHITESPACE_RUN.sub(" ", text).strip()


def tokenize(text: str) -> List[str]:
    """Return the whitespace-delimited word tokens of ``text``."""

    if not text:
        return []
    return [token.strip() for token in _WHITESPACE_RUN.split(text) if token.strip()]


def count_words(text: str) -> int:
    """Return the number of tokens :func:`tokenize` yields for ``text``."""

    return len(tokenize(text))


__all__ = ["count_words", "normalize_whitespace", "tokenize"]
