"""Abbreviation-aware sentence boundary detection."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import regex

from .tokenization import normalize_whitespace

TERMINAL_MARKS = frozenset(".!?…")
# Marks that end a sentence regardless of what follows.
HARD_TERMINAL_MARKS = frozenset("!?…")
CLOSING_WRAPPERS = frozenset("\"'”’»›)]}")

# Lowercase letters continue a sentence after a period; digits mark decimals.
_CONTINUATION_CHAR = regex.compile(r"[\p{Ll}\p{Nd}]")

ENGLISH_ABBREVIATIONS: tuple[str, ...] = (
    "mr.",
    "mrs.",
    "ms.",
    "dr.",
    "jr.",
    "sr.",
    "prof.",
    "st.",
    "e.g.",
    "i.e.",
    "vs.",
    "etc.",
    "jan.",
    "feb.",
    "apr.",
    "jun.",
    "jul.",
    "aug.",
    "sep.",
    "sept.",
    "oct.",
    "nov.",
    "dec.",
    "ph.d.",
    "m.d.",
    "b.sc.",
    "m.sc.",
    "approx.",
    "km.",
    "cm.",
    "mm.",
    "kg.",
)

BULGARIAN_ABBREVIATIONS: tuple[str, ...] = (
    "т.н.",
    "т.е.",
    "напр.",
    "др.",
    "проф.",
    "ул.",
    "бул.",
    "пл.",
    "кв.",
    "ет.",
    "стр.",
    "сп.",
    "вж.",
    "срв.",
    "относ.",
    "съотв.",
    "понаст.",
    "извед.",
    "изд.",
    "том.",
    "кн.",
    "г.",
    "в.",
    "м.",
    "км.",
    "см.",
    "мм.",
    "кг.",
    "гр.",
    "мг.",
    "л.",
    "мл.",
    "ч.",
    "мин.",
    "сек.",
)

DEFAULT_ABBREVIATIONS: tuple[str, ...] = ENGLISH_ABBREVIATIONS + BULGARIAN_ABBREVIATIONS


def _normalize_abbreviations(entries: Iterable[str]) -> tuple[str, ...]:
    cleaned: set[str] = set()
    for entry in entries:
        candidate = str(entry).strip().lower()
        if not candidate:
            continue
        if not candidate.endswith("."):
            candidate = f"{candidate}."
        cleaned.add(candidate)
    # Longest first so "ph.d." wins over any shorter suffix entry.
    return tuple(sorted(cleaned, key=lambda item: (-len(item), item)))


def _next_significant_char(text: str, position: int) -> Optional[str]:
    """Return the first character at or after ``position`` that is not a space or wrapper."""

    length = len(text)
    while position < length:
        char = text[position]
        if char != " " and char not in CLOSING_WRAPPERS:
            return char
        position += 1
    return None


class SentenceSplitter:
    """Split normalized text into sentences without breaking at abbreviations.

    The scan is single-pass: terminal marks are grouped into runs (``?!``,
    ``...``), hard marks always end the sentence, and a period only ends it
    when the buffer does not finish with a known abbreviation and the next
    significant character is not a lowercase letter or a digit.
    """

    def __init__(self, abbreviations: Optional[Iterable[str]] = None) -> None:
        entries = DEFAULT_ABBREVIATIONS if abbreviations is None else abbreviations
        self._abbreviations = _normalize_abbreviations(entries)

    @property
    def abbreviations(self) -> Sequence[str]:
        return self._abbreviations

    def ends_with_abbreviation(self, buffer: str) -> bool:
        """Return True when ``buffer`` ends with a whole-word abbreviation."""

        lowered = buffer.rstrip().lower()
        for abbreviation in self._abbreviations:
            if not lowered.endswith(abbreviation):
                continue
            start = len(lowered) - len(abbreviation)
            if start == 0 or not lowered[start - 1].isalnum():
                return True
        return False

    def _ends_sentence(self, run: str, buffer: str, text: str, position: int) -> bool:
        if any(mark in HARD_TERMINAL_MARKS for mark in run):
            return True
        if len(run) == 1 and self.ends_with_abbreviation(buffer):
            return False
        upcoming = _next_significant_char(text, position)
        if upcoming is None:
            return True
        return _CONTINUATION_CHAR.match(upcoming) is None

    def split(self, text: str) -> List[str]:
        """Return the ordered sentences of ``text``."""

        normalized = normalize_whitespace(text)
        if not normalized:
            return []

        sentences: List[str] = []
        buffer: List[str] = []
        length = len(normalized)
        index = 0

        while index < length:
            char = normalized[index]
            if char not in TERMINAL_MARKS:
                buffer.append(char)
                index += 1
                continue

            run_end = index + 1
            while run_end < length and normalized[run_end] in TERMINAL_MARKS:
                run_end += 1
            run = normalized[index:run_end]
            buffer.append(run)
            index = run_end

            if not self._ends_sentence(run, "".join(buffer), normalized, index):
                continue

            while index < length and normalized[index] in CLOSING_WRAPPERS:
                buffer.append(normalized[index])
                index += 1
            _flush(buffer, sentences)

        _flush(buffer, sentences)
        return sentences


def _flush(buffer: List[str], sentences: List[str]) -> None:
    candidate = "".join(buffer).strip()
    if candidate:
        sentences.append(candidate)
    buffer.clear()


_DEFAULT_SPLITTER = SentenceSplitter()


def split_sentences(text: str, *, abbreviations: Optional[Iterable[str]] = None) -> List[str]:
    """Split ``text`` into sentences using the default or a custom abbreviation set."""

    splitter = _DEFAULT_SPLITTER if abbreviations is None else SentenceSplitter(abbreviations)
    return splitter.split(text)


__all__ = [
    "BULGARIAN_ABBREVIATIONS",
    "CLOSING_WRAPPERS",
    "DEFAULT_ABBREVIATIONS",
    "ENGLISH_ABBREVIATIONS",
    "SentenceSplitter",
    "TERMINAL_MARKS",
    "split_sentences",
]
