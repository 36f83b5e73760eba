from __future__ import annotations

import pytest

from segment_studio.errors import ChunkingError
from segment_studio.text import ChunkingStrategy, Segment, chunk_sentences, count_words, segment_text

pytestmark = pytest.mark.pipeline


def _sentence(words: int, tag: str) -> str:
    return " ".join(f"{tag}{index}" for index in range(words - 1)) + f" {tag}end."


def test_greedy_packs_until_target_reached():
    sentences = [_sentence(10, "a"), _sentence(10, "b"), _sentence(10, "c"), _sentence(10, "d")]

    segments = chunk_sentences(sentences, 25)

    assert [segment.word_count for segment in segments] == [30, 10]
    assert segments[0].text == " ".join(sentences[:3])
    assert segments[1].text == sentences[3]


def test_greedy_emits_before_overflowing_limit():
    sentences = [_sentence(20, "a"), _sentence(20, "b")]

    segments = chunk_sentences(sentences, 25)

    assert [segment.word_count for segment in segments] == [20, 20]


def test_greedy_keeps_oversized_sentence_whole():
    sentences = [_sentence(60, "a"), _sentence(5, "b")]

    segments = chunk_sentences(sentences, 25)

    assert [segment.word_count for segment in segments] == [60, 5]


def test_greedy_coverage_on_long_text():
    sentences = [_sentence(length, f"s{index}x") for index, length in enumerate([7, 12, 9, 15, 4, 8, 11, 6, 13, 5])]

    segments = chunk_sentences(sentences, 25)

    assert " ".join(segment.text for segment in segments) == " ".join(sentences)
    for segment in segments[:-1]:
        assert segment.word_count >= 25
        assert segment.word_count <= 25 * 1.4


def test_indices_are_contiguous_and_word_counts_match():
    text = " ".join(_sentence(length, f"W{length}x") for length in (3, 8, 2, 9, 4, 6))

    for strategy in ChunkingStrategy:
        segments = segment_text(text, 5, strategy=strategy)
        assert [segment.index for segment in segments] == list(range(len(segments)))
        for segment in segments:
            assert segment.word_count == count_words(segment.text)


def test_sliding_window_uses_dominant_sentence_verbatim():
    sentences = ["One two three four five.", "Six seven eight nine ten."]

    segments = chunk_sentences(sentences, 5, strategy=ChunkingStrategy.SLIDING_WINDOW)

    assert [segment.text for segment in segments] == sentences


def test_sliding_window_combines_partial_sentences_in_order():
    sentences = ["Alpha beta gamma.", "Delta epsilon zeta.", "Eta theta iota kappa."]

    segments = chunk_sentences(sentences, 5, strategy="sliding_window")

    assert [segment.text for segment in segments] == [
        "Alpha beta gamma. Delta epsilon zeta.",
        "Eta theta iota kappa.",
    ]


def test_sliding_window_step_controls_overlap():
    sentences = ["One two three four five.", "Six seven eight nine ten."]

    segments = chunk_sentences(sentences, 5, strategy=ChunkingStrategy.SLIDING_WINDOW, step=4)

    assert len(segments) == 3
    assert segments[0].text == sentences[0]


@pytest.mark.parametrize("strategy", list(ChunkingStrategy))
def test_empty_input_yields_no_segments(strategy):
    assert chunk_sentences([], 10, strategy=strategy) == []
    assert segment_text("   ", 10, strategy=strategy) == []


@pytest.mark.parametrize("target", [0, -3, 2.5, True, "10"])
def test_invalid_target_is_rejected(target):
    with pytest.raises(ChunkingError):
        segment_text("Some text here.", target)


def test_unknown_strategy_is_rejected():
    with pytest.raises(ChunkingError):
        chunk_sentences(["A sentence."], 5, strategy="random")


def test_segment_with_text_replaces_text_and_count():
    segment = Segment.create("Original text here.", 3)

    edited = segment.with_text("A brand new prompt for the scene.")

    assert edited.index == 3
    assert edited.word_count == 7
    assert segment.text == "Original text here."
