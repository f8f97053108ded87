"""
Reading metadata and cost estimation for generated stories.
"""

import math
import re
from dataclasses import dataclass, asdict

from .llm_constants import (
    CHILD_WORDS_PER_MINUTE,
    ILLUSTRATION_COST_EACH,
    NARRATION_COST_PER_1K_CHARS,
    NARRATION_SECONDS_PER_WORD,
    READING_LEVEL_2_THRESHOLD,
    READING_LEVEL_3_THRESHOLD,
    TEXT_COST_PER_1K_TOKENS,
    TOKENS_PER_WORD_ESTIMATE,
)
from .word_count import split_words

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


@dataclass
class ReadingMetadata:
    word_count: int
    sentence_count: int
    reading_level: int
    estimated_reading_seconds: int
    language: str = "en"

    def to_dict(self):
        return asdict(self)


@dataclass
class CostEstimate:
    text_tokens: int
    narration_characters: int
    illustration_count: int
    estimated_usd: float

    def to_dict(self):
        return asdict(self)


def count_sentences(text: str) -> int:
    """Count non-empty segments between sentence terminators."""
    if not text:
        return 0
    return len([part for part in _SENTENCE_SPLIT.split(text) if part.strip()])


def reading_level(word_count: int, sentence_count: int) -> int:
    """Map average sentence length to a 1-3 reading level."""
    if sentence_count <= 0:
        return 1
    average = word_count / sentence_count
    if average > READING_LEVEL_3_THRESHOLD:
        return 3
    if average > READING_LEVEL_2_THRESHOLD:
        return 2
    return 1


def estimate_narration_seconds(text: str) -> int:
    return math.ceil(len(split_words(text)) * NARRATION_SECONDS_PER_WORD)


class MetadataCalculator:
    """Computes reading metadata for a story text."""

    def compute(self, text: str, language: str = "en") -> ReadingMetadata:
        """
        Compute word and sentence counts, reading level and reading time.

        Reading time is rounded up to whole minutes, expressed in seconds.
        """
        words = len(split_words(text))
        sentences = count_sentences(text)
        seconds = math.ceil(words / CHILD_WORDS_PER_MINUTE) * 60
        return ReadingMetadata(
            word_count=words,
            sentence_count=sentences,
            reading_level=reading_level(words, sentences),
            estimated_reading_seconds=seconds,
            language=language,
        )


def estimate_cost(prompt_text: str, story_text: str, narrated_text: str, illustration_count: int) -> CostEstimate:
    """
    Approximate the provider spend of one run.

    Pure function: token counts are estimated from word counts, narration
    is billed per character.
    """
    words = len(split_words(prompt_text)) + len(split_words(story_text))
    tokens = math.ceil(words * TOKENS_PER_WORD_ESTIMATE)
    characters = len(narrated_text or "")
    usd = (
        tokens / 1000 * TEXT_COST_PER_1K_TOKENS
        + characters / 1000 * NARRATION_COST_PER_1K_CHARS
        + illustration_count * ILLUSTRATION_COST_EACH
    )
    return CostEstimate(
        text_tokens=tokens,
        narration_characters=characters,
        illustration_count=illustration_count,
        estimated_usd=round(usd, 4),
    )
