"""
Constants for story generation.

This module centralizes the magic numbers used for story generation,
narration, reading metadata and cost estimation.
"""

# Story Word Ceilings
# Keyed by StoryLength value. Generated text is truncated to these ceilings
# before narration so narration cost stays bounded.
STORY_WORD_LIMITS = {
    "short": 200,
    "medium": 400,
    "long": 600,
    "epic": 900,
}

DEFAULT_STORY_LENGTH = "medium"

# Continuation segments are capped at half the story ceiling
CONTINUATION_WORD_RATIO = 0.5

# Token Estimation
# Estimated tokens per word (used for calculating token needs from word count)
TOKENS_PER_WORD_ESTIMATE = 1.5

# Token Buffer Multipliers
TOKEN_BUFFER_MULTIPLIER = 1.05
TOKEN_BUFFER_ADDITION = 10

# Generation settings per call type
STORY_TEMPERATURE = 0.8
TITLE_TEMPERATURE = 0.9
TITLE_MAX_TOKENS = 50
TITLE_CONTEXT_CHARS = 500
DESCRIPTION_MAX_TOKENS = 300

# Narration
# Rough narration pace used to estimate audio duration
NARRATION_SECONDS_PER_WORD = 0.5

# Reading metadata
# Reading pace for a young reader
CHILD_WORDS_PER_MINUTE = 150
# Average words-per-sentence thresholds for reading level 2 and 3
READING_LEVEL_2_THRESHOLD = 10
READING_LEVEL_3_THRESHOLD = 15

# Illustrations
DEFAULT_ILLUSTRATION_COUNT = 2
MIN_SCENE_LINE_CHARS = 20

# Input limits
MAX_CHARACTERS = 5
MAX_USER_PROMPT_CHARS = 500
MAX_CHARACTER_DESCRIPTION_CHARS = 300

# Cost estimation (USD). Approximations only.
TEXT_COST_PER_1K_TOKENS = 0.0006
NARRATION_COST_PER_1K_CHARS = 0.18
ILLUSTRATION_COST_EACH = 0.04
