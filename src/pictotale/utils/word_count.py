"""
Word-ceiling enforcement.

Generated stories are held to a per-length word ceiling. When the model
overshoots, the text is cut back to the ceiling and closed at a sentence
boundary so narration never ends mid-thought.
"""

import re

from .llm_constants import STORY_WORD_LIMITS, DEFAULT_STORY_LENGTH

MAX_WORD_COUNT = STORY_WORD_LIMITS[DEFAULT_STORY_LENGTH]

SENTENCE_TERMINATORS = (".", "!", "?")

# A terminator found before this fraction of the truncated text would throw
# away too much of the story, so the cut falls back to appending a period.
SENTENCE_BOUNDARY_RATIO = 0.7

_TERMINATOR_PATTERN = re.compile(r"[.!?]")


def split_words(text):
    """Split text on whitespace, discarding empty tokens."""
    if not text:
        return []
    return text.split()


class WordCountValidator:
    """
    Enforces the word ceiling on generated text.
    """

    def __init__(self, max_words=MAX_WORD_COUNT):
        """
        Initialize validator.

        Args:
            max_words: Maximum allowed word count
        """
        self.max_words = max_words

    def enforce(self, text, max_words=None):
        """
        Truncate text to the word ceiling, preferring a sentence boundary.

        Text already within the ceiling is returned unchanged. Otherwise the
        first ``max_words`` words are joined with single spaces; if the last
        sentence terminator sits at or beyond 70% of that truncated text the
        trailing partial sentence is dropped, else a period is appended when
        the text does not already end with a terminator.

        Re-applying ``enforce`` to its own output returns the same string.

        Args:
            text: Text to enforce
            max_words: Word ceiling (default: self.max_words)

        Returns:
            Text with at most ``max_words`` words
        """
        if max_words is None:
            max_words = self.max_words

        words = split_words(text)
        if len(words) <= max_words:
            return text if text is not None else ""
        if max_words <= 0:
            return ""

        truncated = " ".join(words[:max_words])

        last_terminator = -1
        for match in _TERMINATOR_PATTERN.finditer(truncated):
            last_terminator = match.start()

        if last_terminator >= 0 and last_terminator >= len(truncated) * SENTENCE_BOUNDARY_RATIO:
            return truncated[:last_terminator + 1]

        if not truncated.endswith(SENTENCE_TERMINATORS):
            truncated += "."
        return truncated


def enforce_word_limit(text, max_words):
    """Module-level shortcut for WordCountValidator(max_words).enforce(text)."""
    return WordCountValidator(max_words).enforce(text)
