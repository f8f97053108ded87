"""
ContinuationEngine - extends a completed story with a new segment.

The work is split in two so callers can return immediately:
``start`` checks preconditions and moves the story to ``generating``;
``run`` does the generation in the background and always leaves the story
``completed``. A failed continuation keeps the prior content and records
the failure in ``metadata.last_continuation_error``.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .models import StoryRecord, StoryStatus, utc_now
from .providers.factory import ProviderSet
from .story_types import get_story_type
from .utils.degradation import StepKind, run_step
from .utils.errors import ContentSafetyViolation, InvalidStateError, PersistenceError, ValidationError
from .utils.llm_constants import CONTINUATION_WORD_RATIO, MAX_CHARACTERS, STORY_TEMPERATURE
from .utils.locks import StoryLockRegistry
from .utils.metadata import MetadataCalculator, estimate_narration_seconds
from .utils.object_storage import ObjectStorage
from .utils.prompt_builder import ContinuationPromptInput, build_continuation_prompt
from .utils.repository import StoryRepository
from .utils.retry import RetryExecutor
from .utils.safety import ContentSafetyValidator
from .utils.word_count import enforce_word_limit
from .pipeline import max_tokens_for_words, word_limit_for

logger = logging.getLogger(__name__)

SEGMENT_SEPARATOR = "\n\n"


@dataclass
class ContinuationRequest:
    """What the caller wants added to a story."""
    additional_prompt: str
    new_characters: List[str] = field(default_factory=list)


def merge_character_names(existing: List[str], new_characters: List[str]) -> List[str]:
    """Append new names that are not already present, preserving order."""
    merged = list(existing)
    seen = {name.lower() for name in merged}
    for name in new_characters:
        cleaned = (name or "").strip()
        if cleaned and cleaned.lower() not in seen:
            merged.append(cleaned)
            seen.add(cleaned.lower())
    return merged


class ContinuationEngine:
    """Generates and appends continuation segments."""

    def __init__(
        self,
        repository: StoryRepository,
        object_storage: ObjectStorage,
        providers: ProviderSet,
        retry_executor: Optional[RetryExecutor] = None,
        locks: Optional[StoryLockRegistry] = None,
    ):
        self.repository = repository
        self.object_storage = object_storage
        self.providers = providers
        self.retry = retry_executor or RetryExecutor()
        self.locks = locks or StoryLockRegistry()
        self.safety_validator = ContentSafetyValidator()
        self.metadata_calculator = MetadataCalculator()

    def start(self, story_id: str, request: ContinuationRequest) -> StoryRecord:
        """
        Validate the request and move a completed story to ``generating``.

        Raises:
            NotFoundError: If the story does not exist
            InvalidStateError: If the story is not completed or is running
            ValidationError: If the request is empty or adds too many characters
        """
        if not (request.additional_prompt or "").strip():
            raise ValidationError("additional_prompt is required to continue a story.")

        if self.locks.is_held(story_id):
            raise InvalidStateError(story_id, "running", f"Story '{story_id}' already has a run in progress.")

        record = self.repository.require(story_id)
        if record.status != StoryStatus.COMPLETED:
            raise InvalidStateError(
                story_id,
                record.status.value,
                f"Cannot continue story '{story_id}' while it is '{record.status.value}'. "
                "Only completed stories can be continued.",
            )

        names = merge_character_names(record.character_names, request.new_characters)
        if len(names) > MAX_CHARACTERS:
            raise ValidationError(
                f"A story can have at most {MAX_CHARACTERS} characters.",
                details={"existing": record.character_names, "new": request.new_characters},
            )

        record = self.repository.update(story_id, {"status": StoryStatus.GENERATING.value})
        logger.info(f"Story {story_id}: continuation started")
        return record

    def run(self, story_id: str, request: ContinuationRequest) -> StoryStatus:
        """
        Generate, narrate and append a segment to a story in ``generating``.

        Returns:
            COMPLETED in all handled cases (the story's prior content remains
            valid after a failed attempt)

        Raises:
            PersistenceError: If the store fails while reverting a failed attempt
        """
        with self.locks.hold(story_id):
            record = self.repository.require(story_id)
            if record.status != StoryStatus.GENERATING:
                logger.warning(
                    f"Story {story_id}: continuation skipped, status is {record.status.value}"
                )
                return record.status

            try:
                self._extend(record, request)
            except Exception as e:
                logger.error(f"Story {story_id}: continuation failed: {e}", exc_info=not isinstance(e, ContentSafetyViolation))
                self._revert(story_id, str(e) or type(e).__name__)
            return StoryStatus.COMPLETED

    def _revert(self, story_id: str, error_message: str) -> None:
        """
        Put a story back to ``completed`` after a failed attempt.

        The write is tried twice. If both fail the story stays in
        ``generating`` and the PersistenceError propagates; recovery is then
        a manual status update.
        """
        updates = {
            "status": StoryStatus.COMPLETED.value,
            "metadata": {"last_continuation_error": error_message},
        }
        try:
            self.repository.update(story_id, updates)
        except PersistenceError as e:
            logger.warning(f"Story {story_id}: revert failed ({e}), retrying once")
            try:
                self.repository.update(story_id, updates)
            except PersistenceError:
                logger.critical(f"Story {story_id}: could not revert, left in generating", exc_info=True)
                raise
        logger.info(f"Story {story_id}: reverted to completed")

    def continue_story(self, story_id: str, additional_prompt: str, new_characters: Optional[List[str]] = None) -> StoryStatus:
        """Start and run a continuation synchronously."""
        request = ContinuationRequest(additional_prompt=additional_prompt, new_characters=list(new_characters or []))
        self.start(story_id, request)
        return self.run(story_id, request)

    def _extend(self, record: StoryRecord, request: ContinuationRequest) -> None:
        story_id = record.id
        language = record.user_input.language
        max_words = max(1, int(word_limit_for(record.user_input.length.value) * CONTINUATION_WORD_RATIO))

        prompt = build_continuation_prompt(ContinuationPromptInput(
            existing_content=record.content,
            additional_prompt=request.additional_prompt,
            max_words=max_words,
            story_type=get_story_type(record.story_type_id),
            new_characters=request.new_characters,
            language=language,
        ))

        raw_text = run_step(
            StepKind.FATAL,
            "continuation_text",
            lambda: self.retry.execute(
                lambda: self.providers.text.complete(prompt, max_tokens_for_words(max_words), STORY_TEMPERATURE),
                "Story Continuation",
            ),
        )

        safety = self.safety_validator.check(raw_text)
        if not safety.is_safe:
            raise ContentSafetyViolation(safety.flagged_terms, safety.severity)

        segment = enforce_word_limit(raw_text, max_words).strip()
        if not segment:
            raise ValueError("continuation returned no text")

        audio = run_step(
            StepKind.FATAL,
            "continuation_narration",
            lambda: self.retry.execute(
                lambda: self.providers.speech.synthesize(
                    segment, record.media.voice_settings, record.media.narration_voice_id
                ),
                "Continuation Narration",
            ),
        )
        segment_url = self.object_storage.put(
            audio,
            self.providers.speech.content_type,
            {"folder": "narration", "story_id": story_id, "segment": len(record.media.narration_segments) + 1},
        )
        segment_duration = estimate_narration_seconds(segment)

        content = record.content + SEGMENT_SEPARATOR + segment
        reading = self.metadata_calculator.compute(content, language)
        segments = list(record.media.narration_segments) + [{
            "url": segment_url,
            "duration": segment_duration,
            "word_count": len(segment.split()),
            "created_at": utc_now(),
        }]

        self.repository.update(story_id, {
            "status": StoryStatus.COMPLETED.value,
            "content": content,
            "character_names": merge_character_names(record.character_names, request.new_characters),
            "media": {
                "narration_segments": segments,
                "total_duration": record.media.total_duration + segment_duration,
            },
            "metadata": {
                "word_count": reading.word_count,
                "sentence_count": reading.sentence_count,
                "reading_level": reading.reading_level,
                "estimated_reading_seconds": reading.estimated_reading_seconds,
                "continuation_count": record.metadata.continuation_count + 1,
                "last_continuation_error": None,
            },
        })
        logger.info(f"Story {story_id}: continuation appended ({reading.word_count} words total)")
