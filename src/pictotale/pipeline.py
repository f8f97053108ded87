"""
PipelineOrchestrator - drives one story record from draft to a terminal state.

Stages:
1. Transition draft -> generating
2. Drawing upload and description (description degrades)
3. Voice upload and transcription (transcription degrades)
4. Transition -> processing
5. Prompt assembly
6. Story text generation (fatal)
7. Safety gate (fatal, never retried)
8. Word ceiling
9. Title (degrades to a templated title)
10. Narration (fatal)
11. Illustrations (each scene degrades to a placeholder)
12. Metadata
13. Transition -> completed

Any failure in stages 2-12 that is not a degradation ends the run in
``failed`` with ``error`` set and no narration URL.
"""

import base64
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .models import (
    DEFAULT_VOICE_SETTINGS,
    IllustrationAsset,
    StoryLength,
    StoryStatus,
    utc_now,
)
from .providers.factory import ProviderSet
from .story_types import fallback_title, get_music_file, get_story_type
from .utils.degradation import StepKind, run_step
from .utils.errors import ContentSafetyViolation, InvalidStateError, PipelineError
from .utils.llm_constants import (
    DEFAULT_ILLUSTRATION_COUNT,
    STORY_TEMPERATURE,
    STORY_WORD_LIMITS,
    TITLE_MAX_TOKENS,
    TITLE_TEMPERATURE,
    TOKEN_BUFFER_ADDITION,
    TOKEN_BUFFER_MULTIPLIER,
    TOKENS_PER_WORD_ESTIMATE,
)
from .utils.locks import StoryLockRegistry
from .utils.metadata import MetadataCalculator, estimate_cost, estimate_narration_seconds
from .utils.object_storage import ObjectStorage, sniff_content_type
from .utils.prompt_builder import (
    PromptInput,
    build_illustration_prompt,
    build_story_prompt,
    build_title_prompt,
    clean_title,
    extract_key_scenes,
)
from .utils.repository import StoryRepository
from .utils.retry import RetryExecutor
from .utils.safety import ContentSafetyValidator, SafetyResult
from .utils.word_count import enforce_word_limit

logger = logging.getLogger(__name__)

FALLBACK_DRAWING_DESCRIPTION = (
    "A wonderful drawing with creative elements that inspire an amazing story."
)
FALLBACK_TRANSCRIPTION = ""

DEFAULT_PLACEHOLDER_ILLUSTRATION_URL = "/static/placeholder-illustration.png"
DEFAULT_MUSIC_BASE_URL = "/static/music"


def max_tokens_for_words(max_words: int) -> int:
    """Output token budget for a word ceiling, with headroom."""
    return int(max_words * TOKENS_PER_WORD_ESTIMATE * TOKEN_BUFFER_MULTIPLIER) + TOKEN_BUFFER_ADDITION


def word_limit_for(length: str) -> int:
    return STORY_WORD_LIMITS.get(length, STORY_WORD_LIMITS[StoryLength.MEDIUM.value])


@dataclass
class PipelineRunContext:
    """
    Inputs and accumulated artifacts of one run.

    Lives only for the duration of the run. ``to_payload`` keeps the inputs
    only, in a JSON-friendly form, so a run can be handed to an RQ worker.
    """
    story_type: Dict[str, Any]
    drawing_bytes: Optional[bytes] = None
    voice_bytes: Optional[bytes] = None
    character_names: List[str] = field(default_factory=list)
    character_descriptions: Dict[str, str] = field(default_factory=dict)
    user_prompt: str = ""
    preferences: Dict[str, Any] = field(default_factory=dict)
    length: str = StoryLength.MEDIUM.value
    language: str = "en"

    # Artifacts
    drawing_analysis: str = ""
    voice_transcription: str = ""
    prompt: str = ""
    raw_text: str = ""
    content: str = ""
    safety: Optional[SafetyResult] = None
    title: str = ""
    narration_url: Optional[str] = None
    narration_duration: int = 0
    illustrations: List[IllustrationAsset] = field(default_factory=list)
    degraded_assets: List[str] = field(default_factory=list)

    @property
    def max_words(self) -> int:
        return word_limit_for(self.length)

    @property
    def voice_settings(self) -> Dict[str, Any]:
        return self.preferences.get("voice_settings") or dict(DEFAULT_VOICE_SETTINGS)

    @property
    def voice_id(self) -> Optional[str]:
        return self.preferences.get("voice_id")

    @property
    def wants_illustrations(self) -> bool:
        # Illustrations are on unless the caller opts out explicitly.
        return self.preferences.get("generate_illustrations") is not False

    def to_payload(self) -> Dict[str, Any]:
        """Serialize the inputs for a background job."""
        return {
            "story_type_id": self.story_type["id"],
            "drawing_base64": base64.b64encode(self.drawing_bytes).decode("ascii") if self.drawing_bytes else None,
            "voice_base64": base64.b64encode(self.voice_bytes).decode("ascii") if self.voice_bytes else None,
            "character_names": list(self.character_names),
            "character_descriptions": dict(self.character_descriptions),
            "user_prompt": self.user_prompt,
            "preferences": dict(self.preferences),
            "length": self.length,
            "language": self.language,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PipelineRunContext":
        """
        Rebuild a context from ``to_payload`` output.

        Raises:
            ValueError: If the story type is unknown
        """
        story_type = get_story_type(payload.get("story_type_id"))
        if story_type is None:
            raise ValueError(f"Unknown story type: {payload.get('story_type_id')}")
        drawing = payload.get("drawing_base64")
        voice = payload.get("voice_base64")
        return cls(
            story_type=story_type,
            drawing_bytes=base64.b64decode(drawing) if drawing else None,
            voice_bytes=base64.b64decode(voice) if voice else None,
            character_names=list(payload.get("character_names") or []),
            character_descriptions=dict(payload.get("character_descriptions") or {}),
            user_prompt=payload.get("user_prompt") or "",
            preferences=dict(payload.get("preferences") or {}),
            length=payload.get("length") or StoryLength.MEDIUM.value,
            language=payload.get("language") or "en",
        )


class PipelineOrchestrator:
    """
    Runs the generation pipeline for one story at a time.

    Every external call goes through the retry executor. The orchestrator
    persists intermediate fields as they become available and always leaves
    the record in ``completed`` or ``failed``.
    """

    def __init__(
        self,
        repository: StoryRepository,
        object_storage: ObjectStorage,
        providers: ProviderSet,
        retry_executor: Optional[RetryExecutor] = None,
        locks: Optional[StoryLockRegistry] = None,
        illustration_count: int = DEFAULT_ILLUSTRATION_COUNT,
        music_base_url: str = DEFAULT_MUSIC_BASE_URL,
        placeholder_illustration_url: str = DEFAULT_PLACEHOLDER_ILLUSTRATION_URL,
    ):
        """
        Initialize the orchestrator.

        Args:
            repository: Story record store
            object_storage: Binary asset store
            providers: Provider set (live or simulated)
            retry_executor: Retry wrapper for provider calls
            locks: Per-story run registry (shared with the continuation engine)
            illustration_count: Number of illustrations unless the preferences set one
            music_base_url: Base URL of background music files
            placeholder_illustration_url: Image used when an illustration degrades
        """
        self.repository = repository
        self.object_storage = object_storage
        self.providers = providers
        self.retry = retry_executor or RetryExecutor()
        self.locks = locks or StoryLockRegistry()
        self.illustration_count = illustration_count
        self.music_base_url = music_base_url.rstrip("/")
        self.placeholder_illustration_url = placeholder_illustration_url
        self.safety_validator = ContentSafetyValidator()
        self.metadata_calculator = MetadataCalculator()

    def run_generation(self, story_id: str, context: PipelineRunContext) -> StoryStatus:
        """
        Run the full pipeline for a draft story.

        Args:
            story_id: ID of a story in ``draft``
            context: Run inputs

        Returns:
            The terminal status (COMPLETED or FAILED)

        Raises:
            NotFoundError: If the story does not exist
            InvalidStateError: If the story is not a draft or already running
            PersistenceError: If the store fails at the start or while recording failure
        """
        with self.locks.hold(story_id):
            record = self.repository.require(story_id)
            if record.status != StoryStatus.DRAFT:
                raise InvalidStateError(story_id, record.status.value)

            self._transition(story_id, StoryStatus.GENERATING, {"error": None})
            logger.info(f"Story {story_id}: generation started ({context.story_type['id']}, {context.length})")

            try:
                self._run_stages(story_id, context)
            except Exception as e:
                self._mark_failed(story_id, e)
                return StoryStatus.FAILED

            logger.info(f"Story {story_id}: completed ({len(context.degraded_assets)} degraded assets)")
            return StoryStatus.COMPLETED

    def _transition(self, story_id: str, status: StoryStatus, extra: Optional[Dict[str, Any]] = None):
        updates = {"status": status.value}
        if extra:
            updates.update(extra)
        self.repository.update(story_id, updates)
        logger.info(f"Story {story_id}: -> {status.value}")

    def _mark_failed(self, story_id: str, error: Exception):
        if isinstance(error, PipelineError):
            logger.error(f"Story {story_id}: run failed: {error}")
        else:
            logger.error(f"Story {story_id}: run failed with unexpected error: {error}", exc_info=True)
        try:
            self.repository.update(story_id, {
                "status": StoryStatus.FAILED.value,
                "error": str(error) or type(error).__name__,
                "media": {"narration_url": None},
            })
        except Exception:
            logger.critical(f"Story {story_id}: could not record failure", exc_info=True)
            raise

    def _note_degraded(self, context: PipelineRunContext, degraded) -> None:
        context.degraded_assets.append(degraded.asset)

    def _degradable(self, context: PipelineRunContext, label: str, operation, fallback):
        return run_step(
            StepKind.DEGRADABLE,
            label,
            operation,
            fallback=fallback,
            on_degraded=functools.partial(self._note_degraded, context),
        )

    def _run_stages(self, story_id: str, context: PipelineRunContext) -> None:
        providers = self.providers

        # Drawing
        if context.drawing_bytes:
            url = self.object_storage.put(
                context.drawing_bytes,
                sniff_content_type(context.drawing_bytes, default="image/png"),
                {"folder": "drawings", "story_id": story_id},
            )
            self.repository.update(story_id, {"drawing_image_url": url})
            context.drawing_analysis = self._degradable(
                context,
                "drawing_description",
                lambda: self.retry.execute(
                    lambda: providers.vision.describe(context.drawing_bytes), "Drawing Analysis"
                ),
                lambda: FALLBACK_DRAWING_DESCRIPTION,
            )

        # Voice
        if context.voice_bytes:
            url = self.object_storage.put(
                context.voice_bytes,
                sniff_content_type(context.voice_bytes, default="audio/webm"),
                {"folder": "voice", "story_id": story_id},
            )
            self.repository.update(story_id, {"voice_input_url": url})
            context.voice_transcription = self._degradable(
                context,
                "voice_transcription",
                lambda: self.retry.execute(
                    lambda: providers.transcription.transcribe(context.voice_bytes, context.language),
                    "Voice Transcription",
                ),
                lambda: FALLBACK_TRANSCRIPTION,
            )

        self._transition(story_id, StoryStatus.PROCESSING, {
            "metadata": {
                "generation": {
                    "drawing_analysis": context.drawing_analysis or None,
                    "voice_transcription": context.voice_transcription or None,
                    "vision_model": providers.vision.model_name if context.drawing_bytes else None,
                    "transcription_model": providers.transcription.model_name if context.voice_bytes else None,
                }
            }
        })

        # Prompt
        context.prompt = build_story_prompt(PromptInput(
            story_type=context.story_type,
            max_words=context.max_words,
            language=context.language,
            drawing_analysis=context.drawing_analysis,
            voice_transcription=context.voice_transcription,
            character_names=context.character_names,
            character_descriptions=context.character_descriptions,
            user_prompt=context.user_prompt,
        ))

        # Story text
        context.raw_text = run_step(
            StepKind.FATAL,
            "story_text",
            lambda: self.retry.execute(
                lambda: providers.text.complete(
                    context.prompt, max_tokens_for_words(context.max_words), STORY_TEMPERATURE
                ),
                "Story Generation",
            ),
        )

        # Safety gate
        context.safety = self.safety_validator.check(context.raw_text)
        if not context.safety.is_safe:
            raise ContentSafetyViolation(context.safety.flagged_terms, context.safety.severity)

        # Word ceiling
        context.content = enforce_word_limit(context.raw_text, context.max_words)

        # Title
        context.title = self._degradable(
            context,
            "title",
            lambda: self._generate_title(context.content, context.story_type),
            lambda: fallback_title(context.story_type),
        )

        # Narration
        audio = run_step(
            StepKind.FATAL,
            "narration",
            lambda: self.retry.execute(
                lambda: providers.speech.synthesize(context.content, context.voice_settings, context.voice_id),
                "Narration",
            ),
        )
        context.narration_url = self.object_storage.put(
            audio, providers.speech.content_type, {"folder": "narration", "story_id": story_id}
        )
        context.narration_duration = estimate_narration_seconds(context.content)

        # Illustrations
        if context.wants_illustrations:
            count = context.preferences.get("illustration_count") or self.illustration_count
            for index, scene in enumerate(extract_key_scenes(context.content, count)):
                context.illustrations.append(self._degradable(
                    context,
                    f"illustration[{index}]",
                    functools.partial(self._illustrate, story_id, index, scene, context.story_type),
                    functools.partial(self._placeholder_illustration, index, scene),
                ))

        self._complete(story_id, context)

    def _generate_title(self, content: str, story_type: Dict[str, Any]) -> str:
        raw = self.retry.execute(
            lambda: self.providers.text.complete(
                build_title_prompt(content, story_type), TITLE_MAX_TOKENS, TITLE_TEMPERATURE
            ),
            "Title Generation",
        )
        title = clean_title(raw)
        if not title:
            raise ValueError("title generation returned an empty title")
        return title

    def _illustrate(self, story_id: str, index: int, scene: str, story_type: Dict[str, Any]) -> IllustrationAsset:
        prompt = build_illustration_prompt(scene, story_type)
        image = self.retry.execute(
            lambda: self.providers.image.generate(prompt),
            f"Illustration Generation ({scene[:50]}...)",
        )
        url = self.object_storage.put(
            image,
            sniff_content_type(image, default=self.providers.image.content_type),
            {"folder": "illustrations", "story_id": story_id, "index": index},
        )
        return IllustrationAsset(index=index, url=url, scene=scene)

    def _placeholder_illustration(self, index: int, scene: str) -> IllustrationAsset:
        return IllustrationAsset(
            index=index, url=self.placeholder_illustration_url, scene=scene, is_placeholder=True
        )

    def _complete(self, story_id: str, context: PipelineRunContext) -> None:
        """Persist every accumulated field in one update and mark completed."""
        reading = self.metadata_calculator.compute(context.content, context.language)
        generated = [asset for asset in context.illustrations if not asset.is_placeholder]
        cost = estimate_cost(context.prompt, context.raw_text, context.content, len(generated))
        story_type_id = context.story_type["id"]

        record = self.repository.require(story_id)
        updates = {
            "status": StoryStatus.COMPLETED.value,
            "title": context.title,
            "content": context.content,
            "error": None,
            "media": {
                "narration_url": context.narration_url,
                "narration_voice_id": context.voice_id or self.providers.speech.voice_id,
                "illustrations": [asset.model_dump() for asset in context.illustrations],
                "background_music_url": f"{self.music_base_url}/{get_music_file(story_type_id)}",
                "total_duration": context.narration_duration,
                "voice_settings": context.voice_settings,
            },
            "metadata": {
                "word_count": reading.word_count,
                "word_limit": context.max_words,
                "sentence_count": reading.sentence_count,
                "reading_level": reading.reading_level,
                "estimated_reading_seconds": reading.estimated_reading_seconds,
                "language": context.language,
                "is_age_appropriate": context.safety.is_safe,
                "safety_check": context.safety.to_dict(),
                "estimated_cost": cost.to_dict(),
                "generation": {
                    "text_model": self.providers.text.model_name,
                    "voice_model": self.providers.speech.model_name,
                    "image_model": self.providers.image.model_name if context.illustrations else None,
                    "generated_at": utc_now(),
                },
            },
        }
        if record.completed_at is None:
            updates["completed_at"] = utc_now()

        self.repository.update(story_id, updates)
        logger.info(f"Story {story_id}: -> completed ({reading.word_count} words)")
