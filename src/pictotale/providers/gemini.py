"""
Google Gemini provider implementation.

This module provides the GeminiProvider class, which covers three of the
pipeline's capabilities with one multimodal model: story text generation,
drawing description and voice transcription. All Gemini-specific code is
isolated here.
"""

import logging
import time
from typing import Any, List, Optional

import google.generativeai as genai  # type: ignore
from google.api_core import exceptions as google_exceptions  # type: ignore

from .base import TextGenerationProvider, VisionProvider, TranscriptionProvider
from ..utils.errors import NonRetryableProviderError, TransientProviderError
from ..utils.llm_constants import DESCRIPTION_MAX_TOKENS
from ..utils.object_storage import sniff_content_type
from ..utils.prompt_builder import language_name

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

PROVIDER_NAME = "gemini"

DRAWING_PROMPT = (
    "This is a drawing made by a child. Describe what you see in two or three "
    "warm, simple sentences: the characters, the setting, the colors and what "
    "seems to be happening. This description will inspire a children's story."
)

TRANSCRIPTION_PROMPT = (
    "Transcribe this voice recording of a child describing a story idea. "
    "The child speaks {language}. Return only the transcription text."
)

# google.api_core exceptions that will not improve on retry
_NON_RETRYABLE_EXCEPTIONS = (
    google_exceptions.InvalidArgument,
    google_exceptions.Unauthenticated,
    google_exceptions.PermissionDenied,
    google_exceptions.NotFound,
    google_exceptions.FailedPrecondition,
)

_TRANSIENT_EXCEPTIONS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
    google_exceptions.DeadlineExceeded,
    google_exceptions.Aborted,
    google_exceptions.TooManyRequests,
)


def classify_google_error(error: Exception) -> Exception:
    """
    Map a google-generativeai / google.api_core exception to a provider error.

    Returns:
        TransientProviderError or NonRetryableProviderError wrapping ``error``
    """
    status_code = getattr(error, "code", None)
    if not isinstance(status_code, int):
        status_code = None
    message = f"{type(error).__name__}: {error}"

    if isinstance(error, _NON_RETRYABLE_EXCEPTIONS):
        return NonRetryableProviderError(PROVIDER_NAME, message, status_code=status_code)
    if isinstance(error, google_exceptions.ResourceExhausted):
        lowered = str(error).lower()
        if "quota exceeded" in lowered or "billing" in lowered:
            return NonRetryableProviderError(PROVIDER_NAME, message, status_code=status_code)
        return TransientProviderError(PROVIDER_NAME, message, status_code=status_code)
    if isinstance(error, _TRANSIENT_EXCEPTIONS):
        return TransientProviderError(PROVIDER_NAME, message, status_code=status_code)
    if isinstance(error, (ConnectionError, TimeoutError, OSError)):
        return TransientProviderError(PROVIDER_NAME, message)
    if isinstance(error, google_exceptions.GoogleAPICallError):
        if status_code is not None and 400 <= status_code < 500:
            return NonRetryableProviderError(PROVIDER_NAME, message, status_code=status_code)
        return TransientProviderError(PROVIDER_NAME, message, status_code=status_code)
    return TransientProviderError(PROVIDER_NAME, message)


class GeminiProvider(TextGenerationProvider, VisionProvider, TranscriptionProvider):
    """
    Provider for interacting with the Google Gemini API.

    Failures are raised as TransientProviderError or NonRetryableProviderError
    so the retry executor can decide what to do with them. No retries happen
    here.
    """

    def __init__(
        self,
        api_key: str,
        model_name: str = DEFAULT_GEMINI_MODEL,
        temperature: float = 0.8,
        timeout: float = 60.0,
    ):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google API key
            model_name: Model name (default: gemini-2.5-flash)
            temperature: Default generation temperature
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If no API key is given
        """
        if not api_key:
            raise ValueError("GOOGLE_API_KEY is required for the Gemini provider")

        genai.configure(api_key=api_key)
        self._genai = genai
        self._model_name = model_name.replace("models/", "")
        self.temperature = temperature
        self.timeout = timeout

        logger.info(f"Initialized GeminiProvider with model: {self._model_name}")

    @property
    def model_name(self) -> str:
        """Get the model name being used by this provider."""
        return self._model_name

    def _generate(self, contents: List[Any], max_tokens: int, temperature: float, operation: str) -> str:
        start_time = time.time()
        try:
            model = self._genai.GenerativeModel(self._model_name)
            generation_config = self._genai.types.GenerationConfig(
                temperature=temperature,
                max_output_tokens=max_tokens,
            )
            response = model.generate_content(
                contents,
                generation_config=generation_config,
                request_options={"timeout": self.timeout},
            )
        except Exception as e:
            duration = time.time() - start_time
            logger.error(f"Gemini {operation} failed after {duration:.2f}s: {e}")
            raise classify_google_error(e) from e

        prompt_feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(prompt_feedback, "block_reason", None)
        if block_reason:
            raise NonRetryableProviderError(
                PROVIDER_NAME, f"{operation} prompt blocked: {block_reason}"
            )

        try:
            text = response.text
        except ValueError as e:
            # Raised when the candidate carries no text parts
            finish_reason = "UNKNOWN"
            if getattr(response, "candidates", None):
                finish_reason = getattr(response.candidates[0], "finish_reason", "UNKNOWN")
            raise TransientProviderError(
                PROVIDER_NAME, f"{operation} returned no text (finish_reason={finish_reason})"
            ) from e

        text = (text or "").strip()
        if not text:
            raise TransientProviderError(PROVIDER_NAME, f"{operation} returned empty text")

        logger.debug(f"Gemini {operation} finished in {time.time() - start_time:.2f}s")
        return text

    def complete(self, prompt: str, max_tokens: int, temperature: Optional[float] = None) -> str:
        """
        Generate text using the configured Gemini model.

        Args:
            prompt: Full prompt
            max_tokens: Maximum output tokens
            temperature: Generation temperature (overrides instance default)

        Returns:
            Generated text
        """
        return self._generate(
            [prompt],
            max_tokens=max_tokens,
            temperature=self.temperature if temperature is None else temperature,
            operation="complete",
        )

    def describe(self, image_bytes: bytes) -> str:
        """Describe a child's drawing."""
        mime_type = sniff_content_type(image_bytes, default="image/png")
        return self._generate(
            [DRAWING_PROMPT, {"mime_type": mime_type, "data": image_bytes}],
            max_tokens=DESCRIPTION_MAX_TOKENS,
            temperature=0.4,
            operation="describe",
        )

    def transcribe(self, audio_bytes: bytes, language: str = "en") -> str:
        """Transcribe a child's voice clip."""
        mime_type = sniff_content_type(audio_bytes, default="audio/webm")
        return self._generate(
            [
                TRANSCRIPTION_PROMPT.format(language=language_name(language)),
                {"mime_type": mime_type, "data": audio_bytes},
            ],
            max_tokens=DESCRIPTION_MAX_TOKENS,
            temperature=0.0,
            operation="transcribe",
        )
