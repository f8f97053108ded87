"""
Provider interfaces.

Each external capability the pipeline needs sits behind one small abstract
class. Live adapters and simulated adapters implement the same interface and
are chosen once, at construction time, by the provider factory.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from ..utils.errors import NonRetryableProviderError, TransientProviderError

# Statuses that will not improve on retry
NON_RETRYABLE_HTTP_STATUSES = frozenset({400, 401, 403, 404, 422})

_QUOTA_MARKERS = ("quota", "insufficient", "billing", "credits")


class TextGenerationProvider(ABC):
    """Generates free text from a prompt."""

    model_name: str = "unknown"

    @abstractmethod
    def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """
        Generate text for ``prompt``.

        Raises:
            TransientProviderError: On failures worth retrying
            NonRetryableProviderError: On auth, validation or quota failures
        """
        pass


class VisionProvider(ABC):
    """Describes an image."""

    model_name: str = "unknown"

    @abstractmethod
    def describe(self, image_bytes: bytes) -> str:
        pass


class TranscriptionProvider(ABC):
    """Turns speech audio into text."""

    model_name: str = "unknown"

    @abstractmethod
    def transcribe(self, audio_bytes: bytes, language: str) -> str:
        pass


class SpeechSynthesisProvider(ABC):
    """Turns text into narration audio."""

    model_name: str = "unknown"
    voice_id: Optional[str] = None
    content_type: str = "audio/mpeg"

    @abstractmethod
    def synthesize(self, text: str, voice_settings: Optional[Dict[str, Any]] = None, voice_id: Optional[str] = None) -> bytes:
        pass


class ImageGenerationProvider(ABC):
    """Generates an illustration from a prompt."""

    model_name: str = "unknown"
    content_type: str = "image/png"

    @abstractmethod
    def generate(self, prompt: str) -> bytes:
        pass


def raise_for_provider_status(response: requests.Response, provider: str) -> None:
    """
    Raise the matching provider error for a non-2xx HTTP response.

    429 responses that mention quota or billing are terminal; plain 429s
    and 5xx responses are transient.
    """
    status = response.status_code
    if status < 400:
        return

    body = (response.text or "")[:500]
    message = f"HTTP {status}: {body}"

    if status in NON_RETRYABLE_HTTP_STATUSES:
        raise NonRetryableProviderError(provider, message, status_code=status)
    if status == 429 and any(marker in body.lower() for marker in _QUOTA_MARKERS):
        raise NonRetryableProviderError(provider, f"quota exceeded: {message}", status_code=status)
    raise TransientProviderError(provider, message, status_code=status)


def request_with_classification(session: requests.Session, method: str, url: str, provider: str, **kwargs) -> requests.Response:
    """
    Perform an HTTP request, mapping transport failures to provider errors.

    Returns:
        The response, already checked with raise_for_provider_status
    """
    try:
        response = session.request(method, url, **kwargs)
    except (requests.Timeout, requests.ConnectionError) as e:
        raise TransientProviderError(provider, f"{type(e).__name__}: {e}") from e
    except requests.RequestException as e:
        raise NonRetryableProviderError(provider, f"request failed: {e}") from e
    raise_for_provider_status(response, provider)
    return response
