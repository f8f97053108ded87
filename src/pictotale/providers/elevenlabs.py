"""
ElevenLabs text-to-speech provider.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .base import SpeechSynthesisProvider, request_with_classification
from ..utils.errors import TransientProviderError

logger = logging.getLogger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"

PROVIDER_NAME = "elevenlabs"


class ElevenLabsSpeechProvider(SpeechSynthesisProvider):
    """Narrates text with an ElevenLabs voice over the REST API."""

    content_type = "audio/mpeg"

    def __init__(
        self,
        api_key: str,
        voice_id: str,
        model_id: str = DEFAULT_MODEL_ID,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("ELEVENLABS_API_KEY is required for the ElevenLabs provider")
        if not voice_id:
            raise ValueError("ELEVENLABS_VOICE_ID is required for the ElevenLabs provider")
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_name = model_id
        self.timeout = timeout
        self._session = session or requests.Session()

    def synthesize(self, text: str, voice_settings: Optional[Dict[str, Any]] = None, voice_id: Optional[str] = None) -> bytes:
        """
        Generate narration audio for ``text``.

        Args:
            text: Text to narrate
            voice_settings: ElevenLabs voice settings (stability, similarity_boost, ...)
            voice_id: Voice to narrate with (defaults to the configured voice)

        Returns:
            MP3 bytes
        """
        payload = {
            "text": text,
            "model_id": self.model_name,
        }
        if voice_settings:
            payload["voice_settings"] = voice_settings

        response = request_with_classification(
            self._session,
            "POST",
            ELEVENLABS_API_URL.format(voice_id=voice_id or self.voice_id),
            PROVIDER_NAME,
            headers={
                "xi-api-key": self.api_key,
                "Content-Type": "application/json",
                "Accept": "audio/mpeg",
            },
            params={"output_format": DEFAULT_OUTPUT_FORMAT},
            json=payload,
            timeout=self.timeout,
        )

        audio = response.content
        if not audio:
            raise TransientProviderError(PROVIDER_NAME, "empty audio response")
        logger.info(f"ElevenLabs narration generated: {len(audio)} bytes for {len(text)} characters")
        return audio
