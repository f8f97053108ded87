"""
Simulated providers for development and tests.

Deterministic stand-ins for every provider interface, used when credentials
are absent or ``PROVIDER_MODE=simulated``. They never touch the network.
"""

import base64
import logging
from typing import Any, Dict, Optional

from .base import (
    ImageGenerationProvider,
    SpeechSynthesisProvider,
    TextGenerationProvider,
    TranscriptionProvider,
    VisionProvider,
)
from ..utils.prompt_builder import CONTINUATION_PROMPT_PREFIX, TITLE_PROMPT_PREFIX

logger = logging.getLogger(__name__)

SIMULATED_STORY = (
    "Once upon a time, Squeaky the brave little mouse heard about magical cheese hidden deep in the enchanted forest.\n"
    "With his new friend Whiskers the wise cat, they set off on an exciting adventure together.\n"
    "They crossed sparkling streams and climbed over colorful mushrooms, helping other forest animals along the way.\n"
    "When they finally found the glowing magical cheese, it granted them the power to understand all forest languages.\n"
    "Squeaky and Whiskers realized the real magic was the friendship they had built during their journey.\n"
    "They returned home as heroes, sharing their magical gift with everyone in the village."
)

SIMULATED_CONTINUATION = (
    "The next morning, a little bluebird tapped on Squeaky's window with a shiny invitation.\n"
    "All the forest friends were planning a picnic to celebrate, and everyone was invited.\n"
    "Squeaky and Whiskers packed cheese sandwiches and laughed all the way to the meadow."
)

SIMULATED_TITLE = "Squeaky and the Magical Forest Cheese"

SIMULATED_DRAWING_DESCRIPTION = (
    "A cheerful drawing of a small mouse and a friendly cat standing under a big "
    "green tree, with a bright yellow sun and colorful flowers all around."
)

SIMULATED_TRANSCRIPTION = "I want a story about a brave mouse who finds magic cheese with his cat friend."

# Smallest valid PNG (1x1 transparent pixel)
PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

# ID3 header followed by silence; enough for players to accept the file
SILENT_MP3 = b"ID3\x03\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x00" + b"\x00" * 413


class SimulatedTextProvider(TextGenerationProvider):
    """Returns canned story, continuation or title text depending on the prompt."""

    model_name = "simulated-text"

    def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        if prompt.startswith(TITLE_PROMPT_PREFIX):
            return SIMULATED_TITLE
        if prompt.startswith(CONTINUATION_PROMPT_PREFIX):
            return SIMULATED_CONTINUATION
        logger.info("Using simulated story text")
        return SIMULATED_STORY


class SimulatedVisionProvider(VisionProvider):
    model_name = "simulated-vision"

    def describe(self, image_bytes: bytes) -> str:
        return SIMULATED_DRAWING_DESCRIPTION


class SimulatedTranscriptionProvider(TranscriptionProvider):
    model_name = "simulated-transcription"

    def transcribe(self, audio_bytes: bytes, language: str = "en") -> str:
        return SIMULATED_TRANSCRIPTION


class SimulatedSpeechProvider(SpeechSynthesisProvider):
    model_name = "simulated-tts"
    voice_id = "simulated-voice"
    content_type = "audio/mpeg"

    def synthesize(self, text: str, voice_settings: Optional[Dict[str, Any]] = None, voice_id: Optional[str] = None) -> bytes:
        return SILENT_MP3


class SimulatedImageProvider(ImageGenerationProvider):
    model_name = "simulated-image"
    content_type = "image/png"

    def generate(self, prompt: str) -> bytes:
        return PLACEHOLDER_PNG
