"""
Provider Factory.

This module builds the set of providers the pipeline uses. Each capability
gets a live adapter or a simulated one, decided once here from the
configured credentials and ``PROVIDER_MODE``:

- ``live``: every capability must have credentials, otherwise ValueError
- ``simulated``: every capability is simulated
- ``auto``: live where credentials exist, simulated elsewhere
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .base import (
    ImageGenerationProvider,
    SpeechSynthesisProvider,
    TextGenerationProvider,
    TranscriptionProvider,
    VisionProvider,
)
from .simulated import (
    SimulatedImageProvider,
    SimulatedSpeechProvider,
    SimulatedTextProvider,
    SimulatedTranscriptionProvider,
    SimulatedVisionProvider,
)

logger = logging.getLogger(__name__)


@dataclass
class ProviderSet:
    """One provider per capability."""
    text: TextGenerationProvider
    vision: VisionProvider
    transcription: TranscriptionProvider
    speech: SpeechSynthesisProvider
    image: ImageGenerationProvider

    def describe(self) -> Dict[str, str]:
        """Provider class per capability, for logs and health checks."""
        return {
            "text": type(self.text).__name__,
            "vision": type(self.vision).__name__,
            "transcription": type(self.transcription).__name__,
            "speech": type(self.speech).__name__,
            "image": type(self.image).__name__,
        }


def simulated_providers() -> ProviderSet:
    return ProviderSet(
        text=SimulatedTextProvider(),
        vision=SimulatedVisionProvider(),
        transcription=SimulatedTranscriptionProvider(),
        speech=SimulatedSpeechProvider(),
        image=SimulatedImageProvider(),
    )


def _require(mode: str, value: Optional[str], name: str) -> bool:
    if value:
        return True
    if mode == "live":
        raise ValueError(f"{name} is required when PROVIDER_MODE=live")
    return False


def create_providers(settings) -> ProviderSet:
    """
    Create providers from settings.

    Args:
        settings: Settings instance

    Returns:
        ProviderSet

    Raises:
        ValueError: If ``provider_mode`` is unknown, or ``live`` without credentials
    """
    mode = settings.provider_mode
    if mode not in ("auto", "live", "simulated"):
        raise ValueError(f"Unknown provider mode: {mode}. Supported modes: auto, live, simulated")

    providers = simulated_providers()
    if mode == "simulated":
        logger.info("Using simulated providers for all capabilities")
        return providers

    if _require(mode, settings.google_api_key, "GOOGLE_API_KEY"):
        from .gemini import GeminiProvider

        gemini = GeminiProvider(
            api_key=settings.google_api_key,
            model_name=settings.llm_model,
            temperature=settings.llm_temperature,
            timeout=settings.provider_timeout,
        )
        providers.text = gemini
        providers.vision = gemini
        providers.transcription = gemini

    if _require(mode, settings.elevenlabs_api_key, "ELEVENLABS_API_KEY"):
        from .elevenlabs import ElevenLabsSpeechProvider

        providers.speech = ElevenLabsSpeechProvider(
            api_key=settings.elevenlabs_api_key,
            voice_id=settings.elevenlabs_voice_id,
            model_id=settings.elevenlabs_model_id,
            timeout=settings.provider_timeout,
        )

    if _require(mode, settings.replicate_api_token, "REPLICATE_API_TOKEN"):
        from .replicate import ReplicateImageProvider

        providers.image = ReplicateImageProvider(
            api_token=settings.replicate_api_token,
            model=settings.replicate_model,
            timeout=settings.provider_timeout,
        )

    logger.info(f"Created providers: {providers.describe()}")
    return providers
