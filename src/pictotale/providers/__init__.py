"""
Provider implementations.

Live adapters (Gemini, ElevenLabs, Replicate) and simulated adapters behind
the interfaces in ``base``. Use ``create_providers`` to build a set.
"""

from .base import (
    TextGenerationProvider,
    VisionProvider,
    TranscriptionProvider,
    SpeechSynthesisProvider,
    ImageGenerationProvider,
)
from .factory import ProviderSet, create_providers, simulated_providers

__all__ = [
    "TextGenerationProvider",
    "VisionProvider",
    "TranscriptionProvider",
    "SpeechSynthesisProvider",
    "ImageGenerationProvider",
    "ProviderSet",
    "create_providers",
    "simulated_providers",
]
