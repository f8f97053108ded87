"""
Tests for provider adapters and the provider factory.

HTTP sessions, the replicate client and the google-generativeai module are
mocked; nothing here reaches the network.
"""

import httpx
import pytest
import requests
from unittest.mock import MagicMock, patch

from google.api_core import exceptions as google_exceptions
from replicate.exceptions import ModelError, ReplicateError

from pictotale.providers.base import raise_for_provider_status, request_with_classification
from pictotale.providers.elevenlabs import ElevenLabsSpeechProvider
from pictotale.providers.factory import create_providers
from pictotale.providers.gemini import GeminiProvider, classify_google_error
from pictotale.providers.replicate import ReplicateImageProvider, classify_replicate_error
from pictotale.providers.simulated import (
    SIMULATED_CONTINUATION,
    SIMULATED_STORY,
    SIMULATED_TITLE,
    SimulatedImageProvider,
    SimulatedTextProvider,
)
from pictotale.utils.errors import NonRetryableProviderError, TransientProviderError
from pictotale.utils.prompt_builder import CONTINUATION_PROMPT_PREFIX, TITLE_PROMPT_PREFIX


def _response(status_code=200, content=b"", text="", json_data=None):
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.text = text
    response.json.return_value = json_data
    return response


class TestHttpClassification:

    @pytest.mark.parametrize("status,body,error_type", [
        (400, "bad", NonRetryableProviderError),
        (401, "unauthorized", NonRetryableProviderError),
        (422, "invalid voice", NonRetryableProviderError),
        (429, "Quota exhausted for this month", NonRetryableProviderError),
        (429, "slow down", TransientProviderError),
        (500, "oops", TransientProviderError),
        (503, "unavailable", TransientProviderError),
    ])
    def test_error_statuses(self, status, body, error_type):
        with pytest.raises(error_type) as exc_info:
            raise_for_provider_status(_response(status, text=body), "test")
        assert exc_info.value.status_code == status

    def test_success_passes(self):
        assert raise_for_provider_status(_response(204), "test") is None

    def test_timeout_is_transient(self):
        session = MagicMock()
        session.request.side_effect = requests.Timeout("slow")
        with pytest.raises(TransientProviderError):
            request_with_classification(session, "GET", "http://x", "test")

    def test_invalid_request_is_non_retryable(self):
        session = MagicMock()
        session.request.side_effect = requests.exceptions.InvalidURL("bad url")
        with pytest.raises(NonRetryableProviderError):
            request_with_classification(session, "GET", "nope", "test")


class TestElevenLabsSpeechProvider:

    def test_synthesize_posts_text(self):
        session = MagicMock()
        session.request.return_value = _response(content=b"mp3-bytes")
        provider = ElevenLabsSpeechProvider("key", "voice-1", session=session)

        audio = provider.synthesize("Hello there", {"stability": 0.5})

        assert audio == b"mp3-bytes"
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "POST"
        assert url.endswith("/text-to-speech/voice-1")
        assert kwargs["headers"]["xi-api-key"] == "key"
        assert kwargs["json"]["text"] == "Hello there"
        assert kwargs["json"]["voice_settings"] == {"stability": 0.5}

    def test_voice_override(self):
        session = MagicMock()
        session.request.return_value = _response(content=b"mp3-bytes")
        provider = ElevenLabsSpeechProvider("key", "voice-1", session=session)

        provider.synthesize("Hi", None, "voice-2")

        assert session.request.call_args.args[1].endswith("/text-to-speech/voice-2")

    def test_empty_audio_is_transient(self):
        session = MagicMock()
        session.request.return_value = _response(content=b"")
        provider = ElevenLabsSpeechProvider("key", "voice-1", session=session)
        with pytest.raises(TransientProviderError):
            provider.synthesize("Hello")

    def test_requires_key(self):
        with pytest.raises(ValueError):
            ElevenLabsSpeechProvider("", "voice-1")


class TestReplicateImageProvider:

    def test_reads_file_output(self):
        client = MagicMock()
        image = MagicMock()
        image.read.return_value = b"image-bytes"
        client.run.return_value = [image]
        provider = ReplicateImageProvider(client=client)

        assert provider.generate("a mouse") == b"image-bytes"
        model = client.run.call_args.args[0]
        assert model == "black-forest-labs/flux-schnell"
        assert client.run.call_args.kwargs["input"]["prompt"] == "a mouse"

    def test_downloads_url_output(self):
        client = MagicMock()
        client.run.return_value = ["http://img/1.webp"]
        session = MagicMock()
        session.request.return_value = _response(content=b"img")
        provider = ReplicateImageProvider(client=client, session=session)

        assert provider.generate("a cat") == b"img"
        assert session.request.call_args.args[:2] == ("GET", "http://img/1.webp")

    def test_builds_client_from_token(self):
        with patch("pictotale.providers.replicate.replicate") as replicate_mock:
            provider = ReplicateImageProvider("token", model="owner/model", timeout=30.0)
        replicate_mock.Client.assert_called_once_with(api_token="token", timeout=30.0)
        assert provider.model_name == "owner/model"

    def test_requires_token_or_client(self):
        with pytest.raises(ValueError):
            ReplicateImageProvider("")

    def test_model_error_is_non_retryable(self):
        client = MagicMock()
        client.run.side_effect = ModelError(MagicMock(error="NSFW content detected"))
        provider = ReplicateImageProvider(client=client)
        with pytest.raises(NonRetryableProviderError, match="NSFW"):
            provider.generate("a cat")

    def test_empty_output_is_transient(self):
        client = MagicMock()
        client.run.return_value = []
        provider = ReplicateImageProvider(client=client)
        with pytest.raises(TransientProviderError):
            provider.generate("a cat")


class TestReplicateErrorClassification:

    @pytest.mark.parametrize("status,error_type", [
        (401, NonRetryableProviderError),
        (404, NonRetryableProviderError),
        (422, NonRetryableProviderError),
        (429, TransientProviderError),
        (503, TransientProviderError),
    ])
    def test_api_statuses(self, status, error_type):
        error = classify_replicate_error(ReplicateError(status=status, detail="upstream said no"))
        assert isinstance(error, error_type)
        assert error.status_code == status

    def test_timeout_is_transient(self):
        error = classify_replicate_error(httpx.ReadTimeout("slow"))
        assert isinstance(error, TransientProviderError)

    def test_client_raises_classified_error(self):
        client = MagicMock()
        client.run.side_effect = ReplicateError(status=429, detail="rate limited")
        provider = ReplicateImageProvider(client=client)
        with pytest.raises(TransientProviderError) as exc_info:
            provider.generate("a cat")
        assert exc_info.value.status_code == 429


class TestGeminiProvider:

    @pytest.fixture
    def genai_mock(self):
        with patch("pictotale.providers.gemini.genai") as mocked:
            yield mocked

    def test_complete(self, genai_mock):
        model = genai_mock.GenerativeModel.return_value
        model.generate_content.return_value = MagicMock(text="  Once upon a time.  ", prompt_feedback=None)

        provider = GeminiProvider(api_key="key", model_name="models/gemini-test")

        assert provider.complete("prompt", max_tokens=100, temperature=0.5) == "Once upon a time."
        assert provider.model_name == "gemini-test"
        genai_mock.configure.assert_called_once_with(api_key="key")
        genai_mock.types.GenerationConfig.assert_called_with(temperature=0.5, max_output_tokens=100)

    def test_service_error_is_transient(self, genai_mock):
        genai_mock.GenerativeModel.return_value.generate_content.side_effect = (
            google_exceptions.ServiceUnavailable("down")
        )
        provider = GeminiProvider(api_key="key")
        with pytest.raises(TransientProviderError):
            provider.complete("prompt", 10, 0.1)

    def test_blocked_prompt_is_non_retryable(self, genai_mock):
        genai_mock.GenerativeModel.return_value.generate_content.return_value = MagicMock(
            prompt_feedback=MagicMock(block_reason="SAFETY")
        )
        provider = GeminiProvider(api_key="key")
        with pytest.raises(NonRetryableProviderError):
            provider.complete("prompt", 10, 0.1)

    def test_describe_sends_image_part(self, genai_mock):
        model = genai_mock.GenerativeModel.return_value
        model.generate_content.return_value = MagicMock(text="A red house.", prompt_feedback=None)
        provider = GeminiProvider(api_key="key")

        assert provider.describe(b"\x89PNG\r\n\x1a\nrest") == "A red house."
        contents = model.generate_content.call_args.args[0]
        assert contents[1]["mime_type"] == "image/png"

    def test_requires_key(self):
        with pytest.raises(ValueError):
            GeminiProvider(api_key="")


class TestClassifyGoogleError:

    @pytest.mark.parametrize("error,error_type", [
        (google_exceptions.InvalidArgument("bad"), NonRetryableProviderError),
        (google_exceptions.PermissionDenied("no"), NonRetryableProviderError),
        (google_exceptions.ResourceExhausted("Quota exceeded for metric"), NonRetryableProviderError),
        (google_exceptions.ResourceExhausted("Resource has been exhausted, retry later"), TransientProviderError),
        (google_exceptions.ServiceUnavailable("down"), TransientProviderError),
        (google_exceptions.DeadlineExceeded("slow"), TransientProviderError),
        (ConnectionError("reset"), TransientProviderError),
    ])
    def test_mapping(self, error, error_type):
        assert isinstance(classify_google_error(error), error_type)


class TestSimulatedProviders:

    def test_text_routes_by_prompt(self):
        provider = SimulatedTextProvider()
        assert provider.complete(f"{TITLE_PROMPT_PREFIX} for this", 10, 0.9) == SIMULATED_TITLE
        assert provider.complete(f"{CONTINUATION_PROMPT_PREFIX} now", 10, 0.9) == SIMULATED_CONTINUATION
        assert provider.complete("anything else", 10, 0.9) == SIMULATED_STORY

    def test_image_is_png(self):
        assert SimulatedImageProvider().generate("x").startswith(b"\x89PNG")


class TestProviderFactory:

    def test_simulated_mode(self, settings):
        providers = create_providers(settings)
        assert set(providers.describe().values()) == {
            "SimulatedTextProvider",
            "SimulatedVisionProvider",
            "SimulatedTranscriptionProvider",
            "SimulatedSpeechProvider",
            "SimulatedImageProvider",
        }

    def test_auto_mode_uses_available_credentials(self, settings):
        settings.provider_mode = "auto"
        settings.elevenlabs_api_key = "el-key"
        providers = create_providers(settings)
        assert isinstance(providers.speech, ElevenLabsSpeechProvider)
        assert isinstance(providers.text, SimulatedTextProvider)

    def test_auto_mode_with_google_key(self, settings):
        settings.provider_mode = "auto"
        settings.google_api_key = "g-key"
        with patch("pictotale.providers.gemini.genai"):
            providers = create_providers(settings)
        assert isinstance(providers.text, GeminiProvider)
        assert providers.vision is providers.text
        assert providers.transcription is providers.text

    def test_auto_mode_with_replicate_token(self, settings):
        settings.provider_mode = "auto"
        settings.replicate_api_token = "r-token"
        with patch("pictotale.providers.replicate.replicate") as replicate_mock:
            providers = create_providers(settings)
        assert isinstance(providers.image, ReplicateImageProvider)
        replicate_mock.Client.assert_called_once_with(api_token="r-token", timeout=settings.provider_timeout)

    def test_live_mode_requires_credentials(self, settings):
        settings.provider_mode = "live"
        with pytest.raises(ValueError, match="GOOGLE_API_KEY"):
            create_providers(settings)

    def test_unknown_mode(self, settings):
        settings.provider_mode = "psychic"
        with pytest.raises(ValueError):
            create_providers(settings)
