"""
Replicate image generation provider.

Runs the configured model through ``replicate.Client`` and returns the
first image it produces. Current SDK releases hand back file objects that
can be read directly; plain URLs are downloaded with requests.
"""

import logging
from typing import Any, Optional

import httpx
import replicate
import requests
from replicate.exceptions import ModelError, ReplicateError

from .base import ImageGenerationProvider, request_with_classification
from ..utils.errors import NonRetryableProviderError, TransientProviderError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "black-forest-labs/flux-schnell"

PROVIDER_NAME = "replicate"

# API statuses that repeat for the same request
_NON_RETRYABLE_STATUSES = (400, 401, 402, 403, 404, 422)


def classify_replicate_error(error: Exception) -> Exception:
    """
    Map a replicate / httpx exception to a provider error.

    Returns:
        TransientProviderError or NonRetryableProviderError wrapping ``error``
    """
    message = f"{type(error).__name__}: {error}"

    if isinstance(error, ModelError):
        # The model itself rejected the input (e.g. NSFW filter)
        return NonRetryableProviderError(PROVIDER_NAME, message)
    if isinstance(error, ReplicateError):
        status_code = getattr(error, "status", None)
        if not isinstance(status_code, int):
            status_code = None
        if status_code in _NON_RETRYABLE_STATUSES:
            return NonRetryableProviderError(PROVIDER_NAME, message, status_code=status_code)
        return TransientProviderError(PROVIDER_NAME, message, status_code=status_code)
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        if status_code in _NON_RETRYABLE_STATUSES:
            return NonRetryableProviderError(PROVIDER_NAME, message, status_code=status_code)
        return TransientProviderError(PROVIDER_NAME, message, status_code=status_code)
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return TransientProviderError(PROVIDER_NAME, message)
    return TransientProviderError(PROVIDER_NAME, message)


def _first_output(output: Any) -> Any:
    if isinstance(output, (str, bytes)) or hasattr(output, "read"):
        return output
    if output is None:
        return None
    try:
        return next(iter(output), None)
    except TypeError:
        return None


class ReplicateImageProvider(ImageGenerationProvider):
    """Generates illustrations with a Replicate-hosted model."""

    content_type = "image/webp"

    def __init__(
        self,
        api_token: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: float = 60.0,
        client: Optional[replicate.Client] = None,
        session: Optional[requests.Session] = None,
    ):
        if not api_token and client is None:
            raise ValueError("REPLICATE_API_TOKEN is required for the Replicate provider")
        self.model_name = model
        self.timeout = timeout
        self._client = client or replicate.Client(api_token=api_token, timeout=timeout)
        self._session = session or requests.Session()

    def generate(self, prompt: str) -> bytes:
        """
        Generate one image for ``prompt``.

        Returns:
            Image bytes of the model's first output

        Raises:
            NonRetryableProviderError: If the model or the API rejects the request
            TransientProviderError: On rate limits, outages, timeouts or empty output
        """
        try:
            output = self._client.run(
                self.model_name,
                input={
                    "prompt": prompt,
                    "num_outputs": 1,
                    "aspect_ratio": "1:1",
                },
            )
            image = _first_output(output)
            if hasattr(image, "read"):
                data = image.read()
            else:
                data = image
        except (ModelError, ReplicateError, httpx.HTTPError) as e:
            raise classify_replicate_error(e) from e

        if isinstance(data, str) and data:
            response = request_with_classification(
                self._session, "GET", data, PROVIDER_NAME, timeout=self.timeout,
            )
            data = response.content

        if not isinstance(data, bytes) or not data:
            raise TransientProviderError(PROVIDER_NAME, "model returned no image output")

        logger.info(f"Replicate image generated: {len(data)} bytes")
        return data
