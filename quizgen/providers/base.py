"""Base class for generation provider clients."""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..config.generation_config import GenerationConfig, ProviderSettings, RetrySettings
from ..data.models import GenerationRequest
from ..infrastructure.error_classifier import ErrorClassifier, ProviderError
from ..observability import observability

logger = logging.getLogger(__name__)

_IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def detect_image_mime_type(image_data: bytes) -> str:
    """Sniff the MIME type of an image from its magic bytes.

    Recognises PNG, JPEG, GIF and WEBP; anything else is reported as JPEG.
    """
    for signature, mime_type in _IMAGE_SIGNATURES:
        if image_data.startswith(signature):
            return mime_type
    if image_data[:4] == b"RIFF" and image_data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def encode_image_base64(image_data: bytes) -> str:
    return base64.b64encode(image_data).decode("ascii")


def image_data_uri(image_data: bytes) -> str:
    """Build a ``data:`` URI for inline image transport."""
    return f"data:{detect_image_mime_type(image_data)};base64,{encode_image_base64(image_data)}"


def calculate_backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before the attempt after ``attempt`` (1-based): ``base_delay * attempt``."""
    return max(0.0, base_delay * attempt)


class BaseProviderClient(ABC):
    """Abstract base class for generation provider clients.

    Subclasses implement ``_complete`` (request encoding and response
    extraction) and wrap SDK failures with ``_handle_api_error``. The base
    class owns the local retry loop: only transient failures are retried;
    rate-limited and fatal failures propagate immediately so the
    orchestrator can fall back.
    """

    name: str = "base"
    supports_vision: bool = False
    default_model: str = ""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        settings: Optional[ProviderSettings] = None,
        retry: Optional[RetrySettings] = None,
    ):
        """
        Initialize the provider client.

        Args:
            api_key: API key for the provider
            model: Model identifier to use (defaults to ``default_model``)
            settings: Context budget, timeout and sampling settings
                (defaults to the built-in settings for this provider)
            retry: Local retry settings (defaults: 3 attempts, 1s linear backoff)
        """
        self.api_key = api_key
        self.model = model or self.default_model
        self.settings = settings or GenerationConfig().provider_settings(self.name)
        self.retry = retry or RetrySettings()

    @property
    def context_budget(self) -> int:
        return self.settings.context_budget

    @property
    def timeout_seconds(self) -> float:
        return self.settings.timeout_seconds

    async def invoke(self, prompt: str, request: GenerationRequest) -> str:
        """
        Send a prompt to the provider and return its raw text reply.

        Args:
            prompt: The fully built prompt
            request: The (shaped) request; supplies image data for vision calls

        Returns:
            Raw reply text, possibly empty

        Raises:
            ProviderError: On rate limiting, fatal failures, or transient
                failures that outlived the local retries
        """
        max_attempts = self.retry.max_attempts
        attempt = 1
        while True:
            try:
                return await self._complete(prompt, request)
            except ProviderError as error:
                if not error.is_retryable:
                    raise
                if attempt >= max_attempts:
                    logger.warning(
                        f"{self.name}: giving up after {attempt} attempts: {error}",
                        extra={"provider": self.name},
                    )
                    raise
                delay = calculate_backoff_delay(attempt, self.retry.base_delay)
                logger.warning(
                    f"{self.name}: transient failure on attempt "
                    f"{attempt}/{max_attempts}, retrying in {delay:.1f}s: "
                    f"{error.message}",
                    extra={"provider": self.name},
                )

            observability.record_metric(
                "quizgen.provider.retries", 1, labels={"provider": self.name}
            )
            await asyncio.sleep(delay)
            attempt += 1

    @abstractmethod
    async def _complete(self, prompt: str, request: GenerationRequest) -> str:
        """
        Perform a single provider call.

        Raises:
            ProviderError: If the API call fails
        """

    def _handle_api_error(self, error: Exception) -> ProviderError:
        """Classify and wrap an API error."""
        return ErrorClassifier.classify(error, provider=self.name)

    async def close(self) -> None:
        """Release any network resources held by the SDK client."""
