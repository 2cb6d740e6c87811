"""Tests for the provider base class and shared helpers."""

from unittest.mock import AsyncMock, call, patch

import pytest

from quizgen.config.generation_config import RetrySettings
from quizgen.data.models import GenerationRequest
from quizgen.infrastructure.error_classifier import ProviderError, ProviderErrorKind
from quizgen.providers.base import (
    calculate_backoff_delay,
    detect_image_mime_type,
    encode_image_base64,
    image_data_uri,
)


@pytest.fixture
def request_obj():
    return GenerationRequest(content="Rivers and lakes", number_of_questions=5)


def transient(message="Service Unavailable"):
    return ProviderError(ProviderErrorKind.TRANSIENT, "provider1", message, 503)


class TestImageHelpers:
    """Tests for image MIME sniffing and encoding."""

    @pytest.mark.parametrize(
        "data,expected",
        [
            (b"\x89PNG\r\n\x1a\n" + b"\x00" * 8, "image/png"),
            (b"\xff\xd8\xff\xe0" + b"\x00" * 8, "image/jpeg"),
            (b"GIF89a" + b"\x00" * 8, "image/gif"),
            (b"GIF87a" + b"\x00" * 8, "image/gif"),
            (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
            (b"unknown bytes", "image/jpeg"),
        ],
    )
    def test_detect_image_mime_type(self, data, expected):
        """Test MIME detection from magic bytes."""
        assert detect_image_mime_type(data) == expected

    def test_data_uri(self, png_bytes):
        """Test the data URI format."""
        uri = image_data_uri(png_bytes)

        assert uri == f"data:image/png;base64,{encode_image_base64(png_bytes)}"


class TestBackoff:
    """Tests for the linear backoff."""

    @pytest.mark.parametrize("attempt,expected", [(1, 1.0), (2, 2.0), (3, 3.0)])
    def test_linear_delay(self, attempt, expected):
        """Test that the delay grows linearly with the attempt number."""
        assert calculate_backoff_delay(attempt, 1.0) == expected


class TestInvokeRetry:
    """Tests for the local retry loop."""

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried_with_backoff(
        self, make_provider, request_obj
    ):
        """Test that transient failures back off 1s then 2s before succeeding."""
        provider = make_provider("provider1", [transient(), transient(), "[]"])
        provider.retry = RetrySettings(max_attempts=3, base_delay=1.0)

        with patch("quizgen.providers.base.asyncio.sleep", new=AsyncMock()) as sleep:
            reply = await provider.invoke("prompt", request_obj)

        assert reply == "[]"
        assert len(provider.calls) == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, make_provider, request_obj):
        """Test that the last transient error propagates after the final attempt."""
        provider = make_provider("provider1", [transient("one"), transient("two")])
        provider.retry = RetrySettings(max_attempts=2, base_delay=1.0)

        with patch("quizgen.providers.base.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ProviderError) as exc_info:
                await provider.invoke("prompt", request_obj)

        assert exc_info.value.message == "two"
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [ProviderErrorKind.RATE_LIMITED, ProviderErrorKind.FATAL])
    async def test_non_transient_errors_are_not_retried(
        self, make_provider, request_obj, kind
    ):
        """Test that rate-limited and fatal errors propagate immediately."""
        provider = make_provider(
            "provider1", [ProviderError(kind, "provider1", "nope"), "[]"], max_attempts=3
        )

        with pytest.raises(ProviderError) as exc_info:
            await provider.invoke("prompt", request_obj)

        assert exc_info.value.kind == kind
        assert len(provider.calls) == 1

    def test_settings_expose_budget_and_timeout(self, make_provider):
        """Test the budget and timeout properties."""
        provider = make_provider("provider1", context_budget=9000, timeout_seconds=12)

        assert provider.context_budget == 9000
        assert provider.timeout_seconds == 12
