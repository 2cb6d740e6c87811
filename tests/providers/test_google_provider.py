"""Tests for the Gemini provider."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from quizgen.data.models import GenerationRequest
from quizgen.infrastructure.error_classifier import ProviderError, ProviderErrorKind
from quizgen.providers.google_provider import GeminiProvider


class BlockedResponse:
    """Response whose ``text`` accessor fails like a safety-blocked reply."""

    @property
    def text(self):
        raise ValueError("The response was blocked")


class QuotaError(Exception):
    """Stand-in for google.api_core ResourceExhausted."""

    code = 429


@pytest.fixture
def mock_genai():
    with patch("quizgen.providers.google_provider.genai") as genai:
        model = MagicMock()
        model.generate_content_async = AsyncMock()
        genai.GenerativeModel.return_value = model
        yield genai, model


@pytest.fixture
def text_request():
    return GenerationRequest(content="Volcanic eruptions", number_of_questions=5)


class TestGeminiProvider:
    """Test suite for GeminiProvider."""

    def test_initialization(self, mock_genai):
        """Test SDK configuration and defaults."""
        genai, _ = mock_genai

        provider = GeminiProvider(api_key="google-key")

        genai.configure.assert_called_once_with(api_key="google-key")
        genai.GenerativeModel.assert_called_once_with("gemini-1.5-flash")
        assert provider.supports_vision is True
        assert provider.context_budget == 20000
        assert provider.timeout_seconds == 30

    @pytest.mark.asyncio
    async def test_text_completion(self, mock_genai, text_request):
        """Test a plain text call and its generation config."""
        _, model = mock_genai
        response = MagicMock()
        response.text = "[]"
        model.generate_content_async.return_value = response
        provider = GeminiProvider(api_key="google-key")

        reply = await provider.invoke("prompt", text_request)

        assert reply == "[]"
        args, kwargs = model.generate_content_async.await_args
        assert args[0] == ["prompt"]
        config = kwargs["generation_config"]
        assert config.max_output_tokens == 4000
        assert config.top_k == 50

    @pytest.mark.asyncio
    async def test_image_is_sent_inline(self, mock_genai, png_bytes):
        """Test that image bytes are attached with their MIME type."""
        _, model = mock_genai
        response = MagicMock()
        response.text = "[]"
        model.generate_content_async.return_value = response
        provider = GeminiProvider(api_key="google-key")
        request = GenerationRequest(image_data=png_bytes, number_of_questions=5)

        await provider.invoke("prompt", request)

        contents = model.generate_content_async.await_args.args[0]
        assert contents[1] == {"mime_type": "image/png", "data": png_bytes}

    @pytest.mark.asyncio
    async def test_blocked_response_returns_empty(self, mock_genai, text_request):
        """Test that a reply without usable text is an empty string."""
        _, model = mock_genai
        model.generate_content_async.return_value = BlockedResponse()
        provider = GeminiProvider(api_key="google-key")

        assert await provider.invoke("prompt", text_request) == ""

    @pytest.mark.asyncio
    async def test_quota_error_is_rate_limited(self, mock_genai, text_request):
        """Test that a 429 from the SDK is classified as rate limiting."""
        _, model = mock_genai
        model.generate_content_async.side_effect = QuotaError("Resource exhausted")
        provider = GeminiProvider(api_key="google-key")

        with pytest.raises(ProviderError) as exc_info:
            await provider.invoke("prompt", text_request)

        assert exc_info.value.kind == ProviderErrorKind.RATE_LIMITED
        assert exc_info.value.provider == "gemini"
        assert model.generate_content_async.await_count == 1
