"""Tests for the Together.ai providers (DeepSeek, Llama Vision)."""

from unittest.mock import AsyncMock, MagicMock, Mock, patch

import httpx
import openai
import pytest

from quizgen.config.generation_config import RetrySettings
from quizgen.data.models import GenerationRequest
from quizgen.infrastructure.error_classifier import ProviderError, ProviderErrorKind
from quizgen.providers.together_provider import (
    DeepSeekProvider,
    LlamaVisionProvider,
    strip_reasoning,
)


def make_completion(content):
    """Build a chat completion response with one choice."""
    message = Mock()
    message.content = content
    choice = Mock()
    choice.message = message
    response = Mock()
    response.choices = [choice]
    return response


@pytest.fixture
def mock_client():
    with patch("quizgen.providers.together_provider.AsyncOpenAI") as mock_class:
        client = MagicMock()
        client.chat.completions.create = AsyncMock()
        client.close = AsyncMock()
        mock_class.return_value = client
        yield mock_class, client


@pytest.fixture
def text_request():
    return GenerationRequest(content="Ocean currents", number_of_questions=5)


class TestStripReasoning:
    """Tests for reasoning block removal."""

    def test_removes_think_block(self):
        """Test that a complete reasoning block is removed."""
        assert strip_reasoning("<think>Let me plan.</think>\n[1, 2]") == "[1, 2]"

    def test_removes_unopened_block(self):
        """Test that a dangling preamble ending in </think> is removed."""
        assert strip_reasoning("planning the answer...</think>[3]") == "[3]"

    def test_plain_text_unchanged(self):
        """Test that replies without reasoning pass through."""
        assert strip_reasoning("  [4]  ") == "[4]"


class TestDeepSeekProvider:
    """Test suite for DeepSeekProvider."""

    def test_initialization(self, mock_client):
        """Test that the client targets Together with SDK retries disabled."""
        mock_class, _ = mock_client

        provider = DeepSeekProvider(api_key="together-key")

        assert provider.name == "deepseek"
        assert provider.model == "deepseek-ai/DeepSeek-R1-Distill-Llama-70B"
        assert provider.supports_vision is False
        assert provider.context_budget == 12000
        mock_class.assert_called_once_with(
            api_key="together-key",
            base_url="https://api.together.xyz/v1",
            max_retries=0,
        )

    @pytest.mark.asyncio
    async def test_complete_sends_sampling_parameters(self, mock_client, text_request):
        """Test the request payload and reasoning stripping."""
        _, client = mock_client
        client.chat.completions.create.return_value = make_completion(
            "<think>hmm</think>[{\"question\": \"x\"}]"
        )
        provider = DeepSeekProvider(api_key="together-key")

        reply = await provider.invoke("the prompt", text_request)

        assert reply == '[{"question": "x"}]'
        client.chat.completions.create.assert_awaited_once_with(
            model="deepseek-ai/DeepSeek-R1-Distill-Llama-70B",
            messages=[{"role": "user", "content": "the prompt"}],
            max_tokens=2000,
            temperature=0.7,
            top_p=0.9,
            extra_body={"top_k": 40, "repetition_penalty": 1.1},
        )

    @pytest.mark.asyncio
    async def test_empty_choices_return_empty_string(self, mock_client, text_request):
        """Test that a reply without choices yields an empty string."""
        _, client = mock_client
        response = Mock()
        response.choices = []
        client.chat.completions.create.return_value = response
        provider = DeepSeekProvider(api_key="together-key")

        assert await provider.invoke("prompt", text_request) == ""

    @pytest.mark.asyncio
    async def test_rate_limit_error_is_classified(self, mock_client, text_request):
        """Test that an SDK 429 becomes a RATE_LIMITED ProviderError."""
        _, client = mock_client
        request = httpx.Request("POST", "https://api.together.xyz/v1/chat/completions")
        client.chat.completions.create.side_effect = openai.RateLimitError(
            "Rate limit exceeded",
            response=httpx.Response(429, request=request),
            body=None,
        )
        provider = DeepSeekProvider(api_key="together-key")

        with pytest.raises(ProviderError) as exc_info:
            await provider.invoke("prompt", text_request)

        assert exc_info.value.kind == ProviderErrorKind.RATE_LIMITED
        assert exc_info.value.status_code == 429
        assert exc_info.value.provider == "deepseek"
        assert client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_is_retried(self, mock_client, text_request):
        """Test that connection failures are retried locally."""
        _, client = mock_client
        request = httpx.Request("POST", "https://api.together.xyz/v1/chat/completions")
        client.chat.completions.create.side_effect = [
            openai.APIConnectionError(request=request),
            make_completion("[]"),
        ]
        provider = DeepSeekProvider(
            api_key="together-key", retry=RetrySettings(max_attempts=2, base_delay=0)
        )

        assert await provider.invoke("prompt", text_request) == "[]"
        assert client.chat.completions.create.await_count == 2

    @pytest.mark.asyncio
    async def test_close(self, mock_client):
        """Test that closing releases the SDK client."""
        _, client = mock_client
        provider = DeepSeekProvider(api_key="together-key")

        await provider.close()

        client.close.assert_awaited_once()


class TestLlamaVisionProvider:
    """Test suite for LlamaVisionProvider."""

    @pytest.mark.asyncio
    async def test_image_is_sent_as_data_uri(self, mock_client, png_bytes):
        """Test that image requests carry an image_url content part."""
        _, client = mock_client
        client.chat.completions.create.return_value = make_completion("[]")
        provider = LlamaVisionProvider(api_key="together-key")
        request = GenerationRequest(image_data=png_bytes, number_of_questions=5)

        await provider.invoke("describe", request)

        messages = client.chat.completions.create.await_args.kwargs["messages"]
        content = messages[0]["content"]
        assert content[0] == {"type": "text", "text": "describe"}
        assert content[1]["type"] == "image_url"
        assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")
        assert provider.supports_vision is True

    @pytest.mark.asyncio
    async def test_text_only_request(self, mock_client, text_request):
        """Test that text requests send a single text part."""
        _, client = mock_client
        client.chat.completions.create.return_value = make_completion("[]")
        provider = LlamaVisionProvider(api_key="together-key")

        await provider.invoke("prompt", text_request)

        messages = client.chat.completions.create.await_args.kwargs["messages"]
        assert messages == [{"role": "user", "content": [{"type": "text", "text": "prompt"}]}]
        assert client.chat.completions.create.await_args.kwargs["extra_body"] is None
