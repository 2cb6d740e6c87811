"""Together.ai provider integrations.

Together.ai serves an OpenAI-compatible chat completions endpoint, so both
clients use the ``openai`` SDK pointed at the Together base URL.
"""

import re
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from ..config.generation_config import ProviderSettings, RetrySettings
from ..data.models import GenerationRequest
from .base import BaseProviderClient, image_data_uri

DEFAULT_TOGETHER_BASE_URL = "https://api.together.xyz/v1"

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_UNOPENED_THINK = re.compile(r"^.*?</think>", re.DOTALL | re.IGNORECASE)


def strip_reasoning(text: str) -> str:
    """Remove ``<think>...</think>`` reasoning blocks from a reply.

    Also drops a dangling preamble that ends in ``</think>`` without an
    opening tag, which happens when the endpoint trims the start of the block.
    """
    cleaned = _THINK_BLOCK.sub("", text)
    if "</think>" in cleaned.lower():
        cleaned = _UNOPENED_THINK.sub("", cleaned, count=1)
    return cleaned.strip()


class _TogetherProvider(BaseProviderClient):
    """Shared client set-up for Together.ai hosted models."""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        settings: Optional[ProviderSettings] = None,
        retry: Optional[RetrySettings] = None,
        base_url: str = DEFAULT_TOGETHER_BASE_URL,
    ):
        super().__init__(api_key, model, settings, retry)
        # Retries are handled by BaseProviderClient.invoke
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    def _build_messages(
        self, prompt: str, request: GenerationRequest
    ) -> List[Dict[str, Any]]:
        return [{"role": "user", "content": prompt}]

    def _extra_body(self) -> Optional[Dict[str, Any]]:
        return None

    def _extract_text(self, content: str) -> str:
        return content

    async def _complete(self, prompt: str, request: GenerationRequest) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(prompt, request),  # type: ignore[arg-type]
                max_tokens=self.settings.max_tokens,
                temperature=self.settings.temperature,
                top_p=self.settings.top_p,
                extra_body=self._extra_body(),
            )
        except openai.OpenAIError as e:
            raise self._handle_api_error(e)

        if not response.choices:
            return ""
        return self._extract_text(response.choices[0].message.content or "")

    async def close(self) -> None:
        await self.client.close()


class DeepSeekProvider(_TogetherProvider):
    """DeepSeek R1 distilled reasoning model (text only)."""

    name = "deepseek"
    default_model = "deepseek-ai/DeepSeek-R1-Distill-Llama-70B"
    supports_vision = False

    def _extra_body(self) -> Optional[Dict[str, Any]]:
        return {"top_k": 40, "repetition_penalty": 1.1}

    def _extract_text(self, content: str) -> str:
        return strip_reasoning(content)


class LlamaVisionProvider(_TogetherProvider):
    """Meta Llama Vision model; accepts an inline image alongside the prompt."""

    name = "llama_vision"
    default_model = "meta-llama/Llama-Vision-Free"
    supports_vision = True

    def _build_messages(
        self, prompt: str, request: GenerationRequest
    ) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        if request.image_data:
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": image_data_uri(request.image_data)},
                }
            )
        return [{"role": "user", "content": content}]
