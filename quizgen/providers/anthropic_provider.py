"""Anthropic provider integration."""

import logging
from typing import Any, Dict, List, Optional

import anthropic
from anthropic import AsyncAnthropic

from ..config.generation_config import ProviderSettings, RetrySettings
from ..data.models import GenerationRequest
from .base import BaseProviderClient, detect_image_mime_type, encode_image_base64

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseProviderClient):
    """Anthropic Claude integration; optional last link of the fallback chain."""

    name = "anthropic"
    default_model = "claude-sonnet-4-5-20250929"
    supports_vision = True

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        settings: Optional[ProviderSettings] = None,
        retry: Optional[RetrySettings] = None,
    ):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            model: Model to use (default: claude-sonnet-4-5-20250929)
            settings: Provider settings (budget, timeout, sampling)
            retry: Local retry settings
        """
        super().__init__(api_key, model, settings, retry)
        self.async_client = AsyncAnthropic(api_key=api_key, max_retries=0)

    def _build_content(
        self, prompt: str, request: GenerationRequest
    ) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = []
        if request.image_data:
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": detect_image_mime_type(request.image_data),
                        "data": encode_image_base64(request.image_data),
                    },
                }
            )
        content.append({"type": "text", "text": prompt})
        return content

    async def _complete(self, prompt: str, request: GenerationRequest) -> str:
        try:
            response = await self.async_client.messages.create(
                model=self.model,
                messages=[
                    {"role": "user", "content": self._build_content(prompt, request)}  # type: ignore[typeddict-item]
                ],
                temperature=min(self.settings.temperature, 1.0),
                max_tokens=self.settings.max_tokens,
            )
        except anthropic.AnthropicError as e:
            raise self._handle_api_error(e)

        # Extract text from response
        texts = [
            block.text
            for block in response.content or []
            if getattr(block, "type", None) == "text"
        ]
        return "".join(texts)

    async def close(self) -> None:
        """Clean up async resources."""
        await self.async_client.close()
