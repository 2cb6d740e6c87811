"""Google Generative AI provider integration."""

import logging
from typing import Any, List, Optional

import google.generativeai as genai
from google.generativeai.types import GenerationConfig

from ..config.generation_config import ProviderSettings, RetrySettings
from ..data.models import GenerationRequest
from .base import BaseProviderClient, detect_image_mime_type

logger = logging.getLogger(__name__)


class GeminiProvider(BaseProviderClient):
    """Google Gemini integration; handles both text and image content."""

    name = "gemini"
    default_model = "gemini-1.5-flash"
    supports_vision = True

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        settings: Optional[ProviderSettings] = None,
        retry: Optional[RetrySettings] = None,
    ):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google API key
            model: Model to use (default: gemini-1.5-flash)
            settings: Provider settings (budget, timeout, sampling)
            retry: Local retry settings
        """
        super().__init__(api_key, model, settings, retry)
        genai.configure(api_key=api_key)
        self.client = genai.GenerativeModel(self.model)

    def _build_contents(self, prompt: str, request: GenerationRequest) -> List[Any]:
        contents: List[Any] = [prompt]
        if request.image_data:
            contents.append(
                {
                    "mime_type": detect_image_mime_type(request.image_data),
                    "data": request.image_data,
                }
            )
        return contents

    async def _complete(self, prompt: str, request: GenerationRequest) -> str:
        generation_config = GenerationConfig(
            temperature=self.settings.temperature,
            top_p=self.settings.top_p,
            top_k=50,
            max_output_tokens=self.settings.max_tokens,
        )
        try:
            response = await self.client.generate_content_async(
                self._build_contents(prompt, request),
                generation_config=generation_config,
            )
        except Exception as e:
            raise self._handle_api_error(e)

        # response.text raises ValueError when the reply was blocked or has no parts
        try:
            return response.text or ""
        except ValueError as e:
            logger.warning(f"Gemini returned no usable text: {e}")
            return ""
