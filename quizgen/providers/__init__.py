"""Generation provider integrations."""

import logging
from typing import Dict, Optional

from ..config.config import Settings
from ..config.generation_config import GenerationConfig
from .anthropic_provider import AnthropicProvider
from .base import BaseProviderClient
from .google_provider import GeminiProvider
from .together_provider import DeepSeekProvider, LlamaVisionProvider

logger = logging.getLogger(__name__)

__all__ = [
    "AnthropicProvider",
    "BaseProviderClient",
    "DeepSeekProvider",
    "GeminiProvider",
    "LlamaVisionProvider",
    "build_default_providers",
]


def build_default_providers(
    settings: Settings, config: Optional[GenerationConfig] = None
) -> Dict[str, BaseProviderClient]:
    """Build the provider registry from configured credentials.

    A provider is registered only when its API key is set. The order of the
    returned mapping is irrelevant; the fallback order comes from the
    configured chains.

    Args:
        settings: Application settings (credentials and model names)
        config: Generation configuration (budgets, timeouts, retry)

    Returns:
        Mapping of provider name to client
    """
    config = config or GenerationConfig()
    providers: Dict[str, BaseProviderClient] = {}

    if settings.together_api_key:
        providers["deepseek"] = DeepSeekProvider(
            api_key=settings.together_api_key,
            model=settings.deepseek_model,
            settings=config.provider_settings("deepseek"),
            retry=config.retry,
            base_url=settings.together_base_url,
        )
        providers["llama_vision"] = LlamaVisionProvider(
            api_key=settings.together_api_key,
            model=settings.llama_vision_model,
            settings=config.provider_settings("llama_vision"),
            retry=config.retry,
            base_url=settings.together_base_url,
        )
    else:
        logger.warning("TOGETHER_API_KEY not set; DeepSeek and Llama Vision disabled")

    if settings.google_api_key:
        providers["gemini"] = GeminiProvider(
            api_key=settings.google_api_key,
            model=settings.gemini_model,
            settings=config.provider_settings("gemini"),
            retry=config.retry,
        )
    else:
        logger.warning("GOOGLE_API_KEY not set; Gemini disabled")

    if settings.anthropic_api_key:
        providers["anthropic"] = AnthropicProvider(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            settings=config.provider_settings("anthropic"),
            retry=config.retry,
        )

    logger.info(f"Configured providers: {sorted(providers)}")
    return providers
