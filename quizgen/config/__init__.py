"""Configuration for the question generation service."""

from quizgen.config.config import Settings, settings
from quizgen.config.generation_config import (
    GenerationConfig,
    GenerationConfigError,
    ProviderSettings,
    load_generation_config,
)

__all__ = [
    "GenerationConfig",
    "GenerationConfigError",
    "ProviderSettings",
    "Settings",
    "load_generation_config",
    "settings",
]
