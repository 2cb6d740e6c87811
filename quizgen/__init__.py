"""Multiple-choice question generation with multi-provider fallback."""

from quizgen.config.generation_config import GenerationConfig, load_generation_config
from quizgen.data.models import (
    ContentType,
    DifficultyLevel,
    GeneratedQuestion,
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
    Language,
)
from quizgen.generation.generator import QuestionGenerator
from quizgen.generation.validator import RequestValidationError

__version__ = "0.1.0"

__all__ = [
    "ContentType",
    "DifficultyLevel",
    "GeneratedQuestion",
    "GenerationConfig",
    "GenerationMetadata",
    "GenerationRequest",
    "GenerationResult",
    "Language",
    "QuestionGenerator",
    "RequestValidationError",
    "load_generation_config",
]
