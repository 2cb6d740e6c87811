"""Question generation pipeline: shaping, prompting, parsing, validation, scoring."""

from quizgen.generation.generator import AllProvidersExhaustedError, QuestionGenerator
from quizgen.generation.validator import (
    RequestValidationError,
    validate_generation_request,
)

__all__ = [
    "AllProvidersExhaustedError",
    "QuestionGenerator",
    "RequestValidationError",
    "validate_generation_request",
]
