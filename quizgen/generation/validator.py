"""Request and question validation.

Request validation runs before any provider is contacted and raises
``RequestValidationError``. Question validation is per record: records
that fail are dropped from the batch, never retried.
"""

import logging
from typing import Any, Iterable, List, Optional

from ..config.generation_config import RequestLimits, ValidationRules
from ..data.models import (
    ANSWER_LETTERS,
    DifficultyLevel,
    GeneratedQuestion,
    GenerationRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "General Knowledge"


class RequestValidationError(ValueError):
    """Raised when a generation request is malformed.

    Surfaced directly to the caller; no provider is contacted.
    """


def validate_generation_request(
    request: GenerationRequest, limits: Optional[RequestLimits] = None
) -> None:
    """Check a request against the configured limits.

    Enum membership and the content-or-image rule are already enforced by
    the request model; this adds the configurable range checks.

    Raises:
        RequestValidationError: If the request is out of range
    """
    limits = limits or RequestLimits()
    count = request.number_of_questions

    if not limits.min_questions <= count <= limits.max_questions:
        raise RequestValidationError(
            f"Number of questions must be between {limits.min_questions} and "
            f"{limits.max_questions}, got {count}"
        )

    content = request.content.strip()
    if not content and not request.has_image:
        raise RequestValidationError("Either content or image data is required")

    if not request.has_image and len(content) < limits.min_content_length:
        raise RequestValidationError(
            f"Content too short for question generation "
            f"(minimum {limits.min_content_length} characters)"
        )

    if len(request.content) > limits.max_content_length:
        raise RequestValidationError(
            f"Content too long ({len(request.content)} characters, "
            f"maximum {limits.max_content_length})"
        )


def _length_ok(value: Any, minimum: int, maximum: int) -> bool:
    return isinstance(value, str) and minimum <= len(value.strip()) <= maximum


def validate_question(record: Any, rules: Optional[ValidationRules] = None) -> bool:
    """Check a single parsed record against the structural rules.

    A record passes when the question and every option are within their
    length bounds, there are exactly four pairwise-distinct options, and
    ``correctAnswer`` is one of A-D.
    """
    rules = rules or ValidationRules()
    if not isinstance(record, dict):
        return False

    if not _length_ok(
        record.get("question"), rules.question_min_length, rules.question_max_length
    ):
        return False

    options = record.get("options")
    if not isinstance(options, (list, tuple)) or len(options) != rules.option_count:
        return False

    for option in options:
        if not _length_ok(option, rules.option_min_length, rules.option_max_length):
            return False

    if len({option.strip().casefold() for option in options}) != len(options):
        return False

    return record.get("correctAnswer") in ANSWER_LETTERS


def to_generated_question(
    record: Any, difficulty: DifficultyLevel
) -> GeneratedQuestion:
    """Build a GeneratedQuestion from a record that passed validation."""
    options = tuple(option.strip() for option in record["options"])
    return GeneratedQuestion(
        question=record["question"].strip(),
        options=options,
        correct_answer=record["correctAnswer"],
        explanation=(record.get("explanation") or "").strip(),
        difficulty=difficulty,
        topic=(record.get("topic") or "").strip() or DEFAULT_TOPIC,
    )


def filter_valid_questions(
    records: Iterable[Any],
    difficulty: DifficultyLevel,
    rules: Optional[ValidationRules] = None,
) -> List[GeneratedQuestion]:
    """Keep only records that pass validation, converted to GeneratedQuestion."""
    valid: List[GeneratedQuestion] = []
    rejected = 0
    for record in records:
        if validate_question(record, rules):
            valid.append(to_generated_question(record, difficulty))
        else:
            rejected += 1

    if rejected:
        logger.info(f"Dropped {rejected} invalid question records, kept {len(valid)}")
    return valid
