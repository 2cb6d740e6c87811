"""Batch quality scoring."""

import math
from typing import Optional, Sequence

from ..config.generation_config import QualityConfig
from ..data.models import GeneratedQuestion

MIN_SCORE = 1
MAX_SCORE = 10


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def completion_deduction(
    generated: int, requested: int, config: Optional[QualityConfig] = None
) -> int:
    """Points lost for delivering fewer questions than requested."""
    config = config or QualityConfig()
    if requested <= 0:
        return 0
    ratio = generated / requested
    for threshold in sorted(config.completion_deductions):
        if ratio < threshold:
            return config.completion_deductions[threshold]
    return 0


def score_question(question: GeneratedQuestion, config: Optional[QualityConfig] = None) -> int:
    """Score a single question from 10 down to a floor of 1."""
    config = config or QualityConfig()
    score = MAX_SCORE

    if len(question.question) < config.short_question_length:
        score -= config.short_question_penalty
    if "?" not in question.question:
        score -= config.missing_question_mark_penalty

    average_option_length = sum(len(o) for o in question.options) / len(question.options)
    if average_option_length < config.short_option_length:
        score -= config.short_option_penalty

    if len({o.casefold() for o in question.options}) < len(question.options):
        score -= config.duplicate_option_penalty

    return max(MIN_SCORE, score)


def score_batch(
    questions: Sequence[GeneratedQuestion],
    requested_count: int,
    config: Optional[QualityConfig] = None,
) -> int:
    """Score a batch from 1 to 10.

    The score is the midpoint of the batch-level score (10 minus the
    completion deduction) and the mean per-question score, rounded half up
    and clamped to 1..10. An empty batch scores 1.
    """
    if not questions:
        return MIN_SCORE

    config = config or QualityConfig()
    batch_score = MAX_SCORE - completion_deduction(len(questions), requested_count, config)
    mean_question_score = sum(score_question(q, config) for q in questions) / len(questions)
    score = _round_half_up((batch_score + mean_question_score) / 2)
    return max(MIN_SCORE, min(MAX_SCORE, score))
