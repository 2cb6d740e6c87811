"""Correct-answer redistribution.

Language models put the correct answer in the same slot far more often
than chance (usually A). This module assigns each question a target letter
and moves the correct option text into that slot by swapping two options,
so the set of options per question is unchanged and the question stays
factually right.

Hard rules for the target sequence:
- the first target is never A
- no two consecutive targets are equal
- no four consecutive targets form a run of the A, B, C, D cycle
  (A,B,C,D or any rotation such as B,C,D,A)

Soft preferences, honoured when a random draw allows it: avoid repeating
the letter used four questions earlier, avoid the letter matching the
question's position in an A-B-C-D cycle, and bias early questions away
from A.
"""

import logging
import random
from typing import List, Optional, Sequence

from ..data.models import ANSWER_LETTERS, GeneratedQuestion

logger = logging.getLogger(__name__)

MAX_DRAWS = 15
EARLY_A_REJECTION_PROBABILITY = 0.7


def _successor(letter: str) -> str:
    return ANSWER_LETTERS[(ANSWER_LETTERS.index(letter) + 1) % len(ANSWER_LETTERS)]


def _completes_cycle(targets: Sequence[str], candidate: str) -> bool:
    """True if ``candidate`` would finish a 4-long run of the A-B-C-D cycle."""
    if len(targets) < 3:
        return False
    a, b, c = targets[-3:]
    return b == _successor(a) and c == _successor(b) and candidate == _successor(c)


def _allowed_letters(targets: Sequence[str]) -> List[str]:
    position = len(targets)
    allowed = []
    for letter in ANSWER_LETTERS:
        if position == 0 and letter == "A":
            continue
        if targets and letter == targets[-1]:
            continue
        if _completes_cycle(targets, letter):
            continue
        allowed.append(letter)
    return allowed


def _violates_preferences(
    targets: Sequence[str], candidate: str, rng: random.Random
) -> bool:
    position = len(targets)
    if position >= 4 and candidate == targets[position - 4]:
        return True
    if position >= 1 and candidate == ANSWER_LETTERS[position % len(ANSWER_LETTERS)]:
        return True
    if position == 1 and candidate == "A":
        return True
    if (
        position <= 3
        and candidate == "A"
        and rng.random() < EARLY_A_REJECTION_PROBABILITY
    ):
        return True
    return False


def plan_answer_sequence(count: int, rng: random.Random) -> List[str]:
    """Draw a target letter for each of ``count`` questions."""
    targets: List[str] = []
    for _ in range(count):
        allowed = _allowed_letters(targets)
        choice = None
        for _ in range(MAX_DRAWS):
            candidate = rng.choice(allowed)
            if not _violates_preferences(targets, candidate, rng):
                choice = candidate
                break
        if choice is None:
            choice = rng.choice(allowed)
        targets.append(choice)
    return targets


def move_correct_answer(question: GeneratedQuestion, target: str) -> GeneratedQuestion:
    """Swap option slots so the correct option ends up under ``target``."""
    if question.correct_answer == target:
        return question

    options = list(question.options)
    current_index = question.correct_index
    target_index = ANSWER_LETTERS.index(target)
    options[current_index], options[target_index] = (
        options[target_index],
        options[current_index],
    )
    return question.model_copy(
        update={"options": tuple(options), "correct_answer": target}
    )


def correct_answer_distribution(
    questions: Sequence[GeneratedQuestion], rng: Optional[random.Random] = None
) -> List[GeneratedQuestion]:
    """Redistribute correct answers across A-D.

    Args:
        questions: Validated questions
        rng: Random source; pass a seeded instance for reproducible output

    Returns:
        New list of questions; the input is not modified
    """
    if not questions:
        return []

    rng = rng or random.Random()
    targets = plan_answer_sequence(len(questions), rng)
    logger.debug(
        "Answer redistribution: %s -> %s",
        "".join(q.correct_answer for q in questions),
        "".join(targets),
    )
    return [move_correct_answer(q, t) for q, t in zip(questions, targets)]
