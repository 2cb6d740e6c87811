"""Response parsing for provider replies.

Providers are asked for a bare JSON array but routinely wrap it in markdown
fences, add prose before or after it, return an object instead of an
array, or ignore the format entirely. ``parse_response`` tries, in order:

1. the substring from the first ``[`` to the last ``]`` of the fence-free text
2. the whole fence-free text as JSON (array, ``{"questions": [...]}``, or a
   single question object)
3. a line scan for question lines followed by lettered or numbered options

It never raises. Records come back as plain dicts with canonical keys
(``question``, ``options``, ``correctAnswer``, ``explanation``, ``topic``);
structural checks are left to the validator.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..data.models import ANSWER_LETTERS

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

_CODE_FENCE = re.compile(r"```[a-zA-Z]*")

# "A) ", "(B) ", "c) ", "C. ", "D: ", "A - " but not "A.D." or "a.m."
LETTER_MARKER = re.compile(r"^\s*\(?(?:[A-D]|[a-d](?=\)))\s*(?:\)|[.:\-](?=\s|$))\s*")
# "1) ", "12. " but not "1.5", "10:30" or "5 - 10"
NUMBER_MARKER = re.compile(r"^\s*\(?\d{1,2}(?:\)|\.(?=\s|$))\s*")

_QUESTION_WORD = re.compile(r"\b(?:what|how|which|who|why|when|where)\b", re.IGNORECASE)
_ANSWER_LINE = re.compile(
    r"^(?:correct\s+)?answer(?:\s*[:\-]|\s+is\b\s*:?)\s*(.+)$", re.IGNORECASE
)
_EXPLANATION_LINE = re.compile(r"^explanation\s*[:\-]\s*(.+)$", re.IGNORECASE)
_LETTER_ANSWER = re.compile(
    r"^(?:option\s+|answer\s*:?\s*)?\(?([A-Da-d])\)?\s*(?:[\).:\-]\s*)?$", re.IGNORECASE
)
_LEADING_LETTER = re.compile(r"^\(?([A-D])\s*[\).:]")
_EMPHASIS = re.compile(r"^[*_#>\s]+|[*_]+$")

_QUESTION_KEYS = ("question", "question_text", "questionText", "prompt", "text")
_OPTION_KEYS = ("options", "answer_options", "answerOptions", "choices", "answers")
_ANSWER_KEYS = ("correctAnswer", "correct_answer", "answer", "correct", "correctOption")
_EXPLANATION_KEYS = ("explanation", "rationale", "reason")
_TOPIC_KEYS = ("topic", "category", "subject")


@dataclass
class ParseResult:
    """Outcome of parsing one provider reply.

    Attributes:
        records: Loosely-typed question records, possibly empty
        strategy: Name of the strategy that produced the records
        reason: Why nothing could be parsed, when ``records`` is empty
    """

    records: List[Record] = field(default_factory=list)
    strategy: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.records)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (with or without a language tag)."""
    return _CODE_FENCE.sub("", text).strip()


def strip_option_marker(option: str) -> str:
    """Strip leading list markers such as ``"A) "``, ``"B."`` or ``"1) "``.

    At most one letter marker and then one number marker are removed, so
    ``"A) 1. Paris"`` becomes ``"Paris"`` while ``"A.D. 1066"`` is kept.
    """
    text = LETTER_MARKER.sub("", option.strip(), count=1).strip()
    return NUMBER_MARKER.sub("", text, count=1).strip()


def normalize_correct_answer(value: Any, options: Sequence[str]) -> Optional[str]:
    """Resolve a provider's correct-answer field to a letter.

    Accepts a bare letter (``"b"``), a labelled letter (``"Option B"``,
    ``"B)"``), a 1-based position, or the full text of one of the options.

    Returns:
        One of A-D, or None when the value cannot be resolved
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        if 1 <= value <= len(ANSWER_LETTERS):
            return ANSWER_LETTERS[value - 1]
        return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    match = _LETTER_ANSWER.match(text)
    if match:
        return match.group(1).upper()

    folded = strip_option_marker(text).casefold()
    for index, option in enumerate(options[: len(ANSWER_LETTERS)]):
        if option.casefold() == folded:
            return ANSWER_LETTERS[index]

    match = _LEADING_LETTER.match(text)
    if match:
        return match.group(1)
    return None


def _first(item: Record, keys: Sequence[str]) -> Any:
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return None


def normalize_record(item: Any) -> Optional[Record]:
    """Map a parsed JSON object onto the canonical record keys."""
    if not isinstance(item, dict):
        return None

    question = _first(item, _QUESTION_KEYS)
    raw_options = _first(item, _OPTION_KEYS)
    if isinstance(raw_options, dict):
        # {"A": "...", "B": "..."} style
        raw_options = [raw_options[key] for key in sorted(raw_options)]
    if not isinstance(raw_options, list):
        raw_options = []

    options = [strip_option_marker(str(option)) for option in raw_options]
    explanation = _first(item, _EXPLANATION_KEYS)
    topic = _first(item, _TOPIC_KEYS)

    return {
        "question": str(question).strip() if question is not None else "",
        "options": options,
        "correctAnswer": normalize_correct_answer(_first(item, _ANSWER_KEYS), options),
        "explanation": str(explanation).strip() if explanation is not None else "",
        "topic": str(topic).strip() if topic is not None else "",
    }


def _load_question_items(text: str) -> Optional[List[Any]]:
    """Parse JSON text and return the list of question objects it holds."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None

    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        questions = data.get("questions")
        if isinstance(questions, list):
            return questions
        if _first(data, _QUESTION_KEYS) is not None:
            return [data]
    return None


def _records_from_items(items: List[Any]) -> List[Record]:
    records = []
    for item in items:
        record = normalize_record(item)
        if record is not None:
            records.append(record)
    return records


def scan_lines(text: str) -> List[Record]:
    """Heuristic extraction from free-form text.

    A line containing ``?`` and an interrogative word starts a question;
    lines with an ``A)`` / ``1.`` style prefix are its options. A lettered
    line stays an option even when it reads like a question. A record is
    closed once four options are seen. ``Answer:`` and ``Explanation:``
    lines attach to the most recent question. Questions without an answer
    line default to ``A``.
    """
    records: List[Record] = []
    current: Optional[Record] = None
    last: Optional[Record] = None

    for line in text.splitlines():
        stripped = _EMPHASIS.sub("", line.strip().replace("**", "")).strip()
        if not stripped:
            continue

        answer = _ANSWER_LINE.match(stripped)
        if answer and last is not None:
            last["_answer"] = answer.group(1).strip()
            continue

        explanation = _EXPLANATION_LINE.match(stripped)
        if explanation and last is not None:
            last["explanation"] = explanation.group(1).strip()
            continue

        is_question = "?" in stripped and _QUESTION_WORD.search(stripped) is not None
        # "B) Why not?" is an option; "2. Why is...?" after a short record is a question
        is_option = (
            current is not None
            and len(current["options"]) < len(ANSWER_LETTERS)
            and (
                LETTER_MARKER.match(stripped) is not None
                or (not is_question and NUMBER_MARKER.match(stripped) is not None)
            )
        )

        if is_option:
            option = strip_option_marker(stripped)
            if option:
                current["options"].append(option)
            if len(current["options"]) == len(ANSWER_LETTERS):
                records.append(current)
                current = None
        elif is_question:
            current = {
                "question": strip_option_marker(stripped),
                "options": [],
                "explanation": "",
                "topic": "",
            }
            last = current

    for record in records:
        raw_answer = record.pop("_answer", None)
        record["correctAnswer"] = (
            normalize_correct_answer(raw_answer, record["options"])
            if raw_answer is not None
            else ANSWER_LETTERS[0]
        )
    return records


def parse_response(raw_text: Optional[str]) -> ParseResult:
    """Extract question records from a provider reply.

    Args:
        raw_text: Raw reply text

    Returns:
        ParseResult; ``records`` is empty and ``reason`` set on total failure
    """
    if not raw_text or not raw_text.strip():
        return ParseResult(reason="empty response")

    cleaned = strip_code_fences(raw_text)

    start = cleaned.find("[")
    end = cleaned.rfind("]")
    if 0 <= start < end:
        items = _load_question_items(cleaned[start : end + 1])
        if items is not None:
            records = _records_from_items(items)
            if records:
                return ParseResult(records=records, strategy="json_array")

    items = _load_question_items(cleaned)
    if items is not None:
        records = _records_from_items(items)
        if records:
            return ParseResult(records=records, strategy="json_document")

    records = scan_lines(cleaned)
    if records:
        logger.info(f"Recovered {len(records)} questions by line scanning")
        return ParseResult(records=records, strategy="line_scan")

    excerpt = raw_text[:200].replace("\n", " ")
    logger.warning(f"Could not parse any questions from response: {excerpt!r}")
    return ParseResult(
        reason=f"no question records found in {len(raw_text)}-character response"
    )
