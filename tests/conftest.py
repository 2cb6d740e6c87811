"""Pytest configuration and shared fixtures for quizgen tests."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from quizgen.config.generation_config import ProviderSettings, RetrySettings
from quizgen.data.models import (
    DifficultyLevel,
    GeneratedQuestion,
    GenerationRequest,
)
from quizgen.providers.base import BaseProviderClient

Reply = Union[str, BaseException]


class FakeProvider(BaseProviderClient):
    """In-memory provider that plays back scripted replies.

    Each call to ``_complete`` pops the next reply; exceptions are raised
    instead of returned. When the script runs out an empty string is returned.
    """

    def __init__(
        self,
        name: str,
        replies: Sequence[Reply] = (),
        supports_vision: bool = False,
        context_budget: int = 20000,
        timeout_seconds: float = 5.0,
        delay: float = 0.0,
        max_attempts: int = 1,
    ):
        self.name = name
        self.supports_vision = supports_vision
        super().__init__(
            api_key="test-key",
            model=f"{name}-model",
            settings=ProviderSettings(
                context_budget=context_budget, timeout_seconds=timeout_seconds
            ),
            retry=RetrySettings(max_attempts=max_attempts, base_delay=0.0),
        )
        self.replies: List[Reply] = list(replies)
        self.delay = delay
        self.calls: List[Tuple[str, GenerationRequest]] = []
        self.closed = False

    async def _complete(self, prompt: str, request: GenerationRequest) -> str:
        self.calls.append((prompt, request))
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.replies:
            return ""
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def close(self) -> None:
        self.closed = True


def _question_record(index: int, topic: str = "Photosynthesis") -> Dict[str, Any]:
    return {
        "question": f"What is the role of component number {index} in {topic.lower()}?",
        "options": [
            f"It stores energy for stage {index}",
            f"It absorbs light during stage {index}",
            f"It releases oxygen after stage {index}",
            f"It transports water before stage {index}",
        ],
        "correctAnswer": "A",
        "explanation": f"Component {index} stores energy.",
        "topic": topic,
    }


@pytest.fixture
def make_provider():
    """Factory fixture building FakeProvider instances."""

    def _make(name: str = "provider1", replies: Sequence[Reply] = (), **kwargs: Any):
        return FakeProvider(name, replies, **kwargs)

    return _make


@pytest.fixture
def question_records():
    """Factory fixture returning ``count`` distinct, valid question records."""

    def _records(count: int, start: int = 0) -> List[Dict[str, Any]]:
        return [_question_record(i) for i in range(start, start + count)]

    return _records


@pytest.fixture
def questions_json(question_records):
    """Factory fixture returning a JSON array of ``count`` valid questions."""

    def _json(count: int, start: int = 0) -> str:
        return json.dumps(question_records(count, start))

    return _json


@pytest.fixture
def sample_request() -> GenerationRequest:
    """A plain text request for five medium questions."""
    return GenerationRequest(
        content=(
            "Photosynthesis is the process by which green plants use sunlight, "
            "water and carbon dioxide to produce glucose and oxygen."
        ),
        number_of_questions=5,
        difficulty=DifficultyLevel.MEDIUM,
        content_type="document",
    )


@pytest.fixture
def make_question():
    """Factory fixture building a GeneratedQuestion."""

    def _make(
        index: int = 0,
        correct_answer: str = "A",
        question: Optional[str] = None,
        options: Optional[Sequence[str]] = None,
    ) -> GeneratedQuestion:
        record = _question_record(index)
        return GeneratedQuestion(
            question=question or record["question"],
            options=tuple(options or record["options"]),
            correct_answer=correct_answer,
            explanation=record["explanation"],
            difficulty=DifficultyLevel.MEDIUM,
            topic=record["topic"],
        )

    return _make


# Smallest valid PNG header, enough for MIME sniffing
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES
