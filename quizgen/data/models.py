"""Data models for the question generation pipeline.

Requests and results use snake_case attributes in Python and camelCase
aliases on the wire, so the same models serve the core API and the
HTTP edge.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

ANSWER_LETTERS: Tuple[str, str, str, str] = ("A", "B", "C", "D")

AnswerLetter = Literal["A", "B", "C", "D"]


class DifficultyLevel(str, Enum):
    """Difficulty levels offered to quiz authors."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class Language(str, Enum):
    """Languages questions can be generated in."""

    ENGLISH = "English"
    SPANISH = "Spanish"
    FRENCH = "French"
    GERMAN = "German"
    ITALIAN = "Italian"
    PORTUGUESE = "Portuguese"
    DUTCH = "Dutch"
    RUSSIAN = "Russian"
    CHINESE_SIMPLIFIED = "Chinese (Simplified)"
    JAPANESE = "Japanese"
    KOREAN = "Korean"
    ARABIC = "Arabic"
    HINDI = "Hindi"


class ContentType(str, Enum):
    """Where the source content came from."""

    DOCUMENT = "document"
    VIDEO = "video"
    TOPIC = "topic"
    MIXED = "mixed"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ContentType"]:
        # Older clients send "youtube" for video transcripts
        if isinstance(value, str) and value.lower() == "youtube":
            return cls.VIDEO
        return None


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class GenerationRequest(_CamelModel):
    """A request to generate a batch of multiple-choice questions.

    Range checks that depend on configuration (question count, content
    length) live in ``validate_generation_request``; the model itself
    only enforces enum membership and that some content is present.
    """

    content: str = Field("", description="Source text, topic, or transcript")
    number_of_questions: int = Field(..., description="Requested question count")
    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM
    language: Language = Language.ENGLISH
    content_type: Optional[ContentType] = None
    content_quality: Optional[float] = Field(None, ge=1.0, le=10.0)
    image_data: Optional[bytes] = Field(
        None, description="Raw image bytes for vision-capable providers"
    )

    @model_validator(mode="after")
    def require_content_or_image(self) -> "GenerationRequest":
        """Reject requests that carry neither text nor an image."""
        if not self.content.strip() and not self.image_data:
            raise ValueError("Either content or image data is required")
        return self

    @property
    def has_image(self) -> bool:
        return bool(self.image_data)


class GeneratedQuestion(_CamelModel):
    """A single validated multiple-choice question."""

    question: str
    options: Tuple[str, str, str, str]
    correct_answer: AnswerLetter
    explanation: str = ""
    difficulty: DifficultyLevel
    topic: str = ""

    @property
    def correct_index(self) -> int:
        return ANSWER_LETTERS.index(self.correct_answer)

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]


class GenerationMetadata(_CamelModel):
    """Summary of how a batch was produced."""

    requested_count: int
    generated_count: int
    processing_time_ms: int
    provider_used: Optional[str] = None
    fallback_chain_used: bool = False
    quality_score: int = 0
    error: Optional[str] = None
    attempts: List[Dict[str, Any]] = Field(default_factory=list)


class GenerationResult(_CamelModel):
    """Outcome of a generation call. Always returned, never raised."""

    success: bool
    questions: List[GeneratedQuestion] = Field(default_factory=list)
    metadata: GenerationMetadata


class AttemptOutcome(str, Enum):
    """How a single provider attempt ended."""

    SUCCESS = "success"
    EMPTY_RESULT = "empty_result"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_ERROR = "transient_error"
    FATAL_ERROR = "fatal_error"


@dataclass
class ProviderAttempt:
    """Record of one provider attempt within a single generate() call."""

    provider: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    outcome: Optional[AttemptOutcome] = None
    raw_response_length: int = 0
    duration_ms: int = 0
    valid_count: int = 0
    supplemental: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict for metadata and logs."""
        return {
            "provider": self.provider,
            "startedAt": self.started_at.isoformat(),
            "outcome": self.outcome.value if self.outcome else None,
            "rawResponseLength": self.raw_response_length,
            "durationMs": self.duration_ms,
            "validCount": self.valid_count,
            "supplemental": self.supplemental,
            "error": self.error,
        }
