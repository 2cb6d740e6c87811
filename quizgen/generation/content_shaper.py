"""Content shaping ahead of prompt construction.

Shaping rewrites only the ``content`` field of a request:

1. Whitespace is normalized (CRLF, runs of blank lines, runs of spaces).
2. Short topics are expanded into a paragraph that enumerates facets of
   the subject, so a two-word prompt does not yield near-duplicate
   trivial questions.
3. Content longer than the provider's context budget is reduced to a
   head, a middle and a tail chunk joined by an elision marker, so both
   the setup and the conclusions of long documents survive.

Each step leaves already-shaped content unchanged, which makes
``shape_request`` idempotent.
"""

import logging
import re
from typing import Optional

from ..config.generation_config import ShapingConfig
from ..data.models import ContentType, GenerationRequest

logger = logging.getLogger(__name__)

TOPIC_EXPANSION_SUFFIX = (
    ": This topic encompasses various aspects including basic concepts, "
    "historical development, practical applications, modern innovations, "
    "scientific principles, real-world examples, related technologies, current "
    "research, future implications, and interdisciplinary connections. Consider "
    "multiple perspectives, different scales of analysis, and both theoretical "
    "and practical dimensions when creating questions."
)

_BLANK_LINES = re.compile(r"\n{3,}")
_HORIZONTAL_SPACE = re.compile(r"[ \t\f\v]+")
_TRAILING_SPACE = re.compile(r" +\n")


def normalize_content(content: str) -> str:
    """Normalize line endings and collapse redundant whitespace."""
    text = content.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = _TRAILING_SPACE.sub("\n", text)
    text = _BLANK_LINES.sub("\n\n", text)
    return text.strip()


def expand_topic(content: str) -> str:
    """Expand a short topic into a facet-enumerating paragraph."""
    return f"{content}{TOPIC_EXPANSION_SUFFIX}"


def sample_head_middle_tail(content: str, budget: int, marker: str) -> str:
    """Reduce content to a head, middle and tail chunk joined by ``marker``.

    The result never exceeds ``budget`` characters.
    """
    if len(content) <= budget:
        return content

    separator = f"\n\n{marker}\n\n"
    chunk = (budget - 2 * len(separator)) // 3
    if chunk <= 0:
        return content[:budget].strip()

    middle_start = max(0, len(content) // 2 - chunk // 2)
    head = content[:chunk].strip()
    middle = content[middle_start : middle_start + chunk].strip()
    tail = content[-chunk:].strip()
    return separator.join([head, middle, tail])


def shape_content(
    content: str,
    content_type: Optional[ContentType],
    budget: int,
    config: Optional[ShapingConfig] = None,
) -> str:
    """Shape raw content for a provider with the given context budget.

    Args:
        content: Raw content
        content_type: Declared content type; only topics are expanded
        budget: Maximum content characters the provider accepts
        config: Shaping settings

    Returns:
        Shaped content
    """
    config = config or ShapingConfig()
    text = normalize_content(content)

    if (
        text
        and content_type == ContentType.TOPIC
        and len(text) < config.topic_expansion_threshold
        and not text.endswith(TOPIC_EXPANSION_SUFFIX)
    ):
        logger.info(f"Expanding short topic ({len(text)} chars) for question diversity")
        text = expand_topic(text)

    if len(text) > budget:
        original_length = len(text)
        text = sample_head_middle_tail(text, budget, config.elision_marker)
        logger.info(
            f"Content exceeds budget ({original_length} > {budget} chars); "
            f"sampled head/middle/tail down to {len(text)} chars"
        )

    return text


def shape_request(
    request: GenerationRequest,
    budget: int,
    config: Optional[ShapingConfig] = None,
) -> GenerationRequest:
    """Return a copy of ``request`` whose content fits ``budget``.

    The input request is not modified.
    """
    shaped = shape_content(request.content, request.content_type, budget, config)
    if shaped == request.content:
        return request
    return request.model_copy(update={"content": shaped})
