"""Interfaces of services that sit around the generation core.

The core never calls these. The HTTP edge consults a quota service before
and after invoking the generator, and content extraction (web pages, video
transcripts, OCR, documents) happens upstream so the core only receives
already extracted text.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class QuotaStatus:
    """Answer from a usage quota check."""

    allowed: bool
    remaining: Optional[int] = None


@dataclass(frozen=True)
class ExtractedContent:
    """Text pulled out of a source, with the extractor's quality estimate (1-10)."""

    text: str
    quality: Optional[float] = None


@runtime_checkable
class UsageQuotaService(Protocol):
    """Per-client usage limits."""

    async def check_allowed(self, client_key: str) -> QuotaStatus:
        ...

    async def record_usage(self, client_key: str) -> None:
        ...


@runtime_checkable
class ContentExtractor(Protocol):
    """Turns a source (URL, file path, video id) into plain text."""

    async def extract(self, source: str) -> ExtractedContent:
        ...
