"""Error classification for provider API failures.

Every failure raised by a provider SDK is classified exactly once, at the
provider client boundary, into one of three kinds. Downstream code (local
retry, orchestrator fallback) only ever looks at the kind.
"""

import asyncio
import re
from enum import Enum
from typing import Any, Dict, Optional


class ProviderErrorKind(Enum):
    """Kinds of provider failure."""

    RATE_LIMITED = "rate_limited"  # Throttling or quota; fall back immediately
    TRANSIENT = "transient"  # Server errors, timeouts; retried locally
    FATAL = "fatal"  # Malformed request, auth; fall back immediately

    @property
    def is_retryable(self) -> bool:
        return self is ProviderErrorKind.TRANSIENT


class ProviderError(Exception):
    """Exception raised by provider clients with classification.

    Attributes:
        kind: Classified failure kind
        provider: Provider name (deepseek, llama_vision, gemini, anthropic)
        status_code: HTTP status code when the SDK exposed one
        message: Short human-readable description
        original_exception: The exception raised by the SDK, if any
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        original_exception: Optional[BaseException] = None,
    ):
        self.kind = kind
        self.provider = provider
        self.message = message
        self.status_code = status_code
        self.original_exception = original_exception
        super().__init__(str(self))

    def __str__(self) -> str:
        status = f" (HTTP {self.status_code})" if self.status_code else ""
        return f"[{self.kind.value}] {self.provider}{status}: {self.message}"

    @property
    def is_retryable(self) -> bool:
        return self.kind.is_retryable

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "kind": self.kind.value,
            "provider": self.provider,
            "status_code": self.status_code,
            "message": self.message,
            "original_error": (
                type(self.original_exception).__name__
                if self.original_exception is not None
                else None
            ),
        }


class ErrorClassifier:
    """Classifies API errors from the generation providers."""

    # Patterns for rate limit and quota errors
    RATE_LIMIT_PATTERNS = [
        r"rate.*limit",
        r"too.*many.*requests",
        r"throttl",
        r"quota",
        r"resource.*exhausted",
        r"token",
        r"\b429\b",
    ]

    # Patterns for malformed-request and credential errors
    FATAL_PATTERNS = [
        r"invalid.*api.*key",
        r"unauthorized",
        r"authentication",
        r"permission.*denied",
        r"bad.*request",
        r"invalid.*request",
        r"model.*not.*found",
        r"\b40[0-5]\b",
        r"\b41[03]\b",
        r"\b422\b",
    ]

    # Patterns for server and network errors
    TRANSIENT_PATTERNS = [
        r"internal.*server.*error",
        r"service.*unavailable",
        r"server.*error",
        r"upstream",
        r"overloaded",
        r"\b50[0-9]\b",
        r"timeout",
        r"timed.*out",
        r"connection",
        r"network",
    ]

    @staticmethod
    def extract_status_code(error: BaseException) -> Optional[int]:
        """Pull an HTTP status code off an SDK exception, if it carries one.

        openai and anthropic expose ``status_code``; google api_core
        exceptions expose ``code``.
        """
        for attr in ("status_code", "code", "status"):
            value = getattr(error, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(error, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value
        return None

    @staticmethod
    def classify(error: BaseException, provider: str) -> ProviderError:
        """Classify an exception into a ProviderError.

        Args:
            error: The exception that was raised
            provider: Provider name

        Returns:
            ProviderError with kind and status code
        """
        if isinstance(error, ProviderError):
            return error

        status_code = ErrorClassifier.extract_status_code(error)
        error_str = str(error).lower()
        message = str(error)[:200] or type(error).__name__

        def _error(kind: ProviderErrorKind) -> ProviderError:
            return ProviderError(
                kind=kind,
                provider=provider,
                message=message,
                status_code=status_code,
                original_exception=error,
            )

        if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
            return _error(ProviderErrorKind.TRANSIENT)

        if status_code is not None:
            if status_code == 429:
                return _error(ProviderErrorKind.RATE_LIMITED)
            if 400 <= status_code < 500:
                # Some providers report quota exhaustion as a 4xx with a message
                if ErrorClassifier._match_patterns(
                    error_str, ErrorClassifier.RATE_LIMIT_PATTERNS
                ):
                    return _error(ProviderErrorKind.RATE_LIMITED)
                return _error(ProviderErrorKind.FATAL)
            if status_code >= 500:
                return _error(ProviderErrorKind.TRANSIENT)

        if ErrorClassifier._match_patterns(
            error_str, ErrorClassifier.RATE_LIMIT_PATTERNS
        ):
            return _error(ProviderErrorKind.RATE_LIMITED)

        # Server-side failures win over request wording in the same message
        if ErrorClassifier._match_patterns(
            error_str, ErrorClassifier.TRANSIENT_PATTERNS
        ):
            return _error(ProviderErrorKind.TRANSIENT)

        if ErrorClassifier._match_patterns(error_str, ErrorClassifier.FATAL_PATTERNS):
            return _error(ProviderErrorKind.FATAL)

        # Anything unclassified is worth another attempt
        return _error(ProviderErrorKind.TRANSIENT)

    @staticmethod
    def _match_patterns(text: str, patterns: list[str]) -> bool:
        """Check if text matches any of the given regex patterns."""
        for pattern in patterns:
            if re.search(pattern, text, re.IGNORECASE):
                return True
        return False
