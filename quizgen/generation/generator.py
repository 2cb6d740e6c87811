"""Question generation orchestration.

``QuestionGenerator`` drives the ordered fallback across provider clients.
Each attempt shapes the original request for the provider's context
budget, builds a fresh prompt, invokes the provider under a timeout,
parses and validates the reply. The first provider that yields at least
one valid question wins; a batch that is short by one or two questions
gets exactly one supplemental request to the same provider. The answer
distribution corrector and the quality scorer then run once over the
final batch.

Provider attempts are strictly sequential. ``generate`` never raises for
provider failures: exhaustion is reported as ``success=False``. Request
validation errors and cancellation do propagate.
"""

import asyncio
import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config.generation_config import GenerationConfig
from ..data.models import (
    AttemptOutcome,
    GeneratedQuestion,
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
    ProviderAttempt,
)
from ..infrastructure.error_classifier import ProviderError, ProviderErrorKind
from ..observability import observability
from ..providers.base import BaseProviderClient
from .answer_distribution import correct_answer_distribution
from .content_shaper import shape_request
from .parser import parse_response
from .prompts import build_generation_prompt, default_seed
from .quality import score_batch
from .validator import filter_valid_questions, validate_generation_request

logger = logging.getLogger(__name__)

_OUTCOME_BY_KIND = {
    ProviderErrorKind.RATE_LIMITED: AttemptOutcome.RATE_LIMITED,
    ProviderErrorKind.TRANSIENT: AttemptOutcome.TRANSIENT_ERROR,
    ProviderErrorKind.FATAL: AttemptOutcome.FATAL_ERROR,
}


class AllProvidersExhaustedError(Exception):
    """Every provider in the chain failed to produce a valid question.

    Never raised out of ``generate``; its message becomes ``metadata.error``.
    """

    def __init__(self, chain: List[str], attempts: List[ProviderAttempt]):
        self.chain = chain
        self.attempts = attempts
        if chain:
            details = "; ".join(
                f"{a.provider}: {a.outcome.value if a.outcome else 'unknown'}"
                + (f" ({a.error})" if a.error else "")
                for a in attempts
            )
            message = f"All providers exhausted [{' -> '.join(chain)}]: {details}"
        else:
            message = "No configured provider can handle this request"
        super().__init__(message)


class QuestionGenerator:
    """Generates multiple-choice questions with ordered provider fallback."""

    def __init__(
        self,
        providers: Dict[str, BaseProviderClient],
        config: Optional[GenerationConfig] = None,
        rng: Optional[random.Random] = None,
        seed_factory: Optional[Callable[[], int]] = None,
    ):
        """Initialize the generator.

        Args:
            providers: Provider clients keyed by provider id
            config: Generation configuration (defaults when omitted)
            rng: Random source for answer redistribution
            seed_factory: Produces a diversity seed per prompt; defaults to
                wall-clock milliseconds
        """
        self.providers = dict(providers)
        self.config = config or GenerationConfig()
        self._rng = rng or random.Random()
        self._seed_factory = seed_factory or default_seed

        logger.info(
            f"QuestionGenerator initialized with providers: {sorted(self.providers)}"
        )

    def provider_chain(
        self, request: GenerationRequest
    ) -> List[Tuple[str, BaseProviderClient]]:
        """Ordered (id, client) pairs to try for a request.

        With image data, vision-capable providers from the vision chain come
        first; text-only providers follow only when the request also carries
        text. Without image data the text chain is used. Unconfigured ids
        are skipped.
        """
        if not request.has_image:
            return [
                (name, self.providers[name])
                for name in self.config.text_chain
                if name in self.providers
            ]

        chain = [
            (name, self.providers[name])
            for name in self.config.vision_chain
            if name in self.providers and self.providers[name].supports_vision
        ]
        if request.content.strip():
            seen = {name for name, _ in chain}
            chain.extend(
                (name, self.providers[name])
                for name in self.config.text_chain
                if name in self.providers and name not in seen
            )
        return chain

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate questions for a request.

        Args:
            request: The generation request

        Returns:
            GenerationResult; ``success`` is False when every provider failed

        Raises:
            RequestValidationError: If the request is out of range. No
                provider is contacted.
        """
        try:
            validate_generation_request(request, self.config.request_limits)
        except ValueError:
            observability.record_metric(
                "quizgen.generation.requests", 1, labels={"outcome": "invalid"}
            )
            raise

        started = time.monotonic()
        logger.info(
            f"Generation request accepted: {request.number_of_questions} questions, "
            f"difficulty={request.difficulty.value}, language={request.language.value}, "
            f"content_type={request.content_type.value if request.content_type else None}, "
            f"content_length={len(request.content)}, has_image={request.has_image}"
        )

        with observability.start_span(
            "quizgen.generate",
            attributes={
                "requested_count": request.number_of_questions,
                "content_length": len(request.content),
                "has_image": request.has_image,
            },
        ) as span:
            try:
                result = await self._run_chain(request, started)
            except asyncio.CancelledError:
                logger.info("Generation cancelled; no further providers will be tried")
                raise

            span.set_attribute("success", result.success)
            span.set_attribute("generated_count", result.metadata.generated_count)
            if result.metadata.provider_used:
                span.set_attribute("provider_used", result.metadata.provider_used)
            if not result.success:
                span.set_status("error", result.metadata.error or "")

        outcome = "success" if result.success else "failure"
        observability.record_metric(
            "quizgen.generation.requests", 1, labels={"outcome": outcome}
        )
        observability.record_metric(
            "quizgen.generation.duration",
            result.metadata.processing_time_ms,
            labels={"outcome": outcome},
            metric_type="histogram",
            unit="ms",
        )
        if result.success:
            observability.record_metric(
                "quizgen.generation.quality",
                result.metadata.quality_score,
                metric_type="histogram",
                unit="1",
            )

        logger.info(
            f"Generation finished: success={result.success}, "
            f"{result.metadata.generated_count}/{result.metadata.requested_count} "
            f"questions from {result.metadata.provider_used}, "
            f"quality={result.metadata.quality_score}, "
            f"{result.metadata.processing_time_ms}ms",
            extra={"duration_ms": result.metadata.processing_time_ms},
        )
        return result

    async def generate_preview(self, request: GenerationRequest) -> GenerationResult:
        """Generate a small preview batch.

        The question count is clamped to the preview range (5..10 by default)
        before the normal ``generate`` path runs.
        """
        limits = self.config.request_limits
        count = max(
            limits.preview_min_questions,
            min(request.number_of_questions, limits.preview_max_questions),
        )
        if count != request.number_of_questions:
            request = request.model_copy(update={"number_of_questions": count})
        return await self.generate(request)

    async def _run_chain(
        self, request: GenerationRequest, started: float
    ) -> GenerationResult:
        requested = request.number_of_questions
        chain = self.provider_chain(request)
        attempts: List[ProviderAttempt] = []

        for index, (name, provider) in enumerate(chain):
            attempt, questions = await self._attempt(name, provider, request, requested)
            attempts.append(attempt)

            if questions:
                questions = questions[:requested]
                if self._needs_supplement(questions, requested):
                    extra, supplemental = await self._supplement(
                        name, provider, request, questions
                    )
                    attempts.append(supplemental)
                    questions = questions + extra

                questions = correct_answer_distribution(questions, self._rng)
                quality = score_batch(questions, requested, self.config.quality)
                return GenerationResult(
                    success=True,
                    questions=questions,
                    metadata=GenerationMetadata(
                        requested_count=requested,
                        generated_count=len(questions),
                        processing_time_ms=_elapsed_ms(started),
                        provider_used=name,
                        fallback_chain_used=index > 0,
                        quality_score=quality,
                        attempts=[a.to_dict() for a in attempts],
                    ),
                )

            if index + 1 < len(chain):
                next_name = chain[index + 1][0]
                logger.warning(
                    f"Provider {name} failed ({attempt.outcome.value if attempt.outcome else 'unknown'}); "
                    f"falling back to {next_name}",
                    extra={"provider": name},
                )
                observability.record_metric(
                    "quizgen.provider.fallback",
                    1,
                    labels={"from_provider": name, "to_provider": next_name},
                )

        exhausted = AllProvidersExhaustedError([name for name, _ in chain], attempts)
        logger.error(str(exhausted))
        return GenerationResult(
            success=False,
            questions=[],
            metadata=GenerationMetadata(
                requested_count=requested,
                generated_count=0,
                processing_time_ms=_elapsed_ms(started),
                provider_used=None,
                fallback_chain_used=len(attempts) > 1,
                quality_score=0,
                error=str(exhausted),
                attempts=[a.to_dict() for a in attempts],
            ),
        )

    async def _attempt(
        self,
        name: str,
        provider: BaseProviderClient,
        request: GenerationRequest,
        count: int,
        supplemental: bool = False,
    ) -> Tuple[ProviderAttempt, List[GeneratedQuestion]]:
        """Run one provider attempt and record how it ended."""
        attempt = ProviderAttempt(provider=name, supplemental=supplemental)
        questions: List[GeneratedQuestion] = []
        started = time.monotonic()

        with observability.start_span(
            "quizgen.provider_attempt",
            kind="client",
            attributes={"provider": name, "supplemental": supplemental},
        ) as span:
            try:
                shaped = shape_request(
                    request, provider.context_budget, self.config.shaping
                )
                if shaped.image_data and not provider.supports_vision:
                    shaped = shaped.model_copy(update={"image_data": None})
                prompt = build_generation_prompt(shaped, self._seed_factory())
                logger.info(
                    f"Invoking {name} for {count} questions "
                    f"(content {len(shaped.content)} chars, prompt {len(prompt)} chars)",
                    extra={"provider": name},
                )
                raw = await asyncio.wait_for(
                    provider.invoke(prompt, shaped), timeout=provider.timeout_seconds
                )
            except ProviderError as e:
                attempt.outcome = _OUTCOME_BY_KIND[e.kind]
                attempt.error = str(e)
            except asyncio.TimeoutError:
                attempt.outcome = AttemptOutcome.TRANSIENT_ERROR
                attempt.error = f"timed out after {provider.timeout_seconds}s"
            except Exception as e:
                logger.exception(f"Unexpected error from provider {name}")
                observability.capture_error(
                    e, context={"provider": name}, tags={"provider": name}
                )
                span.record_exception(e)
                attempt.outcome = AttemptOutcome.FATAL_ERROR
                attempt.error = f"{type(e).__name__}: {e}"
            else:
                attempt.raw_response_length = len(raw or "")
                parsed = parse_response(raw)
                questions = filter_valid_questions(
                    parsed.records, request.difficulty, self.config.validation_rules
                )
                attempt.valid_count = len(questions)
                if questions:
                    attempt.outcome = AttemptOutcome.SUCCESS
                else:
                    attempt.outcome = AttemptOutcome.EMPTY_RESULT
                    attempt.error = parsed.reason or (
                        f"none of {len(parsed.records)} parsed records passed validation"
                    )
            finally:
                attempt.duration_ms = _elapsed_ms(started)

            span.set_attribute("outcome", attempt.outcome.value)
            span.set_attribute("raw_response_length", attempt.raw_response_length)
            span.set_attribute("valid_count", attempt.valid_count)

        log = logger.info if attempt.outcome == AttemptOutcome.SUCCESS else logger.warning
        log(
            f"Provider {name} attempt ended: {attempt.outcome.value}, "
            f"raw={attempt.raw_response_length} chars, valid={attempt.valid_count}, "
            f"{attempt.duration_ms}ms" + (f", error={attempt.error}" if attempt.error else ""),
            extra={
                "provider": name,
                "duration_ms": attempt.duration_ms,
                "outcome": attempt.outcome.value,
            },
        )
        observability.record_metric(
            "quizgen.provider.attempts",
            1,
            labels={"provider": name, "outcome": attempt.outcome.value},
        )
        return attempt, questions

    def _needs_supplement(
        self, questions: List[GeneratedQuestion], requested: int
    ) -> bool:
        settings = self.config.supplemental
        count = len(questions)
        if not settings.enabled:
            return False
        if not requested - settings.max_shortfall <= count < requested:
            return False
        if settings.min_quality_score > 0:
            return score_batch(questions, requested, self.config.quality) >= (
                settings.min_quality_score
            )
        return True

    async def _supplement(
        self,
        name: str,
        provider: BaseProviderClient,
        request: GenerationRequest,
        questions: List[GeneratedQuestion],
    ) -> Tuple[List[GeneratedQuestion], ProviderAttempt]:
        """Ask the same provider once for the missing questions.

        Uses a shortened excerpt of the original content. Failures are
        logged and otherwise ignored; there is no fallback.
        """
        missing = request.number_of_questions - len(questions)
        excerpt = request.content[: self.config.shaping.supplemental_excerpt_length]
        supplemental_request = request.model_copy(
            update={"content": excerpt, "number_of_questions": missing}
        )
        logger.info(
            f"Requesting {missing} supplemental question(s) from {name}",
            extra={"provider": name},
        )

        attempt, extra = await self._attempt(
            name, provider, supplemental_request, missing, supplemental=True
        )
        if not extra:
            logger.warning(
                f"Supplemental request to {name} produced nothing: {attempt.error}",
                extra={"provider": name},
            )
            return [], attempt

        seen = {q.question.strip().casefold() for q in questions}
        kept: List[GeneratedQuestion] = []
        for question in extra:
            key = question.question.strip().casefold()
            if key in seen:
                continue
            seen.add(key)
            kept.append(question)
            if len(kept) == missing:
                break

        logger.info(
            f"Supplemental fill added {len(kept)} of {missing} missing question(s)",
            extra={"provider": name},
        )
        return kept, attempt

    def health(self) -> Dict[str, Any]:
        """Describe the configured providers."""
        text_chain = [n for n in self.config.text_chain if n in self.providers]
        vision_chain = [
            n
            for n in self.config.vision_chain
            if n in self.providers and self.providers[n].supports_vision
        ]
        return {
            "providers": sorted(self.providers),
            "primary": text_chain[0] if text_chain else None,
            "text_chain": text_chain,
            "vision_chain": vision_chain,
            "vision_available": bool(vision_chain),
        }

    async def close(self) -> None:
        """Close all provider clients."""
        for provider in self.providers.values():
            await provider.close()

    async def __aenter__(self) -> "QuestionGenerator":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
