"""Generation configuration management.

This module loads the tunables of the question generation pipeline from an
optional YAML file: request limits, validation bounds, content shaping,
retry and supplemental-fill behaviour, quality-score deductions, and the
per-provider context budgets and timeouts that drive the fallback chain.

Every field has a default, so an absent file yields a working configuration.
"""

import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)


class GenerationConfigError(Exception):
    """Raised when a generation configuration file cannot be loaded."""


class ProviderSettings(BaseModel):
    """Per-provider request settings.

    Attributes:
        context_budget: Maximum content characters sent to the provider
        timeout_seconds: Time allowed for one invocation, local retries included
        max_tokens: Completion token limit
        temperature: Sampling temperature
        top_p: Nucleus sampling parameter
    """

    context_budget: int = Field(..., gt=500)
    timeout_seconds: float = Field(..., gt=0)
    max_tokens: int = Field(4000, gt=0)
    temperature: float = Field(0.8, ge=0.0, le=2.0)
    top_p: float = Field(0.9, gt=0.0, le=1.0)


def _default_providers() -> Dict[str, ProviderSettings]:
    return {
        "deepseek": ProviderSettings(
            context_budget=12000, timeout_seconds=60, max_tokens=2000, temperature=0.7
        ),
        "llama_vision": ProviderSettings(
            context_budget=15000, timeout_seconds=45, temperature=0.7
        ),
        "gemini": ProviderSettings(context_budget=20000, timeout_seconds=30),
        "anthropic": ProviderSettings(
            context_budget=20000, timeout_seconds=60, temperature=0.7
        ),
    }


class RequestLimits(BaseModel):
    """Bounds applied to incoming generation requests."""

    min_questions: int = Field(5, ge=1)
    max_questions: int = Field(50, ge=1)
    preview_min_questions: int = Field(5, ge=1)
    preview_max_questions: int = Field(10, ge=1)
    min_content_length: int = Field(3, ge=0)
    max_content_length: int = Field(50000, gt=0)

    @model_validator(mode="after")
    def validate_ranges(self) -> "RequestLimits":
        """Reject inverted min/max pairs."""
        if self.min_questions > self.max_questions:
            raise ValueError(
                f"min_questions ({self.min_questions}) exceeds "
                f"max_questions ({self.max_questions})"
            )
        if self.preview_min_questions > self.preview_max_questions:
            raise ValueError(
                f"preview_min_questions ({self.preview_min_questions}) exceeds "
                f"preview_max_questions ({self.preview_max_questions})"
            )
        if self.min_content_length > self.max_content_length:
            raise ValueError("min_content_length exceeds max_content_length")
        return self


class ValidationRules(BaseModel):
    """Structural bounds for a generated question."""

    question_min_length: int = Field(10, ge=1)
    question_max_length: int = Field(500, ge=1)
    option_min_length: int = Field(1, ge=1)
    option_max_length: int = Field(200, ge=1)
    option_count: Literal[4] = 4

    @model_validator(mode="after")
    def validate_ranges(self) -> "ValidationRules":
        """Reject inverted length bounds."""
        if self.question_min_length > self.question_max_length:
            raise ValueError("question_min_length exceeds question_max_length")
        if self.option_min_length > self.option_max_length:
            raise ValueError("option_min_length exceeds option_max_length")
        return self


class ShapingConfig(BaseModel):
    """Content shaping settings."""

    topic_expansion_threshold: int = Field(100, ge=0)
    elision_marker: str = Field("[... content omitted ...]", min_length=1)
    supplemental_excerpt_length: int = Field(2000, gt=0)


class RetrySettings(BaseModel):
    """Local retry settings for transient provider failures.

    The delay before attempt ``n + 1`` is ``base_delay * n`` seconds.
    """

    max_attempts: int = Field(3, ge=1)
    base_delay: float = Field(1.0, ge=0.0)


class SupplementalConfig(BaseModel):
    """Supplemental fill settings for batches that come back slightly short."""

    enabled: bool = True
    max_shortfall: int = Field(2, ge=1)
    min_quality_score: int = Field(0, ge=0, le=10)


class QualityConfig(BaseModel):
    """Deductions used by the quality scorer."""

    completion_deductions: Dict[float, int] = Field(
        default_factory=lambda: {0.5: 4, 0.8: 2, 1.0: 1},
        description="Completion ratio threshold -> points deducted when below it",
    )
    short_question_length: int = Field(20, ge=0)
    short_question_penalty: int = Field(2, ge=0)
    missing_question_mark_penalty: int = Field(1, ge=0)
    short_option_length: float = Field(5.0, ge=0)
    short_option_penalty: int = Field(2, ge=0)
    duplicate_option_penalty: int = Field(3, ge=0)


class GenerationConfig(BaseModel):
    """Complete generation pipeline configuration."""

    request_limits: RequestLimits = Field(default_factory=RequestLimits)
    validation_rules: ValidationRules = Field(default_factory=ValidationRules)
    shaping: ShapingConfig = Field(default_factory=ShapingConfig)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    supplemental: SupplementalConfig = Field(default_factory=SupplementalConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    providers: Dict[str, ProviderSettings] = Field(default_factory=_default_providers)
    text_chain: List[str] = Field(
        default_factory=lambda: ["deepseek", "llama_vision", "gemini", "anthropic"]
    )
    vision_chain: List[str] = Field(
        default_factory=lambda: ["llama_vision", "gemini", "anthropic"]
    )

    @field_validator("providers")
    @classmethod
    def validate_providers(
        cls, v: Dict[str, ProviderSettings]
    ) -> Dict[str, ProviderSettings]:
        """Fill in defaults for built-in providers the file leaves out."""
        merged = _default_providers()
        merged.update(v)
        return merged

    @model_validator(mode="after")
    def validate_chains(self) -> "GenerationConfig":
        """Validate that both chains are non-empty and reference known providers."""
        for chain_name in ("text_chain", "vision_chain"):
            chain = getattr(self, chain_name)
            if not chain:
                raise ValueError(f"{chain_name} must list at least one provider")
            unknown = [p for p in chain if p not in self.providers]
            if unknown:
                raise ValueError(f"{chain_name} references unknown providers: {unknown}")
            if len(set(chain)) != len(chain):
                raise ValueError(f"{chain_name} lists a provider more than once")
        return self

    def provider_settings(self, provider_name: str) -> ProviderSettings:
        """Get settings for a provider.

        Raises:
            KeyError: If the provider is not configured
        """
        return self.providers[provider_name]


def load_generation_config(
    config_path: Optional[Union[str, Path]] = None,
) -> GenerationConfig:
    """Load generation configuration from a YAML file.

    Args:
        config_path: Path to the YAML file. When None, defaults are returned.

    Returns:
        Validated generation configuration

    Raises:
        GenerationConfigError: If the file is missing, is not valid YAML,
            or fails validation
    """
    if config_path is None:
        return GenerationConfig()

    path = Path(config_path)
    if not path.exists():
        raise GenerationConfigError(f"Generation configuration file not found: {path}")

    logger.info(f"Loading generation configuration from {path}")

    try:
        with open(path, "r") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise GenerationConfigError(f"Invalid YAML in {path}: {e}") from e

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise GenerationConfigError(
            f"Generation configuration must be a mapping, got {type(raw_config).__name__}"
        )

    try:
        config = GenerationConfig(**raw_config)
    except ValidationError as e:
        logger.error(f"Invalid generation configuration: {e}")
        raise GenerationConfigError(f"Invalid generation configuration: {e}") from e

    logger.info(
        f"Successfully loaded generation configuration "
        f"(text_chain={config.text_chain}, vision_chain={config.vision_chain})"
    )
    return config
