"""Command line entry point for one-off question generation.

Prints the GenerationResult as JSON on stdout; logs go to stderr.

Exit codes:
    0  questions generated (possibly fewer than requested)
    2  every provider failed
    3  invalid request or configuration
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config.config import settings
from .config.generation_config import GenerationConfigError, load_generation_config
from .data.models import ContentType, DifficultyLevel, GenerationRequest, Language
from .generation.generator import QuestionGenerator
from .generation.validator import RequestValidationError
from .logging_config import setup_logging
from .observability import observability
from .providers import build_default_providers

EXIT_SUCCESS = 0
EXIT_COMPLETE_FAILURE = 2
EXIT_CONFIG_ERROR = 3

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="quizgen",
        description="Generate multiple-choice questions with AI providers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Five questions about a topic
  quizgen --topic "Photosynthesis" --count 5

  # Questions from a document, in Spanish
  quizgen --file notes.txt --count 10 --language Spanish

  # Questions about an image, with optional context text
  quizgen --image diagram.png --topic "Cell biology" --count 5

  # Preview batch (count clamped to 5-10)
  quizgen --file notes.txt --preview
        """,
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument("--topic", help="Topic or short text to generate questions about")
    source.add_argument("--file", type=Path, help="Read source content from a text file")

    parser.add_argument("--image", type=Path, help="Image file for vision providers")
    parser.add_argument(
        "--count",
        type=int,
        default=5,
        help="Number of questions to generate (default: 5)",
    )
    parser.add_argument(
        "--difficulty",
        choices=[d.value for d in DifficultyLevel],
        default=DifficultyLevel.MEDIUM.value,
        help="Question difficulty (default: Medium)",
    )
    parser.add_argument(
        "--language",
        choices=[lang.value for lang in Language],
        default=Language.ENGLISH.value,
        help="Output language (default: English)",
    )
    parser.add_argument(
        "--content-type",
        choices=[c.value for c in ContentType],
        default=None,
        help="Kind of source content (default: topic for --topic, document for --file)",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Generate a preview batch (count clamped to the preview range)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a generation configuration YAML file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def build_request(args: argparse.Namespace) -> GenerationRequest:
    """Build a GenerationRequest from parsed arguments.

    Raises:
        OSError: If an input file cannot be read
        pydantic.ValidationError: If the request is malformed
    """
    content = ""
    content_type = args.content_type
    if args.topic is not None:
        content = args.topic
        content_type = content_type or ContentType.TOPIC.value
    elif args.file is not None:
        content = args.file.read_text(encoding="utf-8")
        content_type = content_type or ContentType.DOCUMENT.value

    image_data = args.image.read_bytes() if args.image is not None else None

    return GenerationRequest(
        content=content,
        number_of_questions=args.count,
        difficulty=args.difficulty,
        language=args.language,
        content_type=content_type,
        image_data=image_data,
    )


async def _generate(
    generator: QuestionGenerator, request: GenerationRequest, preview: bool
):
    async with generator:
        if preview:
            return await generator.generate_preview(request)
        return await generator.generate(request)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code
    """
    args = parse_arguments(argv)

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        json_output=settings.is_production,
    )
    observability.init(
        service_name=settings.service_name,
        environment=settings.env,
        sentry_dsn=settings.sentry_dsn,
        otel_exporter=settings.otel_exporter,
        otel_endpoint=settings.otel_endpoint,
    )

    try:
        try:
            config = load_generation_config(args.config or settings.generation_config_path)
            request = build_request(args)
        except GenerationConfigError as e:
            logger.error(f"Configuration error: {e}")
            return EXIT_CONFIG_ERROR
        except OSError as e:
            logger.error(f"Cannot read input: {e}")
            return EXIT_CONFIG_ERROR
        except ValidationError as e:
            logger.error(f"Invalid request: {e}")
            return EXIT_CONFIG_ERROR

        providers = build_default_providers(settings, config)
        if not providers:
            logger.error(
                "No providers configured; set TOGETHER_API_KEY, GOOGLE_API_KEY "
                "or ANTHROPIC_API_KEY"
            )
            return EXIT_CONFIG_ERROR

        generator = QuestionGenerator(providers, config)
        try:
            result = asyncio.run(_generate(generator, request, args.preview))
        except RequestValidationError as e:
            logger.error(f"Invalid request: {e}")
            return EXIT_CONFIG_ERROR

        print(json.dumps(result.model_dump(by_alias=True, mode="json"), indent=2))

        if not result.success:
            logger.error(f"Generation failed: {result.metadata.error}")
            return EXIT_COMPLETE_FAILURE
        return EXIT_SUCCESS
    finally:
        observability.shutdown()


if __name__ == "__main__":
    sys.exit(main())
