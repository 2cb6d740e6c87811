"""Prompt templates for question generation.

The prompt has a fixed section order; only the sampled creativity angles,
question types and diversity directive vary, driven by a diversity seed so
that identical requests still produce different questions while tests can
pin the output.
"""

import logging
import random
import time
from typing import Dict, List, Optional

from ..data.models import ContentType, DifficultyLevel, GenerationRequest, Language

logger = logging.getLogger(__name__)

ROLE_FRAMING = (
    "You are an expert quiz creator and educational assessment designer. "
    "{language_instruction}Your task is to create exactly {count} high-quality, "
    "DIVERSE, and CREATIVE multiple-choice questions based on the provided content."
)

VISION_ROLE_FRAMING = (
    "You are an expert quiz creator with vision capabilities. "
    "{language_instruction}Analyze the provided image together with any text "
    "content and generate exactly {count} multiple-choice questions based on "
    "what you can see and read."
)

VISION_ANALYSIS = """## VISION ANALYSIS
1. Carefully examine the image for text, diagrams, charts, tables, or any visual information
2. If it is a document, read and understand the text content
3. If it contains diagrams or visual elements, analyze their meaning and relationships
4. Base questions on what you can actually see and read in the image"""

CONTENT_TYPE_HINTS: Dict[ContentType, str] = {
    ContentType.DOCUMENT: (
        "DOCUMENT CONTENT: Focus on key concepts, definitions, and main ideas. "
        "Create questions that test comprehension of the written material."
    ),
    ContentType.VIDEO: (
        "VIDEO TRANSCRIPT: Focus on explanations, demonstrations, and key points "
        "discussed. Test understanding of the spoken content."
    ),
    ContentType.TOPIC: (
        "TOPIC EXPLORATION: Create questions testing general knowledge about this "
        "subject. Cover various aspects and applications."
    ),
    ContentType.MIXED: (
        "MIXED CONTENT: Draw from all provided sources to create diverse questions "
        "covering different aspects and perspectives."
    ),
}

DEFAULT_CONTENT_HINT = (
    "GENERAL CONTENT: Analyze all provided information to create comprehensive "
    "questions."
)

DIFFICULTY_INSTRUCTIONS: Dict[DifficultyLevel, str] = {
    DifficultyLevel.EASY: (
        "Create straightforward questions focusing on basic facts, simple recall, "
        "and obvious concepts. Make correct answers clearly distinguishable."
    ),
    DifficultyLevel.MEDIUM: (
        "Generate questions requiring moderate analysis and understanding. Mix "
        "factual recall with reasoning and application of concepts."
    ),
    DifficultyLevel.HARD: (
        "Design challenging questions requiring critical thinking, analysis, "
        "synthesis, and deep reasoning. Include complex scenarios and nuanced "
        "understanding."
    ),
}

CREATIVITY_ANGLES: List[str] = [
    "Think beyond basic definitions - explore applications, implications, and connections",
    "Consider historical context, modern applications, and future implications",
    "Include cause-and-effect relationships, comparisons, and analytical scenarios",
    "Explore different perspectives, debates, and controversial aspects when appropriate",
    "Use real-world examples, case studies, and practical applications",
    "Consider interdisciplinary connections and cross-topic relationships",
]

QUESTION_TYPES: List[str] = [
    "factual recall",
    "analytical comparison",
    "cause-and-effect analysis",
    "application scenario",
    "problem-solving situation",
    "conceptual understanding",
    "critical evaluation",
    "synthesis and integration",
    "real-world application",
    "historical context",
    "future implications",
    "interdisciplinary connections",
]

DIVERSITY_DIRECTIVES: List[str] = [
    "Avoid repetitive question patterns or similar phrasings",
    "Use varied question starters (What, How, Why, Which, Where, When)",
    "Mix direct questions with scenario-based problems",
    "Include both specific details and broader conceptual understanding",
    "Vary the complexity and depth of each question within the difficulty level",
]

CREATIVITY_SAMPLE_SIZE = 3
MAX_QUESTION_TYPES = 6

GENERATION_RULES = """## GENERATION RULES
1. Each question must have exactly 4 options
2. Only one option should be correct
3. All questions must be based on the provided content
4. Make incorrect options plausible but clearly wrong
5. Ensure questions test understanding, not just memorization
6. AVOID repetitive patterns - make each question unique in style and approach
7. Use different question starters and phrasings for variety"""

ANSWER_DISTRIBUTION_RULES = """## ANSWER DISTRIBUTION (CRITICAL)
Distribute correct answers randomly across A, B, C, D to avoid predictable patterns.
- NEVER make all questions have the same correct answer
- NEVER use the sequential pattern A, B, C, D
- Do NOT always start with the same letter; the first answer should rarely be A
- Ensure variety so users cannot predict the next answer"""

OUTPUT_FORMAT = """## OUTPUT FORMAT
Return ONLY a valid JSON array. No markdown, no explanations, just the JSON:

[
  {
    "question": "Your question text here?",
    "options": ["Clean option without prefixes", "Second option", "Third option", "Fourth option"],
    "correctAnswer": "A",
    "explanation": "Brief explanation why this answer is correct",
    "topic": "Main topic of this question"
  }
]

## CRITICAL FORMATTING RULES
- Do NOT include A), B), C), D) or A., B., C., D. prefixes in options
- Options should be clean text only: ["DNA", "RNA", "Protein", "Lipid"]
- Ensure valid JSON syntax with proper quotes and commas
- Each question object must have all 5 required fields"""


def default_seed() -> int:
    """Diversity seed derived from wall-clock time."""
    return time.time_ns() // 1_000_000


def build_language_instruction(language: Language) -> str:
    if language == Language.ENGLISH:
        return ""
    return (
        f"IMPORTANT: Generate ALL content (questions, options, explanations) in "
        f"{language.value}. "
    )


def build_creativity_directive(rng: random.Random) -> str:
    angles = rng.sample(CREATIVITY_ANGLES, CREATIVITY_SAMPLE_SIZE)
    return f"CREATIVITY FOCUS: {'. '.join(angles)}."


def build_question_type_directive(rng: random.Random, count: int) -> str:
    sample_size = max(1, min(count, MAX_QUESTION_TYPES))
    types = rng.sample(QUESTION_TYPES, sample_size)
    return f"QUESTION TYPE VARIETY: Include these types: {', '.join(types)}."


def build_diversity_directive(rng: random.Random, seed: int) -> str:
    directive = rng.choice(DIVERSITY_DIRECTIVES)
    return f"DIVERSITY REQUIREMENT: {directive}. [Seed: {seed % 10000}]"


def build_generation_prompt(
    request: GenerationRequest, diversity_seed: Optional[int] = None
) -> str:
    """Build the full generation prompt for a (shaped) request.

    Args:
        request: The request whose content has already been shaped
        diversity_seed: Seed for the sampled directives; defaults to the
            current time in milliseconds

    Returns:
        Prompt text with the content payload appended last
    """
    seed = default_seed() if diversity_seed is None else diversity_seed
    rng = random.Random(seed)
    count = request.number_of_questions
    language_instruction = build_language_instruction(request.language)

    framing = VISION_ROLE_FRAMING if request.has_image else ROLE_FRAMING
    sections = [
        framing.format(language_instruction=language_instruction, count=count),
    ]
    if request.has_image:
        sections.append(VISION_ANALYSIS)

    content_hint = (
        CONTENT_TYPE_HINTS.get(request.content_type, DEFAULT_CONTENT_HINT)
        if request.content_type is not None
        else DEFAULT_CONTENT_HINT
    )
    sections.append(f"## CONTENT ANALYSIS\n{content_hint}")
    sections.append(
        "## CREATIVITY & DIVERSITY REQUIREMENTS\n"
        f"{build_creativity_directive(rng)}\n"
        f"{build_question_type_directive(rng, count)}\n"
        f"{build_diversity_directive(rng, seed)}"
    )
    sections.append(
        f"## DIFFICULTY REQUIREMENTS: {request.difficulty.value}\n"
        f"{DIFFICULTY_INSTRUCTIONS[request.difficulty]}"
    )
    sections.append(GENERATION_RULES)
    sections.append(ANSWER_DISTRIBUTION_RULES)
    sections.append(OUTPUT_FORMAT)
    sections.append(
        f"Generate exactly {count} UNIQUE and DIVERSE questions - NO MORE, NO LESS."
    )

    # The content payload always comes last
    payload = request.content.strip()
    if payload:
        heading = "## ADDITIONAL CONTEXT:" if request.has_image else "## CONTENT TO ANALYZE:"
        sections.append(f"{heading}\n{payload}")

    logger.debug(f"Built prompt with seed {seed} ({sum(len(s) for s in sections)} chars)")
    return "\n\n".join(sections)
