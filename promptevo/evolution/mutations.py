"""Text mutations that turn a prompt template into a challenger.

Each strategy maps to a Transformation: an ordered recipe of regex
replacements, prefix/suffix text, a wrapper, additions and keyword
highlights. Mutations are pure text-to-text functions.
"""

import re
from dataclasses import dataclass
from enum import Enum


class MutationStrategy(str, Enum):
    """How a prompt is rewritten to produce a challenger."""

    CONCISE = "concise"  # Fewer tokens, same meaning
    DETAILED = "detailed"  # Clarify outputs, formats and dates
    STRUCTURED = "structured"  # Section headers around the prompt
    INSTRUCTIVE = "instructive"  # Explicit do/don't lists
    EXAMPLE_BASED = "example_based"  # Worked example section
    CONSTRAINT_FOCUSED = "constraint_focused"  # Emphasize requirements
    OUTPUT_FOCUSED = "output_focused"  # Insist on the output format
    HYBRID = "hybrid"  # Structure plus emphasized constraints


@dataclass(frozen=True)
class Replacement:
    """Replace every match of pattern with text."""

    pattern: re.Pattern[str]
    text: str


@dataclass(frozen=True)
class TriggeredAddition:
    """Insert text right after the first match of trigger, if any."""

    trigger: re.Pattern[str]
    text: str


@dataclass(frozen=True)
class Transformation:
    """
    Recipe for one mutation strategy.

    Steps run in this order: replacements, prefix, suffix, wrapper,
    additions, highlights. The result is stripped.

    Attributes:
        name: Human-readable recipe name, used in generated variant names.
        description: What the recipe is for.
        replacements: Regex substitutions applied to the whole template.
        prefix: Text prepended to the template.
        suffix: Text appended to the template.
        wrapper: (prefix, suffix) pair placed around the template.
        additions: Plain strings are appended; TriggeredAddition entries are
            inserted after their trigger's first match.
        highlights: Substitutions applied last, to emphasize keywords.
    """

    name: str
    description: str
    replacements: tuple[Replacement, ...] = ()
    prefix: str = ""
    suffix: str = ""
    wrapper: tuple[str, str] | None = None
    additions: tuple[str | TriggeredAddition, ...] = ()
    highlights: tuple[Replacement, ...] = ()


_STRUCTURED_WRAPPER = (
    "## INSTRUCTIONS\n\nFollow these steps:\n\n",
    "\n\n## OUTPUT\nRespond with the requested format only.",
)

_CONSTRAINT_PREFIX = "CRITICAL REQUIREMENTS:\n\n"

_CONSTRAINT_HIGHLIGHTS = (
    Replacement(re.compile(r"must", re.IGNORECASE), "**MUST**"),
    Replacement(re.compile(r"required", re.IGNORECASE), "**REQUIRED**"),
    Replacement(re.compile(r"never", re.IGNORECASE), "**NEVER**"),
)

TRANSFORMATIONS: dict[MutationStrategy, Transformation] = {
    MutationStrategy.CONCISE: Transformation(
        name="Concise",
        description="Reduce token count while maintaining meaning",
        replacements=(
            Replacement(re.compile(r"You are an? ", re.IGNORECASE), ""),
            Replacement(re.compile(r"Please ", re.IGNORECASE), ""),
            Replacement(re.compile(r"MUST ", re.IGNORECASE), "Must "),
            Replacement(re.compile(r"\n\n+"), "\n\n"),
            Replacement(re.compile(r"\s{2,}"), " "),
            Replacement(re.compile(r"^[-*]\s*", re.MULTILINE), "- "),
        ),
    ),
    MutationStrategy.DETAILED: Transformation(
        name="Detailed",
        description="Add clarifying details and examples",
        additions=(
            TriggeredAddition(
                re.compile(r"output", re.IGNORECASE), " (ensure proper formatting)"
            ),
            TriggeredAddition(re.compile(r"json", re.IGNORECASE), " with valid syntax"),
            TriggeredAddition(
                re.compile(r"date", re.IGNORECASE), " in ISO format when possible"
            ),
        ),
    ),
    MutationStrategy.STRUCTURED: Transformation(
        name="Structured",
        description="Add section headers and numbered steps",
        wrapper=_STRUCTURED_WRAPPER,
    ),
    MutationStrategy.INSTRUCTIVE: Transformation(
        name="Instructive",
        description="Add explicit do/don't instructions",
        additions=(
            "\n\n## DO:\n- Follow the schema exactly\n"
            "- Use factual information only\n- Be concise and clear",
            "\n\n## DON'T:\n- Make up information\n"
            "- Include commentary\n- Deviate from the format",
        ),
    ),
    MutationStrategy.EXAMPLE_BASED: Transformation(
        name="Example-Based",
        description="Show the shape of a good answer",
        additions=(
            "\n\n## EXAMPLE\nBefore answering, picture a complete, correct "
            "response in the requested format and match its structure exactly.",
        ),
    ),
    MutationStrategy.CONSTRAINT_FOCUSED: Transformation(
        name="Constraint-Focused",
        description="Emphasize constraints and requirements",
        prefix=_CONSTRAINT_PREFIX,
        highlights=_CONSTRAINT_HIGHLIGHTS,
    ),
    MutationStrategy.OUTPUT_FOCUSED: Transformation(
        name="Output-Focused",
        description="Emphasize output format and structure",
        suffix=(
            "\n\n## OUTPUT FORMAT\nRespond with ONLY the JSON object. "
            "No explanations, no markdown code blocks, just valid JSON."
        ),
    ),
    MutationStrategy.HYBRID: Transformation(
        name="Hybrid",
        description="Structure the prompt and emphasize its constraints",
        wrapper=_STRUCTURED_WRAPPER,
        highlights=_CONSTRAINT_HIGHLIGHTS,
    ),
}


def resolve_strategy(strategy: MutationStrategy | str) -> MutationStrategy | None:
    """Map a strategy name to MutationStrategy, or None if unknown."""
    if isinstance(strategy, MutationStrategy):
        return strategy
    try:
        return MutationStrategy(strategy)
    except ValueError:
        return None


def recipe_name(strategy: MutationStrategy | str) -> str:
    """Human-readable recipe name, falling back to the strategy value."""
    resolved = resolve_strategy(strategy)
    transform = TRANSFORMATIONS.get(resolved) if resolved else None
    if transform is None:
        return resolved.value if resolved else str(strategy)
    return transform.name


def apply_mutation(template: str, strategy: MutationStrategy | str) -> str:
    """Rewrite a prompt template with a strategy's recipe.

    Args:
        template: Prompt text.
        strategy: Strategy or its string value.

    Returns:
        The mutated, stripped template. Unknown strategies return the
        template stripped and otherwise unchanged.
    """
    resolved = resolve_strategy(strategy)
    transform = TRANSFORMATIONS.get(resolved) if resolved else None
    if transform is None:
        return template.strip()

    result = template

    for replacement in transform.replacements:
        result = replacement.pattern.sub(replacement.text, result)

    if transform.prefix:
        result = transform.prefix + result

    if transform.suffix:
        result = result + transform.suffix

    if transform.wrapper:
        before, after = transform.wrapper
        result = before + result + after

    for addition in transform.additions:
        if isinstance(addition, str):
            result = result + addition
        elif addition.trigger.search(result):
            text = addition.text
            result = addition.trigger.sub(
                lambda m, text=text: m.group(0) + text, result, count=1
            )

    for highlight in transform.highlights:
        result = highlight.pattern.sub(highlight.text, result)

    return result.strip()
