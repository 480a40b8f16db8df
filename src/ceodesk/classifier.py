"""
CEO Desk Intent Classification

Maps raw user text to zero-or-one task category using an ordered rule table.
The first matching rule wins, so rule order is the precedence.
"""
import logging
import re
from typing import Callable, Optional

from ceodesk.errors import ClassificationError
from ceodesk.models import Classification, TaskCategory
from ceodesk.personas import responder_for_name, PERSONAS

logger = logging.getLogger(__name__)


# =============================================================================
# Patterns
# =============================================================================

RESEARCH_PATTERN = re.compile(
    r"research|find (out|information) about|look up|investigate|tell me about",
    re.IGNORECASE,
)

DEVELOPMENT_PATTERN = re.compile(
    r"(develop|create|build|code|program|implement|make|design|setup|set up|construct) "
    r".*(site|website|app|application|platform|system|page|webpage|landing page)",
    re.IGNORECASE,
)

DESIGN_EMPHASIS_PATTERN = re.compile(
    r"(design|layout|ui|ux|visual|appearance|look and feel)",
    re.IGNORECASE,
)

DESIGN_PATTERN = re.compile(
    r"(design|layout|ui|ux|visual|appearance|look and feel|mockup|wireframe)"
    r".*(site|website|app|application|platform|system|page|webpage|landing page)",
    re.IGNORECASE,
)

MARKETING_PATTERN = re.compile(
    r"(marketing|promote|advertise|brand|content|social media|seo|audience)",
    re.IGNORECASE,
)

DIRECT_PATTERN = re.compile(
    r"(?:ask|have|get|tell)\s+(" + "|".join(p.first_name.lower() for p in PERSONAS.values()) + r")\s+to\s+(.+)",
    re.IGNORECASE | re.DOTALL,
)

RESEARCH_FILLER_PATTERN = re.compile(
    r"^(can you|please|could you|)\s*(research|tell me about|find out about|investigate|look up)\s*",
    re.IGNORECASE,
)


# =============================================================================
# Rule Table
# =============================================================================

Predicate = Callable[[str], bool]


def _matches(pattern: re.Pattern) -> Predicate:
    return lambda text: pattern.search(text) is not None


def _direct_request(text: str) -> bool:
    match = DIRECT_PATTERN.search(text)
    return match is not None and responder_for_name(match.group(1)) is not None


# Ordered (predicate, category) pairs; earlier rules take precedence.
RULES: list[tuple[Predicate, TaskCategory]] = [
    (_matches(RESEARCH_PATTERN), TaskCategory.RESEARCH),
    (_matches(DEVELOPMENT_PATTERN), TaskCategory.DEVELOPMENT),
    (_matches(DESIGN_PATTERN), TaskCategory.DESIGN),
    (_matches(MARKETING_PATTERN), TaskCategory.MARKETING),
    (_direct_request, TaskCategory.DIRECT),
]


def clean_query(text: str) -> str:
    """Strip leading filler such as "can you research" from a research request"""
    return RESEARCH_FILLER_PATTERN.sub("", text.strip(), count=1).strip()


def classify(text: str, rules: Optional[list[tuple[Predicate, TaskCategory]]] = None) -> TaskCategory:
    """Return the category of the first matching rule, or NONE"""
    for predicate, category in (RULES if rules is None else rules):
        if predicate(text):
            return category
    return TaskCategory.NONE


def needs_design_input(text: str) -> bool:
    """Whether a development request also carries design vocabulary"""
    return DESIGN_EMPHASIS_PATTERN.search(text) is not None


def analyze(text: str) -> Classification:
    """Classify a message and collect the details the planner needs"""
    if text is None:
        text = ""
    if not isinstance(text, str):
        raise ClassificationError(f"Cannot classify {type(text).__name__}")
    category = classify(text)

    if category == TaskCategory.DEVELOPMENT:
        return Classification(
            category=category,
            needs_design_input=needs_design_input(text),
            query=text.strip(),
        )

    if category == TaskCategory.DIRECT:
        match = DIRECT_PATTERN.search(text)
        return Classification(
            category=category,
            query=match.group(2).strip(),
            direct_target=responder_for_name(match.group(1)),
        )

    return Classification(category=category, query=text.strip())


def describe_rules() -> list[dict[str, str]]:
    """Rule table in precedence order, for introspection endpoints"""
    described = []
    for index, (_, category) in enumerate(RULES):
        described.append({"priority": str(index + 1), "category": category.value})
    described.append({"priority": str(len(RULES) + 1), "category": TaskCategory.NONE.value})
    return described
