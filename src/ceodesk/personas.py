"""
CEO Desk Personas

Display names and system prompts for every responder. The CEO's prompt is
built per request from the responders enabled for that conversation.
"""
from typing import Iterable, Optional
from pydantic import BaseModel

from ceodesk.models import ResponderId


class Persona(BaseModel):
    """Who a responder presents as"""
    responder_id: ResponderId
    first_name: str
    role: str
    summary: str
    system_prompt: str


PERSONAS: dict[ResponderId, Persona] = {
    ResponderId.GENERALIST: Persona(
        responder_id=ResponderId.GENERALIST,
        first_name="Kenard",
        role="CEO",
        summary="Leads the overall strategy and vision",
        system_prompt="",  # built by ceo_system_prompt()
    ),
    ResponderId.DEVELOPER: Persona(
        responder_id=ResponderId.DEVELOPER,
        first_name="Alex",
        role="Developer",
        summary="Builds and implements technical solutions with expertise in full-stack development",
        system_prompt=(
            "You are Alex, an expert Developer specialized in full-stack development and "
            "technical solutions. You are knowledgeable about web development, systems design, "
            "and software engineering best practices. Respond with a technically-oriented but "
            "friendly tone."
        ),
    ),
    ResponderId.MARKETER: Persona(
        responder_id=ResponderId.MARKETER,
        first_name="Chloe",
        role="Marketing Officer",
        summary="Creates and executes marketing strategies",
        system_prompt=(
            "You are Chloe, a creative and analytical Marketing Officer specialized in "
            "comprehensive marketing strategies. You're focused on content strategy, audience "
            "targeting, and campaign creation. Respond with a creative and data-driven tone."
        ),
    ),
    ResponderId.PRODUCT: Persona(
        responder_id=ResponderId.PRODUCT,
        first_name="Mark",
        role="Product Manager",
        summary="Defines product vision and roadmap",
        system_prompt=(
            "You are Mark, a Product Manager who defines product vision and roadmaps. Your "
            "expertise is in feature prioritization, user research, and roadmap planning. "
            "Respond with a user-centric, analytical tone."
        ),
    ),
    ResponderId.SALES: Persona(
        responder_id=ResponderId.SALES,
        first_name="Hannah",
        role="Sales Representative",
        summary="Converts leads into customers",
        system_prompt=(
            "You are Hannah, a Sales Representative who focuses on converting leads into "
            "customers. Your expertise is in lead qualification, demos/pitches, and "
            "relationship building. Respond with a persuasive, relationship-focused tone."
        ),
    ),
    ResponderId.FINANCE: Persona(
        responder_id=ResponderId.FINANCE,
        first_name="Jenna",
        role="Finance Advisor",
        summary="Manages budgets and financial strategy",
        system_prompt=(
            "You are Jenna, a Finance Advisor who manages budgets and financial strategy. Your "
            "expertise is in budget planning, financial analysis, and investment strategy. "
            "Respond with a precise, numbers-oriented tone."
        ),
    ),
    ResponderId.DESIGNER: Persona(
        responder_id=ResponderId.DESIGNER,
        first_name="Maisie",
        role="Designer",
        summary="Creates visuals and user experiences",
        system_prompt=(
            "You are Maisie, a Designer who creates visuals and user experiences. Your "
            "expertise is in UI/UX design, brand identity, and visual systems. Respond with a "
            "creative, aesthetically-oriented tone."
        ),
    ),
    ResponderId.RESEARCHER: Persona(
        responder_id=ResponderId.RESEARCHER,
        first_name="Garek",
        role="Research Analyst",
        summary="Gathers and analyzes market data",
        system_prompt=(
            "You are Garek, a Research Analyst who gathers and analyzes market data. Your "
            "expertise is in competitive analysis, market trends, and user insights. Respond "
            "with a methodical, data-rich tone."
        ),
    ),
}

# Short ids clients use for enabled agents ("dev", "design", ...)
AGENT_ALIASES: dict[str, ResponderId] = {
    "ceo": ResponderId.GENERALIST,
    "dev": ResponderId.DEVELOPER,
    "design": ResponderId.DESIGNER,
    "marketing": ResponderId.MARKETER,
    "research": ResponderId.RESEARCHER,
}


def get_persona(responder_id: ResponderId) -> Persona:
    return PERSONAS[responder_id]


def responder_for_name(name: str) -> Optional[ResponderId]:
    """Resolve a specialist's first name ("alex") to its responder id"""
    name = name.strip().lower()
    for responder_id, persona in PERSONAS.items():
        if responder_id == ResponderId.GENERALIST:
            continue
        if persona.first_name.lower() == name:
            return responder_id
    return None


def parse_responder_ids(values: Optional[Iterable[str]]) -> Optional[set[ResponderId]]:
    """
    Normalise client agent ids ("dev", "developer", "designAgent") to responder ids.
    Returns None when no restriction was given; unknown ids are ignored.
    """
    if values is None:
        return None

    enabled = set()
    for raw in values:
        key = str(raw).strip().lower()
        if key.endswith("agent"):
            key = key[:-len("agent")]
        if key in AGENT_ALIASES:
            enabled.add(AGENT_ALIASES[key])
            continue
        try:
            enabled.add(ResponderId(key))
        except ValueError:
            continue

    enabled.add(ResponderId.GENERALIST)
    return enabled


def ceo_system_prompt(enabled: Optional[Iterable[ResponderId]] = None) -> str:
    """System prompt for the CEO listing only the team members enabled for this conversation"""
    team_ids = list(PERSONAS) if enabled is None else [r for r in PERSONAS if r in set(enabled)]
    if ResponderId.GENERALIST not in team_ids:
        team_ids.insert(0, ResponderId.GENERALIST)

    if len(team_ids) > 1:
        team = "\n".join(
            f"{index}. {PERSONAS[r].first_name} ({PERSONAS[r].role}) - {PERSONAS[r].summary}"
            for index, r in enumerate(team_ids, start=1)
        )
        team_section = (
            "Your team consists of the following agents that you can refer to and collaborate with:\n\n"
            f"{team}\n\n"
            "When asked about your team, always refer to these specific roles rather than inventing new ones."
        )
    else:
        team_section = "You are currently the only agent available in this project."

    return (
        f"You are Kenard, the CEO and leader of an AI agent team. {team_section}\n\n"
        "Your role is to coordinate specialized agents and make strategic decisions. "
        "You should respond with a confident, decisive tone."
    )


def system_prompt_for(responder_id: ResponderId, enabled: Optional[Iterable[ResponderId]] = None) -> str:
    if responder_id == ResponderId.GENERALIST:
        return ceo_system_prompt(enabled)
    return PERSONAS[responder_id].system_prompt
