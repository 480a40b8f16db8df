"""
CEO Desk Synthesis

Folds delegated outputs into a single answer from the CEO persona, or
degrades to a plain CEO answer when delegation failed.
"""
import asyncio
import logging
from typing import Iterable, Optional, Sequence

from ceodesk.config import Settings, get_settings
from ceodesk.errors import ResponderBackendError, ResponderError, ResponderTimeout
from ceodesk.models import (
    ChatMessage,
    DelegationOutcome,
    DelegationResult,
    MessageRole,
    OutcomeStatus,
    ResponderId,
)
from ceodesk.personas import ceo_system_prompt
from ceodesk.registry import ResponderRegistry, SupportsRespond

logger = logging.getLogger(__name__)


TEAM_NAMES: dict[ResponderId, str] = {
    ResponderId.RESEARCHER: "Research",
    ResponderId.DEVELOPER: "Development",
    ResponderId.DESIGNER: "Design",
    ResponderId.MARKETER: "Marketing",
    ResponderId.PRODUCT: "Product",
    ResponderId.SALES: "Sales",
    ResponderId.FINANCE: "Finance",
}

LAST_RESORT_REPLY = (
    "I'm sorry, I ran into a technical difficulty while coordinating with the team "
    "and couldn't put together a full answer just now. Please try again in a moment."
)


def build_synthesis_instruction(query: str, results: Sequence[DelegationResult]) -> str:
    """Instruction asking the CEO to present delegated findings as its own"""
    findings = "\n\n".join(r.output for r in results)
    return (
        f'I need to respond about "{query}".\n\n'
        f"I have this information available:\n\n"
        f"{findings}\n\n"
        "Provide a comprehensive response that integrates this information naturally, "
        "as if it's your own expertise.\n"
        "DO NOT mention delegation or that you worked with other team members to get this answer.\n"
        "Present the expertise as part of your own knowledge base."
    )


def describe_teams(targets: Iterable[ResponderId]) -> str:
    """Human phrase for the teams involved: "Research team", "Design and Development teams" """
    names = [TEAM_NAMES[t] for t in targets if t in TEAM_NAMES]
    if not names:
        return "specialist team"
    if len(names) == 1:
        return f"{names[0]} team"
    return f"{', '.join(names[:-1])} and {names[-1]} teams"


def build_fallback_message(content: str, targets: Iterable[ResponderId]) -> str:
    """Original user message plus a note about the team being unavailable"""
    teams = describe_teams(targets)
    return (
        f"{content}\n\n"
        f"[Note: I tried to get assistance from the {teams}, but there was a technical issue. "
        f"Please provide a response based on your general knowledge and mention the technical "
        f"difficulty with the {teams}.]"
    )


class Synthesizer:
    """
    Produces the final user-facing text for every outcome.

    Never raises ResponderError: the user always gets a coherent answer.
    """

    def __init__(
        self,
        registry: ResponderRegistry,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.registry = registry
        self.timeout = timeout if timeout is not None else settings.step_timeout_seconds

    async def synthesize(
        self,
        original_query: str,
        outcome: DelegationOutcome,
        history: Sequence[ChatMessage] = (),
        enabled: Optional[Iterable[ResponderId]] = None,
    ) -> str:
        """
        history is the conversation before the current user message.
        """
        system_prompt = ceo_system_prompt(enabled)

        if outcome.status == OutcomeStatus.NO_DELEGATION:
            return await self._direct(original_query, history, system_prompt)

        if outcome.status == OutcomeStatus.SUCCESS:
            return await self._merge(original_query, outcome, system_prompt)

        return await self._degrade(original_query, outcome, history, system_prompt)

    async def _direct(self, query: str, history: Sequence[ChatMessage], system_prompt: str) -> str:
        generalist = self.registry.get(ResponderId.GENERALIST)
        try:
            return await self._ask(generalist, query, history, system_prompt)
        except ResponderError as e:
            logger.error(f"Generalist failed without delegation: {type(e).__name__}")
            return LAST_RESORT_REPLY

    async def _merge(self, query: str, outcome: DelegationOutcome, system_prompt: str) -> str:
        results = outcome.successful_results
        generalist = self.registry.get(ResponderId.GENERALIST)
        instruction = build_synthesis_instruction(query, results)

        try:
            text = await self._ask(generalist, instruction, (), system_prompt)
        except ResponderError as e:
            logger.warning(
                f"Synthesis failed, returning delegated findings",
                extra={"error_type": type(e).__name__, "results": len(results)}
            )
            return "\n\n".join(r.output for r in results)

        if not text or not text.strip():
            return "\n\n".join(r.output for r in results)
        return text

    async def _degrade(
        self,
        content: str,
        outcome: DelegationOutcome,
        history: Sequence[ChatMessage],
        system_prompt: str,
    ) -> str:
        targets = [r.step.target for r in outcome.results]
        if outcome.failed_step is not None:
            targets.append(outcome.failed_step.target)
        targets = list(dict.fromkeys(targets))

        logger.info(
            f"Delegation failed, answering from general knowledge",
            extra={"teams": [t.value for t in targets]}
        )

        generalist = self.registry.get(ResponderId.GENERALIST)
        amended = build_fallback_message(content, targets)
        try:
            return await self._ask(generalist, amended, history, system_prompt)
        except ResponderError as e:
            logger.error(f"Fallback answer failed: {type(e).__name__}")
            return LAST_RESORT_REPLY

    async def _ask(
        self,
        generalist: SupportsRespond,
        instruction: str,
        history: Sequence[ChatMessage],
        system_prompt: str,
    ) -> str:
        """Bounded generalist call; every failure comes out as a ResponderError"""
        try:
            return await asyncio.wait_for(
                generalist.respond(instruction, history=history, system_prompt=system_prompt),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ResponderTimeout(
                f"generalist did not respond within {self.timeout}s",
                responder_id=ResponderId.GENERALIST.value,
            ) from e
        except ResponderError:
            raise
        except Exception as e:
            logger.error(f"Unexpected generalist failure", exc_info=True)
            raise ResponderBackendError(str(e), responder_id=ResponderId.GENERALIST.value) from e


def split_history(messages: Sequence[ChatMessage]) -> tuple[list[ChatMessage], Optional[ChatMessage]]:
    """Split a conversation into (messages before the last user turn, last user turn)"""
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == MessageRole.USER:
            return list(messages[:index]), messages[index]
    return list(messages), None
