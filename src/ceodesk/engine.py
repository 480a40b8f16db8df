"""
CEO Desk Delegation Engine

Per-request state machine:

    Classify -> Plan -> Dispatch -> {Success | Failure | NoDelegation} -> Synthesize -> Respond

There is no request-level retry loop. A failed delegation still ends in
Respond, with a degraded but valid answer.
"""
import logging
import time
from typing import Iterable, Optional, Sequence

from ceodesk.classifier import analyze
from ceodesk.config import Settings, get_settings
from ceodesk.dispatcher import Dispatcher
from ceodesk.errors import ClassificationError, PlanningError
from ceodesk.models import (
    ChatMessage,
    Classification,
    DelegationPlan,
    EngineReply,
    ResponderId,
    TaskCategory,
    generate_request_id,
)
from ceodesk.planner import Planner, empty_plan
from ceodesk.registry import ResponderRegistry
from ceodesk.synthesizer import Synthesizer, split_history
from ceodesk.throttle import ThrottleCache

logger = logging.getLogger(__name__)


class DelegationEngine:
    """Wires classifier, planner, dispatcher and synthesizer for one process"""

    def __init__(
        self,
        registry: ResponderRegistry,
        throttle: Optional[ThrottleCache] = None,
        settings: Optional[Settings] = None,
        planner: Optional[Planner] = None,
        dispatcher: Optional[Dispatcher] = None,
        synthesizer: Optional[Synthesizer] = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry
        self.planner = planner or Planner(self.settings)
        self.dispatcher = dispatcher or Dispatcher(registry, throttle, settings=self.settings)
        self.synthesizer = synthesizer or Synthesizer(registry, settings=self.settings)

    @property
    def throttle(self) -> ThrottleCache:
        return self.dispatcher.throttle

    def classify(self, text: str) -> Classification:
        """Classify, treating any classifier fault as "no delegation" """
        try:
            return analyze(text)
        except ClassificationError as e:
            logger.warning(f"Classification rejected input: {e}")
            return Classification(category=TaskCategory.NONE, query="")
        except Exception:
            logger.error(f"Classification failed, continuing without delegation", exc_info=True)
            return Classification(category=TaskCategory.NONE, query=text.strip())

    def plan(
        self,
        classification: Classification,
        text: str,
        enabled: Optional[Iterable[ResponderId]] = None,
    ) -> DelegationPlan:
        """Plan, treating any planner fault as an empty plan"""
        try:
            return self.planner.plan_for(classification, enabled=enabled)
        except PlanningError as e:
            logger.warning(f"Planning rejected classification: {e}")
            return empty_plan(text)
        except Exception:
            logger.error(f"Planning failed, continuing without delegation", exc_info=True)
            return empty_plan(text)

    async def handle(
        self,
        messages: Sequence[ChatMessage],
        enabled: Optional[Iterable[ResponderId]] = None,
        request_id: Optional[str] = None,
    ) -> EngineReply:
        """
        Answer a conversation whose last user message is the request.

        Raises ValueError when there is no user message and
        RegistryLookupError when a required responder is not bound.
        """
        request_id = request_id or generate_request_id()
        start_time = time.time()
        enabled = None if enabled is None else set(enabled)

        history, last_user = split_history(messages)
        if last_user is None or not last_user.content.strip():
            raise ValueError("No user message found")
        content = last_user.content

        classification = self.classify(content)
        plan = self.plan(classification, content, enabled)

        logger.info(
            f"Handling chat request",
            extra={
                "request_id": request_id,
                "content": content[:100],
                "category": classification.category.value,
                "needs_design_input": classification.needs_design_input,
                "steps": len(plan.steps),
            }
        )

        outcome = await self.dispatcher.execute(plan)
        text = await self.synthesizer.synthesize(content, outcome, history=history, enabled=enabled)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Chat request answered",
            extra={
                "request_id": request_id,
                "outcome": outcome.status.value,
                "duration_ms": duration_ms,
            }
        )

        return EngineReply(
            request_id=request_id,
            text=text,
            category=classification.category,
            plan=plan,
            outcome_status=outcome.status,
            duration_ms=duration_ms,
        )

    async def delegate_once(
        self,
        requester_id: ResponderId,
        target_id: ResponderId,
        prompt: str,
        original_query: Optional[str] = None,
    ) -> tuple[str, Optional[str]]:
        """
        One persona asks another for help.

        Returns (result, raw_response). When original_query is given the
        requester folds the answer into its own reply without mentioning
        the exchange; otherwise the target's answer is returned as-is.
        Responder errors propagate to the caller.
        """
        target = self.registry.get(target_id)
        raw = await target.respond(prompt)

        if not original_query:
            return raw, None

        requester = self.registry.get(requester_id)
        target_name = target_id.value
        instruction = (
            f'I need to respond about "{original_query}".\n\n'
            f"The {target_name} has provided this information:\n\n"
            f"{raw}\n\n"
            "Integrate this information into a cohesive response as if you obtained this "
            "information yourself.\n"
            f"DO NOT mention delegation or that you worked with the {target_name} to get this answer.\n"
            "Present the expertise naturally as part of your own comprehensive knowledge."
        )
        summary = await requester.respond(instruction)
        return summary, raw


def build_engine(
    registry: ResponderRegistry,
    settings: Optional[Settings] = None,
) -> DelegationEngine:
    """Engine with a throttle cache sized from settings"""
    settings = settings or get_settings()
    throttle = None
    if settings.throttle_enabled:
        throttle = ThrottleCache(
            window_seconds=settings.throttle_window_seconds,
            max_entries=settings.throttle_max_entries,
            key_chars=settings.throttle_key_chars,
        )
    return DelegationEngine(registry, throttle=throttle, settings=settings)
