"""
CEO Desk Dispatcher

Executes a delegation plan against the responder registry, one step at a
time, consulting the throttle cache before every call.
"""
import asyncio
import logging
import time
from typing import Optional

from ceodesk.config import Settings, get_settings
from ceodesk.errors import ResponderBackendError, ResponderError, ResponderTimeout
from ceodesk.models import (
    DelegationOutcome,
    DelegationPlan,
    DelegationResult,
    DelegationStep,
)
from ceodesk.registry import ResponderRegistry, SupportsRespond
from ceodesk.throttle import NullThrottleCache, ThrottleCache, ThrottleEntry

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Sequential plan executor.

    Steps never run in parallel because a later step's instruction may embed
    an earlier step's output. The first failing step aborts the rest of the
    plan; retrying is left to the synthesizer's fallback path.
    """

    def __init__(
        self,
        registry: ResponderRegistry,
        throttle: Optional[ThrottleCache] = None,
        step_timeout: Optional[float] = None,
        pending_wait: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.registry = registry
        self.throttle = throttle if throttle is not None else NullThrottleCache(settings.throttle_key_chars)
        self.step_timeout = step_timeout if step_timeout is not None else settings.step_timeout_seconds
        self.pending_wait = pending_wait if pending_wait is not None else settings.pending_wait_seconds

    async def execute(self, plan: DelegationPlan) -> DelegationOutcome:
        """Run every step in order; stop at the first failure"""
        if plan.is_empty:
            return DelegationOutcome.no_delegation()

        results: list[DelegationResult] = []
        prior_output: Optional[str] = None

        for step in plan.steps:
            instruction = step.render(prior_output)
            start_time = time.monotonic()

            try:
                output, replayed = await self._run_step(step, instruction)
            except ResponderError as e:
                elapsed_ms = int((time.monotonic() - start_time) * 1000)
                logger.warning(
                    f"Delegation step failed",
                    extra={
                        "plan_id": plan.plan_id,
                        "target": step.target.value,
                        "error_type": type(e).__name__,
                        "elapsed_ms": elapsed_ms,
                        "completed_steps": len(results),
                    }
                )
                return DelegationOutcome.failure(str(e), results, failed_step=step)

            elapsed_ms = int((time.monotonic() - start_time) * 1000)
            results.append(DelegationResult(
                step=step,
                instruction=instruction,
                output=output,
                elapsed_ms=elapsed_ms,
                replayed=replayed,
            ))
            prior_output = output

            logger.info(
                f"Delegation step completed",
                extra={
                    "plan_id": plan.plan_id,
                    "target": step.target.value,
                    "elapsed_ms": elapsed_ms,
                    "replayed": replayed,
                }
            )

        return DelegationOutcome.success(results)

    async def _run_step(self, step: DelegationStep, instruction: str) -> tuple[str, bool]:
        """
        Returns (output, replayed).

        Registry lookup errors are not caught here; an unknown responder is
        a configuration problem, not a degraded answer.
        """
        responder = self.registry.get(step.target)
        key = self.throttle.key_for(step.target, instruction)
        entry, created = await self.throttle.get_or_create(key)

        if not created:
            if not entry.is_pending:
                return entry.result, True

            result = await entry.wait(self.pending_wait)
            if result is not None:
                return result, True

            logger.info(
                f"In-flight duplicate not ready, proceeding independently",
                extra={"target": step.target.value}
            )
            return await self._call(responder, step, instruction), False

        # The call outlives a cancelled caller so waiters still get the result
        task = asyncio.ensure_future(self._call_and_settle(entry, responder, step, instruction))
        task.add_done_callback(_consume_exception)
        return await asyncio.shield(task), False

    async def _call_and_settle(
        self,
        entry: ThrottleEntry,
        responder: SupportsRespond,
        step: DelegationStep,
        instruction: str,
    ) -> str:
        try:
            output = await self._call(responder, step, instruction)
        except BaseException:
            await self.throttle.discard(entry)
            raise
        await self.throttle.resolve(entry, output)
        return output

    async def _call(self, responder: SupportsRespond, step: DelegationStep, instruction: str) -> str:
        """One bounded responder call; every failure comes out as a ResponderError"""
        try:
            output = await asyncio.wait_for(responder.respond(instruction), timeout=self.step_timeout)
        except asyncio.TimeoutError as e:
            raise ResponderTimeout(
                f"{step.target.value} did not respond within {self.step_timeout}s",
                responder_id=step.target.value,
            ) from e
        except ResponderError:
            raise
        except Exception as e:
            logger.error(
                f"Unexpected responder failure",
                extra={"target": step.target.value},
                exc_info=True,
            )
            raise ResponderBackendError(str(e), responder_id=step.target.value) from e

        if not isinstance(output, str) or not output.strip():
            raise ResponderBackendError(
                f"{step.target.value} returned an empty response",
                responder_id=step.target.value,
            )
        return output


def _consume_exception(task: asyncio.Task):
    """Retrieve the outcome of a call whose caller went away"""
    if not task.cancelled():
        task.exception()
