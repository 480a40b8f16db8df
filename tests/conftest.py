"""
Pytest configuration and fixtures for CEO Desk tests.
"""
import asyncio
from typing import Optional, Sequence

import pytest

from ceodesk.config import Settings, get_settings
from ceodesk.models import ChatMessage, ResponderId
from ceodesk.registry import ResponderRegistry, set_registry


class FakeResponder:
    """Responder double that records every call"""

    def __init__(
        self,
        reply: str = "ok",
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.reply = reply
        self.delay = delay
        self.error = error
        self.calls: list[dict] = []

    @property
    def instructions(self) -> list[str]:
        return [c["instruction"] for c in self.calls]

    async def respond(
        self,
        instruction: str,
        history: Sequence[ChatMessage] = (),
        system_prompt: Optional[str] = None,
    ) -> str:
        self.calls.append({
            "instruction": instruction,
            "history": list(history),
            "system_prompt": system_prompt,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def settings():
    """Settings with short timeouts for tests"""
    return Settings(
        step_timeout_seconds=0.5,
        pending_wait_seconds=0.5,
        llm_base_url="http://llm.test/v1",
        llm_api_key="test-key",
    )


@pytest.fixture
def responders():
    """One fake responder per persona"""
    return {
        ResponderId.GENERALIST: FakeResponder("CEO answer"),
        ResponderId.RESEARCHER: FakeResponder("Research findings"),
        ResponderId.DEVELOPER: FakeResponder("Development plan"),
        ResponderId.DESIGNER: FakeResponder("Design recommendations"),
        ResponderId.MARKETER: FakeResponder("Marketing strategy"),
        ResponderId.PRODUCT: FakeResponder("Product roadmap"),
        ResponderId.SALES: FakeResponder("Sales pitch"),
        ResponderId.FINANCE: FakeResponder("Financial model"),
    }


@pytest.fixture
def registry(responders):
    return ResponderRegistry(responders)


@pytest.fixture(autouse=True)
def reset_globals():
    """Fresh settings cache and registry for every test"""
    get_settings.cache_clear()
    set_registry(None)
    yield
    get_settings.cache_clear()
    set_registry(None)
