"""
CEO Desk Responder Registry

Fixed mapping from responder id to the callable persona that answers for it.
"""
import logging
from typing import Any, Mapping, Optional, Protocol, Sequence

from ceodesk.config import get_settings
from ceodesk.errors import RegistryLookupError, ResponderError
from ceodesk.llm import LLMBackend
from ceodesk.models import ChatMessage, ResponderId
from ceodesk.personas import system_prompt_for

logger = logging.getLogger(__name__)


class SupportsRespond(Protocol):
    """Anything the registry can hand to the dispatcher or synthesizer"""

    async def respond(
        self,
        instruction: str,
        history: Sequence[ChatMessage] = (),
        system_prompt: Optional[str] = None,
    ) -> str:
        ...


class Responder:
    """
    A persona bound to the language-model backend.

    Stateless between calls; raises ResponderError subclasses on failure.
    """

    def __init__(self, responder_id: ResponderId, backend: LLMBackend):
        self.responder_id = responder_id
        self.backend = backend

    async def respond(
        self,
        instruction: str,
        history: Sequence[ChatMessage] = (),
        system_prompt: Optional[str] = None,
    ) -> str:
        prompt = system_prompt if system_prompt is not None else system_prompt_for(self.responder_id)
        try:
            return await self.backend.complete(prompt, instruction, history)
        except ResponderError as e:
            if e.responder_id is None:
                e.responder_id = self.responder_id.value
            raise

    def __repr__(self) -> str:
        return f"Responder({self.responder_id.value})"


class ResponderRegistry:
    """
    Registry of responders, fixed at startup.

    Lookups for ids outside the bound set are programming errors and raise
    RegistryLookupError; nothing is ever substituted silently.
    """

    def __init__(self, responders: Mapping[ResponderId, SupportsRespond]):
        self._responders: dict[ResponderId, SupportsRespond] = dict(responders)
        self._calls: dict[ResponderId, int] = {r: 0 for r in self._responders}

    @classmethod
    def from_backend(
        cls,
        backend: LLMBackend,
        responder_ids: Optional[Sequence[ResponderId]] = None,
    ) -> 'ResponderRegistry':
        """Bind every persona (or the given subset) to one backend"""
        ids = list(responder_ids) if responder_ids is not None else list(ResponderId)
        if ResponderId.GENERALIST not in ids:
            ids.append(ResponderId.GENERALIST)
        return cls({r: Responder(r, backend) for r in ids})

    def get(self, responder_id: Any) -> SupportsRespond:
        """Get a responder by ID"""
        try:
            key = ResponderId(responder_id)
        except ValueError:
            logger.error(f"Unknown responder id", extra={"responder_id": str(responder_id)})
            raise RegistryLookupError(str(responder_id))

        responder = self._responders.get(key)
        if responder is None:
            logger.error(f"Responder not bound", extra={"responder_id": key.value})
            raise RegistryLookupError(key.value)

        self._calls[key] = self._calls.get(key, 0) + 1
        return responder

    def has(self, responder_id: ResponderId) -> bool:
        return responder_id in self._responders

    def list_ids(self) -> list[ResponderId]:
        """List all bound responder ids"""
        return list(self._responders)

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics"""
        return {
            "total_responders": len(self._responders),
            "responders": [r.value for r in self._responders],
            "lookups": {r.value: count for r, count in self._calls.items()},
        }


# Global registry instance
_registry: Optional[ResponderRegistry] = None
_backend: Optional[LLMBackend] = None


def get_registry() -> ResponderRegistry:
    """Get the global responder registry"""
    global _registry, _backend
    if _registry is None:
        _backend = LLMBackend(get_settings())
        _registry = ResponderRegistry.from_backend(_backend)
    return _registry


def set_registry(registry: Optional[ResponderRegistry]):
    """Replace the global registry (tests and embedding applications)"""
    global _registry
    _registry = registry


async def init_registry() -> ResponderRegistry:
    """Initialize the global responder registry"""
    return get_registry()


async def close_registry():
    """Release the shared backend client and forget the registry built on it"""
    global _registry, _backend
    if _backend is not None:
        await _backend.aclose()
    _backend = None
    _registry = None
