"""
CEO Desk Language-Model Backend

Thin client for an OpenAI-compatible chat completions API. Every responder
reaches the model through here as an opaque (system_prompt, messages) -> text call.
"""
import logging
import time
from typing import Optional, Sequence

import httpx

from ceodesk.config import Settings, get_settings
from ceodesk.errors import ResponderBackendError, ResponderTimeout
from ceodesk.models import ChatMessage, MessageRole

logger = logging.getLogger(__name__)


class LLMBackend:
    """
    Chat completions client with fixed generation parameters.

    No retries here: a failed call surfaces as a ResponderError and the
    dispatcher/synthesizer decide what happens next.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.llm_base_url,
                timeout=self.settings.llm_request_timeout_seconds,
            )
        return self._client

    async def aclose(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_messages(
        self,
        system_prompt: str,
        history: Sequence[ChatMessage],
        instruction: str,
    ) -> list[dict[str, str]]:
        """System prompt + trailing window of the conversation, ending with the instruction"""
        conversation = [
            {"role": m.role.value, "content": m.content}
            for m in history
            if m.role != MessageRole.SYSTEM
        ]
        conversation.append({"role": MessageRole.USER.value, "content": instruction})
        window = conversation[-self.settings.llm_history_window:]

        messages = []
        if system_prompt:
            messages.append({"role": MessageRole.SYSTEM.value, "content": system_prompt})
        messages.extend(window)
        return messages

    async def complete(
        self,
        system_prompt: str,
        instruction: str,
        history: Sequence[ChatMessage] = (),
    ) -> str:
        """Run one completion and return the generated text"""
        payload = {
            "model": self.settings.llm_model,
            "messages": self.build_messages(system_prompt, history, instruction),
            "temperature": self.settings.llm_temperature,
            "max_tokens": self.settings.llm_max_tokens,
        }
        headers = {}
        if self.settings.llm_api_key:
            headers["Authorization"] = f"Bearer {self.settings.llm_api_key}"

        start_time = time.time()
        try:
            response = await self.client.post("/chat/completions", json=payload, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ResponderTimeout(f"Backend request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Backend returned an error status",
                extra={
                    "status_code": e.response.status_code,
                    "model": self.settings.llm_model,
                }
            )
            raise ResponderBackendError(
                f"Backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise ResponderBackendError(f"Backend request failed: {e}") from e

        text = self._extract_text(response)

        logger.debug(
            f"Backend completion finished",
            extra={
                "model": self.settings.llm_model,
                "duration_ms": int((time.time() - start_time) * 1000),
                "chars": len(text),
            }
        )
        return text

    def _extract_text(self, response: httpx.Response) -> str:
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ResponderBackendError("Malformed completion response") from e

        if not isinstance(content, str) or not content.strip():
            raise ResponderBackendError("Completion response contained no text")
        return content
