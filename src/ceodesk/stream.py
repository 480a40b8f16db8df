"""
Server-sent event helpers.

sse_event(): formats one SSE event.
stream_reply(): replays a finished reply as status, message chunks and done.
"""
import json
from typing import AsyncIterator

from ceodesk.models import EngineReply


def sse_event(event_type: str, data: dict) -> str:
    """Format an SSE event (status, message, done, error)"""
    return f"event: {event_type}\ndata: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"


def chunk_text(text: str, size: int) -> list[str]:
    """Split text into chunks of at most size characters; joining them restores text"""
    if not text:
        return []
    return [text[i:i + size] for i in range(0, len(text), size)]


async def stream_reply(reply: EngineReply, chunk_chars: int = 80) -> AsyncIterator[str]:
    yield sse_event("status", {
        "request_id": reply.request_id,
        "category": reply.category.value,
    })
    for chunk in chunk_text(reply.text, chunk_chars):
        yield sse_event("message", {"content": chunk})
    yield sse_event("done", {
        "request_id": reply.request_id,
        "text": reply.text,
        "finish_reason": "stop",
    })
