"""
CEO Desk REST API

FastAPI routes for chatting with the CEO, talking to a single persona,
persona-to-persona requests and plan previews.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse

from ceodesk import __version__
from ceodesk.classifier import describe_rules
from ceodesk.config import get_settings
from ceodesk.engine import DelegationEngine
from ceodesk.errors import ResponderError
from ceodesk.models import (
    AgentToAgentRequest,
    AgentToAgentResponse,
    ChatRequest,
    ChatResponse,
    PlanPreviewRequest,
    PlanPreviewResponse,
    ResponderId,
)
from ceodesk.personas import get_persona, parse_responder_ids, system_prompt_for
from ceodesk.stream import stream_reply
from ceodesk.synthesizer import split_history

logger = logging.getLogger(__name__)

router = APIRouter()

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, Accept, X-Requested-With",
    "Access-Control-Max-Age": "86400",
}

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache",
}


# =============================================================================
# Dependencies
# =============================================================================

def get_engine(request: Request) -> DelegationEngine:
    """Engine created in the application lifespan"""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "not_ready", "message": "Service is starting up"}
        )
    return engine


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "invalid_request", "message": message}
    )


def _wants_stream(request: Request, body_stream: bool) -> bool:
    return body_stream or "text/event-stream" in request.headers.get("accept", "")


# =============================================================================
# Health Endpoints
# =============================================================================

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": __version__}


@router.get("/")
async def service_info(engine: DelegationEngine = Depends(get_engine)):
    """Service information and capabilities"""
    settings = get_settings()

    return {
        "service": "ceodesk",
        "version": __version__,
        "description": "CEO persona with transparent delegation to specialist personas",
        "instance_id": settings.instance_id,
        "capabilities": [
            "chat",
            "direct_persona_chat",
            "agent_to_agent",
            "plan_preview",
        ],
        "classification_rules": describe_rules(),
        "registry_stats": engine.registry.get_stats(),
        "throttle_stats": engine.throttle.get_stats(),
    }


# =============================================================================
# CEO Chat
# =============================================================================

@router.post("/api/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    request: Request,
    engine: DelegationEngine = Depends(get_engine),
):
    """
    Answer the last user message, delegating to specialists when useful.

    Returns JSON by default, or server-sent events when the body sets
    stream=true or the client accepts text/event-stream. Both carry the
    same final text.
    """
    if body.last_user_message() is None:
        raise _bad_request("No user message found")

    enabled = parse_responder_ids(body.available_agents)

    try:
        reply = await engine.handle(body.messages, enabled=enabled)
    except ValueError as e:
        raise _bad_request(str(e))

    if _wants_stream(request, body.stream):
        settings = get_settings()
        return StreamingResponse(
            stream_reply(reply, settings.stream_chunk_chars),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache, no-transform",
                "X-Accel-Buffering": "no",
            },
        )

    return Response(
        content=ChatResponse.from_text(reply.text, reply.request_id).model_dump_json(),
        media_type="application/json",
        headers=NO_STORE_HEADERS,
    )


@router.options("/api/chat")
async def chat_preflight():
    """CORS preflight"""
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_PREFLIGHT_HEADERS)


@router.get("/api/chat")
async def chat_usage():
    """Usage hint for browsers hitting the endpoint directly"""
    return {
        "message": "This API endpoint requires a POST request with chat messages.",
        "status": "ok",
    }


# =============================================================================
# Direct Persona Chat
# =============================================================================

def _resolve_responder(responder_id: str) -> ResponderId:
    enabled = parse_responder_ids([responder_id])
    matches = [r for r in enabled if r != ResponderId.GENERALIST]
    if matches:
        return matches[0]
    if responder_id.strip().lower() in ("ceo", "generalist", "ceoagent"):
        return ResponderId.GENERALIST
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "not_found", "message": "Responder not found"}
    )


@router.post("/api/chat/{responder_id}", response_model=ChatResponse)
async def chat_with_responder(
    responder_id: str,
    body: ChatRequest,
    engine: DelegationEngine = Depends(get_engine),
):
    """Talk to one persona directly, without delegation"""
    target = _resolve_responder(responder_id)
    history, last_user = split_history(body.messages)
    if last_user is None:
        raise _bad_request("No user message found")

    responder = engine.registry.get(target)
    enabled = parse_responder_ids(body.available_agents)

    try:
        text = await responder.respond(
            last_user.content,
            history=history,
            system_prompt=system_prompt_for(target, enabled),
        )
    except ResponderError as e:
        logger.warning(
            f"Direct persona chat failed",
            extra={"responder_id": target.value, "error_type": type(e).__name__}
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "responder_unavailable", "message": "An error occurred processing your request"}
        )

    return Response(
        content=ChatResponse.from_text(text).model_dump_json(),
        media_type="application/json",
        headers={**NO_STORE_HEADERS, "Access-Control-Allow-Origin": "*"},
    )


@router.get("/api/chat/{responder_id}")
async def responder_usage(responder_id: str):
    """Usage hint for a persona endpoint"""
    target = _resolve_responder(responder_id)
    persona = get_persona(target)
    return {
        "message": f"This API endpoint requires a POST request with chat messages for the {target.value} agent.",
        "status": "ok",
        "agent": target.value,
        "name": persona.first_name,
        "role": persona.role,
    }


# =============================================================================
# Persona-to-Persona
# =============================================================================

@router.post("/api/agent-to-agent", response_model=AgentToAgentResponse)
async def agent_to_agent(
    body: AgentToAgentRequest,
    engine: DelegationEngine = Depends(get_engine),
):
    """
    One persona asks another for help.

    With original_query set, the requester integrates the answer into its own
    reply and the target's raw text is returned alongside.
    """
    try:
        result, raw = await engine.delegate_once(
            body.requester_id,
            body.target_id,
            body.prompt,
            original_query=body.original_query,
        )
    except ResponderError as e:
        logger.warning(
            f"Agent-to-agent request failed",
            extra={"target_id": body.target_id.value, "error_type": type(e).__name__}
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "responder_unavailable",
                "message": "An error occurred during agent-to-agent communication",
            }
        )

    return AgentToAgentResponse(result=result, raw_response=raw)


# =============================================================================
# Planning Preview
# =============================================================================

@router.post("/v1/plan", response_model=PlanPreviewResponse)
async def preview_plan(
    body: PlanPreviewRequest,
    engine: DelegationEngine = Depends(get_engine),
):
    """Show how a message would be classified and delegated, without calling anyone"""
    enabled: Optional[set] = parse_responder_ids(body.available_agents)
    classification = engine.classify(body.content)
    plan = engine.plan(classification, body.content, enabled)
    return PlanPreviewResponse(classification=classification, plan=plan)
