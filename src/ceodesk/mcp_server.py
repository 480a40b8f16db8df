"""
CEO Desk MCP Server

MCP (Model Context Protocol) interface for CEO Desk.
Provides tools for chatting with the CEO and previewing delegation.
"""
import asyncio
import logging
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from ceodesk import __version__
from ceodesk.classifier import describe_rules
from ceodesk.config import get_settings
from ceodesk.engine import DelegationEngine, build_engine
from ceodesk.models import ChatMessage, MessageRole
from ceodesk.personas import PERSONAS, parse_responder_ids
from ceodesk.registry import get_registry, init_registry

logger = logging.getLogger(__name__)

# Initialize MCP server
mcp = FastMCP("ceodesk")

_engine: Optional[DelegationEngine] = None


def get_engine() -> DelegationEngine:
    """Engine shared by every tool call in this process"""
    global _engine
    if _engine is None:
        _engine = build_engine(get_registry(), get_settings())
    return _engine


# =============================================================================
# MCP Tools
# =============================================================================

@mcp.tool()
async def ask_ceo(
    message: str,
    history: list[dict[str, str]] = None,
    available_agents: list[str] = None,
) -> dict[str, Any]:
    """
    Ask the CEO a question.

    The CEO may consult specialists (research, development, design,
    marketing) behind the scenes and answers with a single reply.

    Args:
        message: The user message to answer
        history: Earlier turns as {"role", "content"} dicts
        available_agents: Agent ids enabled for this conversation (default: all)

    Returns:
        Reply text with the category and outcome of the delegation
    """
    messages = [ChatMessage(**m) for m in (history or [])]
    messages.append(ChatMessage(role=MessageRole.USER, content=message))

    reply = await get_engine().handle(messages, enabled=parse_responder_ids(available_agents))

    return {
        "request_id": reply.request_id,
        "text": reply.text,
        "category": reply.category.value,
        "outcome": reply.outcome_status.value,
        "duration_ms": reply.duration_ms,
    }


@mcp.tool()
async def analyze_message(message: str) -> dict[str, Any]:
    """
    Classify a message without planning or dispatching.

    Args:
        message: The user message to classify

    Returns:
        Category, design-input flag, extracted query and direct target
    """
    classification = get_engine().classify(message)
    return classification.model_dump(mode="json")


@mcp.tool()
async def plan_delegation(message: str, available_agents: list[str] = None) -> dict[str, Any]:
    """
    Show the delegation plan for a message without calling any responder.

    Args:
        message: The user message to plan for
        available_agents: Agent ids enabled for this conversation (default: all)

    Returns:
        Classification and the ordered delegation steps
    """
    engine = get_engine()
    classification = engine.classify(message)
    plan = engine.plan(classification, message, parse_responder_ids(available_agents))

    return {
        "classification": classification.model_dump(mode="json"),
        "plan_id": plan.plan_id,
        "targets": [t.value for t in plan.targets],
        "steps": [s.model_dump(mode="json") for s in plan.steps],
    }


@mcp.tool()
async def list_responders() -> dict[str, Any]:
    """
    List the personas that can answer or be delegated to.

    Returns:
        Persona ids, names and roles
    """
    registry = get_registry()
    return {
        "responders": [
            {
                "responder_id": persona.responder_id.value,
                "name": persona.first_name,
                "role": persona.role,
                "summary": persona.summary,
                "registered": registry.has(persona.responder_id),
            }
            for persona in PERSONAS.values()
        ],
    }


@mcp.tool()
async def ceodesk_bootstrap() -> dict[str, Any]:
    """
    Initialize session with CEO Desk and get configuration info.

    Returns:
        Service configuration, classification rules and available tools
    """
    settings = get_settings()
    engine = get_engine()

    return {
        "service": "ceodesk",
        "version": __version__,
        "instance_id": settings.instance_id,
        "config": {
            "llm_model": settings.llm_model,
            "max_plan_steps": settings.max_plan_steps,
            "step_timeout_seconds": settings.step_timeout_seconds,
            "throttle_enabled": settings.throttle_enabled,
            "throttle_window_seconds": settings.throttle_window_seconds,
        },
        "classification_rules": describe_rules(),
        "registry_stats": engine.registry.get_stats(),
        "throttle_stats": engine.throttle.get_stats(),
        "available_tools": [
            "ask_ceo",
            "analyze_message",
            "plan_delegation",
            "list_responders",
        ],
    }


# =============================================================================
# Main Entry Point
# =============================================================================

async def main():
    """Run the MCP server"""
    await init_registry()

    logger.info("Starting CEO Desk MCP server")

    await mcp.run_stdio_async()


def run():
    """Console script entry point"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
