"""
CEO Desk - Transparent Delegation Engine

A CEO persona answers every chat message. Behind the scenes it classifies
the request, delegates to specialist personas (research, development,
design, marketing) and folds their work into one reply.

CRITICAL INVARIANT: The user always gets a coherent answer from the CEO,
even when every specialist fails.
"""

__version__ = "0.1.0"

from ceodesk.models import (
    ChatMessage,
    Classification,
    DelegationOutcome,
    DelegationPlan,
    DelegationResult,
    DelegationStep,
    EngineReply,
    OutcomeStatus,
    ResponderId,
    TaskCategory,
)
from ceodesk.engine import DelegationEngine, build_engine
from ceodesk.registry import ResponderRegistry
from ceodesk.throttle import ThrottleCache

__all__ = [
    "ChatMessage",
    "Classification",
    "DelegationOutcome",
    "DelegationPlan",
    "DelegationResult",
    "DelegationStep",
    "EngineReply",
    "OutcomeStatus",
    "ResponderId",
    "TaskCategory",
    "DelegationEngine",
    "build_engine",
    "ResponderRegistry",
    "ThrottleCache",
]
