"""
CEO Desk Models

Responder, classification, plan, outcome and HTTP envelope models.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
import ulid


# =============================================================================
# ID Generation
# =============================================================================

def generate_plan_id() -> str:
    """Generate a new plan ID using ULID"""
    return f"plan-{ulid.new()}"


def generate_request_id() -> str:
    """Generate a new request ID using ULID"""
    return f"req-{ulid.new()}"


# =============================================================================
# Enums
# =============================================================================

class ResponderId(str, Enum):
    """Closed set of personas the engine can address"""
    GENERALIST = "generalist"   # The CEO persona, always present
    DEVELOPER = "developer"
    DESIGNER = "designer"
    MARKETER = "marketer"
    RESEARCHER = "researcher"
    PRODUCT = "product"
    SALES = "sales"
    FINANCE = "finance"


class TaskCategory(str, Enum):
    """What kind of specialist help a message needs"""
    RESEARCH = "research"
    DEVELOPMENT = "development"
    DESIGN = "design"
    MARKETING = "marketing"
    DIRECT = "direct"           # User addressed a persona by name
    NONE = "none"


class OutcomeStatus(str, Enum):
    """Dispatcher outcome"""
    SUCCESS = "success"
    FAILURE = "failure"
    NO_DELEGATION = "no_delegation"


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# =============================================================================
# Conversation
# =============================================================================

class ChatMessage(BaseModel):
    """One conversation turn"""
    role: MessageRole
    content: str = Field(default="")

    @field_validator("content", mode="before")
    @classmethod
    def flatten_content(cls, v: Any) -> str:
        """Accept multi-part content ([{type, text}, ...]) and join the text parts."""
        if v is None:
            return ""
        if isinstance(v, list):
            return "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in v
            )
        return v


# =============================================================================
# Classification & Planning
# =============================================================================

class Classification(BaseModel):
    """Classifier verdict for one message"""
    category: TaskCategory = TaskCategory.NONE
    needs_design_input: bool = False
    query: str = Field(default="", description="Text the plan works on (task part for direct requests)")
    direct_target: Optional[ResponderId] = None


class DelegationStep(BaseModel):
    """A single delegated call within a plan"""
    target: ResponderId
    instruction_template: str = Field(
        ...,
        description="Instruction with {query} and optional {prior_output} placeholders"
    )
    depends_on_prior_output: bool = False
    query: str = Field(..., description="Request content this step works on")

    def render(self, prior_output: Optional[str] = None) -> str:
        """Fill the template; dependent steps embed the previous step's output verbatim."""
        if self.depends_on_prior_output:
            if prior_output is None:
                raise ValueError(f"Step for {self.target.value} requires prior output")
            return self.instruction_template.format(query=self.query, prior_output=prior_output)
        return self.instruction_template.format(query=self.query)


class DelegationPlan(BaseModel):
    """
    Ordered delegation steps for one request.
    Owned by that request only; never shared or persisted.
    """
    plan_id: str = Field(default_factory=generate_plan_id)
    category: TaskCategory = TaskCategory.NONE
    query: str = ""
    steps: list[DelegationStep] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_plan_invariants(self) -> 'DelegationPlan':
        """
        1. One step per responder (no re-entrant delegation)
        2. The first step has nothing to depend on
        3. Generalist is never a delegation target
        """
        targets = [s.target for s in self.steps]
        if len(targets) != len(set(targets)):
            raise ValueError("Plan must not contain more than one step per responder")

        if self.steps and self.steps[0].depends_on_prior_output:
            raise ValueError("First step cannot depend on prior output")

        if ResponderId.GENERALIST in targets:
            raise ValueError("Generalist cannot be a delegation target")

        return self

    @property
    def is_empty(self) -> bool:
        return not self.steps

    @property
    def targets(self) -> list[ResponderId]:
        return [s.target for s in self.steps]


# =============================================================================
# Dispatch Results
# =============================================================================

class DelegationResult(BaseModel):
    """Result of executing one step"""
    step: DelegationStep
    instruction: str
    output: Optional[str] = None
    error: Optional[str] = None
    elapsed_ms: int = Field(default=0, ge=0)
    replayed: bool = Field(default=False, description="Served from the throttle cache")

    @property
    def ok(self) -> bool:
        return self.error is None


class DelegationOutcome(BaseModel):
    """
    Success(results), Failure(error, partial results) or NoDelegation.
    Results are always in plan order.
    """
    status: OutcomeStatus
    results: list[DelegationResult] = Field(default_factory=list)
    error: Optional[str] = None
    failed_step: Optional[DelegationStep] = None

    @classmethod
    def success(cls, results: list[DelegationResult]) -> 'DelegationOutcome':
        return cls(status=OutcomeStatus.SUCCESS, results=results)

    @classmethod
    def failure(
        cls,
        error: str,
        partial_results: list[DelegationResult],
        failed_step: Optional[DelegationStep] = None,
    ) -> 'DelegationOutcome':
        return cls(
            status=OutcomeStatus.FAILURE,
            results=partial_results,
            error=error,
            failed_step=failed_step,
        )

    @classmethod
    def no_delegation(cls) -> 'DelegationOutcome':
        return cls(status=OutcomeStatus.NO_DELEGATION)

    @property
    def successful_results(self) -> list[DelegationResult]:
        return [r for r in self.results if r.ok]


class EngineReply(BaseModel):
    """Everything the engine produced for one request"""
    request_id: str = Field(default_factory=generate_request_id)
    text: str
    category: TaskCategory = TaskCategory.NONE
    plan: Optional[DelegationPlan] = None
    outcome_status: OutcomeStatus = OutcomeStatus.NO_DELEGATION
    duration_ms: int = 0


# =============================================================================
# Request/Response Models
# =============================================================================

class ChatRequest(BaseModel):
    """Inbound chat envelope"""
    messages: list[ChatMessage] = Field(..., min_length=1)
    stream: bool = Field(default=False, description="Respond with server-sent events")
    available_agents: Optional[list[str]] = Field(
        default=None,
        description="Responders enabled for this conversation (all when omitted)"
    )

    def last_user_message(self) -> Optional[ChatMessage]:
        for message in reversed(self.messages):
            if message.role == MessageRole.USER:
                return message
        return None


class ChatResponse(BaseModel):
    """Non-streaming reply; text is mirrored in content/message for client compatibility"""
    text: str
    content: str
    message: str
    request_id: Optional[str] = None

    @classmethod
    def from_text(cls, text: str, request_id: Optional[str] = None) -> 'ChatResponse':
        return cls(text=text, content=text, message=text, request_id=request_id)


class AgentToAgentRequest(BaseModel):
    """One persona asking another for help"""
    requester_id: ResponderId = ResponderId.GENERALIST
    target_id: ResponderId
    prompt: str = Field(..., min_length=1)
    original_query: Optional[str] = None


class AgentToAgentResponse(BaseModel):
    result: str
    raw_response: Optional[str] = None


class PlanPreviewRequest(BaseModel):
    """Dry-run request: classify and plan without dispatching"""
    content: str = Field(..., min_length=1)
    available_agents: Optional[list[str]] = None


class PlanPreviewResponse(BaseModel):
    classification: Classification
    plan: DelegationPlan
