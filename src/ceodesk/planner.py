"""
CEO Desk Delegation Planning

Turns a classification into an ordered plan of delegated calls.
Plans hold 0, 1 or 2 steps; design always precedes development.
"""
import logging
from typing import Iterable, Optional

from ceodesk.config import Settings, get_settings
from ceodesk.classifier import clean_query
from ceodesk.errors import PlanningError
from ceodesk.models import (
    Classification,
    DelegationPlan,
    DelegationStep,
    ResponderId,
    TaskCategory,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Instruction Templates
# =============================================================================

RESEARCH_TEMPLATE = (
    "Conduct research on the following topic and provide a comprehensive analysis: {query}"
)

DESIGN_TEMPLATE = (
    "The CEO has asked to design: {query}. "
    "Please provide detailed design recommendations and visual concepts."
)

DEVELOPMENT_TEMPLATE = (
    "The CEO has asked you to: {query}. "
    "Please provide a detailed plan and initial code for this project."
)

DEVELOPMENT_WITH_DESIGN_TEMPLATE = (
    "The CEO has asked you to: {query}\n\n"
    "The Design team has provided these recommendations: {prior_output}\n\n"
    "Please implement this design with appropriate code, and provide a detailed plan "
    "and initial code for this project."
)

MARKETING_TEMPLATE = (
    "The CEO has asked you to: {query}. "
    "Please provide a comprehensive marketing strategy and content plan."
)

DIRECT_TEMPLATE = (
    "I need you to {query}\n\n"
    "Complete this task directly without explanations or mentioning our communication. "
    "Provide only the results as if you're directly responding to the user's request."
)


# =============================================================================
# Planner Class
# =============================================================================

class Planner:
    """
    Builds delegation plans from classified messages.

    Planner never calls responders - it only produces plans.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def plan(
        self,
        category: TaskCategory,
        text: str,
        needs_design_input: bool = False,
        direct_target: Optional[ResponderId] = None,
        enabled: Optional[Iterable[ResponderId]] = None,
    ) -> DelegationPlan:
        """
        Build the plan for one message.

        enabled restricts which responders may be delegated to; None means all.
        """
        enabled_set = None if enabled is None else set(enabled)

        def can_delegate(target: ResponderId) -> bool:
            return enabled_set is None or target in enabled_set

        text = text.strip()
        steps: list[DelegationStep] = []

        if category == TaskCategory.RESEARCH:
            query = clean_query(text) or text
            if can_delegate(ResponderId.RESEARCHER):
                steps.append(DelegationStep(
                    target=ResponderId.RESEARCHER,
                    instruction_template=RESEARCH_TEMPLATE,
                    query=query,
                ))
            text = query

        elif category == TaskCategory.DEVELOPMENT:
            if can_delegate(ResponderId.DEVELOPER):
                if needs_design_input and can_delegate(ResponderId.DESIGNER):
                    steps.append(DelegationStep(
                        target=ResponderId.DESIGNER,
                        instruction_template=DESIGN_TEMPLATE,
                        query=text,
                    ))
                    steps.append(DelegationStep(
                        target=ResponderId.DEVELOPER,
                        instruction_template=DEVELOPMENT_WITH_DESIGN_TEMPLATE,
                        depends_on_prior_output=True,
                        query=text,
                    ))
                else:
                    steps.append(DelegationStep(
                        target=ResponderId.DEVELOPER,
                        instruction_template=DEVELOPMENT_TEMPLATE,
                        query=text,
                    ))

        elif category == TaskCategory.DESIGN:
            if can_delegate(ResponderId.DESIGNER):
                steps.append(DelegationStep(
                    target=ResponderId.DESIGNER,
                    instruction_template=DESIGN_TEMPLATE,
                    query=text,
                ))

        elif category == TaskCategory.MARKETING:
            if can_delegate(ResponderId.MARKETER):
                steps.append(DelegationStep(
                    target=ResponderId.MARKETER,
                    instruction_template=MARKETING_TEMPLATE,
                    query=text,
                ))

        elif category == TaskCategory.DIRECT:
            if direct_target is None:
                raise PlanningError("Direct request without a target responder")
            if direct_target != ResponderId.GENERALIST and can_delegate(direct_target):
                steps.append(DelegationStep(
                    target=direct_target,
                    instruction_template=DIRECT_TEMPLATE,
                    query=text,
                ))

        if len(steps) > self.settings.max_plan_steps:
            raise PlanningError(
                f"Plan has {len(steps)} steps, exceeds maximum {self.settings.max_plan_steps}"
            )

        plan = DelegationPlan(category=category, query=text, steps=steps)

        logger.info(
            f"Delegation planned",
            extra={
                "plan_id": plan.plan_id,
                "category": category.value,
                "targets": [t.value for t in plan.targets],
            }
        )
        return plan

    def plan_for(
        self,
        classification: Classification,
        enabled: Optional[Iterable[ResponderId]] = None,
    ) -> DelegationPlan:
        """Plan from a classifier verdict"""
        return self.plan(
            classification.category,
            classification.query,
            needs_design_input=classification.needs_design_input,
            direct_target=classification.direct_target,
            enabled=enabled,
        )


def empty_plan(text: str = "") -> DelegationPlan:
    """Plan with no steps: the generalist answers on its own"""
    return DelegationPlan(category=TaskCategory.NONE, query=text.strip(), steps=[])
