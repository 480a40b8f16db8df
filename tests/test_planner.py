"""
Tests for CEO Desk planner.
"""
import pytest

from ceodesk.classifier import analyze
from ceodesk.config import Settings
from ceodesk.errors import PlanningError
from ceodesk.models import ResponderId, TaskCategory
from ceodesk.planner import (
    DEVELOPMENT_WITH_DESIGN_TEMPLATE,
    RESEARCH_TEMPLATE,
    Planner,
    empty_plan,
)


@pytest.fixture
def planner(settings):
    return Planner(settings)


class TestPlanShapes:
    """Test the plan built for each category"""

    def test_research_single_step(self, planner):
        plan = planner.plan(TaskCategory.RESEARCH, "research the market for electric bikes")

        assert plan.targets == [ResponderId.RESEARCHER]
        assert plan.steps[0].instruction_template == RESEARCH_TEMPLATE
        assert plan.steps[0].render() == (
            "Conduct research on the following topic and provide a comprehensive "
            "analysis: the market for electric bikes"
        )

    def test_development_with_design_input(self, planner):
        """Design always precedes development"""
        plan = planner.plan(
            TaskCategory.DEVELOPMENT,
            "build a landing page with a modern design",
            needs_design_input=True,
        )

        assert plan.targets == [ResponderId.DESIGNER, ResponderId.DEVELOPER]
        assert not plan.steps[0].depends_on_prior_output
        assert plan.steps[1].depends_on_prior_output
        assert plan.steps[1].instruction_template == DEVELOPMENT_WITH_DESIGN_TEMPLATE

    def test_development_without_design_input(self, planner):
        plan = planner.plan(TaskCategory.DEVELOPMENT, "develop a checkout system")
        assert plan.targets == [ResponderId.DEVELOPER]

    def test_design(self, planner):
        plan = planner.plan(TaskCategory.DESIGN, "a mockup for the pricing page")
        assert plan.targets == [ResponderId.DESIGNER]

    def test_marketing(self, planner):
        plan = planner.plan(TaskCategory.MARKETING, "promote the spring sale")
        assert plan.targets == [ResponderId.MARKETER]
        assert "promote the spring sale" in plan.steps[0].render()

    def test_direct(self, planner):
        plan = planner.plan(
            TaskCategory.DIRECT,
            "draft a tagline",
            direct_target=ResponderId.SALES,
        )
        assert plan.targets == [ResponderId.SALES]
        assert plan.steps[0].render().startswith("I need you to draft a tagline")

    def test_direct_without_target_fails(self, planner):
        with pytest.raises(PlanningError):
            planner.plan(TaskCategory.DIRECT, "draft a tagline")

    def test_none_is_empty(self, planner):
        plan = planner.plan(TaskCategory.NONE, "hello")
        assert plan.is_empty
        assert plan.query == "hello"

    def test_plan_for_classification(self, planner):
        plan = planner.plan_for(analyze("build a landing page with a modern design"))
        assert plan.targets == [ResponderId.DESIGNER, ResponderId.DEVELOPER]

    def test_design_then_build_conjunction(self, planner):
        """"design X and build it" still gets design input before development"""
        classification = analyze("design a landing page and build it")

        assert classification.category == TaskCategory.DEVELOPMENT
        assert classification.needs_design_input
        assert planner.plan_for(classification).targets == [ResponderId.DESIGNER, ResponderId.DEVELOPER]


class TestEnabledResponders:
    """Only enabled responders are delegated to"""

    def test_disabled_target_gives_empty_plan(self, planner):
        plan = planner.plan(
            TaskCategory.RESEARCH,
            "research electric bikes",
            enabled={ResponderId.GENERALIST},
        )
        assert plan.is_empty

    def test_disabled_designer_drops_design_step(self, planner):
        plan = planner.plan(
            TaskCategory.DEVELOPMENT,
            "build a landing page with a modern design",
            needs_design_input=True,
            enabled={ResponderId.GENERALIST, ResponderId.DEVELOPER},
        )
        assert plan.targets == [ResponderId.DEVELOPER]
        assert not plan.steps[0].depends_on_prior_output

    def test_disabled_developer_drops_design_step_too(self, planner):
        plan = planner.plan(
            TaskCategory.DEVELOPMENT,
            "build a landing page with a modern design",
            needs_design_input=True,
            enabled={ResponderId.GENERALIST, ResponderId.DESIGNER},
        )
        assert plan.is_empty


class TestPlanLimits:
    """Test max plan steps"""

    def test_exceeding_max_steps_fails(self):
        planner = Planner(Settings(max_plan_steps=1))
        with pytest.raises(PlanningError, match="exceeds maximum"):
            planner.plan(
                TaskCategory.DEVELOPMENT,
                "build a landing page with a modern design",
                needs_design_input=True,
            )

    def test_empty_plan_helper(self):
        plan = empty_plan("  hi  ")
        assert plan.is_empty
        assert plan.category == TaskCategory.NONE
        assert plan.query == "hi"
