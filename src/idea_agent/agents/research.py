"""Market research agents: trend discovery, problem gaps and competition."""
from __future__ import annotations

from typing import Any

from idea_agent.agents.base import Agent, render
from idea_agent.agents.context import PipelineContext
from idea_agent.models.idea import CompetitiveData, ProblemGapData, TrendData
from idea_agent.prompts.defaults import (
    COMPETITIVE_INTELLIGENCE_AGENT,
    PROBLEM_GAP_AGENT,
    TREND_RESEARCH_AGENT,
    USER_PROMPT,
)


class TrendResearchAgent(Agent[TrendData]):
    """Find the single most promising trend within the research direction."""

    agent_name = TREND_RESEARCH_AGENT
    stage = "trend_research"
    result_model = TrendData
    requires = ("research_direction",)
    temperature = 0.8
    max_tokens = 1500

    async def build_user_prompt(self, context: PipelineContext, **kwargs: Any) -> str:
        task = await self._prompts.resolve(self.agent_name, USER_PROMPT)
        direction = context.research_direction
        parts = [task, f"Research direction:\n{render(direction)}"]
        if context.user_prompt:
            parts.append(f"The user asked about: {context.user_prompt}")
        parts.append(
            "Rate trendStrength and timingUrgency from 0 to 10 and choose catalystType from "
            "TECHNOLOGY_BREAKTHROUGH, REGULATORY_CHANGE, MARKET_SHIFT, SOCIAL_TREND or ECONOMIC_FACTOR."
        )
        return "\n\n".join(parts)

    def check(self, result: TrendData) -> None:
        if not result.title.strip() or not result.description.strip():
            raise ValueError("trend title and description are required")


class ProblemGapAgent(Agent[ProblemGapData]):
    """Turn a trend into concrete problems and the market gaps around them."""

    agent_name = PROBLEM_GAP_AGENT
    stage = "problem_analysis"
    result_model = ProblemGapData
    requires = ("trend",)
    temperature = 0.7

    async def build_user_prompt(self, context: PipelineContext, **kwargs: Any) -> str:
        return (
            f"Trend under analysis:\n{render(context.trend)}\n\n"
            "List three to five specific problems this trend creates and the market gaps that remain open. "
            "Each gap needs a title, description, impact, target audience and opportunity."
        )

    def check(self, result: ProblemGapData) -> None:
        if not result.problems and not result.gaps:
            raise ValueError("at least one problem or gap is required")


class CompetitiveIntelligenceAgent(Agent[CompetitiveData]):
    """Map the competitive landscape and define a defensible positioning."""

    agent_name = COMPETITIVE_INTELLIGENCE_AGENT
    stage = "competitive_analysis"
    result_model = CompetitiveData
    requires = ("trend", "problem_gaps")
    temperature = 0.6
    max_tokens = 2500

    async def build_user_prompt(self, context: PipelineContext, **kwargs: Any) -> str:
        return (
            f"Trend:\n{render(context.trend)}\n\n"
            f"Problems and gaps:\n{render(context.problem_gaps)}\n\n"
            "Assess marketConcentrationLevel as LOW, MEDIUM or HIGH with a justification, name direct and "
            "indirect competitors, where they fail, and score competitivePositioningScore from 0 to 10."
        )

    def check(self, result: CompetitiveData) -> None:
        if not result.positioning.value_proposition.strip():
            raise ValueError("positioning.valueProposition is required")
