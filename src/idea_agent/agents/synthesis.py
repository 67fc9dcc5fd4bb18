"""Idea synthesis ("Trend Architect") and critique agents."""
from __future__ import annotations

from typing import Any

from idea_agent.agents.base import Agent, render
from idea_agent.agents.context import PipelineContext
from idea_agent.models.idea import CritiqueResult, SynthesizedDraft
from idea_agent.prompts.defaults import CRITIC_AGENT, IDEA_SYNTHESIS_AGENT, TREND_ARCHITECT_PROMPT

_SCORING_GUIDE = (
    "Score each scoring metric from 0 to 10: problemSeverity, founderMarketFit, technicalFeasibility, "
    "monetizationPotential, urgencyScore, marketTimingScore, executionDifficulty (10 = hardest), "
    "moatStrength and regulatoryRisk (10 = riskiest). Leave totalScore at 0; it is computed for you. "
    "executionPlan, tractionSignals and frameworkFit are short prose summaries."
)


class IdeaSynthesisAgent(Agent[SynthesizedDraft]):
    """Merge all upstream analysis into one draft idea, optionally refining a rejected one."""

    agent_name = IDEA_SYNTHESIS_AGENT
    stage = "idea_synthesis"
    prompt_key = TREND_ARCHITECT_PROMPT
    result_model = SynthesizedDraft
    requires = ("research_direction", "trend", "problem_gaps", "competitive", "monetization", "what_to_build")
    temperature = 0.8
    max_tokens = 3000

    async def build_user_prompt(
        self,
        context: PipelineContext,
        *,
        refinement_directive: str | None = None,
        **kwargs: Any,
    ) -> str:
        parts = [
            f"Research direction:\n{render(context.research_direction)}",
            f"Trend:\n{render(context.trend)}",
            f"Problems and gaps:\n{render(context.problem_gaps)}",
            f"Competitive landscape:\n{render(context.competitive)}",
            f"Monetization:\n{render(context.monetization)}",
            f"What to build:\n{render(context.what_to_build)}",
        ]
        if context.user_prompt:
            parts.append(f"The user asked about: {context.user_prompt}")
        if refinement_directive:
            parts.append(f"Previous draft:\n{render(context.latest_draft)}")
            parts.append(
                "A critic rejected the previous draft. Rewrite the idea so that it resolves this directive "
                f"while keeping what already worked:\n{refinement_directive}"
            )
        parts.append(_SCORING_GUIDE)
        return "\n\n".join(parts)

    def check(self, result: SynthesizedDraft) -> None:
        if not result.title.strip() or not result.description.strip():
            raise ValueError("title and description are required")


class CriticAgent(Agent[CritiqueResult]):
    """Evaluate the latest draft against the five-dimension rubric."""

    agent_name = CRITIC_AGENT
    stage = "critical_review"
    result_model = CritiqueResult
    requires = ("trend", "competitive", "drafts")
    temperature = 0.2
    max_tokens = 800

    async def build_user_prompt(self, context: PipelineContext, **kwargs: Any) -> str:
        competition = context.competitive.competition if context.competitive else None
        concentration = competition.market_concentration_level.value if competition else "UNKNOWN"
        return (
            f"Draft idea:\n{render(context.latest_draft)}\n\n"
            f"Research theme: {context.trend.title if context.trend else 'unknown'}\n"
            f"Market concentration: {concentration}\n\n"
            "Score marketOpportunity, problemSolutionFit, executionFeasibility, competitiveAdvantage and "
            "businessModelViability from 0 to 10, list the main weaknesses and set approved. If approved is "
            "false, refinementDirective must state the single most important change to make."
        )
