"""Business strategy agents: monetization design and build guidance."""
from __future__ import annotations

from typing import Any

from idea_agent.agents.base import Agent, render
from idea_agent.agents.context import PipelineContext
from idea_agent.models.idea import MonetizationData, WhatToBuildData
from idea_agent.prompts.defaults import MONETIZATION_AGENT, WHAT_TO_BUILD_AGENT


class MonetizationAgent(Agent[MonetizationData]):
    agent_name = MONETIZATION_AGENT
    stage = "monetization"
    result_model = MonetizationData
    requires = ("problem_gaps", "competitive")
    temperature = 0.5
    max_tokens = 2500

    async def build_user_prompt(self, context: PipelineContext, **kwargs: Any) -> str:
        return (
            f"Problems and gaps:\n{render(context.problem_gaps)}\n\n"
            f"Competitive landscape:\n{render(context.competitive)}\n\n"
            "Propose the primary revenue model, pricing, revenue streams whose percentages sum to 100, "
            "key unit economics and financial projections for years 1 to 3. Score businessScore and "
            "confidence from 0 to 10."
        )

    def check(self, result: MonetizationData) -> None:
        if not result.primary_model.strip():
            raise ValueError("primaryModel is required")


class WhatToBuildAgent(Agent[WhatToBuildData]):
    """Describe the first product to ship given every upstream analysis."""

    agent_name = WHAT_TO_BUILD_AGENT
    stage = "technical_planning"
    result_model = WhatToBuildData
    requires = ("trend", "problem_gaps", "competitive", "monetization")
    temperature = 0.6

    async def build_user_prompt(self, context: PipelineContext, **kwargs: Any) -> str:
        return (
            f"Trend:\n{render(context.trend)}\n\n"
            f"Problems and gaps:\n{render(context.problem_gaps)}\n\n"
            f"Competitive landscape:\n{render(context.competitive)}\n\n"
            f"Monetization:\n{render(context.monetization)}\n\n"
            "Describe the platform, the core features of the first version, the user interfaces, the key "
            "integrations and how the pricing strategy should shape what gets built."
        )

    def check(self, result: WhatToBuildData) -> None:
        if not result.platform_description.strip():
            raise ValueError("platformDescription is required")
