"""Assemble pipeline output into the final scored idea and persist it."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from idea_agent.models.idea import (
    CompetitiveData,
    ExecutionPlan,
    FrameworkFit,
    IdeaSource,
    MonetizationData,
    ProblemGapData,
    ResearchDirection,
    SynthesizedIdea,
    TractionSignals,
    TrendData,
    WhatToBuildData,
)
from idea_agent.orchestration.pipeline import PipelineResult
from idea_agent.orchestration.scoring import apply_total_score, weight_table
from idea_agent.repositories.idea_repository import IdeaRepository

logger = logging.getLogger(__name__)


def merge_tags(tags: Iterable[str], *extra: str) -> List[str]:
    """Normalise tags to lowercase hyphenated form, dropping blanks and duplicates."""

    merged: List[str] = []
    for tag in [*tags, *extra]:
        normalised = "-".join((tag or "").strip().lower().replace("_", " ").split())
        if normalised and normalised != "general" and normalised not in merged:
            merged.append(normalised)
    return merged


@dataclass(slots=True)
class IdeaAssembler:
    """Merge the final draft with every stage's record into a ``SynthesizedIdea``.

    Absent stage records are replaced with canonical empty instances so persisted
    ideas never carry a missing sub-record.
    """

    repository: IdeaRepository
    weights_version: str = "v1"

    def __post_init__(self) -> None:
        weight_table(self.weights_version)

    def assemble(
        self,
        result: PipelineResult,
        *,
        source: IdeaSource,
        request_id: str | None = None,
        user_id: str | None = None,
        prompt: str | None = None,
    ) -> SynthesizedIdea:
        context = result.context
        draft = result.draft
        direction = context.research_direction or ResearchDirection()

        traction = draft.traction_signals.strip()
        return SynthesizedIdea(
            user_id=user_id,
            request_id=request_id,
            source=source,
            prompt=prompt,
            title=draft.title.strip(),
            description=draft.description.strip(),
            executive_summary=draft.executive_summary,
            problem_solution=draft.problem_solution,
            problem_statement=draft.problem_statement,
            narrative_hook=draft.narrative_hook,
            innovation_level=draft.innovation_level,
            time_to_market=draft.time_to_market,
            confidence_score=draft.confidence_score,
            urgency_level=draft.urgency_level,
            execution_complexity=draft.execution_complexity,
            target_keywords=list(draft.target_keywords),
            tags=merge_tags(draft.tags, direction.category),
            scoring=apply_total_score(draft.scoring, self.weights_version),
            score_weights_version=self.weights_version,
            research_direction=direction,
            trend=context.trend or TrendData(),
            problem_gaps=context.problem_gaps or ProblemGapData(),
            competitive=context.competitive or CompetitiveData(),
            monetization=context.monetization or MonetizationData(),
            what_to_build=context.what_to_build or WhatToBuildData(),
            execution_plan=ExecutionPlan(mvp_description=draft.execution_plan.strip()),
            traction_signals=TractionSignals(early_adopter_signals=[traction] if traction else []),
            framework_fit=FrameworkFit(innovation_dilemma_fit=draft.framework_fit.strip()),
            critique=result.critique,
        )

    async def persist(self, idea: SynthesizedIdea) -> str:
        idea_id = await self.repository.save(idea)
        logger.info(
            "Persisted idea %s title=%r total_score=%.1f request=%s",
            idea_id,
            idea.title,
            idea.scoring.total_score,
            idea.request_id,
        )
        return idea_id
