"""Tests for total-score computation and idea assembly."""
from __future__ import annotations

import pytest

from idea_agent.agents.context import PipelineContext
from idea_agent.models.idea import (
    CritiqueMetadata,
    IdeaScoring,
    IdeaSource,
    ResearchDirection,
    SynthesizedDraft,
    TrendData,
)
from idea_agent.orchestration.assembler import IdeaAssembler, merge_tags
from idea_agent.orchestration.pipeline import PipelineResult
from idea_agent.orchestration.scoring import compute_total_score, metric_contributions, weight_table
from idea_agent.repositories.idea_repository import InMemoryIdeaRepository

from stubs import EXPECTED_V1_TOTAL, payload


def _scoring(**values: float) -> IdeaScoring:
    return IdeaScoring.model_validate(values)


def test_equal_weights_average_oriented_metrics() -> None:
    scoring = IdeaScoring.model_validate(payload("idea_synthesis")["scoring"])

    assert compute_total_score(scoring, "v1") == EXPECTED_V1_TOTAL


def test_difficulty_and_risk_are_inverted() -> None:
    easy = _scoring(execution_difficulty=0, regulatory_risk=0)
    hard = _scoring(execution_difficulty=10, regulatory_risk=10)

    assert metric_contributions(easy)["execution_difficulty"] == 10
    assert metric_contributions(hard)["regulatory_risk"] == 0
    assert compute_total_score(easy) > compute_total_score(hard)


def test_total_score_bounds() -> None:
    best = _scoring(
        problem_severity=10,
        founder_market_fit=10,
        technical_feasibility=10,
        monetization_potential=10,
        urgency_score=10,
        market_timing_score=10,
        execution_difficulty=0,
        moat_strength=10,
        regulatory_risk=0,
    )
    worst = _scoring(execution_difficulty=10, regulatory_risk=10)

    assert compute_total_score(best, "v2") == 100.0
    assert compute_total_score(worst, "v2") == 0.0


def test_metric_values_are_clamped_on_input() -> None:
    scoring = _scoring(problem_severity=14, moat_strength=-3, total_score=250)

    assert scoring.problem_severity == 10
    assert scoring.moat_strength == 0
    assert scoring.total_score == 100


def test_unknown_weight_version_is_rejected() -> None:
    with pytest.raises(ValueError):
        weight_table("v99")
    with pytest.raises(ValueError):
        IdeaAssembler(repository=InMemoryIdeaRepository(), weights_version="v99")


def test_merge_tags_normalises_and_dedupes() -> None:
    assert merge_tags(["Fintech", "gig economy", " ", "general"], "fintech", "Gig_Economy") == [
        "fintech",
        "gig-economy",
    ]


def _result(draft: SynthesizedDraft, context: PipelineContext | None = None) -> PipelineResult:
    return PipelineResult(
        context=context or PipelineContext(request_id="req-1"),
        draft=draft,
        critique=CritiqueMetadata(outcome="approved", synthesis_runs=1),
    )


@pytest.mark.asyncio
async def test_assembler_merges_category_and_recomputes_total() -> None:
    repository = InMemoryIdeaRepository()
    assembler = IdeaAssembler(repository=repository)
    context = PipelineContext(request_id="req-1")
    context.record("research_direction", ResearchDirection(research_theme="Gig income", category="fintech"))
    context.record("trend", TrendData(title="Income smoothing", description="Weekly pay swings"))
    draft = SynthesizedDraft.model_validate(payload("idea_synthesis", tags=["Gig Economy"]))

    idea = assembler.assemble(_result(draft, context), source=IdeaSource.DAILY, request_id="req-1")
    idea_id = await assembler.persist(idea)

    assert idea.tags == ["gig-economy", "fintech"]
    assert idea.scoring.total_score == EXPECTED_V1_TOTAL
    assert idea.source is IdeaSource.DAILY
    assert idea.trend.title == "Income smoothing"
    assert idea.execution_plan.mvp_description == "Launch with rideshare drivers in two cities."
    assert idea.traction_signals.early_adopter_signals == ["Waitlist from a driver subreddit."]
    assert (await repository.get(idea_id)) == idea


def test_assembler_fills_missing_stage_records_with_empty_instances() -> None:
    assembler = IdeaAssembler(repository=InMemoryIdeaRepository(), weights_version="v2")
    draft = SynthesizedDraft(title="Bare idea", description="Only the essentials", traction_signals="  ")

    idea = assembler.assemble(_result(draft), source=IdeaSource.ON_DEMAND)

    assert idea.score_weights_version == "v2"
    assert idea.competitive.positioning.value_proposition == ""
    assert idea.monetization.revenue_streams == []
    assert idea.traction_signals.early_adopter_signals == []
    assert idea.execution_plan.technical_roadmap == "TBD"
    assert idea.tags == []
