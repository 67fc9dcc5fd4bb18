"""Tests for agent parsing, self-correction and the research director."""
from __future__ import annotations

from datetime import date

import pytest

from idea_agent.agents.context import PipelineContext
from idea_agent.agents.research import CompetitiveIntelligenceAgent, TrendResearchAgent
from idea_agent.agents.research_director import (
    ResearchDirectorAgent,
    determine_focus_balance,
    extract_industry,
    extract_target,
)
from idea_agent.agents.synthesis import IdeaSynthesisAgent
from idea_agent.errors import AgentValidationError, LLMRetryableError
from idea_agent.models.idea import (
    CompetitiveData,
    MonetizationData,
    ProblemGapData,
    ResearchDirection,
    SynthesizedIdea,
    TrendData,
    WhatToBuildData,
)
from idea_agent.prompts.store import PromptStore
from idea_agent.repositories.prompt_repository import InMemoryPromptRepository

from stubs import ScriptedLLM, payload


def _prompts() -> PromptStore:
    return PromptStore(repository=InMemoryPromptRepository())


def _context(**slots) -> PipelineContext:
    context = PipelineContext(request_id="req-1")
    for slot, value in slots.items():
        context.record(slot, value)
    return context


def _full_context() -> PipelineContext:
    return _context(
        research_direction=ResearchDirection.model_validate(payload("research_direction")),
        trend=TrendData.model_validate(payload("trend_research")),
        problem_gaps=ProblemGapData.model_validate(payload("problem_analysis")),
        competitive=CompetitiveData.model_validate(payload("competitive_analysis")),
        monetization=MonetizationData.model_validate(payload("monetization")),
        what_to_build=WhatToBuildData.model_validate(payload("technical_planning")),
    )


@pytest.mark.asyncio
async def test_agent_parses_fenced_json_from_camel_case_payload() -> None:
    fenced = (
        "Here you go:\n```json\n"
        '{"title": "Silver surfers", "description": "Seniors adopt tablets", '
        '"catalystType": "social trend", "trendStrength": 14}\n```'
    )
    llm = ScriptedLLM({"trend_research": [fenced]})
    agent = TrendResearchAgent(llm, _prompts())
    context = _context(research_direction=ResearchDirection(research_theme="Ageing populations"))

    trend = await agent.run(context)

    assert trend.title == "Silver surfers"
    assert trend.catalyst_type.value == "SOCIAL_TREND"
    assert trend.trend_strength == 10.0
    assert llm.operations() == ["trend_research"]


@pytest.mark.asyncio
async def test_agent_repairs_malformed_output_once() -> None:
    llm = ScriptedLLM({"trend_research": ["definitely not json"]})
    agent = TrendResearchAgent(llm, _prompts())
    context = _context(research_direction=ResearchDirection(research_theme="Gig work"))

    trend = await agent.run(context)

    assert trend.title == payload("trend_research")["title"]
    assert llm.operations() == ["trend_research", "trend_research_repair"]
    assert "could not be used" in llm.calls[-1].user_prompt


@pytest.mark.asyncio
async def test_agent_raises_validation_error_when_repair_also_fails() -> None:
    llm = ScriptedLLM(
        {
            "competitive_analysis": [{"positioning": {"valueProposition": ""}}],
            "competitive_analysis_repair": ["still broken"],
        }
    )
    agent = CompetitiveIntelligenceAgent(llm, _prompts())
    context = _context(
        trend=TrendData.model_validate(payload("trend_research")),
        problem_gaps=ProblemGapData.model_validate(payload("problem_analysis")),
    )

    with pytest.raises(AgentValidationError) as excinfo:
        await agent.run(context)

    assert excinfo.value.stage == "competitive_analysis"


@pytest.mark.asyncio
async def test_transport_errors_are_not_repaired() -> None:
    llm = ScriptedLLM({"trend_research": [LLMRetryableError("rate limited")]})
    agent = TrendResearchAgent(llm, _prompts())
    context = _context(research_direction=ResearchDirection(research_theme="Gig work"))

    with pytest.raises(LLMRetryableError):
        await agent.run(context)

    assert llm.operations() == ["trend_research"]


@pytest.mark.asyncio
async def test_agent_requires_upstream_context() -> None:
    agent = CompetitiveIntelligenceAgent(ScriptedLLM(), _prompts())

    with pytest.raises(RuntimeError, match="Missing upstream context"):
        await agent.run(PipelineContext(request_id="req-1"))


def test_context_slots_are_write_once() -> None:
    context = _context(trend=TrendData(title="A", description="B"))

    with pytest.raises(RuntimeError):
        context.record("trend", TrendData(title="C", description="D"))
    with pytest.raises(KeyError):
        context.record("unknown_slot", object())


@pytest.mark.asyncio
async def test_synthesis_refinement_prompt_carries_directive_and_previous_draft() -> None:
    llm = ScriptedLLM()
    agent = IdeaSynthesisAgent(llm, _prompts())
    context = _full_context()
    first = await agent.run(context)
    context.add_draft(first)

    await agent.run(context, refinement_directive="Target independent truck drivers instead.")

    refinement_prompt = llm.calls[-1].user_prompt
    assert "Target independent truck drivers instead." in refinement_prompt
    assert "Previous draft" in refinement_prompt
    assert first.title in refinement_prompt


@pytest.mark.asyncio
async def test_director_falls_back_when_llm_fails() -> None:
    llm = ScriptedLLM({"research_direction": [LLMRetryableError("boom")]})
    director = ResearchDirectorAgent(llm, _prompts(), today=lambda: date(2026, 3, 1))

    direction = await director.direct(PipelineContext(request_id="req-1"), timeout=5)

    assert direction.is_fallback is True
    assert direction.research_theme
    assert direction.category


@pytest.mark.asyncio
async def test_director_falls_back_when_output_stays_invalid() -> None:
    llm = ScriptedLLM({"research_direction": ["nope"], "research_direction_repair": ["still nope"]})
    director = ResearchDirectorAgent(llm, _prompts(), today=lambda: date(2026, 3, 1))

    direction = await director.direct(PipelineContext(request_id="req-1"), timeout=5)

    assert direction.is_fallback is True


@pytest.mark.asyncio
async def test_director_infers_missing_category_and_mentions_history() -> None:
    llm = ScriptedLLM({"research_direction": [payload("research_direction", category="")]})
    director = ResearchDirectorAgent(llm, _prompts())
    previous = [SynthesizedIdea(title="TeamSync", description="Enterprise task tracking for large business teams")]
    context = PipelineContext(request_id="req-1", previous_ideas=previous)

    direction = await director.direct(context, timeout=5)

    assert direction.category == "fintech"
    assert "TeamSync" in llm.calls[0].user_prompt


def test_fallback_direction_rotates_with_offset() -> None:
    director = ResearchDirectorAgent(ScriptedLLM(), _prompts(), today=lambda: date(2026, 3, 1))

    first = director.fallback_direction(0)
    second = director.fallback_direction(1)

    assert first.research_theme != second.research_theme


def test_keyword_extraction_and_focus_balance() -> None:
    assert extract_industry("A personal finance coach for freelancers") == "fintech"
    assert extract_industry("Something entirely unrelated") == "general"
    assert extract_target("Tools for small business owners") == "smb"

    business_heavy = [
        SynthesizedIdea(title="Ops", description="Workflow software for enterprise teams"),
        SynthesizedIdea(title="Books", description="Accounting for small business owners"),
    ]
    assert "consumers" in determine_focus_balance(business_heavy)
