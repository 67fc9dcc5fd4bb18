"""Tests for the sequential pipeline, stage retries and the critique loop."""
from __future__ import annotations

import time
from typing import List

import pytest

from idea_agent.agents.context import PipelineContext
from idea_agent.errors import LLMNonRetryableError, LLMRetryableError, StageFailedError
from idea_agent.models.idea import CritiqueResult, ResearchDirection
from idea_agent.orchestration.pipeline import AgentSuite, CritiqueLoop, CritiqueState, IdeaPipeline
from idea_agent.orchestration.steps import GenerationStep
from idea_agent.prompts.store import PromptStore
from idea_agent.repositories.prompt_repository import InMemoryPromptRepository

from stubs import REJECTION, ScriptedLLM, payload

STAGE_ORDER = [
    "research_direction",
    "trend_research",
    "problem_analysis",
    "competitive_analysis",
    "monetization",
    "technical_planning",
    "idea_synthesis",
    "critical_review",
]


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class _SlowLLM(ScriptedLLM):
    """Answers one operation only after blocking past the stage timeout."""

    def __init__(self, operation: str, *, delay_seconds: float) -> None:
        super().__init__()
        self.slow_operation = operation
        self.delay_seconds = delay_seconds

    def complete(self, system_prompt, user_prompt, *, operation, temperature=None, max_tokens=None):
        response = super().complete(
            system_prompt, user_prompt, operation=operation, temperature=temperature, max_tokens=max_tokens
        )
        if operation == self.slow_operation:
            time.sleep(self.delay_seconds)
        return response


def _pipeline(
    llm: ScriptedLLM, sleep: _RecordingSleep | None = None, *, stage_timeout_seconds: float = 5.0
) -> IdeaPipeline:
    prompts = PromptStore(repository=InMemoryPromptRepository())
    return IdeaPipeline(
        agents=AgentSuite.build(llm, prompts),
        stage_timeout_seconds=stage_timeout_seconds,
        max_attempts=3,
        backoff_seconds=0.5,
        backoff_cap_seconds=4.0,
        sleep=sleep or _RecordingSleep(),
    )


@pytest.mark.asyncio
async def test_stages_run_strictly_in_order_and_report_progress() -> None:
    llm = ScriptedLLM()
    steps: List[GenerationStep] = []

    async def _progress(step: GenerationStep) -> None:
        steps.append(step)

    result = await _pipeline(llm).run(PipelineContext(request_id="req-1"), progress=_progress)

    assert llm.operations() == STAGE_ORDER
    assert [step.label for step in steps] == [
        "Research Direction",
        "Trend Research",
        "Problem Analysis",
        "Competitive Analysis",
        "Monetization Strategy",
        "Technical Planning",
        "Idea Synthesis",
        "Critical Review",
    ]
    assert result.critique.outcome == "approved"
    assert result.critique.synthesis_runs == 1
    assert result.draft.title == "FlowCash"


@pytest.mark.asyncio
async def test_preset_direction_skips_director() -> None:
    llm = ScriptedLLM()
    context = PipelineContext(request_id="req-1")
    context.record("research_direction", ResearchDirection(research_theme="Preset", category="edtech"))

    await _pipeline(llm).run(context)

    assert "research_direction" not in llm.operations()


@pytest.mark.asyncio
async def test_rejected_draft_is_refined_exactly_once() -> None:
    refined = payload("idea_synthesis", description="A paycheck smoother built only for independent truck drivers.")
    llm = ScriptedLLM(
        {
            "idea_synthesis": [payload("idea_synthesis"), refined],
            "critical_review": [REJECTION, payload("critical_review")],
        }
    )

    result = await _pipeline(llm).run(PipelineContext(request_id="req-1"))

    synthesis_calls = llm.calls_for("idea_synthesis")
    assert len(synthesis_calls) == 2
    assert REJECTION["refinementDirective"] in synthesis_calls[1].user_prompt
    assert result.draft.description == refined["description"]
    assert result.draft.description != payload("idea_synthesis")["description"]
    assert result.critique.outcome == "refined_approved"
    assert result.critique.synthesis_runs == 2
    assert result.critique.refinement_directive == REJECTION["refinementDirective"]


@pytest.mark.asyncio
async def test_second_rejection_still_ends_the_loop() -> None:
    llm = ScriptedLLM({"critical_review": [REJECTION, REJECTION]})

    result = await _pipeline(llm).run(PipelineContext(request_id="req-1"))

    assert len(llm.calls_for("idea_synthesis")) == 2
    assert len(llm.calls_for("critical_review")) == 2
    assert result.critique.outcome == "refined_rejected"
    assert [verdict.approved for verdict in result.critique.verdicts] == [False, False]


@pytest.mark.asyncio
async def test_retryable_errors_back_off_then_succeed() -> None:
    sleep = _RecordingSleep()
    llm = ScriptedLLM(
        {"monetization": [LLMRetryableError("rate limited"), TimeoutError(), payload("monetization")]}
    )

    result = await _pipeline(llm, sleep).run(PipelineContext(request_id="req-1"))

    assert len(llm.calls_for("monetization")) == 3
    assert sleep.delays == [0.5, 1.0]
    assert result.context.monetization.primary_model == "Subscription"


@pytest.mark.asyncio
async def test_exhausted_retries_raise_caller_safe_stage_failure() -> None:
    llm = ScriptedLLM({"competitive_analysis": [TimeoutError(), TimeoutError(), TimeoutError()]})

    with pytest.raises(StageFailedError) as excinfo:
        await _pipeline(llm).run(PipelineContext(request_id="req-1"))

    assert excinfo.value.stage == "competitive_analysis"
    assert excinfo.value.attempts == 3
    assert excinfo.value.caller_message == "Competitive analysis failed after 3 attempts. Please try again."
    assert "monetization" not in llm.operations()


@pytest.mark.asyncio
async def test_slow_stage_times_out_and_is_retried() -> None:
    llm = _SlowLLM("competitive_analysis", delay_seconds=0.3)
    sleep = _RecordingSleep()

    with pytest.raises(StageFailedError) as excinfo:
        await _pipeline(llm, sleep, stage_timeout_seconds=0.05).run(PipelineContext(request_id="req-1"))

    assert isinstance(excinfo.value.__cause__, TimeoutError)
    assert excinfo.value.stage == "competitive_analysis"
    assert excinfo.value.attempts == 3
    assert excinfo.value.caller_message == "Competitive analysis failed after 3 attempts. Please try again."
    assert len(llm.calls_for("competitive_analysis")) == 3
    assert sleep.delays == [0.5, 1.0]
    assert "monetization" not in llm.operations()


@pytest.mark.asyncio
async def test_fatal_errors_are_not_retried() -> None:
    llm = ScriptedLLM({"problem_analysis": [LLMNonRetryableError("401 unauthorized")]})

    with pytest.raises(StageFailedError) as excinfo:
        await _pipeline(llm).run(PipelineContext(request_id="req-1"))

    assert excinfo.value.attempts == 1
    assert "unusable result" in excinfo.value.caller_message
    assert len(llm.calls_for("problem_analysis")) == 1


@pytest.mark.asyncio
async def test_backoff_is_capped() -> None:
    pipeline = _pipeline(ScriptedLLM())

    assert [pipeline._backoff(attempt) for attempt in range(1, 6)] == [0.5, 1.0, 2.0, 4.0, 4.0]


def test_critique_loop_refuses_a_third_draft() -> None:
    loop = CritiqueLoop()
    loop.record_draft()
    loop.record_verdict(CritiqueResult.model_validate(REJECTION))
    assert loop.needs_refinement

    loop.record_draft()
    loop.record_verdict(CritiqueResult.model_validate(REJECTION))

    assert loop.state is CritiqueState.REFINED_ONCE
    assert not loop.needs_refinement
    with pytest.raises(RuntimeError):
        loop.record_draft()


def test_rejection_without_directive_is_invalid() -> None:
    with pytest.raises(ValueError):
        CritiqueResult.model_validate({"approved": False, "refinementDirective": " "})
