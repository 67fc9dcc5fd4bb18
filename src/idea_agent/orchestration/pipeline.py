"""Sequential agent pipeline with bounded retries and a single-refinement critic loop."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, List, Optional, TypeVar

from idea_agent.agents.context import PipelineContext
from idea_agent.agents.research import CompetitiveIntelligenceAgent, ProblemGapAgent, TrendResearchAgent
from idea_agent.agents.research_director import ResearchDirectorAgent
from idea_agent.agents.strategy import MonetizationAgent, WhatToBuildAgent
from idea_agent.agents.synthesis import CriticAgent, IdeaSynthesisAgent
from idea_agent.config import AppSettings
from idea_agent.errors import LLMNonRetryableError, LLMRetryableError, StageFailedError
from idea_agent.llm import BaseLLM
from idea_agent.metrics import PIPELINE_TELEMETRY, PipelineTelemetry, record_critic_verdict
from idea_agent.models.idea import CritiqueMetadata, CritiqueResult, SynthesizedDraft
from idea_agent.orchestration.steps import (
    CRITICAL_REVIEW,
    FINAL_REFINEMENT,
    IDEA_SYNTHESIS,
    RESEARCH_DIRECTION,
    STAGE_LABELS,
    STAGE_STEPS,
    GenerationStep,
)
from idea_agent.prompts.store import PromptSource

logger = logging.getLogger(__name__)

T = TypeVar("T")
ProgressCallback = Callable[[GenerationStep], Awaitable[object]]

MAX_SYNTHESIS_RUNS = 2


class CritiqueState(str, Enum):
    DRAFT = "draft"
    CRITIQUED = "critiqued"
    APPROVED = "approved"
    REFINED_ONCE = "refined_once"


@dataclass(slots=True)
class CritiqueLoop:
    """Draft -> Critiqued -> {Approved, Refined-once}, bounded to one refinement.

    A rejection of the first draft moves to CRITIQUED and asks for one refinement.
    The refined draft enters REFINED_ONCE and its verdict, approving or not, is final.
    """

    state: CritiqueState = CritiqueState.DRAFT
    synthesis_runs: int = 0
    verdicts: List[CritiqueResult] = field(default_factory=list)

    def record_draft(self) -> None:
        if self.synthesis_runs == 0 and self.state is CritiqueState.DRAFT:
            self.synthesis_runs = 1
        elif self.state is CritiqueState.CRITIQUED:
            self.synthesis_runs = MAX_SYNTHESIS_RUNS
            self.state = CritiqueState.REFINED_ONCE
        else:
            raise RuntimeError(f"No further synthesis allowed in critique state {self.state.value}")

    def record_verdict(self, verdict: CritiqueResult) -> None:
        if len(self.verdicts) >= self.synthesis_runs:
            raise RuntimeError("Each draft receives exactly one verdict")
        self.verdicts.append(verdict)
        if self.state is CritiqueState.DRAFT:
            self.state = CritiqueState.APPROVED if verdict.approved else CritiqueState.CRITIQUED

    @property
    def needs_refinement(self) -> bool:
        return self.state is CritiqueState.CRITIQUED

    @property
    def outcome(self) -> str:
        if self.state is CritiqueState.APPROVED:
            return "approved"
        if self.state is CritiqueState.REFINED_ONCE and self.verdicts and self.verdicts[-1].approved:
            return "refined_approved"
        return "refined_rejected"

    def metadata(self) -> CritiqueMetadata:
        directive = None
        if self.synthesis_runs == MAX_SYNTHESIS_RUNS:
            directive = self.verdicts[0].refinement_directive
        return CritiqueMetadata(
            outcome=self.outcome,
            synthesis_runs=max(1, self.synthesis_runs),
            verdicts=list(self.verdicts),
            refinement_directive=directive,
        )


@dataclass(slots=True)
class AgentSuite:
    """The eight agent roles sharing one LLM backend and prompt source."""

    director: ResearchDirectorAgent
    trend: TrendResearchAgent
    problem_gap: ProblemGapAgent
    competitive: CompetitiveIntelligenceAgent
    monetization: MonetizationAgent
    what_to_build: WhatToBuildAgent
    synthesis: IdeaSynthesisAgent
    critic: CriticAgent

    @classmethod
    def build(cls, llm: BaseLLM, prompts: PromptSource) -> "AgentSuite":
        return cls(
            director=ResearchDirectorAgent(llm, prompts),
            trend=TrendResearchAgent(llm, prompts),
            problem_gap=ProblemGapAgent(llm, prompts),
            competitive=CompetitiveIntelligenceAgent(llm, prompts),
            monetization=MonetizationAgent(llm, prompts),
            what_to_build=WhatToBuildAgent(llm, prompts),
            synthesis=IdeaSynthesisAgent(llm, prompts),
            critic=CriticAgent(llm, prompts),
        )


@dataclass(slots=True)
class PipelineResult:
    context: PipelineContext
    draft: SynthesizedDraft
    critique: CritiqueMetadata


async def _no_progress(step: GenerationStep) -> None:
    return None


@dataclass(slots=True)
class IdeaPipeline:
    """Run every stage for one idea, strictly in order.

    Each agent call is bounded by ``stage_timeout_seconds``. Timeouts and retryable
    LLM errors are retried with exponential backoff up to ``max_attempts``; fatal
    errors and exhausted retries raise ``StageFailedError`` with a caller-safe message.
    """

    agents: AgentSuite
    stage_timeout_seconds: float = 90.0
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    backoff_cap_seconds: float = 4.0
    telemetry: PipelineTelemetry = field(default_factory=lambda: PIPELINE_TELEMETRY)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(cls, settings: AppSettings, llm: BaseLLM, prompts: PromptSource) -> "IdeaPipeline":
        return cls(
            agents=AgentSuite.build(llm, prompts),
            stage_timeout_seconds=settings.agent_timeout_seconds,
            max_attempts=max(1, settings.agent_max_attempts),
            backoff_seconds=settings.agent_backoff_seconds,
            backoff_cap_seconds=settings.agent_backoff_cap_seconds,
        )

    def with_agents(self, agents: AgentSuite) -> "IdeaPipeline":
        return IdeaPipeline(
            agents=agents,
            stage_timeout_seconds=self.stage_timeout_seconds,
            max_attempts=self.max_attempts,
            backoff_seconds=self.backoff_seconds,
            backoff_cap_seconds=self.backoff_cap_seconds,
            telemetry=self.telemetry,
            sleep=self.sleep,
        )

    async def run(self, context: PipelineContext, progress: Optional[ProgressCallback] = None) -> PipelineResult:
        emit = progress or _no_progress
        agents = self.agents

        if context.research_direction is None:
            await emit(RESEARCH_DIRECTION)
            start = time.perf_counter()
            direction = await agents.director.direct(context, timeout=self.stage_timeout_seconds)
            self.telemetry.record_stage_duration(
                stage="research_direction",
                duration_seconds=time.perf_counter() - start,
                status="fallback" if direction.is_fallback else "ok",
                request_id=context.request_id,
            )
            context.record("research_direction", direction)

        for slot, agent in (
            ("trend", agents.trend),
            ("problem_gaps", agents.problem_gap),
            ("competitive", agents.competitive),
            ("monetization", agents.monetization),
            ("what_to_build", agents.what_to_build),
        ):
            await emit(STAGE_STEPS[agent.stage])
            result = await self._run_stage(agent.stage, partial(agent.run, context), context)
            context.record(slot, result)

        loop = CritiqueLoop()
        directive: str | None = None
        while True:
            await emit(FINAL_REFINEMENT if directive else IDEA_SYNTHESIS)
            draft = await self._run_stage(
                agents.synthesis.stage,
                partial(agents.synthesis.run, context, refinement_directive=directive),
                context,
            )
            context.add_draft(draft)
            loop.record_draft()

            await emit(CRITICAL_REVIEW)
            verdict = await self._run_stage(agents.critic.stage, partial(agents.critic.run, context), context)
            context.add_critique(verdict)
            loop.record_verdict(verdict)
            record_critic_verdict(verdict.approved, loop.synthesis_runs)
            logger.info(
                "Critic %s draft %d for request=%s",
                "approved" if verdict.approved else "rejected",
                loop.synthesis_runs,
                context.request_id,
            )
            if not loop.needs_refinement:
                break
            directive = verdict.refinement_directive

        return PipelineResult(context=context, draft=context.latest_draft, critique=loop.metadata())

    async def _run_stage(
        self,
        stage: str,
        invoke: Callable[[], Awaitable[T]],
        context: PipelineContext,
    ) -> T:
        label = STAGE_LABELS.get(stage, stage.replace("_", " ").capitalize())
        for attempt in range(1, self.max_attempts + 1):
            start = time.perf_counter()
            try:
                with self.telemetry.context(request_id=context.request_id, stage=stage):
                    result = await asyncio.wait_for(invoke(), timeout=self.stage_timeout_seconds)
            except (LLMRetryableError, TimeoutError) as exc:
                self._record(stage, start, "retry", context)
                logger.warning(
                    "Stage %s attempt %d/%d failed for request=%s: %s",
                    stage,
                    attempt,
                    self.max_attempts,
                    context.request_id,
                    type(exc).__name__,
                )
                if attempt >= self.max_attempts:
                    raise StageFailedError(
                        stage,
                        f"{label} failed after {self.max_attempts} attempts. Please try again.",
                        attempts=attempt,
                    ) from exc
                await self.sleep(self._backoff(attempt))
                continue
            except LLMNonRetryableError as exc:
                self._record(stage, start, "failed", context)
                logger.error("Stage %s failed fatally for request=%s: %s", stage, context.request_id, exc)
                raise StageFailedError(
                    stage,
                    f"{label} produced an unusable result. Please try again.",
                    attempts=attempt,
                ) from exc
            self._record(stage, start, "ok", context)
            return result
        raise RuntimeError("unreachable")  # pragma: no cover

    def _backoff(self, attempt: int) -> float:
        return min(self.backoff_cap_seconds, self.backoff_seconds * (2 ** (attempt - 1)))

    def _record(self, stage: str, start: float, status: str, context: PipelineContext) -> None:
        self.telemetry.record_stage_duration(
            stage=stage,
            duration_seconds=time.perf_counter() - start,
            status=status,
            request_id=context.request_id,
        )
