"""Drive generation requests from pickup to a terminal state."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from functools import partial
from typing import Any, Callable, List, Optional, Tuple

from idea_agent.agents.context import PipelineContext
from idea_agent.errors import StageFailedError
from idea_agent.metrics import PIPELINE_TELEMETRY, PipelineTelemetry
from idea_agent.models.generation import GenerationRequest, GenerationStatus, utcnow
from idea_agent.models.idea import IdeaSource, SynthesizedIdea
from idea_agent.orchestration.assembler import IdeaAssembler
from idea_agent.orchestration.pipeline import IdeaPipeline, ProgressCallback
from idea_agent.orchestration.steps import SAVING_RESULTS, STARTING_RESEARCH, completion_step, idea_step
from idea_agent.orchestration.tracker import GenerationTracker
from idea_agent.repositories.idea_repository import IdeaRepository

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to generate ideas. Please try again."
INTERRUPTED_MESSAGE = "Generation was interrupted before it finished. Please try again."

HISTORY_LIMIT = 50


@dataclass(slots=True)
class GenerationOrchestrator:
    """The single component that advances generation requests.

    Agent and pipeline failures never escape ``execute``: they are logged in full
    and translated into a FAILED request carrying a caller-safe message.
    """

    tracker: GenerationTracker
    pipeline: IdeaPipeline
    assembler: IdeaAssembler
    ideas: IdeaRepository
    inline_results_for_anonymous: bool = True
    history_window_hours: int = 24
    telemetry: PipelineTelemetry = field(default_factory=lambda: PIPELINE_TELEMETRY)
    clock: Callable[[], Any] = utcnow

    async def execute(self, request_id: str) -> Optional[GenerationRequest]:
        request = await self.tracker.get(request_id)
        if request.status is not GenerationStatus.PENDING:
            logger.warning("Request %s already picked up (status=%s); skipping", request_id, request.status.value)
            return request

        logger.info("Starting generation request=%s count=%d user=%s", request_id, request.count, request.user_id)
        self.telemetry.generation_started(request_id)
        outcome = "failed"
        try:
            await self.tracker.mark_running(request_id, STARTING_RESEARCH)
            produced, last_error = await self._generate_all(request)
            if not produced:
                return await self.tracker.fail(request_id, last_error or GENERIC_FAILURE_MESSAGE)

            inline = None
            if request.user_id is None and self.inline_results_for_anonymous:
                inline = [idea.model_dump(mode="json", by_alias=True) for idea in produced]
            final = await self.tracker.complete(
                request_id,
                [idea.id for idea in produced],
                completion_step(len(produced)),
                inline=inline,
            )
            outcome = "completed"
            return final
        except asyncio.CancelledError:
            logger.warning("Generation request %s cancelled during shutdown", request_id)
            outcome = "cancelled"
            await self._fail_safely(request_id, INTERRUPTED_MESSAGE)
            raise
        except Exception:
            logger.exception("Generation request %s failed unexpectedly", request_id)
            return await self._fail_safely(request_id, GENERIC_FAILURE_MESSAGE)
        finally:
            duration = self.telemetry.generation_finished(request_id, outcome)
            logger.info(
                "Finished generation request=%s outcome=%s duration=%.2fs llm=%s stages=%s",
                request_id,
                outcome,
                duration,
                self.telemetry.llm_summary(request_id),
                self.telemetry.stage_summary(request_id),
            )
            self.telemetry.discard(request_id)

    async def generate_idea(
        self,
        *,
        source: IdeaSource,
        request_id: str,
        user_id: str | None = None,
        prompt: str | None = None,
        previous_ideas: Optional[List[SynthesizedIdea]] = None,
        progress: Optional[ProgressCallback] = None,
        pipeline: Optional[IdeaPipeline] = None,
    ) -> SynthesizedIdea:
        """Run one pipeline pass, then assemble and persist the resulting idea."""

        context = PipelineContext(
            request_id=request_id,
            user_prompt=prompt,
            previous_ideas=list(previous_ideas or []),
        )
        result = await (pipeline or self.pipeline).run(context, progress=progress)
        if progress is not None:
            await progress(SAVING_RESULTS)
        idea = self.assembler.assemble(
            result,
            source=source,
            request_id=request_id,
            user_id=user_id,
            prompt=prompt,
        )
        await self.assembler.persist(idea)
        return idea

    async def load_history(self) -> List[SynthesizedIdea]:
        """Return recently generated ideas for diversity steering; failures yield no history."""

        since = self.clock() - timedelta(hours=self.history_window_hours)
        try:
            return await self.ideas.list_recent(since, limit=HISTORY_LIMIT)
        except Exception:
            logger.warning("Could not load idea history; continuing without it", exc_info=True)
            return []

    async def _generate_all(self, request: GenerationRequest) -> Tuple[List[SynthesizedIdea], Optional[str]]:
        history = await self.load_history()
        progress = partial(self.tracker.update_progress, request.id)
        produced: List[SynthesizedIdea] = []
        last_error: Optional[str] = None

        for number in range(1, request.count + 1):
            if request.count > 1:
                await progress(idea_step(number, request.count))
            try:
                idea = await self.generate_idea(
                    source=IdeaSource.ON_DEMAND,
                    request_id=request.id,
                    user_id=request.user_id,
                    prompt=request.prompt,
                    previous_ideas=produced + history,
                    progress=progress,
                )
            except StageFailedError as exc:
                logger.warning(
                    "Idea %d/%d for request=%s failed at stage %s",
                    number,
                    request.count,
                    request.id,
                    exc.stage,
                    exc_info=True,
                )
                last_error = exc.caller_message
                continue
            produced.append(idea)
        return produced, last_error

    async def _fail_safely(self, request_id: str, message: str) -> Optional[GenerationRequest]:
        """Move a request to FAILED from wherever it is, leaving terminal requests untouched."""

        try:
            current = await self.tracker.get(request_id)
            if current.status.is_terminal:
                return current
            if current.status is GenerationStatus.PENDING:
                await self.tracker.mark_running(request_id, STARTING_RESEARCH)
            return await self.tracker.fail(request_id, message)
        except Exception:
            logger.exception("Could not record failure for generation request %s", request_id)
            return None
