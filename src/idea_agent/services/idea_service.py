"""Application service for submitting and retrieving generation requests and ideas."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from idea_agent.errors import InvalidTransitionError
from idea_agent.models.generation import (
    GenerationAccepted,
    GenerationRequest,
    GenerationStatus,
    GenerationSubmission,
    IdeaPage,
)
from idea_agent.models.idea import SynthesizedIdea
from idea_agent.orchestration.tracker import GenerationTracker
from idea_agent.repositories.idea_repository import IdeaRepository
from idea_agent.workflows.generation_workflow import GenerationWorkflowClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IdeaGenerationService:
    """Coordinate generation submissions, status polling and idea retrieval."""

    tracker: GenerationTracker
    ideas: IdeaRepository
    workflow_client: GenerationWorkflowClient
    default_count: int = 1
    max_count: int = 3

    async def submit(self, submission: GenerationSubmission, *, user_id: str | None) -> GenerationAccepted:
        """Create a PENDING request, schedule it and return its id without waiting."""

        count = submission.count or self.default_count
        if count > self.max_count:
            raise ValueError(f"At most {self.max_count} ideas can be generated per request")
        prompt = (submission.prompt or "").strip() or None
        request = await self.tracker.create(user_id=user_id, prompt=prompt, count=count)
        self.workflow_client.submit(request.id)
        return GenerationAccepted(
            request_id=request.id,
            status=request.status,
            message="Idea generation started",
        )

    async def get_status(self, request_id: str, *, user_id: str | None) -> GenerationRequest:
        """Return a request snapshot.

        Anonymous requests are visible to anyone holding the id; owned requests only
        to their owner. Foreign requests are reported as missing.
        """

        request = await self.tracker.get(request_id)
        if request.user_id is not None and request.user_id != user_id:
            raise KeyError(f"Generation request {request_id} not found")
        return request

    async def retry(self, request_id: str, *, user_id: str | None) -> GenerationAccepted:
        """Start a fresh run for a FAILED request; partial progress is not replayed."""

        original = await self.get_status(request_id, user_id=user_id)
        if original.status is not GenerationStatus.FAILED:
            raise InvalidTransitionError(f"Only failed requests can be retried; {request_id} is {original.status.value}")
        request = await self.tracker.create(
            user_id=original.user_id,
            prompt=original.prompt,
            count=original.count,
            retry_of=original.id,
        )
        self.workflow_client.submit(request.id)
        logger.info("Retrying generation request %s as %s", original.id, request.id)
        return GenerationAccepted(
            request_id=request.id,
            status=request.status,
            message=f"Retry of {original.id} started",
        )

    async def get_generated_idea(self, idea_id: str, *, user_id: str) -> SynthesizedIdea:
        idea = await self.ideas.get(idea_id)
        if idea is None or idea.user_id != user_id:
            raise KeyError(f"Idea {idea_id} not found")
        return idea

    async def list_generated_ideas(self, *, user_id: str, limit: int = 20, offset: int = 0) -> IdeaPage:
        rows = await self.ideas.list_for_user(user_id, limit=limit + 1, offset=offset)
        return IdeaPage(items=rows[:limit], limit=limit, offset=offset, has_more=len(rows) > limit)
