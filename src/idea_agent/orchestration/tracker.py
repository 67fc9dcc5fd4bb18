"""Persisted state machine for generation requests."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

from idea_agent.errors import InvalidTransitionError
from idea_agent.models.generation import GenerationRequest, GenerationStatus, utcnow
from idea_agent.orchestration.steps import FAILED, INITIALIZING, GenerationStep
from idea_agent.repositories.generation_repository import GenerationRequestRepository

logger = logging.getLogger(__name__)

_ALLOWED: Dict[GenerationStatus, FrozenSet[GenerationStatus]] = {
    GenerationStatus.PENDING: frozenset({GenerationStatus.RUNNING}),
    GenerationStatus.RUNNING: frozenset(
        {GenerationStatus.RUNNING, GenerationStatus.COMPLETED, GenerationStatus.FAILED}
    ),
    GenerationStatus.COMPLETED: frozenset(),
    GenerationStatus.FAILED: frozenset(),
}


@dataclass(slots=True)
class GenerationTracker:
    """Create generation requests and apply monotonic status transitions.

    Every write stamps ``updated_at``; ``complete`` requires at least one idea id and
    ``fail`` requires a non-empty caller-safe message.
    """

    repository: GenerationRequestRepository
    clock: Callable[[], Any] = utcnow

    async def create(
        self,
        *,
        user_id: str | None,
        prompt: str | None,
        count: int = 1,
        retry_of: str | None = None,
    ) -> GenerationRequest:
        now = self.clock()
        request = GenerationRequest(
            user_id=user_id,
            prompt=prompt,
            count=count,
            retry_of=retry_of,
            current_step=INITIALIZING.label,
            progress_message=INITIALIZING.message,
            image_state=INITIALIZING.image_state,
            created_at=now,
            updated_at=now,
        )
        await self.repository.save(request)
        logger.info("Created generation request %s user=%s count=%d", request.id, user_id, count)
        return request

    async def get(self, request_id: str) -> GenerationRequest:
        request = await self.repository.get(request_id)
        if request is None:
            raise KeyError(f"Generation request {request_id} not found")
        return request

    async def mark_running(self, request_id: str, step: GenerationStep) -> GenerationRequest:
        return await self._transition(request_id, GenerationStatus.RUNNING, step)

    async def update_progress(self, request_id: str, step: GenerationStep) -> GenerationRequest:
        current = await self.get(request_id)
        if current.status is not GenerationStatus.RUNNING:
            raise InvalidTransitionError(
                f"Cannot record progress for request {request_id} in status {current.status.value}"
            )
        return await self._write(current, GenerationStatus.RUNNING, step)

    async def complete(
        self,
        request_id: str,
        idea_ids: Sequence[str],
        step: GenerationStep,
        *,
        inline: Optional[List[Dict[str, Any]]] = None,
    ) -> GenerationRequest:
        if not idea_ids:
            raise InvalidTransitionError(f"Request {request_id} cannot complete without generated ideas")
        return await self._transition(
            request_id,
            GenerationStatus.COMPLETED,
            step,
            generated_idea_ids=list(idea_ids),
            generated_ideas_data=inline,
            error_message=None,
        )

    async def fail(self, request_id: str, message: str, step: GenerationStep = FAILED) -> GenerationRequest:
        if not message or not message.strip():
            raise InvalidTransitionError(f"Request {request_id} cannot fail without an error message")
        return await self._transition(
            request_id,
            GenerationStatus.FAILED,
            step,
            generated_idea_ids=[],
            generated_ideas_data=None,
            error_message=message.strip(),
        )

    async def _transition(
        self,
        request_id: str,
        target: GenerationStatus,
        step: GenerationStep,
        **updates: Any,
    ) -> GenerationRequest:
        current = await self.get(request_id)
        if target not in _ALLOWED[current.status]:
            raise InvalidTransitionError(
                f"Cannot move request {request_id} from {current.status.value} to {target.value}"
            )
        return await self._write(current, target, step, **updates)

    async def _write(
        self,
        current: GenerationRequest,
        target: GenerationStatus,
        step: GenerationStep,
        **updates: Any,
    ) -> GenerationRequest:
        updated = current.model_copy(
            update={
                "status": target,
                "current_step": step.label,
                "progress_message": step.message,
                "image_state": step.image_state,
                "updated_at": self.clock(),
                **updates,
            }
        )
        await self.repository.save(updated)
        if target is not current.status:
            logger.info("Request %s moved %s -> %s", current.id, current.status.value, target.value)
        return updated
