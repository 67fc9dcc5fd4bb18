"""Local fire-and-forget executor for generation requests."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict

from idea_agent.orchestration.orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GenerationWorkflowClient:
    """Schedule orchestrator runs as background asyncio tasks.

    Submission returns immediately; callers observe progress through the persisted
    request. ``close`` cancels in-flight runs, which the orchestrator records as FAILED.
    """

    orchestrator: GenerationOrchestrator

    _tasks: Dict[str, asyncio.Task[None]] = field(default_factory=dict, init=False, repr=False)

    def submit(self, request_id: str) -> None:
        if request_id in self._tasks:
            raise RuntimeError(f"Generation request {request_id} is already running")
        task = asyncio.create_task(self._run(request_id), name=f"generation-{request_id}")
        self._tasks[request_id] = task
        task.add_done_callback(lambda t, key=request_id: self._on_task_complete(key, t))
        logger.info("Scheduled generation request %s", request_id)

    def is_running(self, request_id: str) -> bool:
        task = self._tasks.get(request_id)
        return task is not None and not task.done()

    async def wait(self, request_id: str) -> None:
        """Await a scheduled run; used by batch callers and tests."""

        task = self._tasks.get(request_id)
        if task is not None:
            await asyncio.shield(task)

    async def close(self) -> None:
        """Cancel any running generation tasks."""

        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def _run(self, request_id: str) -> None:
        with self.orchestrator.telemetry.context(request_id=request_id):
            await self.orchestrator.execute(request_id)

    def _on_task_complete(self, request_id: str, task: asyncio.Task[None]) -> None:
        self._tasks.pop(request_id, None)
        if task.cancelled():
            logger.info("Generation task for request %s was cancelled", request_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Generation task for request %s crashed", request_id, exc_info=exc)
