"""Administrative service for prompt management and trial generation runs."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List
from uuid import uuid4

from idea_agent.llm import BaseLLM
from idea_agent.models.idea import IdeaSource
from idea_agent.models.prompt import PromptTestRequest, PromptTestResult, PromptUpdate, PromptView
from idea_agent.orchestration.orchestrator import GenerationOrchestrator
from idea_agent.orchestration.pipeline import AgentSuite
from idea_agent.prompts.defaults import PromptKey
from idea_agent.prompts.store import PromptStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PromptAdminService:
    """Expose prompt listing, upserts, deactivation and test generation to administrators."""

    store: PromptStore
    orchestrator: GenerationOrchestrator
    llm: BaseLLM

    async def get_prompts(self) -> List[PromptView]:
        return await self.store.list_prompts()

    async def update_prompt(self, update: PromptUpdate, *, updated_by: str | None) -> PromptView:
        self._require_known(update.agent_name, update.prompt_key)
        stored = await self.store.update_prompt(
            update.agent_name,
            update.prompt_key,
            update.prompt_content,
            updated_by=updated_by,
        )
        return PromptView(
            agent_name=stored.agent_name,
            prompt_key=stored.prompt_key,
            prompt_content=stored.prompt_content,
            is_default=False,
            updated_by=stored.updated_by,
            updated_at=stored.updated_at,
        )

    async def deactivate_prompt(self, agent_name: str, prompt_key: str) -> None:
        """Deactivate an override so resolution falls back to the built-in default."""

        if not await self.store.deactivate_prompt(agent_name, prompt_key):
            raise KeyError(f"Prompt {agent_name}.{prompt_key} not found")

    def clear_cache(self) -> Dict[str, object]:
        self.store.clear_cache()
        return self.store.cache.stats()

    def cache_stats(self) -> Dict[str, object]:
        return self.store.cache.stats()

    async def test_prompt_generation(self, request: PromptTestRequest, *, user_id: str | None) -> PromptTestResult:
        """Run one full pipeline pass with unsaved overrides layered over stored prompts.

        Shared prompt state is untouched; the resulting idea is persisted with the
        ``admin_test`` source so it can be reviewed before rollout.
        """

        overrides = self._parse_overrides(request.overrides)
        pipeline = self.orchestrator.pipeline.with_agents(
            AgentSuite.build(self.llm, self.store.with_overrides(overrides))
        )
        history = await self.orchestrator.load_history()
        request_id = f"admin-test-{uuid4()}"
        try:
            idea = await self.orchestrator.generate_idea(
                source=IdeaSource.ADMIN_TEST,
                request_id=request_id,
                user_id=user_id,
                prompt=request.prompt,
                previous_ideas=history,
                pipeline=pipeline,
            )
        finally:
            self.orchestrator.telemetry.discard(request_id)
        logger.info("Admin test generation produced idea %s with %d overrides", idea.id, len(overrides))
        return PromptTestResult(idea=idea, overridden_keys=[f"{agent}.{key}" for agent, key in overrides])

    def _parse_overrides(self, raw: Dict[str, str]) -> Dict[PromptKey, str]:
        parsed: Dict[PromptKey, str] = {}
        for dotted, content in raw.items():
            agent_name, sep, prompt_key = dotted.partition(".")
            if not sep or not agent_name or not prompt_key:
                raise ValueError(f"Override key {dotted!r} must look like 'AgentName.promptKey'")
            self._require_known(agent_name, prompt_key)
            if content.strip():
                parsed[(agent_name, prompt_key)] = content
        return parsed

    def _require_known(self, agent_name: str, prompt_key: str) -> None:
        try:
            self.store.default_for(agent_name, prompt_key)
        except KeyError as exc:
            raise ValueError(f"Unknown prompt {agent_name}.{prompt_key}") from exc
