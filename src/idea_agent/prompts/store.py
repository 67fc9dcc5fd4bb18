"""Prompt resolution with a bounded-staleness cache and compiled-in fallbacks."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Protocol

from idea_agent.metrics import record_prompt_resolution
from idea_agent.models.prompt import AgentPrompt, PromptView
from idea_agent.prompts.defaults import DEFAULT_PROMPTS, PromptKey
from idea_agent.repositories.prompt_repository import PromptRepository

logger = logging.getLogger(__name__)


class PromptSource(Protocol):
    """Anything agents can resolve prompt text from."""

    async def resolve(self, agent_name: str, prompt_key: str) -> str:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class _CacheEntry:
    content: str
    expires_at: float


class PromptCache:
    """TTL cache of resolved prompt text keyed by ``(agent_name, prompt_key)``.

    A TTL of zero disables caching entirely. The clock is injectable so expiry can
    be driven deterministically in tests.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[PromptKey, _CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, agent_name: str, prompt_key: str) -> Optional[str]:
        key = (agent_name, prompt_key)
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            self._misses += 1
            return None
        self._hits += 1
        return entry.content

    def set(self, agent_name: str, prompt_key: str, content: str) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[(agent_name, prompt_key)] = _CacheEntry(content, self._clock() + self.ttl_seconds)

    def invalidate(self, agent_name: str, prompt_key: str) -> None:
        self._entries.pop((agent_name, prompt_key), None)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, object]:
        now = self._clock()
        active = [key for key, entry in self._entries.items() if entry.expires_at > now]
        return {
            "ttl_seconds": self.ttl_seconds,
            "total_cached": len(self._entries),
            "active_cached": len(active),
            "expired_cached": len(self._entries) - len(active),
            "hits": self._hits,
            "misses": self._misses,
            "cache_keys": [f"{agent}:{key}" for agent, key in self._entries],
        }


@dataclass(slots=True)
class PromptStore:
    """Resolve effective prompt text, preferring active overrides over defaults.

    ``resolve`` never raises for a key with a compiled-in default: storage errors,
    missing rows and blank content all degrade to the default with a warning.
    """

    repository: PromptRepository
    cache: PromptCache = field(default_factory=PromptCache)
    defaults: Mapping[PromptKey, str] = field(default_factory=lambda: dict(DEFAULT_PROMPTS))

    def default_for(self, agent_name: str, prompt_key: str) -> str:
        try:
            return self.defaults[(agent_name, prompt_key)]
        except KeyError as exc:
            raise KeyError(f"No default prompt registered for {agent_name}.{prompt_key}") from exc

    async def resolve(self, agent_name: str, prompt_key: str) -> str:
        default = self.default_for(agent_name, prompt_key)

        cached = self.cache.get(agent_name, prompt_key)
        if cached is not None:
            record_prompt_resolution(agent_name, "cache")
            return cached

        try:
            row = await self.repository.get_active(agent_name, prompt_key)
        except Exception:
            # Not cached, so storage recovery is picked up on the next resolution.
            logger.warning(
                "Prompt lookup failed for %s.%s; using built-in default",
                agent_name,
                prompt_key,
                exc_info=True,
            )
            record_prompt_resolution(agent_name, "default")
            return default

        if row is None or not row.prompt_content.strip():
            logger.warning("No usable prompt stored for %s.%s; using built-in default", agent_name, prompt_key)
            content, source = default, "default"
        else:
            content, source = row.prompt_content, "store"

        self.cache.set(agent_name, prompt_key, content)
        record_prompt_resolution(agent_name, source)
        return content

    def invalidate(self, agent_name: str, prompt_key: str) -> None:
        self.cache.invalidate(agent_name, prompt_key)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Prompt cache cleared")

    async def update_prompt(
        self,
        agent_name: str,
        prompt_key: str,
        prompt_content: str,
        *,
        updated_by: str | None = None,
    ) -> AgentPrompt:
        """Upsert the active override for a key and drop its cached value."""

        prompt = AgentPrompt(
            agent_name=agent_name,
            prompt_key=prompt_key,
            prompt_content=prompt_content,
            updated_by=updated_by,
            is_active=True,
        )
        stored = await self.repository.upsert(prompt)
        self.invalidate(agent_name, prompt_key)
        logger.info("Prompt %s.%s updated by %s", agent_name, prompt_key, updated_by or "unknown")
        return stored

    async def deactivate_prompt(self, agent_name: str, prompt_key: str) -> bool:
        existed = await self.repository.deactivate(agent_name, prompt_key)
        self.invalidate(agent_name, prompt_key)
        return existed

    async def list_prompts(self) -> List[PromptView]:
        """Return the effective prompt for every known key plus any extra stored rows."""

        stored = {row.key: row for row in await self.repository.list_active()}
        views: List[PromptView] = []
        for key, default in self.defaults.items():
            row = stored.pop(key, None)
            if row is not None and row.prompt_content.strip():
                views.append(_view_from_row(row))
            else:
                views.append(PromptView(agent_name=key[0], prompt_key=key[1], prompt_content=default, is_default=True))
        views.extend(_view_from_row(row) for row in stored.values())
        return views

    async def seed_defaults(self, *, overwrite: bool = False, updated_by: str = "system") -> int:
        """Write compiled-in defaults to storage, skipping existing rows unless ``overwrite``."""

        created = 0
        for (agent_name, prompt_key), content in self.defaults.items():
            if not overwrite and await self.repository.get_active(agent_name, prompt_key) is not None:
                logger.debug("Skipping existing prompt %s.%s", agent_name, prompt_key)
                continue
            await self.repository.upsert(
                AgentPrompt(
                    agent_name=agent_name,
                    prompt_key=prompt_key,
                    prompt_content=content,
                    updated_by=updated_by,
                )
            )
            self.invalidate(agent_name, prompt_key)
            created += 1
        logger.info("Seeded %d default prompts", created)
        return created

    def with_overrides(self, overrides: Mapping[PromptKey, str]) -> "PromptOverlay":
        return PromptOverlay(base=self, overrides=dict(overrides))


@dataclass(slots=True)
class PromptOverlay:
    """Read-only view layering unsaved prompt text over a store."""

    base: PromptStore
    overrides: Dict[PromptKey, str]

    async def resolve(self, agent_name: str, prompt_key: str) -> str:
        override = self.overrides.get((agent_name, prompt_key))
        if override is not None and override.strip():
            return override
        return await self.base.resolve(agent_name, prompt_key)


def _view_from_row(row: AgentPrompt) -> PromptView:
    return PromptView(
        agent_name=row.agent_name,
        prompt_key=row.prompt_key,
        prompt_content=row.prompt_content,
        is_default=False,
        updated_by=row.updated_by,
        updated_at=row.updated_at,
    )
