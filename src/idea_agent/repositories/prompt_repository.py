"""Repository abstractions for administrable agent prompts."""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from idea_agent.models.prompt import AgentPrompt


def prompt_document_id(agent_name: str, prompt_key: str) -> str:
    """One document per key keeps at most one active row per ``(agent, key)``."""

    return f"{agent_name}:{prompt_key}"


class PromptRepository(ABC):
    """Abstract persistence interface for prompt overrides."""

    @abstractmethod
    async def get_active(self, agent_name: str, prompt_key: str) -> Optional[AgentPrompt]:  # pragma: no cover - interface stub
        """Return the active prompt row for a key, if any."""
        ...

    @abstractmethod
    async def list_active(self) -> List[AgentPrompt]:  # pragma: no cover - interface stub
        """Return every active prompt row."""
        ...

    @abstractmethod
    async def upsert(self, prompt: AgentPrompt) -> AgentPrompt:  # pragma: no cover - interface stub
        """Create or replace the active row for the prompt's key."""
        ...

    @abstractmethod
    async def deactivate(self, agent_name: str, prompt_key: str) -> bool:  # pragma: no cover - interface stub
        """Mark the row for a key inactive; return whether an active row existed."""
        ...


class InMemoryPromptRepository(PromptRepository):
    """In-memory repository useful for testing and local runs."""

    def __init__(self) -> None:
        self._storage: Dict[Tuple[str, str], AgentPrompt] = {}

    async def get_active(self, agent_name: str, prompt_key: str) -> Optional[AgentPrompt]:
        prompt = self._storage.get((agent_name, prompt_key))
        if prompt is None or not prompt.is_active:
            return None
        return prompt

    async def list_active(self) -> List[AgentPrompt]:
        return [prompt for prompt in self._storage.values() if prompt.is_active]

    async def upsert(self, prompt: AgentPrompt) -> AgentPrompt:
        self._storage[prompt.key] = prompt
        return prompt

    async def deactivate(self, agent_name: str, prompt_key: str) -> bool:
        prompt = self._storage.get((agent_name, prompt_key))
        if prompt is None or not prompt.is_active:
            return False
        self._storage[prompt.key] = prompt.model_copy(update={"is_active": False})
        return True


class FirestorePromptRepository(PromptRepository):
    """Firestore-backed repository for prompt overrides."""

    def __init__(self, client: Any, collection: str = "admin_prompts") -> None:
        self._client = client
        self._collection = collection

    def _document(self, agent_name: str, prompt_key: str) -> Any:
        return self._client.collection(self._collection).document(prompt_document_id(agent_name, prompt_key))

    async def get_active(self, agent_name: str, prompt_key: str) -> Optional[AgentPrompt]:
        snapshot = await asyncio.to_thread(lambda: self._document(agent_name, prompt_key).get())
        if snapshot is None or not getattr(snapshot, "exists", False):
            return None
        data = snapshot.to_dict() or {}
        if not data or not data.get("isActive", True):
            return None
        return AgentPrompt.model_validate(data)

    async def list_active(self) -> List[AgentPrompt]:
        def _read() -> List[Dict[str, Any]]:
            return [snapshot.to_dict() or {} for snapshot in self._client.collection(self._collection).stream()]

        rows = await asyncio.to_thread(_read)
        return [AgentPrompt.model_validate(row) for row in rows if row and row.get("isActive", True)]

    async def upsert(self, prompt: AgentPrompt) -> AgentPrompt:
        payload = prompt.model_dump(mode="json", by_alias=True)
        await asyncio.to_thread(lambda: self._document(prompt.agent_name, prompt.prompt_key).set(payload))
        return prompt

    async def deactivate(self, agent_name: str, prompt_key: str) -> bool:
        def _update() -> bool:
            document = self._document(agent_name, prompt_key)
            snapshot = document.get()
            if snapshot is None or not getattr(snapshot, "exists", False):
                return False
            data = dict(snapshot.to_dict() or {})
            if not data.get("isActive", True):
                return False
            data["isActive"] = False
            document.set(data)
            return True

        return await asyncio.to_thread(_update)
