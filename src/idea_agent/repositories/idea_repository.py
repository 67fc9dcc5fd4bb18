"""Repository abstractions for synthesized idea records."""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from idea_agent.models.idea import SynthesizedIdea


class IdeaRepository(ABC):
    """Abstract persistence interface for synthesized ideas."""

    @abstractmethod
    async def save(self, idea: SynthesizedIdea) -> str:  # pragma: no cover - interface stub
        """Persist an idea and return its identifier."""
        ...

    @abstractmethod
    async def get(self, idea_id: str) -> Optional[SynthesizedIdea]:  # pragma: no cover - interface stub
        """Retrieve an idea by identifier."""
        ...

    @abstractmethod
    async def list_for_user(
        self, user_id: str, *, limit: int, offset: int = 0
    ) -> List[SynthesizedIdea]:  # pragma: no cover - interface stub
        """Return a user's ideas, newest first."""
        ...

    @abstractmethod
    async def list_recent(self, since: datetime, *, limit: int = 50) -> List[SynthesizedIdea]:  # pragma: no cover - interface stub
        """Return ideas created at or after ``since``, newest first."""
        ...


class InMemoryIdeaRepository(IdeaRepository):
    """In-memory repository useful for testing and local runs."""

    def __init__(self) -> None:
        self._storage: Dict[str, SynthesizedIdea] = {}

    async def save(self, idea: SynthesizedIdea) -> str:
        self._storage[idea.id] = idea.model_copy(deep=True)
        return idea.id

    async def get(self, idea_id: str) -> Optional[SynthesizedIdea]:
        return self._storage.get(idea_id)

    def _newest_first(self) -> List[SynthesizedIdea]:
        return sorted(self._storage.values(), key=lambda idea: idea.created_at, reverse=True)

    async def list_for_user(self, user_id: str, *, limit: int, offset: int = 0) -> List[SynthesizedIdea]:
        owned = [idea for idea in self._newest_first() if idea.user_id == user_id]
        return owned[offset : offset + limit]

    async def list_recent(self, since: datetime, *, limit: int = 50) -> List[SynthesizedIdea]:
        return [idea for idea in self._newest_first() if idea.created_at >= since][:limit]

    def __len__(self) -> int:
        return len(self._storage)


class FirestoreIdeaRepository(IdeaRepository):
    """Firestore-backed repository for synthesized ideas.

    ``createdAt`` is stored as a native Firestore timestamp.
    """

    def __init__(self, client: Any, collection: str = "generated_ideas") -> None:
        self._client = client
        self._collection = collection

    async def save(self, idea: SynthesizedIdea) -> str:
        payload = idea.model_dump(mode="json", by_alias=True)
        payload["createdAt"] = idea.created_at

        def _write() -> None:
            self._client.collection(self._collection).document(idea.id).set(payload)

        await asyncio.to_thread(_write)
        return idea.id

    async def get(self, idea_id: str) -> Optional[SynthesizedIdea]:
        def _read() -> Any:
            return self._client.collection(self._collection).document(idea_id).get()

        snapshot = await asyncio.to_thread(_read)
        if snapshot is None or not getattr(snapshot, "exists", False):
            return None
        data = snapshot.to_dict() or {}
        return SynthesizedIdea.model_validate(data) if data else None

    async def list_for_user(self, user_id: str, *, limit: int, offset: int = 0) -> List[SynthesizedIdea]:
        def _query() -> List[Dict[str, Any]]:
            query = (
                self._client.collection(self._collection)
                .where(filter=FieldFilter("userId", "==", user_id))
                .order_by("createdAt", direction=firestore.Query.DESCENDING)
                .offset(offset)
                .limit(limit)
            )
            return [snapshot.to_dict() or {} for snapshot in query.stream()]

        rows = await asyncio.to_thread(_query)
        return [SynthesizedIdea.model_validate(row) for row in rows if row]

    async def list_recent(self, since: datetime, *, limit: int = 50) -> List[SynthesizedIdea]:
        def _query() -> List[Dict[str, Any]]:
            query = (
                self._client.collection(self._collection)
                .where(filter=FieldFilter("createdAt", ">=", since))
                .order_by("createdAt", direction=firestore.Query.DESCENDING)
                .limit(limit)
            )
            return [snapshot.to_dict() or {} for snapshot in query.stream()]

        rows = await asyncio.to_thread(_query)
        return [SynthesizedIdea.model_validate(row) for row in rows if row]
