"""Repository abstractions for generation request records."""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from idea_agent.models.generation import GenerationRequest


class GenerationRequestRepository(ABC):
    """Abstract persistence interface for generation requests."""

    @abstractmethod
    async def save(self, request: GenerationRequest) -> None:  # pragma: no cover - interface stub
        """Persist or replace a generation request."""
        ...

    @abstractmethod
    async def get(self, request_id: str) -> Optional[GenerationRequest]:  # pragma: no cover - interface stub
        """Retrieve a generation request by its identifier."""
        ...


class InMemoryGenerationRequestRepository(GenerationRequestRepository):
    """In-memory repository useful for testing and local runs."""

    def __init__(self) -> None:
        self._storage: Dict[str, GenerationRequest] = {}

    async def save(self, request: GenerationRequest) -> None:
        # Stored copies keep callers from mutating persisted state in place.
        self._storage[request.id] = request.model_copy(deep=True)

    async def get(self, request_id: str) -> Optional[GenerationRequest]:
        stored = self._storage.get(request_id)
        return stored.model_copy(deep=True) if stored is not None else None


class FirestoreGenerationRequestRepository(GenerationRequestRepository):
    """Firestore-backed repository for generation requests."""

    def __init__(self, client: Any, collection: str = "generation_requests") -> None:
        self._client = client
        self._collection = collection

    async def save(self, request: GenerationRequest) -> None:
        payload = request.model_dump(mode="json", by_alias=True)

        def _write() -> None:
            self._client.collection(self._collection).document(request.id).set(payload)

        await asyncio.to_thread(_write)

    async def get(self, request_id: str) -> Optional[GenerationRequest]:
        def _read() -> Any:
            return self._client.collection(self._collection).document(request_id).get()

        snapshot = await asyncio.to_thread(_read)
        if snapshot is None or not getattr(snapshot, "exists", False):
            return None
        data = snapshot.to_dict() or {}
        if not data:
            return None
        return GenerationRequest.model_validate(data)
