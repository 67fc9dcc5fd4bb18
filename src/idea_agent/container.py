"""Component wiring shared by the HTTP app, the daily worker and the seeding script."""
from __future__ import annotations

from dataclasses import dataclass

from idea_agent.config import AppSettings
from idea_agent.db.firebase import FirebaseHandle, initialize_firebase
from idea_agent.llm import BaseLLM, build_llm
from idea_agent.orchestration.assembler import IdeaAssembler
from idea_agent.orchestration.orchestrator import GenerationOrchestrator
from idea_agent.orchestration.pipeline import IdeaPipeline
from idea_agent.orchestration.tracker import GenerationTracker
from idea_agent.prompts.store import PromptCache, PromptStore
from idea_agent.repositories.generation_repository import (
    FirestoreGenerationRequestRepository,
    GenerationRequestRepository,
    InMemoryGenerationRequestRepository,
)
from idea_agent.repositories.idea_repository import (
    FirestoreIdeaRepository,
    IdeaRepository,
    InMemoryIdeaRepository,
)
from idea_agent.repositories.prompt_repository import (
    FirestorePromptRepository,
    InMemoryPromptRepository,
    PromptRepository,
)


@dataclass(slots=True)
class ServiceContainer:
    """Repositories and orchestration components built from one settings object."""

    settings: AppSettings
    firebase: FirebaseHandle | None
    requests: GenerationRequestRepository
    ideas: IdeaRepository
    prompts: PromptRepository
    prompt_store: PromptStore
    llm: BaseLLM
    tracker: GenerationTracker
    orchestrator: GenerationOrchestrator


def build_container(settings: AppSettings, llm: BaseLLM | None = None) -> ServiceContainer:
    """Wire repositories, prompt store, pipeline and orchestrator from settings."""

    firebase_handle: FirebaseHandle | None = None
    requests: GenerationRequestRepository
    ideas: IdeaRepository
    prompts: PromptRepository
    if settings.use_firestore:
        firebase_handle = initialize_firebase(settings)
        requests = FirestoreGenerationRequestRepository(firebase_handle.client, firebase_handle.collections.requests)
        ideas = FirestoreIdeaRepository(firebase_handle.client, firebase_handle.collections.ideas)
        prompts = FirestorePromptRepository(firebase_handle.client, firebase_handle.collections.prompts)
    else:
        requests = InMemoryGenerationRequestRepository()
        ideas = InMemoryIdeaRepository()
        prompts = InMemoryPromptRepository()

    backend = llm or build_llm(settings)
    prompt_store = PromptStore(repository=prompts, cache=PromptCache(ttl_seconds=settings.prompt_cache_ttl_seconds))
    tracker = GenerationTracker(repository=requests)
    orchestrator = GenerationOrchestrator(
        tracker=tracker,
        pipeline=IdeaPipeline.from_settings(settings, backend, prompt_store),
        assembler=IdeaAssembler(repository=ideas, weights_version=settings.score_weights_version),
        ideas=ideas,
        inline_results_for_anonymous=settings.inline_results_for_anonymous,
        history_window_hours=settings.history_window_hours,
    )
    return ServiceContainer(
        settings=settings,
        firebase=firebase_handle,
        requests=requests,
        ideas=ideas,
        prompts=prompts,
        prompt_store=prompt_store,
        llm=backend,
        tracker=tracker,
        orchestrator=orchestrator,
    )


