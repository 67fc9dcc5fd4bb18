"""FastAPI application entrypoint for the idea generation service."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.responses import Response

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from idea_agent.api.admin import admin_router
from idea_agent.api.router import api_router
from idea_agent.config import AppSettings, get_settings
from idea_agent.container import build_container
from idea_agent.llm import BaseLLM
from idea_agent.logging import configure_logging
from idea_agent.metrics import record_request_metrics
from idea_agent.services.idea_service import IdeaGenerationService
from idea_agent.services.prompt_service import PromptAdminService
from idea_agent.telemetry import RequestContextMiddleware
from idea_agent.workflows.generation_workflow import GenerationWorkflowClient

logger = logging.getLogger(__name__)


def _make_request_recorder(enabled: bool):
    def _record(request: Request, response: Response, latency: float) -> None:
        if not enabled:
            return
        route = request.scope.get("path") or request.url.path
        record_request_metrics(request.method, route, response.status_code, latency)

    return _record


def create_app(settings: AppSettings | None = None, llm: BaseLLM | None = None) -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    app_settings = settings or get_settings()
    configure_logging(app_settings.log_level)

    container = build_container(app_settings, llm)
    workflow_client = GenerationWorkflowClient(orchestrator=container.orchestrator)
    idea_service = IdeaGenerationService(
        tracker=container.tracker,
        ideas=container.ideas,
        workflow_client=workflow_client,
        default_count=app_settings.default_ideas_per_request,
        max_count=app_settings.max_ideas_per_request,
    )
    prompt_service = PromptAdminService(
        store=container.prompt_store,
        orchestrator=container.orchestrator,
        llm=container.llm,
    )

    def _expose(target: FastAPI) -> None:
        target.state.settings = app_settings
        target.state.container = container
        target.state.firebase = container.firebase
        target.state.workflow_client = workflow_client
        target.state.idea_service = idea_service
        target.state.prompt_service = prompt_service

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _expose(app)
        if app_settings.seed_prompts_on_startup:
            try:
                await container.prompt_store.seed_defaults()
            except Exception:
                logger.warning("Prompt seeding failed; agents will use built-in defaults", exc_info=True)
        try:
            yield
        finally:
            await workflow_client.close()
            if container.firebase is not None:
                await container.firebase.dispose()

    application = FastAPI(
        title="Startup Idea Generation API",
        version="0.1.0",
        description="Runs the multi-agent research pipeline and serves the resulting startup ideas.",
        lifespan=lifespan,
    )
    application.add_middleware(
        RequestContextMiddleware,
        recorder=_make_request_recorder(app_settings.enable_prometheus),
    )

    application.include_router(api_router, prefix=app_settings.api_prefix)
    application.include_router(admin_router, prefix=app_settings.api_prefix)

    # Expose core components immediately so tooling can reach them without a lifespan.
    _expose(application)

    if app_settings.enable_prometheus:
        @application.get("/metrics")
        async def metrics_endpoint() -> Response:
            return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return application


app = create_app()
