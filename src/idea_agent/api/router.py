"""API router wiring for idea generation endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from idea_agent.auth import AuthContext, require_user, resolve_auth_context
from idea_agent.errors import InvalidTransitionError
from idea_agent.models.generation import (
    GenerationAccepted,
    GenerationRequest,
    GenerationSubmission,
    IdeaPage,
)
from idea_agent.models.idea import SynthesizedIdea
from idea_agent.services.idea_service import IdeaGenerationService

api_router = APIRouter(tags=["generation"])

logger = logging.getLogger(__name__)


def get_idea_service(request: Request) -> IdeaGenerationService:
    """Resolve the configured idea service from the FastAPI application state."""

    try:
        return request.app.state.idea_service
    except AttributeError as exc:  # pragma: no cover
        raise RuntimeError("Idea service not configured on application state") from exc


@api_router.post(
    "/generations",
    response_model=GenerationAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start an idea generation request",
)
async def submit_generation(
    submission: GenerationSubmission,
    auth: AuthContext = Depends(resolve_auth_context),
    service: IdeaGenerationService = Depends(get_idea_service),
) -> GenerationAccepted:
    """Queue a generation request and return its id for polling."""

    try:
        return await service.submit(submission, user_id=auth.uid)
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover
        logger.exception("Generation submission failed")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to start idea generation") from exc


@api_router.get(
    "/generations/{request_id}",
    response_model=GenerationRequest,
    summary="Poll the status of a generation request",
)
async def get_generation(
    request_id: str,
    auth: AuthContext = Depends(resolve_auth_context),
    service: IdeaGenerationService = Depends(get_idea_service),
) -> GenerationRequest:
    try:
        return await service.get_status(request_id, user_id=auth.uid)
    except KeyError as exc:
        detail = exc.args[0] if exc.args else "Generation request not found"
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=detail) from exc
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to retrieve generation request")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to retrieve generation request") from exc


@api_router.post(
    "/generations/{request_id}/retry",
    response_model=GenerationAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Retry a failed generation request",
)
async def retry_generation(
    request_id: str,
    auth: AuthContext = Depends(resolve_auth_context),
    service: IdeaGenerationService = Depends(get_idea_service),
) -> GenerationAccepted:
    """Start a new request with the same inputs as a FAILED one."""

    try:
        return await service.retry(request_id, user_id=auth.uid)
    except KeyError as exc:
        detail = exc.args[0] if exc.args else "Generation request not found"
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=detail) from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to retry generation request")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to retry generation request") from exc


@api_router.get("/ideas", response_model=IdeaPage, summary="List the caller's generated ideas")
async def list_ideas(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    auth: AuthContext = Depends(require_user),
    service: IdeaGenerationService = Depends(get_idea_service),
) -> IdeaPage:
    try:
        return await service.list_generated_ideas(user_id=auth.uid, limit=limit, offset=offset)
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to list ideas")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to list ideas") from exc


@api_router.get("/ideas/{idea_id}", response_model=SynthesizedIdea, summary="Retrieve a generated idea")
async def get_idea(
    idea_id: str,
    auth: AuthContext = Depends(require_user),
    service: IdeaGenerationService = Depends(get_idea_service),
) -> SynthesizedIdea:
    try:
        return await service.get_generated_idea(idea_id, user_id=auth.uid)
    except KeyError as exc:
        detail = exc.args[0] if exc.args else "Idea not found"
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=detail) from exc
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to retrieve idea")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to retrieve idea") from exc
