"""Administrative routes for prompt management."""
from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from idea_agent.auth import AuthContext, require_admin
from idea_agent.errors import StageFailedError
from idea_agent.models.prompt import PromptTestRequest, PromptTestResult, PromptUpdate, PromptView
from idea_agent.services.prompt_service import PromptAdminService

admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

logger = logging.getLogger(__name__)


def get_prompt_service(request: Request) -> PromptAdminService:
    try:
        return request.app.state.prompt_service
    except AttributeError as exc:  # pragma: no cover
        raise RuntimeError("Prompt service not configured on application state") from exc


@admin_router.get("/prompts", response_model=List[PromptView], summary="List effective agent prompts")
async def list_prompts(service: PromptAdminService = Depends(get_prompt_service)) -> List[PromptView]:
    try:
        return await service.get_prompts()
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to list prompts")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to list prompts") from exc


@admin_router.put("/prompts", response_model=PromptView, summary="Create or replace a prompt override")
async def update_prompt(
    update: PromptUpdate,
    auth: AuthContext = Depends(require_admin),
    service: PromptAdminService = Depends(get_prompt_service),
) -> PromptView:
    """Store an override; the cached value for that key is dropped immediately."""

    try:
        return await service.update_prompt(update, updated_by=auth.label)
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to update prompt")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update prompt") from exc


@admin_router.delete(
    "/prompts/{agent_name}/{prompt_key}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate a prompt override",
)
async def deactivate_prompt(
    agent_name: str,
    prompt_key: str,
    service: PromptAdminService = Depends(get_prompt_service),
) -> Response:
    try:
        await service.deactivate_prompt(agent_name, prompt_key)
    except KeyError as exc:
        detail = exc.args[0] if exc.args else "Prompt not found"
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=detail) from exc
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to deactivate prompt")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to deactivate prompt") from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@admin_router.post("/prompts/test", response_model=PromptTestResult, summary="Generate one idea with trial prompts")
async def test_prompts(
    request: PromptTestRequest,
    auth: AuthContext = Depends(require_admin),
    service: PromptAdminService = Depends(get_prompt_service),
) -> PromptTestResult:
    """Run the full pipeline once using unsaved overrides; shared prompts are untouched."""

    try:
        return await service.test_prompt_generation(request, user_id=auth.uid)
    except ValueError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except StageFailedError as exc:
        logger.warning("Admin test generation failed at stage %s", exc.stage, exc_info=True)
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=exc.caller_message) from exc
    except HTTPException:
        raise
    except Exception as exc:  # pragma: no cover
        logger.exception("Admin test generation failed")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Test generation failed") from exc


@admin_router.get("/prompts/cache", summary="Inspect the prompt cache")
async def cache_stats(service: PromptAdminService = Depends(get_prompt_service)) -> Dict[str, object]:
    return service.cache_stats()


@admin_router.post("/prompts/cache/clear", summary="Clear the prompt cache")
async def clear_cache(service: PromptAdminService = Depends(get_prompt_service)) -> Dict[str, object]:
    return service.clear_cache()
