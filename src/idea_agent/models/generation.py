"""Pydantic models describing generation requests and their polling contract."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List
from uuid import uuid4

from pydantic import Field

from idea_agent.models.idea import CamelModel, SynthesizedIdea


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GenerationStatus(str, Enum):
    """Lifecycle states for a generation request."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStatus.COMPLETED, GenerationStatus.FAILED)


class GenerationRequest(CamelModel):
    """Durable job record advanced by the orchestrator and polled by callers."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Opaque caller-visible identifier.")
    user_id: str | None = Field(default=None, description="Owner of the request; None for anonymous callers.")
    prompt: str | None = Field(default=None, description="Optional caller steer for the research director.")
    count: int = Field(default=1, ge=1, description="Number of ideas requested.")
    retry_of: str | None = Field(default=None, description="Request this run retries, if any.")
    status: GenerationStatus = Field(default=GenerationStatus.PENDING)
    current_step: str = Field(default="Initializing", description="Label of the active pipeline stage.")
    progress_message: str = Field(default="", description="Free-text status for display.")
    image_state: str | None = Field(default=None, description="Decorative UI hint for the current step.")
    generated_idea_ids: List[str] = Field(default_factory=list)
    generated_ideas_data: List[Dict[str, Any]] | None = Field(
        default=None,
        description="Inline idea snapshot for callers without authenticated retrieval.",
    )
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class GenerationSubmission(CamelModel):
    """Inbound contract for on-demand generation."""

    prompt: str | None = Field(default=None, max_length=2000, description="Optional theme or query.")
    count: int | None = Field(default=None, ge=1, description="Number of ideas to generate.")


class GenerationAccepted(CamelModel):
    """Response returned immediately after a request is queued."""

    request_id: str
    status: GenerationStatus
    message: str


class IdeaPage(CamelModel):
    """Paginated list of generated ideas."""

    items: List[SynthesizedIdea]
    limit: int
    offset: int
    has_more: bool
