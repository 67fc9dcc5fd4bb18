"""Pydantic models for administrable agent prompts."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import Field, field_validator

from idea_agent.models.idea import CamelModel, SynthesizedIdea


class AgentPrompt(CamelModel):
    """Stored prompt override keyed by ``(agent_name, prompt_key)``."""

    agent_name: str = Field(..., min_length=1)
    prompt_key: str = Field(..., min_length=1)
    prompt_content: str = ""
    updated_by: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_active: bool = True

    @property
    def key(self) -> tuple[str, str]:
        return (self.agent_name, self.prompt_key)


class PromptView(CamelModel):
    """Effective prompt as reported to administrators."""

    agent_name: str
    prompt_key: str
    prompt_content: str
    is_default: bool
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class PromptUpdate(CamelModel):
    """Administrative upsert of a prompt override."""

    agent_name: str = Field(..., min_length=1)
    prompt_key: str = Field(..., min_length=1)
    prompt_content: str = Field(..., description="New prompt text; at least 10 non-blank characters.")

    @field_validator("prompt_content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if len(value.strip()) < 10:
            raise ValueError("Prompt content must be at least 10 characters")
        return value


class PromptTestRequest(CamelModel):
    """Run one pipeline pass with optional unsaved prompt overrides.

    ``overrides`` maps ``"AgentName.promptKey"`` to prompt text.
    """

    prompt: Optional[str] = Field(default=None, max_length=2000)
    overrides: Dict[str, str] = Field(default_factory=dict)


class PromptTestResult(CamelModel):
    idea: SynthesizedIdea
    overridden_keys: list[str] = Field(default_factory=list)
