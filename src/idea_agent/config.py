"""Application configuration models and access helpers."""
from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    environment: str = "development"
    log_level: str = "INFO"
    api_prefix: str = "/v1"
    api_key: str | None = None
    admin_api_key: str | None = None
    require_authentication: bool = False
    enable_prometheus: bool = True

    openai_api_key: str | None = None
    openai_model: str = "gpt-4.1-mini"
    openai_base_url: str | None = None
    llm_timeout_seconds: float = 60.0

    agent_timeout_seconds: float = 90.0
    agent_max_attempts: int = 3
    agent_backoff_seconds: float = 0.5
    agent_backoff_cap_seconds: float = 4.0
    prompt_cache_ttl_seconds: float = 300.0
    score_weights_version: str = "v1"

    default_ideas_per_request: int = 1
    max_ideas_per_request: int = 3
    daily_idea_count: int = 4
    daily_idea_delay_seconds: float = 10.0
    history_window_hours: int = 24
    inline_results_for_anonymous: bool = True
    seed_prompts_on_startup: bool = True

    use_firestore: bool = False
    firebase_project_id: str | None = None
    firebase_credentials_path: str | None = None
    firebase_app_name: str | None = None
    firebase_auth_check_revoked: bool = False
    firestore_requests_collection: str = "generation_requests"
    firestore_ideas_collection: str = "generated_ideas"
    firestore_prompts_collection: str = "admin_prompts"

    model_config = SettingsConfigDict(env_prefix="IDEA_AGENT_", case_sensitive=False)


@lru_cache
def get_settings() -> AppSettings:
    """Return a cached instance of the application settings."""

    return AppSettings()
