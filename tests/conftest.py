"""Shared pytest configuration for the idea-agent test suite."""
from __future__ import annotations

import os

import pytest

from idea_agent.config import get_settings

# Ensure tests run in isolated, deterministic mode without external network traffic.
os.environ.setdefault("IDEA_AGENT_ENVIRONMENT", "test")
os.environ.setdefault("IDEA_AGENT_SEED_PROMPTS_ON_STARTUP", "false")


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> None:
    """Reset cached settings around each test to honor environment changes."""

    get_settings.cache_clear()  # type: ignore[attr-defined]
    try:
        yield
    finally:
        get_settings.cache_clear()  # type: ignore[attr-defined]
