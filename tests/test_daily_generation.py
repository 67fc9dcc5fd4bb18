"""Tests for the daily batch worker."""
from __future__ import annotations

from datetime import date
from typing import List

import pytest

from idea_agent.models.idea import IdeaSource
from idea_agent.workers.daily_generation import run_daily_batch

from stubs import ScriptedLLM, make_container, payload


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.mark.asyncio
async def test_daily_batch_generates_requested_ideas_with_delays() -> None:
    llm = ScriptedLLM()
    container = make_container(llm)
    sleep = _RecordingSleep()

    summary = await run_daily_batch(
        container.orchestrator, count=3, delay_seconds=10.0, run_date=date(2026, 5, 1), sleep=sleep
    )

    assert summary.succeeded == 3
    assert summary.failed == 0
    assert [attempt.request_id for attempt in summary.attempts] == [
        "daily-2026-05-01-1",
        "daily-2026-05-01-2",
        "daily-2026-05-01-3",
    ]
    assert sleep.delays == [10.0, 10.0]
    stored = [await container.ideas.get(attempt.idea_id) for attempt in summary.attempts]
    assert all(idea.source is IdeaSource.DAILY and idea.user_id is None for idea in stored)


@pytest.mark.asyncio
async def test_daily_batch_feeds_earlier_ideas_to_the_director() -> None:
    llm = ScriptedLLM({"idea_synthesis": [payload("idea_synthesis", title="ShiftPay")]})
    container = make_container(llm)

    await run_daily_batch(container.orchestrator, count=2, delay_seconds=0, sleep=_RecordingSleep())

    director_calls = llm.calls_for("research_direction")
    assert "ShiftPay" not in director_calls[0].user_prompt
    assert "ShiftPay" in director_calls[1].user_prompt


@pytest.mark.asyncio
async def test_daily_batch_records_failures_and_moves_on() -> None:
    llm = ScriptedLLM({"trend_research": [TimeoutError(), TimeoutError(), TimeoutError()]})
    container = make_container(llm)
    sleep = _RecordingSleep()

    summary = await run_daily_batch(container.orchestrator, count=2, delay_seconds=5.0, sleep=sleep)

    first, second = summary.attempts
    assert not first.succeeded
    assert first.error == "Trend research failed after 3 attempts. Please try again."
    assert second.succeeded
    assert second.title == "FlowCash"
    assert summary.failed == 1
    assert sleep.delays == [5.0]
    telemetry = container.orchestrator.telemetry
    assert all(telemetry.stage_summary(attempt.request_id) == {} for attempt in summary.attempts)
