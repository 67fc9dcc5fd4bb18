"""Batch entrypoint producing the daily set of ideas."""
from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Awaitable, Callable, List, Optional

from dotenv import load_dotenv

from idea_agent.config import get_settings
from idea_agent.container import build_container
from idea_agent.errors import StageFailedError
from idea_agent.logging import configure_logging
from idea_agent.models.idea import IdeaSource, SynthesizedIdea
from idea_agent.orchestration.orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DailyAttempt:
    number: int
    request_id: str
    idea_id: str | None = None
    title: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.idea_id is not None


@dataclass(slots=True)
class DailyBatchSummary:
    requested: int
    attempts: List[DailyAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.succeeded)

    @property
    def failed(self) -> int:
        return len(self.attempts) - self.succeeded


async def run_daily_batch(
    orchestrator: GenerationOrchestrator,
    *,
    count: int,
    delay_seconds: float = 10.0,
    run_date: Optional[date] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> DailyBatchSummary:
    """Generate ``count`` ideas one after another with ``delay_seconds`` between runs.

    Recent ideas and those produced earlier in the batch are handed to the research
    director so the day's ideas stay diverse. A failed idea is recorded and the batch
    moves on.
    """

    stamp = (run_date or date.today()).isoformat()
    summary = DailyBatchSummary(requested=count)
    history = await orchestrator.load_history()
    produced: List[SynthesizedIdea] = []

    for number in range(1, count + 1):
        attempt = DailyAttempt(number=number, request_id=f"daily-{stamp}-{number}")
        try:
            with orchestrator.telemetry.context(request_id=attempt.request_id):
                idea = await orchestrator.generate_idea(
                    source=IdeaSource.DAILY,
                    request_id=attempt.request_id,
                    previous_ideas=produced + history,
                )
        except StageFailedError as exc:
            logger.warning("Daily idea %d/%d failed at stage %s", number, count, exc.stage, exc_info=True)
            attempt.error = exc.caller_message
        except Exception:
            logger.exception("Daily idea %d/%d failed unexpectedly", number, count)
            attempt.error = "Unexpected error"
        else:
            produced.append(idea)
            attempt.idea_id = idea.id
            attempt.title = idea.title
            logger.info("Daily idea %d/%d: %s", number, count, idea.title)
        finally:
            orchestrator.telemetry.discard(attempt.request_id)
        summary.attempts.append(attempt)

        if number < count and delay_seconds > 0:
            await sleep(delay_seconds)

    logger.info("Daily batch finished: %d/%d ideas generated", summary.succeeded, count)
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    """Run one daily batch from the command line."""

    load_dotenv()
    parser = argparse.ArgumentParser(description="Generate the daily batch of startup ideas.")
    parser.add_argument("--count", type=int, default=None, help="Number of ideas to generate")
    parser.add_argument("--delay", type=float, default=None, help="Seconds to wait between ideas")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)

    container = build_container(settings)

    async def _run() -> DailyBatchSummary:
        try:
            return await run_daily_batch(
                container.orchestrator,
                count=args.count if args.count is not None else settings.daily_idea_count,
                delay_seconds=args.delay if args.delay is not None else settings.daily_idea_delay_seconds,
            )
        finally:
            if container.firebase is not None:
                await container.firebase.dispose()

    summary = asyncio.run(_run())
    return 0 if summary.succeeded else 1


if __name__ == "__main__":  # pragma: no cover - manual entrypoint
    raise SystemExit(main())
