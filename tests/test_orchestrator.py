"""End-to-end orchestration tests over in-memory storage and a scripted LLM."""
from __future__ import annotations

import asyncio
import logging
import threading

import pytest

from idea_agent.models.generation import GenerationStatus
from idea_agent.orchestration.orchestrator import GENERIC_FAILURE_MESSAGE, INTERRUPTED_MESSAGE
from idea_agent.prompts.defaults import DEFAULT_PROMPTS, SYSTEM_PROMPT, TREND_RESEARCH_AGENT, WHAT_TO_BUILD_AGENT
from idea_agent.repositories.idea_repository import InMemoryIdeaRepository
from idea_agent.workflows.generation_workflow import GenerationWorkflowClient

from stubs import ScriptedLLM, make_container, payload


class _FailingIdeaRepository(InMemoryIdeaRepository):
    async def save(self, idea):
        raise RuntimeError("disk full")


class _BlockingLLM(ScriptedLLM):
    """Blocks inside trend research until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def complete(self, system_prompt, user_prompt, *, operation, temperature=None, max_tokens=None):
        if operation == "trend_research":
            self.entered.set()
            self.release.wait(timeout=5)
        return super().complete(
            system_prompt, user_prompt, operation=operation, temperature=temperature, max_tokens=max_tokens
        )


class _RendezvousLLM(ScriptedLLM):
    """Holds trend research until two runs are inside it at once."""

    def __init__(self) -> None:
        super().__init__()
        self.barrier = threading.Barrier(2, timeout=2)

    def complete(self, system_prompt, user_prompt, *, operation, temperature=None, max_tokens=None):
        if operation == "trend_research":
            self.barrier.wait()
        return super().complete(
            system_prompt, user_prompt, operation=operation, temperature=temperature, max_tokens=max_tokens
        )


@pytest.mark.asyncio
async def test_anonymous_request_completes_with_inline_idea() -> None:
    llm = ScriptedLLM()
    container = make_container(llm)
    request = await container.tracker.create(user_id=None, prompt="personal finance")

    final = await container.orchestrator.execute(request.id)

    assert final.status is GenerationStatus.COMPLETED
    assert len(final.generated_idea_ids) == 1
    assert final.error_message is None
    assert final.current_step == "Complete"
    idea = await container.ideas.get(final.generated_idea_ids[0])
    assert "fintech" in idea.tags
    assert 0 <= idea.scoring.total_score <= 100
    assert idea.request_id == request.id
    assert idea.prompt == "personal finance"
    assert final.generated_ideas_data[0]["title"] == "FlowCash"
    assert "personal finance" in llm.calls_for("research_direction")[0].user_prompt


@pytest.mark.asyncio
async def test_owned_request_does_not_inline_results() -> None:
    container = make_container(ScriptedLLM())
    request = await container.tracker.create(user_id="user-1", prompt=None)

    final = await container.orchestrator.execute(request.id)

    assert final.status is GenerationStatus.COMPLETED
    assert final.generated_ideas_data is None
    assert (await container.ideas.get(final.generated_idea_ids[0])).user_id == "user-1"


@pytest.mark.asyncio
async def test_stage_timeouts_fail_request_without_persisting() -> None:
    llm = ScriptedLLM({"competitive_analysis": [TimeoutError(), TimeoutError(), TimeoutError()]})
    container = make_container(llm)
    request = await container.tracker.create(user_id="user-1", prompt=None)

    final = await container.orchestrator.execute(request.id)

    assert final.status is GenerationStatus.FAILED
    assert "competitive analysis" in final.error_message.lower()
    assert final.generated_idea_ids == []
    assert len(container.ideas) == 0
    assert len(llm.calls_for("competitive_analysis")) == 3


@pytest.mark.asyncio
async def test_missing_prompt_row_uses_compiled_default() -> None:
    llm = ScriptedLLM()
    container = make_container(llm)
    await container.prompt_store.update_prompt(TREND_RESEARCH_AGENT, SYSTEM_PROMPT, "Only look at pet care trends.")
    request = await container.tracker.create(user_id=None, prompt=None)

    final = await container.orchestrator.execute(request.id)

    assert final.status is GenerationStatus.COMPLETED
    assert llm.calls_for("technical_planning")[0].system_prompt == DEFAULT_PROMPTS[(WHAT_TO_BUILD_AGENT, SYSTEM_PROMPT)]
    assert llm.calls_for("trend_research")[0].system_prompt == "Only look at pet care trends."


@pytest.mark.asyncio
async def test_multi_idea_request_skips_failed_ideas_and_feeds_history() -> None:
    llm = ScriptedLLM(
        {
            "competitive_analysis": [
                payload("competitive_analysis"),
                TimeoutError(),
                TimeoutError(),
                TimeoutError(),
            ]
        }
    )
    container = make_container(llm)
    request = await container.tracker.create(user_id="user-1", prompt=None, count=2)

    final = await container.orchestrator.execute(request.id)

    assert final.status is GenerationStatus.COMPLETED
    assert len(final.generated_idea_ids) == 1
    assert "FlowCash" in llm.calls_for("research_direction")[1].user_prompt


@pytest.mark.asyncio
async def test_unexpected_errors_become_generic_failures() -> None:
    container = make_container(ScriptedLLM())
    container.orchestrator.assembler.repository = _FailingIdeaRepository()
    request = await container.tracker.create(user_id=None, prompt=None)

    final = await container.orchestrator.execute(request.id)

    assert final.status is GenerationStatus.FAILED
    assert final.error_message == GENERIC_FAILURE_MESSAGE
    assert "disk full" not in final.error_message


@pytest.mark.asyncio
async def test_execute_skips_requests_already_picked_up() -> None:
    llm = ScriptedLLM()
    container = make_container(llm)
    request = await container.tracker.create(user_id=None, prompt=None)
    await container.orchestrator.execute(request.id)
    calls = len(llm.calls)

    again = await container.orchestrator.execute(request.id)

    assert again.status is GenerationStatus.COMPLETED
    assert len(llm.calls) == calls


@pytest.mark.asyncio
async def test_workflow_client_runs_in_background() -> None:
    container = make_container(ScriptedLLM())
    client = GenerationWorkflowClient(orchestrator=container.orchestrator)
    request = await container.tracker.create(user_id=None, prompt=None)

    client.submit(request.id)
    with pytest.raises(RuntimeError):
        client.submit(request.id)
    await client.wait(request.id)

    assert not client.is_running(request.id)
    assert (await container.tracker.get(request.id)).status is GenerationStatus.COMPLETED


@pytest.mark.asyncio
async def test_shutdown_marks_in_flight_requests_failed() -> None:
    llm = _BlockingLLM()
    container = make_container(llm)
    client = GenerationWorkflowClient(orchestrator=container.orchestrator)
    request = await container.tracker.create(user_id=None, prompt=None)

    client.submit(request.id)
    try:
        for _ in range(200):
            if llm.entered.is_set():
                break
            await asyncio.sleep(0.01)
        assert llm.entered.is_set()

        await client.close()
    finally:
        llm.release.set()

    final = await container.tracker.get(request.id)
    assert final.status is GenerationStatus.FAILED
    assert final.error_message == INTERRUPTED_MESSAGE


@pytest.mark.asyncio
async def test_concurrent_requests_keep_separate_progress_and_results() -> None:
    llm = _RendezvousLLM()
    container = make_container(llm)
    client = GenerationWorkflowClient(orchestrator=container.orchestrator)
    first = await container.tracker.create(user_id="user-1", prompt="pet care")
    second = await container.tracker.create(user_id="user-2", prompt="logistics")

    client.submit(first.id)
    client.submit(second.id)
    await asyncio.gather(client.wait(first.id), client.wait(second.id))

    finals = [await container.tracker.get(request.id) for request in (first, second)]
    ideas = [await container.ideas.get(final.generated_idea_ids[0]) for final in finals]
    assert [final.status for final in finals] == [GenerationStatus.COMPLETED, GenerationStatus.COMPLETED]
    assert [final.current_step for final in finals] == ["Complete", "Complete"]
    assert [len(final.generated_idea_ids) for final in finals] == [1, 1]
    assert ideas[0].id != ideas[1].id
    assert [(idea.request_id, idea.user_id, idea.prompt) for idea in ideas] == [
        (first.id, "user-1", "pet care"),
        (second.id, "user-2", "logistics"),
    ]
    assert len(llm.calls_for("trend_research")) == 2


@pytest.mark.asyncio
async def test_finished_generation_log_includes_stage_summary(caplog: pytest.LogCaptureFixture) -> None:
    container = make_container(ScriptedLLM())
    request = await container.tracker.create(user_id=None, prompt=None)
    caplog.set_level(logging.INFO, logger="idea_agent.orchestration.orchestrator")

    await container.orchestrator.execute(request.id)

    finished = [record.getMessage() for record in caplog.records if record.getMessage().startswith("Finished generation")]
    assert len(finished) == 1
    assert "'critical_review': {'invocations': 1" in finished[0]
    assert container.orchestrator.telemetry.stage_summary(request.id) == {}
