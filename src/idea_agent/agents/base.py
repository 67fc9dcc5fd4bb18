"""Generic agent contract shared by every pipeline role."""
from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from idea_agent.agents.context import PipelineContext
from idea_agent.errors import AgentValidationError, LLMNonRetryableError
from idea_agent.llm import BaseLLM, extract_json
from idea_agent.prompts.defaults import SYSTEM_PROMPT
from idea_agent.prompts.store import PromptSource

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)

REPAIR_INSTRUCTIONS = (
    "Your previous response could not be used. Return valid JSON only: a single object that matches "
    "the schema exactly, with correct types, no markdown, no trailing commas and no raw line breaks "
    "inside string values."
)

_MAX_ERROR_DETAIL = 500


def render(model: BaseModel | None) -> str:
    """Serialise an upstream result for inclusion in a prompt."""

    if model is None:
        return "(not available)"
    return json.dumps(model.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2)


class Agent(ABC, Generic[ResultT]):
    """Single-responsibility reasoning stage returning one typed result.

    Subclasses declare their prompt key, result model and the upstream context slots
    they read. Output that fails JSON parsing or shape validation gets one
    self-correction call before the failure is classified fatal; transport errors
    propagate untouched so the pipeline can retry them.
    """

    agent_name: ClassVar[str]
    stage: ClassVar[str]
    prompt_key: ClassVar[str] = SYSTEM_PROMPT
    result_model: ClassVar[Type[BaseModel]]
    requires: ClassVar[Tuple[str, ...]] = ()
    temperature: ClassVar[float | None] = 0.7
    max_tokens: ClassVar[int | None] = 2000

    def __init__(self, llm: BaseLLM, prompts: PromptSource) -> None:
        self._llm = llm
        self._prompts = prompts

    async def run(self, context: PipelineContext, **kwargs: Any) -> ResultT:
        context.require(*self.requires)
        system_prompt = await self._prompts.resolve(self.agent_name, self.prompt_key)
        user_prompt = await self.build_user_prompt(context, **kwargs)
        user_prompt = f"{user_prompt}\n\n{self._format_instructions()}"

        raw = await self._complete(system_prompt, user_prompt, operation=self.stage)
        try:
            return self._parse(raw)
        except (LLMNonRetryableError, ValueError) as exc:
            detail = _truncate(exc)
            logger.warning("%s returned an unusable payload (%s); requesting a correction", self.agent_name, detail)
            repair_prompt = f"{user_prompt}\n\n{REPAIR_INSTRUCTIONS}\nRejected because: {detail}"

        raw = await self._complete(system_prompt, repair_prompt, operation=f"{self.stage}_repair")
        try:
            return self._parse(raw)
        except (LLMNonRetryableError, ValueError) as exc:
            raise AgentValidationError(self.stage, _truncate(exc)) from exc

    @abstractmethod
    async def build_user_prompt(self, context: PipelineContext, **kwargs: Any) -> str:  # pragma: no cover - interface
        """Return the grounding prompt built from upstream stage output."""

    def check(self, result: ResultT) -> None:
        """Reject structurally valid but unusable results by raising ``ValueError``."""

    def _parse(self, raw: str) -> ResultT:
        payload = extract_json(raw)
        if not isinstance(payload, dict):
            raise LLMNonRetryableError(f"{self.agent_name} expected a JSON object")
        result = self.result_model.model_validate(payload)
        self.check(result)  # type: ignore[arg-type]
        return result  # type: ignore[return-value]

    async def _complete(self, system_prompt: str, user_prompt: str, *, operation: str) -> str:
        return await asyncio.to_thread(
            self._llm.complete,
            system_prompt,
            user_prompt,
            operation=operation,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    def _format_instructions(self) -> str:
        schema = json.dumps(self.result_model.model_json_schema(by_alias=True), separators=(",", ":"))
        return f"Respond with a single JSON object that conforms to this JSON schema:\n{schema}"


def _truncate(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        text = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    else:
        text = str(exc)
    return text[:_MAX_ERROR_DETAIL]
