"""LLM integration helpers for the idea generation agents."""
from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

from openai import (
    APIConnectionError,
    APIStatusError,
    BadRequestError,
    InternalServerError,
    OpenAI,
    RateLimitError,
)

from idea_agent.config import AppSettings
from idea_agent.errors import LLMError, LLMNonRetryableError, LLMRetryableError
from idea_agent.metrics import PIPELINE_TELEMETRY, PipelineTelemetry

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class BaseLLM(ABC):
    """Interface for a chat-style completion backend used by every agent."""

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        operation: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:  # pragma: no cover - interface
        """Return the raw text completion for a system/user prompt pair."""


@dataclass
class OpenAILLM(BaseLLM):
    """LLM adapter backed by the OpenAI chat completions API.

    ``base_url`` lets the same adapter talk to OpenAI-compatible gateways such as
    OpenRouter.
    """

    api_key: str
    model: str
    base_url: str | None = None
    timeout_seconds: float = 60.0
    telemetry: PipelineTelemetry | None = None

    def __post_init__(self) -> None:
        if not self.api_key:
            raise LLMError("OpenAI API key is not configured")
        # Retries are owned by the pipeline so backoff and attempt counts stay in one place.
        self._client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            max_retries=0,
        )
        self._temperature_supported = True
        if self.telemetry is None:
            self.telemetry = PIPELINE_TELEMETRY

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "OpenAILLM":
        return cls(
            api_key=settings.openai_api_key or "",
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.llm_timeout_seconds,
        )

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        operation: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if temperature is not None and self._temperature_supported:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        start_time = time.perf_counter()
        try:
            response = self._client.chat.completions.create(**kwargs)
        except BadRequestError as exc:
            if "temperature" in kwargs and "temperature" in str(exc).lower():
                logger.warning(
                    "Model %s rejected temperature=%s; retrying with default",
                    self.model,
                    temperature,
                )
                self._temperature_supported = False
                kwargs.pop("temperature", None)
                start_time = time.perf_counter()
                try:
                    response = self._client.chat.completions.create(**kwargs)
                except Exception as retry_exc:
                    raise _classify_error(retry_exc) from retry_exc
            else:
                raise _classify_error(exc) from exc
        except Exception as exc:
            raise _classify_error(exc) from exc
        latency = time.perf_counter() - start_time

        try:
            message = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as exc:  # pragma: no cover - malformed SDK response
            raise LLMNonRetryableError("Malformed completion response") from exc

        if self.telemetry is not None:
            usage = getattr(response, "usage", None)
            self.telemetry.record_llm_call(
                operation=operation,
                model=self.model,
                latency_seconds=latency,
                prompt_tokens=getattr(usage, "prompt_tokens", None) if usage else None,
                completion_tokens=getattr(usage, "completion_tokens", None) if usage else None,
                total_tokens=getattr(usage, "total_tokens", None) if usage else None,
            )
        return message.strip()


def _classify_error(exc: Exception) -> LLMError:
    """Map provider exceptions onto the retryable / non-retryable taxonomy."""

    if isinstance(exc, LLMError):
        return exc
    if isinstance(exc, (APIConnectionError, RateLimitError, InternalServerError)):
        return LLMRetryableError(f"Transient LLM failure: {type(exc).__name__}")
    if isinstance(exc, APIStatusError) and exc.status_code >= 500:
        return LLMRetryableError(f"LLM provider returned {exc.status_code}")
    if isinstance(exc, TimeoutError):
        return LLMRetryableError("LLM request timed out")
    return LLMNonRetryableError(f"LLM request failed: {type(exc).__name__}")


def extract_json(content: str) -> Any:
    """Parse a JSON payload from model output.

    Models routinely wrap JSON in markdown fences or surround it with prose, so the
    fenced body is preferred and the outermost object or array is tried last.
    """

    text = (content or "").strip()
    if not text:
        raise LLMNonRetryableError("LLM response was empty")

    candidates = [text]
    fenced = _FENCE_PATTERN.search(text)
    if fenced:
        candidates.insert(0, fenced.group(1).strip())
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise LLMNonRetryableError("LLM response was not valid JSON")


class UnconfiguredLLM(BaseLLM):
    """Placeholder backend used when no provider credentials are configured.

    The application still starts; every generation fails with a non-retryable error.
    """

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        operation: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        raise LLMNonRetryableError("OpenAI API key is not configured")


def build_llm(settings: AppSettings) -> BaseLLM:
    if not (settings.openai_api_key or "").strip():
        logger.warning("IDEA_AGENT_OPENAI_API_KEY is not set; idea generation will fail until it is configured")
        return UnconfiguredLLM()
    return OpenAILLM.from_settings(settings)
