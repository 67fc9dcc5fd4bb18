"""Metrics utilities for the idea generation service."""
from __future__ import annotations

import contextvars
import time
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Iterator, Optional

from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
    "idea_agent_http_requests_total",
    "Count of HTTP requests processed",
    labelnames=("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "idea_agent_http_request_latency_seconds",
    "Latency of HTTP requests",
    labelnames=("method", "route"),
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

LLM_CALL_LATENCY = Histogram(
    "idea_agent_llm_call_latency_seconds",
    "Latency observed for outbound LLM calls",
    labelnames=("operation", "model"),
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 45.0, 90.0),
)

LLM_TOKEN_USAGE = Counter(
    "idea_agent_llm_tokens_total",
    "Token usage reported by LLM providers",
    labelnames=("operation", "model", "token_type"),
)

STAGE_LATENCY = Histogram(
    "idea_agent_pipeline_stage_latency_seconds",
    "Latency observed per pipeline stage",
    labelnames=("stage", "status"),
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

GENERATION_LATENCY = Histogram(
    "idea_agent_generation_total_latency_seconds",
    "Total runtime measured for generation requests",
    labelnames=("outcome",),
    buckets=(5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1200.0),
)

PROMPT_RESOLUTIONS = Counter(
    "idea_agent_prompt_resolutions_total",
    "Prompt resolutions grouped by the source that satisfied them",
    labelnames=("agent", "source"),
)

CRITIC_VERDICTS = Counter(
    "idea_agent_critic_verdicts_total",
    "Critic verdicts issued per synthesis pass",
    labelnames=("verdict", "pass_number"),
)


def record_request_metrics(method: str, route: str, status_code: int, latency: float) -> None:
    """Record HTTP request throughput and latency."""

    REQUEST_COUNTER.labels(method=method, route=route, status=str(status_code)).inc()
    REQUEST_LATENCY.labels(method=method, route=route).observe(latency)


def record_prompt_resolution(agent: str, source: str) -> None:
    PROMPT_RESOLUTIONS.labels(agent=agent, source=source).inc()


def record_critic_verdict(approved: bool, pass_number: int) -> None:
    verdict = "approved" if approved else "rejected"
    CRITIC_VERDICTS.labels(verdict=verdict, pass_number=str(pass_number)).inc()


@dataclass(slots=True)
class _StageAggregate:
    count: int = 0
    total_seconds: float = 0.0
    last_status: str = "pending"
    last_latency: float = 0.0


@dataclass(slots=True)
class _LlmAggregate:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    latency_seconds: float = 0.0
    call_count: int = 0


class PipelineTelemetry:
    """Accumulates latency and token metrics across LLM calls and pipeline stages."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._llm_usage: Dict[str, _LlmAggregate] = {}
        self._stage_usage: Dict[str, Dict[str, _StageAggregate]] = {}
        self._generation_start: Dict[str, float] = {}
        self._context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
            "idea_agent_telemetry_context",
            default={},
        )

    @contextmanager
    def context(
        self,
        *,
        request_id: Optional[str] = None,
        stage: Optional[str] = None,
    ) -> Iterator[None]:
        """Attach request and stage metadata to downstream LLM instrumentation."""

        current = dict(self._context.get() or {})
        if request_id is not None:
            current["request_id"] = request_id
        if stage is not None:
            current["stage"] = stage
        token = self._context.set(current)
        try:
            yield
        finally:
            self._context.reset(token)

    def current_context(self) -> Dict[str, Any]:
        """Return the request and stage bound by the innermost ``context`` block."""

        return dict(self._context.get() or {})

    def record_llm_call(
        self,
        *,
        operation: str,
        model: str,
        latency_seconds: float,
        prompt_tokens: Optional[int] = None,
        completion_tokens: Optional[int] = None,
        total_tokens: Optional[int] = None,
    ) -> None:
        """Record latency and token counts for a single LLM invocation."""

        ctx = self._context.get() or {}
        request_id = ctx.get("request_id")
        model_label = model or "unknown"

        LLM_CALL_LATENCY.labels(operation=operation, model=model_label).observe(latency_seconds)
        for token_type, value in (
            ("prompt", prompt_tokens),
            ("completion", completion_tokens),
            ("total", total_tokens),
        ):
            if value is not None:
                LLM_TOKEN_USAGE.labels(operation=operation, model=model_label, token_type=token_type).inc(value)

        if not request_id:
            return
        with self._lock:
            agg = self._llm_usage.setdefault(request_id, _LlmAggregate())
            agg.call_count += 1
            agg.latency_seconds += latency_seconds
            agg.prompt_tokens += prompt_tokens or 0
            agg.completion_tokens += completion_tokens or 0
            agg.total_tokens += total_tokens or 0

    def record_stage_duration(
        self,
        *,
        stage: str,
        duration_seconds: float,
        status: str,
        request_id: Optional[str] = None,
    ) -> None:
        """Record timing for a pipeline stage."""

        STAGE_LATENCY.labels(stage=stage, status=status).observe(duration_seconds)
        if request_id is None:
            return
        with self._lock:
            agg = self._stage_usage.setdefault(request_id, {}).setdefault(stage, _StageAggregate())
            agg.count += 1
            agg.total_seconds += duration_seconds
            agg.last_latency = duration_seconds
            agg.last_status = status

    def generation_started(self, request_id: str) -> None:
        with self._lock:
            self._generation_start[request_id] = time.perf_counter()

    def generation_finished(self, request_id: str, outcome: str) -> float:
        with self._lock:
            start = self._generation_start.pop(request_id, None)
        duration = 0.0 if start is None else time.perf_counter() - start
        GENERATION_LATENCY.labels(outcome=outcome).observe(duration)
        return duration

    def stage_summary(self, request_id: str) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            stage_map = self._stage_usage.get(request_id, {})
            return {
                stage: {
                    "invocations": agg.count,
                    "total_seconds": round(agg.total_seconds, 4),
                    "last_latency_seconds": round(agg.last_latency, 4),
                    "status": agg.last_status,
                }
                for stage, agg in stage_map.items()
            }

    def llm_summary(self, request_id: str) -> Dict[str, Any]:
        with self._lock:
            agg = self._llm_usage.get(request_id) or _LlmAggregate()
            avg_latency = agg.latency_seconds / agg.call_count if agg.call_count else 0.0
            return {
                "call_count": agg.call_count,
                "prompt_tokens": agg.prompt_tokens,
                "completion_tokens": agg.completion_tokens,
                "total_tokens": agg.total_tokens,
                "average_latency_seconds": round(avg_latency, 4),
            }

    def discard(self, request_id: str) -> None:
        """Drop per-request aggregates once a request reaches a terminal state."""

        with self._lock:
            self._llm_usage.pop(request_id, None)
            self._stage_usage.pop(request_id, None)
            self._generation_start.pop(request_id, None)


# Global telemetry singleton reused across the application.
PIPELINE_TELEMETRY = PipelineTelemetry()
