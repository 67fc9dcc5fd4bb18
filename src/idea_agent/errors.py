"""Error taxonomy shared by the LLM client, agents, pipeline and tracker."""
from __future__ import annotations


class LLMError(RuntimeError):
    """Raised when an LLM request fails or returns an unexpected payload."""


class LLMRetryableError(LLMError):
    """Transient error: timeouts, rate limits, 5xx responses, network failures."""


class LLMNonRetryableError(LLMError):
    """Bad request, authentication failure or an unusable response payload."""


class AgentValidationError(LLMNonRetryableError):
    """Agent output failed shape validation after its self-correction attempt."""

    def __init__(self, stage: str, detail: str) -> None:
        super().__init__(f"{stage}: {detail}")
        self.stage = stage
        self.detail = detail


class StageFailedError(RuntimeError):
    """A pipeline stage failed fatally or exhausted its retry budget.

    ``caller_message`` is safe to surface on a generation request; the chained
    cause keeps the internal detail for logs.
    """

    def __init__(self, stage: str, caller_message: str, attempts: int = 1) -> None:
        super().__init__(caller_message)
        self.stage = stage
        self.caller_message = caller_message
        self.attempts = attempts


class InvalidTransitionError(RuntimeError):
    """A generation request status change would violate status monotonicity."""
