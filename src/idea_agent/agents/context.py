"""Typed, append-only context accumulated across pipeline stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from idea_agent.models.idea import (
    CompetitiveData,
    CritiqueResult,
    MonetizationData,
    ProblemGapData,
    ResearchDirection,
    SynthesizedDraft,
    SynthesizedIdea,
    TrendData,
    WhatToBuildData,
)

_SINGLE_SLOTS = (
    "research_direction",
    "trend",
    "problem_gaps",
    "competitive",
    "monetization",
    "what_to_build",
)


@dataclass(slots=True)
class PipelineContext:
    """Outputs of completed stages for a single idea run.

    Each single-value slot may be written once; synthesis drafts and critiques are
    appended in the order they were produced.
    """

    request_id: str
    user_prompt: str | None = None
    previous_ideas: List[SynthesizedIdea] = field(default_factory=list)

    research_direction: Optional[ResearchDirection] = None
    trend: Optional[TrendData] = None
    problem_gaps: Optional[ProblemGapData] = None
    competitive: Optional[CompetitiveData] = None
    monetization: Optional[MonetizationData] = None
    what_to_build: Optional[WhatToBuildData] = None
    drafts: List[SynthesizedDraft] = field(default_factory=list)
    critiques: List[CritiqueResult] = field(default_factory=list)

    def record(self, slot: str, value: Any) -> None:
        if slot not in _SINGLE_SLOTS:
            raise KeyError(f"Unknown context slot {slot!r}")
        if getattr(self, slot) is not None:
            raise RuntimeError(f"Context slot {slot!r} has already been recorded")
        setattr(self, slot, value)

    def require(self, *slots: str) -> None:
        """Raise if any upstream slot needed by a stage is still empty."""

        missing = [slot for slot in slots if not self._has(slot)]
        if missing:
            raise RuntimeError(f"Missing upstream context: {', '.join(missing)}")

    def _has(self, slot: str) -> bool:
        value = getattr(self, slot)
        if isinstance(value, list):
            return bool(value)
        return value is not None

    def add_draft(self, draft: SynthesizedDraft) -> None:
        self.drafts.append(draft)

    def add_critique(self, critique: CritiqueResult) -> None:
        self.critiques.append(critique)

    @property
    def latest_draft(self) -> SynthesizedDraft:
        self.require("drafts")
        return self.drafts[-1]
