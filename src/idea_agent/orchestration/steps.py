"""Progress labels written to generation requests as the pipeline advances."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True, slots=True)
class GenerationStep:
    """Label, display message and decorative image hint for one progress update."""

    label: str
    message: str
    image_state: str


INITIALIZING = GenerationStep("Initializing", "Preparing to generate your business ideas...", "confused")
STARTING_RESEARCH = GenerationStep("Starting Research", "Beginning market analysis...", "confused")
RESEARCH_DIRECTION = GenerationStep("Research Direction", "Setting the research direction for this run...", "confused")
TREND_RESEARCH = GenerationStep("Trend Research", "Analyzing market trends and opportunities...", "digging")
PROBLEM_ANALYSIS = GenerationStep("Problem Analysis", "Uncovering market gaps and pain points...", "digging")
COMPETITIVE_ANALYSIS = GenerationStep(
    "Competitive Analysis", "Mapping the competitive landscape and positioning...", "digging"
)
MONETIZATION_STRATEGY = GenerationStep("Monetization Strategy", "Designing a sustainable revenue model...", "digging")
TECHNICAL_PLANNING = GenerationStep("Technical Planning", "Blueprinting the first version to build...", "digging")
IDEA_SYNTHESIS = GenerationStep("Idea Synthesis", "Weaving insights into one business opportunity...", "happy")
CRITICAL_REVIEW = GenerationStep("Critical Review", "Examining the opportunity through a critical lens...", "happy")
FINAL_REFINEMENT = GenerationStep("Final Refinement", "Refining the opportunity based on critique...", "happy")
SAVING_RESULTS = GenerationStep("Saving Results", "Saving your new idea...", "found")
FAILED = GenerationStep("Failed", "Failed to generate ideas. Please try again.", "confused")

STAGE_STEPS: Dict[str, GenerationStep] = {
    "research_direction": RESEARCH_DIRECTION,
    "trend_research": TREND_RESEARCH,
    "problem_analysis": PROBLEM_ANALYSIS,
    "competitive_analysis": COMPETITIVE_ANALYSIS,
    "monetization": MONETIZATION_STRATEGY,
    "technical_planning": TECHNICAL_PLANNING,
    "idea_synthesis": IDEA_SYNTHESIS,
    "critical_review": CRITICAL_REVIEW,
}

# Caller-safe stage names used in failure messages.
STAGE_LABELS: Dict[str, str] = {
    "research_direction": "Research direction",
    "trend_research": "Trend research",
    "problem_analysis": "Problem analysis",
    "competitive_analysis": "Competitive analysis",
    "monetization": "Monetization strategy",
    "technical_planning": "Technical planning",
    "idea_synthesis": "Idea synthesis",
    "critical_review": "Critical review",
}

_ORDINALS = {1: "first", 2: "second", 3: "third", 4: "fourth", 5: "fifth"}


def idea_step(number: int, total: int) -> GenerationStep:
    ordinal = _ORDINALS.get(number, f"#{number}")
    return GenerationStep(
        f"Generating idea {number}/{total}",
        f"Working on your {ordinal} business opportunity...",
        "confused",
    )


def completion_step(generated: int) -> GenerationStep:
    noun = "idea" if generated == 1 else "ideas"
    return GenerationStep("Complete", f"Discovery complete! Found {generated} business {noun} for you.", "found")
