"""Research director setting a rotating strategic brief for each pipeline run."""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Tuple

from idea_agent.agents.base import Agent
from idea_agent.agents.context import PipelineContext
from idea_agent.models.idea import ResearchDirection, SynthesizedIdea
from idea_agent.prompts.defaults import MASTER_RESEARCH_DIRECTOR

logger = logging.getLogger(__name__)

# Verticals are checked before audience types so "personal finance" maps to fintech.
INDUSTRY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("fintech", ("finance", "financial", "payment", "banking", "money", "budget", "invest")),
    ("healthcare", ("health", "medical", "wellness", "fitness")),
    ("edtech", ("education", "learning", "student", "tutor")),
    ("climate_tech", ("climate", "sustainability", "environmental", "energy")),
    ("web3", ("blockchain", "decentralized", "crypto")),
    ("developer_tools", ("developer", "coding", "api", "toolchain")),
    ("creator", ("creator", "artist", "content")),
    ("productivity", ("productivity", "organization", "task", "time")),
    ("smb", ("small business", "smb", "local business")),
    ("enterprise", ("enterprise", "corporate", "large business")),
    ("consumer", ("personal", "individual", "family", "lifestyle", "daily", "hobby")),
)

TARGET_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("family", ("family", "parent", "household", "kids")),
    ("student", ("student", "learner", "education")),
    ("enterprise", ("enterprise", "corporation", "large company")),
    ("smb", ("small business", "smb", "local shop")),
    ("professional", ("professional", "freelancer", "consultant")),
    ("creator", ("creator", "artist", "influencer")),
    ("developer", ("developer", "engineer", "programmer")),
    ("scientist", ("scientist", "researcher", "analyst")),
    ("individual", ("individual", "personal", "consumer", "people", "person")),
)

_BUSINESS_FOCUS = ("enterprise", "business", "team", "company", "organization", "smb", "startup", "professional")
_CONSUMER_FOCUS = ("personal", "individual", "family", "student", "hobby", "lifestyle", "daily")

FALLBACK_DIRECTIONS: Tuple[Dict[str, Any], ...] = (
    {
        "research_theme": "Personal productivity tools for busy individuals",
        "industry_rotation": "Consumer productivity and lifestyle management",
        "category": "productivity",
        "research_approach": "Study lifestyle forums and personal productivity communities.",
    },
    {
        "research_theme": "Simple money management for young adults",
        "industry_rotation": "Personal finance",
        "category": "fintech",
        "research_approach": "Follow budgeting communities and first-job financial questions.",
    },
    {
        "research_theme": "Everyday wellness habits people struggle to keep",
        "industry_rotation": "Health and wellness",
        "category": "healthcare",
        "research_approach": "Look at habit-tracking and self-care discussions.",
    },
    {
        "research_theme": "Back-office chores that slow down small businesses",
        "industry_rotation": "Small business operations",
        "category": "smb",
        "research_approach": "Review owner forums and complaints about admin overhead.",
    },
    {
        "research_theme": "Skills people teach themselves online",
        "industry_rotation": "Learning and personal development",
        "category": "edtech",
        "research_approach": "Track self-learning communities and course completion pain points.",
    },
    {
        "research_theme": "Tools independent creators wish existed",
        "industry_rotation": "Creator economy",
        "category": "creator",
        "research_approach": "Mine creator communities for repeated workflow complaints.",
    },
)

_FALLBACK_MANDATES = [
    "Avoid ideas similar to recently generated ones",
    "Prefer simple software a small team can ship",
    "Keep the opportunity globally applicable",
]


def _match(text: str, table: Iterable[Tuple[str, Tuple[str, ...]]]) -> str:
    lowered = text.lower()
    for label, keywords in table:
        if any(keyword in lowered for keyword in keywords):
            return label
    return "general"


def extract_industry(text: str) -> str:
    return _match(text, INDUSTRY_KEYWORDS)


def extract_target(text: str) -> str:
    return _match(text, TARGET_KEYWORDS)


def determine_focus_balance(previous_ideas: Iterable[SynthesizedIdea]) -> str:
    """Steer the next run toward whichever audience recent ideas under-served."""

    business = consumer = 0
    for idea in previous_ideas:
        text = f"{idea.title} {idea.description}".lower()
        if any(keyword in text for keyword in _BUSINESS_FOCUS):
            business += 1
        if any(keyword in text for keyword in _CONSUMER_FOCUS):
            consumer += 1
    if business > consumer:
        return "Recent ideas were business-focused; this run must target consumers, families or individuals."
    if consumer > business:
        return "Recent ideas were consumer-focused; this run should consider small businesses, teams or professionals."
    return "Recent ideas were balanced; pick whichever audience offers the strongest opportunity."


class ResearchDirectorAgent(Agent[ResearchDirection]):
    """Produce the run's research direction; failures fall back to a built-in brief."""

    agent_name = MASTER_RESEARCH_DIRECTOR
    stage = "research_direction"
    result_model = ResearchDirection
    temperature = 0.9
    max_tokens = 800

    def __init__(self, llm, prompts, today: Callable[[], date] | None = None) -> None:
        super().__init__(llm, prompts)
        self._today = today or (lambda: datetime.now(timezone.utc).date())

    async def direct(self, context: PipelineContext, *, timeout: float | None = None) -> ResearchDirection:
        """Return a direction for the run; never raises for LLM or parsing failures."""

        try:
            direction = await asyncio.wait_for(self.run(context), timeout)
        except Exception:
            logger.warning(
                "Research director failed for request=%s; using built-in direction",
                context.request_id,
                exc_info=True,
            )
            direction = self.fallback_direction(len(context.previous_ideas))
        if not direction.category.strip():
            inferred = extract_industry(f"{direction.research_theme} {direction.industry_rotation}")
            direction = direction.model_copy(update={"category": inferred})
        return direction

    def fallback_direction(self, offset: int = 0) -> ResearchDirection:
        """Pick a built-in direction rotating by day, shifted by how many runs preceded it."""

        index = (self._today().toordinal() + offset) % len(FALLBACK_DIRECTIONS)
        return ResearchDirection(
            global_market_focus="Global digital market",
            diversity_mandates=list(_FALLBACK_MANDATES),
            is_fallback=True,
            **FALLBACK_DIRECTIONS[index],
        )

    async def build_user_prompt(self, context: PipelineContext, **kwargs: Any) -> str:
        sections: List[str] = []
        if context.user_prompt and context.user_prompt.strip():
            sections.append(
                f'User request: "{context.user_prompt.strip()}"\n'
                "Tailor the research theme to this request while keeping it globally relevant and software-first."
            )
        else:
            sections.append(f"Set today's research direction for {self._today().isoformat()}.")

        if context.previous_ideas:
            recent = [
                f"- {idea.title} (industry: {extract_industry(idea.description)}, "
                f"target: {extract_target(idea.description)})"
                for idea in context.previous_ideas[:20]
            ]
            sections.append("Recently explored ideas to diverge from:\n" + "\n".join(recent))
            sections.append(determine_focus_balance(context.previous_ideas))

        sections.append(
            "Also return a short lowercase `category` tag naming the industry, such as fintech, healthcare, "
            "edtech, productivity, creator or smb."
        )
        return "\n\n".join(sections)

    def check(self, result: ResearchDirection) -> None:
        if not result.research_theme.strip():
            raise ValueError("researchTheme must not be empty")
