"""Versioned weight tables deriving an idea's total score from its nine metrics."""
from __future__ import annotations

from typing import Dict, FrozenSet, Mapping, Tuple

from idea_agent.models.idea import IdeaScoring

SCORE_METRICS: Tuple[str, ...] = (
    "problem_severity",
    "founder_market_fit",
    "technical_feasibility",
    "monetization_potential",
    "urgency_score",
    "market_timing_score",
    "execution_difficulty",
    "moat_strength",
    "regulatory_risk",
)

# Higher raw values are worse for these, so they contribute ``10 - value``.
INVERTED_METRICS: FrozenSet[str] = frozenset({"execution_difficulty", "regulatory_risk"})

SCORE_WEIGHT_TABLES: Mapping[str, Mapping[str, float]] = {
    "v1": {metric: 1.0 for metric in SCORE_METRICS},
    "v2": {
        "problem_severity": 2.0,
        "founder_market_fit": 1.0,
        "technical_feasibility": 1.0,
        "monetization_potential": 2.0,
        "urgency_score": 1.5,
        "market_timing_score": 1.5,
        "execution_difficulty": 1.0,
        "moat_strength": 1.5,
        "regulatory_risk": 0.5,
    },
}


def weight_table(version: str) -> Mapping[str, float]:
    try:
        table = SCORE_WEIGHT_TABLES[version]
    except KeyError as exc:
        known = ", ".join(sorted(SCORE_WEIGHT_TABLES))
        raise ValueError(f"Unknown score weight version {version!r}; expected one of {known}") from exc
    return table


def metric_contributions(scoring: IdeaScoring) -> Dict[str, float]:
    """Return each metric oriented so that higher is better."""

    values: Dict[str, float] = {}
    for metric in SCORE_METRICS:
        raw = float(getattr(scoring, metric))
        values[metric] = 10.0 - raw if metric in INVERTED_METRICS else raw
    return values


def compute_total_score(scoring: IdeaScoring, version: str = "v1") -> float:
    """Weighted mean of the oriented metrics scaled to 0-100, rounded to one decimal."""

    weights = weight_table(version)
    total_weight = sum(weights.values())
    if total_weight <= 0:
        return 0.0
    contributions = metric_contributions(scoring)
    weighted = sum(weights.get(metric, 0.0) * value for metric, value in contributions.items())
    return round(max(0.0, min(100.0, weighted / total_weight * 10.0)), 1)


def apply_total_score(scoring: IdeaScoring, version: str = "v1") -> IdeaScoring:
    return scoring.model_copy(update={"total_score": compute_total_score(scoring, version)})
