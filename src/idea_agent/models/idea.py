"""Pydantic models for agent results and the persisted synthesized idea.

Agent payloads arrive from the LLM in camelCase; every model accepts either the
camelCase alias or the Python field name and serialises with aliases so stored
documents and API responses share one shape.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List
from uuid import uuid4

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def _clamp(upper: float):
    def _coerce(value: Any) -> Any:
        if value is None or value == "":
            return 0
        try:
            number = float(value)
        except (TypeError, ValueError):
            return value
        return max(0.0, min(upper, number))

    return _coerce


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return value


Score = Annotated[float, BeforeValidator(_clamp(10.0))]
Percentage = Annotated[float, BeforeValidator(_clamp(100.0))]
StringList = Annotated[List[str], BeforeValidator(_as_list)]


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IdeaSource(str, Enum):
    """How an idea came to be generated."""

    ON_DEMAND = "on_demand"
    DAILY = "daily"
    ADMIN_TEST = "admin_test"


class ResearchDirection(CamelModel):
    """Strategic brief steering trend discovery for one pipeline run."""

    research_theme: str = Field(default="", description="Short thematic directive for trend research.")
    global_market_focus: str = Field(default="", description="Geography or market the run should emphasise.")
    industry_rotation: str = Field(default="", description="Industry selected for this run.")
    diversity_mandates: StringList = Field(default_factory=list, description="Constraints keeping output varied.")
    research_approach: str = Field(default="", description="How trend research should be conducted.")
    category: str = Field(default="", description="Category tag propagated onto the final idea.")
    is_fallback: bool = Field(default=False, description="Whether a built-in direction replaced the LLM output.")


class CatalystType(str, Enum):
    TECHNOLOGY_BREAKTHROUGH = "TECHNOLOGY_BREAKTHROUGH"
    REGULATORY_CHANGE = "REGULATORY_CHANGE"
    MARKET_SHIFT = "MARKET_SHIFT"
    SOCIAL_TREND = "SOCIAL_TREND"
    ECONOMIC_FACTOR = "ECONOMIC_FACTOR"


def _catalyst(value: Any) -> Any:
    if isinstance(value, str):
        normalised = value.strip().upper().replace(" ", "_").replace("-", "_")
        return normalised or CatalystType.MARKET_SHIFT.value
    return value


class TrendData(CamelModel):
    """Trend discovered by the trend research stage ("why now")."""

    title: str = ""
    description: str = ""
    trend_strength: Score = 0.0
    catalyst_type: Annotated[CatalystType, BeforeValidator(_catalyst)] = CatalystType.MARKET_SHIFT
    timing_urgency: Score = 0.0
    supporting_data: List[Any] = Field(default_factory=list)


class MarketGap(CamelModel):
    title: str = ""
    description: str = ""
    impact: str = ""
    target: str = ""
    opportunity: str = ""


class ProblemGapData(CamelModel):
    """Problems and market gaps identified for a trend."""

    problems: StringList = Field(default_factory=list)
    gaps: List[MarketGap] = Field(default_factory=list)


class Competitor(CamelModel):
    name: str = ""
    description: str = ""
    strengths: StringList = Field(default_factory=list)
    weaknesses: StringList = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _from_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"name": value}
        return value


class ConcentrationLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class MarketCompetition(CamelModel):
    market_concentration_level: Annotated[
        ConcentrationLevel, BeforeValidator(lambda v: v.strip().upper() if isinstance(v, str) else v)
    ] = ConcentrationLevel.MEDIUM
    market_concentration_justification: str = ""
    direct_competitors: List[Competitor] = Field(default_factory=list)
    indirect_competitors: List[Competitor] = Field(default_factory=list)
    competitor_failure_points: StringList = Field(default_factory=list)
    unfair_advantage: StringList = Field(default_factory=list)
    moat: StringList = Field(default_factory=list)
    competitive_positioning_score: Score = 0.0


class StrategicPositioning(CamelModel):
    name: str = ""
    target_segment: str = ""
    value_proposition: str = ""
    key_differentiators: StringList = Field(default_factory=list)


class CompetitiveData(CamelModel):
    """Competitive landscape and the positioning that exploits it."""

    competition: MarketCompetition = Field(default_factory=MarketCompetition)
    positioning: StrategicPositioning = Field(default_factory=StrategicPositioning)


class RevenueStream(CamelModel):
    name: str = ""
    description: str = ""
    percentage: Percentage = 0.0


class KeyMetrics(CamelModel):
    ltv: float = 0.0
    ltv_description: str = ""
    cac: float = 0.0
    cac_description: str = ""
    ltv_cac_ratio: float = 0.0
    ltv_cac_ratio_description: str = ""
    payback_period: float = 0.0
    payback_period_description: str = ""
    runway: float = 0.0
    runway_description: str = ""
    break_even_point: str = ""
    break_even_point_description: str = ""


class FinancialProjection(CamelModel):
    year: int = 0
    revenue: float = 0.0
    costs: float = 0.0
    net_margin: float = 0.0
    revenue_growth: float = 0.0


class MonetizationData(CamelModel):
    """Revenue model, unit economics and projections."""

    primary_model: str = ""
    pricing_strategy: str = ""
    business_score: Score = 0.0
    confidence: Score = 0.0
    revenue_model_validation: str = ""
    pricing_sensitivity: str = ""
    revenue_streams: List[RevenueStream] = Field(default_factory=list)
    key_metrics: KeyMetrics = Field(default_factory=KeyMetrics)
    financial_projections: List[FinancialProjection] = Field(default_factory=list)


class WhatToBuildData(CamelModel):
    """Build recommendation describing the product surface to ship."""

    platform_description: str = ""
    core_features_summary: StringList = Field(default_factory=list)
    user_interfaces: StringList = Field(default_factory=list)
    key_integrations: StringList = Field(default_factory=list)
    pricing_strategy_build_recommendation: str = ""


class IdeaScoring(CamelModel):
    """Nine independent 0-10 metrics plus the derived 0-100 total."""

    problem_severity: Score = 0.0
    founder_market_fit: Score = 0.0
    technical_feasibility: Score = 0.0
    monetization_potential: Score = 0.0
    urgency_score: Score = 0.0
    market_timing_score: Score = 0.0
    execution_difficulty: Score = 0.0
    moat_strength: Score = 0.0
    regulatory_risk: Score = 0.0
    total_score: Percentage = 0.0


class SynthesizedDraft(CamelModel):
    """Draft idea produced by the synthesis stage before critique."""

    title: str = ""
    description: str = ""
    executive_summary: str = ""
    problem_solution: str = ""
    problem_statement: str = ""
    innovation_level: Score = 0.0
    time_to_market: float = 0.0
    confidence_score: Score = 0.0
    narrative_hook: str = ""
    target_keywords: StringList = Field(default_factory=list)
    urgency_level: Score = 0.0
    execution_complexity: Score = 0.0
    tags: StringList = Field(default_factory=list)
    scoring: IdeaScoring = Field(default_factory=IdeaScoring)
    execution_plan: str = ""
    traction_signals: str = ""
    framework_fit: str = ""


class CritiqueResult(CamelModel):
    """Critic verdict scored against the five-dimension rubric."""

    approved: bool
    market_opportunity: Score = 0.0
    problem_solution_fit: Score = 0.0
    execution_feasibility: Score = 0.0
    competitive_advantage: Score = 0.0
    business_model_viability: Score = 0.0
    weaknesses: StringList = Field(default_factory=list)
    refinement_directive: str = ""

    @model_validator(mode="after")
    def _directive_required_on_rejection(self) -> "CritiqueResult":
        if not self.approved and not self.refinement_directive.strip():
            raise ValueError("refinementDirective is required when the draft is rejected")
        return self


class ExecutionPlan(CamelModel):
    mvp_description: str = ""
    key_milestones: StringList = Field(default_factory=list)
    resource_requirements: str = "TBD"
    team_requirements: StringList = Field(default_factory=list)
    risk_factors: StringList = Field(default_factory=list)
    technical_roadmap: str = "TBD"
    go_to_market_strategy: str = "TBD"


class TractionSignals(CamelModel):
    early_adopter_signals: StringList = Field(default_factory=list)


class FrameworkFit(CamelModel):
    jobs_to_be_done: StringList = Field(default_factory=list)
    blue_ocean_factors: Dict[str, Any] = Field(default_factory=dict)
    lean_canvas_score: Score = 0.0
    design_thinking_stage: str = "TBD"
    innovation_dilemma_fit: str = ""
    crossing_chasm_stage: str = "TBD"


class CritiqueMetadata(CamelModel):
    """Record of the bounded critique loop attached to every idea."""

    outcome: str = Field(default="approved", description="approved, refined_approved or refined_rejected.")
    synthesis_runs: int = Field(default=1, ge=1, le=2)
    verdicts: List[CritiqueResult] = Field(default_factory=list)
    refinement_directive: str | None = None


class SynthesizedIdea(CamelModel):
    """Final persisted idea assembled from every agent's output."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str | None = None
    request_id: str | None = None
    source: IdeaSource = IdeaSource.ON_DEMAND
    prompt: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    title: str
    description: str
    executive_summary: str = ""
    problem_solution: str = ""
    problem_statement: str = ""
    narrative_hook: str = ""
    innovation_level: float = 0.0
    time_to_market: float = 0.0
    confidence_score: float = 0.0
    urgency_level: float = 0.0
    execution_complexity: float = 0.0
    target_keywords: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    scoring: IdeaScoring = Field(default_factory=IdeaScoring)
    score_weights_version: str = "v1"

    research_direction: ResearchDirection = Field(default_factory=ResearchDirection)
    trend: TrendData = Field(default_factory=TrendData)
    problem_gaps: ProblemGapData = Field(default_factory=ProblemGapData)
    competitive: CompetitiveData = Field(default_factory=CompetitiveData)
    monetization: MonetizationData = Field(default_factory=MonetizationData)
    what_to_build: WhatToBuildData = Field(default_factory=WhatToBuildData)
    execution_plan: ExecutionPlan = Field(default_factory=ExecutionPlan)
    traction_signals: TractionSignals = Field(default_factory=TractionSignals)
    framework_fit: FrameworkFit = Field(default_factory=FrameworkFit)
    critique: CritiqueMetadata = Field(default_factory=CritiqueMetadata)
