"""
Learning Schemas.

Historical outcome records and the advisory feedback derived from them.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from releasegate.oracles.schemas import ConflictKind, OracleState, Severity


# ── Enums ──────────────────────────────────────────────────────────────


class Outcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"


class PatternKind(StrEnum):
    SUCCESS = "success_pattern"
    FAILURE = "failure_pattern"
    ORACLE_PERFORMANCE = "oracle_performance"


class LearningProgress(StrEnum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    IMPROVING = "IMPROVING"
    LEARNING = "LEARNING"


# ── Historical Record ──────────────────────────────────────────────────


class ConflictDigest(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ConflictKind
    severity: Severity
    corroborated: bool = False


class HistoricalRecord(BaseModel):
    """
    One (prior analysis, actual outcome) pair.

    Append-only. prediction_accuracy is 1 when "would succeed"
    (consensus > 0.7 and no conflicts) matched the actual outcome.
    """
    model_config = ConfigDict(frozen=True)

    record_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    package_name: str
    version: str
    prior_state: OracleState
    prior_confidence: float
    consensus_score: float
    oracle_count: int
    conflicts: list[ConflictDigest] = Field(default_factory=list)
    responding_oracles: list[str] = Field(default_factory=list)
    flagging_oracles: list[str] = Field(default_factory=list)   # Oracles that reported conflicts
    outcome: Outcome
    outcome_details: dict[str, Any] = Field(default_factory=dict)
    prediction_accuracy: int = Field(ge=0, le=1)
    insights: list[str] = Field(default_factory=list)


# ── Patterns & Predictions ─────────────────────────────────────────────


class RiskFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    factor: str
    severity: float = Field(ge=0.0, le=1.0)


class RiskFactorFrequency(BaseModel):
    model_config = ConfigDict(frozen=True)

    factor: str
    frequency: float


class DetectedPattern(BaseModel):
    """A recurring trait of past outcomes."""
    model_config = ConfigDict(frozen=True)

    kind: PatternKind
    confidence: float                                # Share of history the pattern covers
    description: str
    min_consensus: Optional[float] = None            # success pattern
    min_oracle_count: Optional[int] = None           # success pattern
    conflict_tolerance: Optional[int] = None         # success pattern
    risk_factors: list[RiskFactor] = Field(default_factory=list)   # failure pattern
    oracle_name: Optional[str] = None                # oracle performance pattern


class PatternRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["info", "warning", "action", "mitigation", "proceed"]
    message: str
    action: str = ""
    priority: Literal["low", "medium", "high"] = "medium"


class PatternReport(BaseModel):
    """Result of mining history for one package / state."""
    model_config = ConfigDict(frozen=True)

    historical_confidence: float                     # Historical success rate (0.5 when no data)
    success_probability: float
    data_points: int = 0
    average_consensus: Optional[float] = None
    prediction_accuracy: Optional[float] = None
    patterns: list[DetectedPattern] = Field(default_factory=list)
    confidence_factors: list[str] = Field(default_factory=list)
    risk_factors: list[str] = Field(default_factory=list)
    recommendations: list[PatternRecommendation] = Field(default_factory=list)


class MitigationStrategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk: str
    strategy: str
    confidence: float = 0.7


class LearningAdjustment(BaseModel):
    """
    Advisory feedback for one analysis.

    Never changes the analysis decision; callers may surface it or ignore it.
    """
    model_config = ConfigDict(frozen=True)

    advisory: Literal[True] = True
    confidence_adjustment: float = 0.0
    adjusted_confidence: float = Field(ge=0.0, le=1.0)
    historical_confidence: float = 0.5
    success_probability: float = 0.7
    data_points: int = 0
    oracle_weights: dict[str, float] = Field(default_factory=dict)
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    mitigation_strategies: list[MitigationStrategy] = Field(default_factory=list)
    patterns: list[DetectedPattern] = Field(default_factory=list)
    recommendations: list[PatternRecommendation] = Field(default_factory=list)


class LearningAnalytics(BaseModel):
    total_records: int
    overall_success_rate: float
    recent_success_rate: float
    prediction_accuracy: float
    learning_progress: LearningProgress
    top_risk_factors: list[RiskFactorFrequency] = Field(default_factory=list)
    most_successful_patterns: list[DetectedPattern] = Field(default_factory=list)
    persistent: bool = True
