"""
Engine Schemas.

The AnalysisResult is the unit returned to callers and the unit the
learning engine records. It is frozen: nothing mutates it after return.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from releasegate.learning.schemas import LearningAdjustment
from releasegate.oracles.schemas import (
    Conflict,
    OracleResult,
    OracleState,
    Severity,
)


# ── Enums ──────────────────────────────────────────────────────────────


class RecommendationAction(StrEnum):
    VERSION_BUMP = "version-bump"
    VERSION_BUMP_REQUIRED = "version-bump-required"
    MANUAL_REVIEW = "manual-review"
    VERIFICATION_NEEDED = "verification-needed"
    PROCEED = "proceed"


class ReliabilityLabel(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IntelligenceLevel(StrEnum):
    CRITICAL_VIOLATION = "critical-violation"
    ADVANCED = "advanced"
    STANDARD = "standard"
    BASIC = "basic"
    MINIMAL = "minimal"


# ── Records ────────────────────────────────────────────────────────────


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: RecommendationAction
    message: str
    confidence: float = Field(ge=0.0, le=1.0)
    auto_resolvable: bool = False
    suggested_version: Optional[str] = None
    severity: Optional[Severity] = None
    corroborated_by: Optional[int] = None     # Oracles agreeing with the decision


class ReconciledVersion(BaseModel):
    """A version reported by one or more oracles; trust = reporters / responders."""
    model_config = ConfigDict(frozen=True)

    version: str
    sources: frozenset[str]
    trust: float = Field(ge=0.0, le=1.0)


class AnalysisResult(BaseModel):
    """Fused decision for one (package, version) request."""
    model_config = ConfigDict(frozen=True)

    package_name: str
    candidate_version: str
    package_path: Optional[str] = None

    # Decision
    state: OracleState
    confidence: float = Field(ge=0.0, le=1.0)
    conflicts: list[Conflict] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    suggested_version: Optional[str] = None
    critical_override: bool = False
    override_corroboration: int = 0

    # Consensus diagnostics
    consensus_score: float = Field(ge=0.0, le=1.0)
    reliability: ReliabilityLabel
    agreement_ratio: float = Field(default=0.0, ge=0.0, le=1.0)
    oracle_agreement_pct: float = Field(default=0.0, ge=0.0, le=100.0)
    intelligence_level: IntelligenceLevel = IntelligenceLevel.MINIMAL
    reconciled_versions: list[ReconciledVersion] = Field(default_factory=list)
    oracle_results: list[OracleResult] = Field(default_factory=list)

    # Advisory feedback from the learning engine
    learning: Optional[LearningAdjustment] = None

    # Timing
    analysis_time_ms: float = 0.0
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def responding_oracles(self) -> int:
        return sum(1 for r in self.oracle_results if r.succeeded)

    @property
    def is_violation(self) -> bool:
        return self.state == OracleState.VERSION_VIOLATION

    def fingerprint(self) -> dict[str, Any]:
        """The result without timing fields, for comparing two analyses."""
        data = self.model_dump(exclude={"analysis_time_ms", "analyzed_at", "learning"})
        for oracle in data["oracle_results"]:
            oracle.pop("response_time_ms", None)
        return data
