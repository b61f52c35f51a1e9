"""
Reliability Scorer.

    consensus_score = mean confidence of the oracles that RESPONDED
    reliability     = high    if consensus_score > 0.8 and ≥ 3 responded
                      medium  if consensus_score > 0.6
                      low     otherwise

Failed oracles shrink the sample; they do not drag the mean down. The
label is advisory and never overrides a policy violation.
"""

from dataclasses import dataclass

from releasegate.engine.schemas import IntelligenceLevel, ReliabilityLabel
from releasegate.oracles.schemas import OracleResult, clamp_confidence

# ── Configuration ─────────────────────────────────────────────────────────

DEFAULT_TOTAL_ORACLES: int = 7
HIGH_RELIABILITY_SCORE: float = 0.8
MEDIUM_RELIABILITY_SCORE: float = 0.6
HIGH_RELIABILITY_MIN_SOURCES: int = 3
HIGH_CONFIDENCE_ORACLE: float = 0.9


@dataclass(frozen=True)
class ReliabilityReport:
    consensus_score: float          # 0-1
    reliability: ReliabilityLabel
    source_count: int               # Oracles that responded
    coverage: float                 # source_count / total_oracles
    weighted_score: float           # consensus_score × coverage
    has_high_confidence: bool       # Any responder above HIGH_CONFIDENCE_ORACLE
    intelligence_level: IntelligenceLevel

    def to_dict(self) -> dict:
        return {
            "consensus_score": self.consensus_score,
            "reliability": self.reliability.value,
            "source_count": self.source_count,
            "coverage": self.coverage,
            "weighted_score": self.weighted_score,
            "has_high_confidence": self.has_high_confidence,
            "intelligence_level": self.intelligence_level.value,
        }


class ReliabilityScorer:
    """Derives consensus score, reliability label and intelligence level."""

    def __init__(self, total_oracles: int = DEFAULT_TOTAL_ORACLES):
        self.total_oracles = max(1, total_oracles)

    def score(self, oracle_results: list[OracleResult]) -> ReliabilityReport:
        responded = [r for r in oracle_results if r.succeeded]
        source_count = len(responded)

        if source_count:
            consensus_score = clamp_confidence(
                sum(r.confidence for r in responded) / source_count
            )
        else:
            consensus_score = 0.0

        coverage = min(1.0, source_count / self.total_oracles)

        return ReliabilityReport(
            consensus_score=round(consensus_score, 4),
            reliability=self.label(consensus_score, source_count),
            source_count=source_count,
            coverage=round(coverage, 4),
            weighted_score=round(consensus_score * coverage, 4),
            has_high_confidence=any(r.confidence > HIGH_CONFIDENCE_ORACLE for r in responded),
            intelligence_level=self.intelligence_level(consensus_score, source_count),
        )

    @staticmethod
    def label(consensus_score: float, source_count: int) -> ReliabilityLabel:
        if consensus_score > HIGH_RELIABILITY_SCORE and source_count >= HIGH_RELIABILITY_MIN_SOURCES:
            return ReliabilityLabel.HIGH
        if consensus_score > MEDIUM_RELIABILITY_SCORE:
            return ReliabilityLabel.MEDIUM
        return ReliabilityLabel.LOW

    @staticmethod
    def intelligence_level(consensus_score: float, source_count: int) -> IntelligenceLevel:
        if source_count >= 5 and consensus_score > 0.8:
            return IntelligenceLevel.ADVANCED
        if source_count >= 3 and consensus_score > 0.6:
            return IntelligenceLevel.STANDARD
        if source_count >= 2:
            return IntelligenceLevel.BASIC
        return IntelligenceLevel.MINIMAL
