"""
Learning Engine: closes the feedback loop from publish outcomes.

The loop:
1. record_outcome: store (prior analysis, actual outcome), score whether the
   "would succeed" prediction was right, derive insights
2. analyze_historical_patterns: mine records for the same package or state
   into success / failure / oracle-performance patterns and a success probability
3. adapt_intelligence: turn those patterns into an ADVISORY confidence
   adjustment, oracle re-weighting and mitigation strategies

Everything here is advisory. It never changes an analysis decision.
"""

import math
import uuid
from collections import Counter
from typing import Any, Optional

import structlog

from releasegate.engine.schemas import AnalysisResult
from releasegate.learning.schemas import (
    ConflictDigest,
    DetectedPattern,
    HistoricalRecord,
    LearningAdjustment,
    LearningAnalytics,
    LearningProgress,
    MitigationStrategy,
    Outcome,
    PatternKind,
    PatternRecommendation,
    PatternReport,
    RiskFactor,
    RiskFactorFrequency,
)
from releasegate.learning.store import HistoryStore
from releasegate.oracles.schemas import Severity, clamp_confidence

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

PREDICTED_SUCCESS_MIN_CONSENSUS: float = 0.7
HIGH_CONFIDENCE_SCORE: float = 0.8
LOW_COVERAGE_ORACLES: int = 4

NEUTRAL_HISTORICAL_CONFIDENCE: float = 0.5
NEUTRAL_SUCCESS_PROBABILITY: float = 0.7
MIN_SUCCESS_PROBABILITY: float = 0.1
MAX_SUCCESS_PROBABILITY: float = 0.99

SUCCESS_PATTERN_BOOST: float = 0.3      # × (1 + 0.3 · pattern confidence)
FAILURE_FACTOR_PENALTY: float = 0.4     # × (1 − 0.4 · factor severity)
SUCCESS_CONSENSUS_MARGIN: float = 0.9
SUCCESS_ORACLE_MARGIN: float = 0.8
SUCCESS_CONFLICT_TOLERANCE: int = 1
FAILURE_FACTOR_MIN_FREQUENCY: float = 0.5

ACCURACY_BOOST_THRESHOLD: float = 0.8
ACCURACY_PENALTY_THRESHOLD: float = 0.5
CONFIDENCE_BOOST: float = 0.1
CONFIDENCE_PENALTY: float = -0.2

LEARNING_RATE: float = 0.3              # How far oracle weights move per unit of accuracy
MIN_RECORDS_FOR_REWEIGHT: int = 3
ORACLE_PATTERN_MIN_ACCURACY: float = 0.8
RECENT_WINDOW: int = 10

DEFAULT_ORACLE_WEIGHTS: dict[str, float] = {
    "registry": 0.25,
    "version-policy": 0.25,
    "source-control": 0.10,
    "build-artifact": 0.15,
    "local-state": 0.10,
    "result-cache": 0.05,
    "semver": 0.10,
}

# Risk factors: name → severity. Detected from the same traits on records and analyses.
LOW_CONSENSUS = "Low consensus score"
LOW_COVERAGE = "Insufficient oracle coverage"
UNRESOLVED_CONFLICTS = "Unresolved conflicts"
HIGH_SEVERITY_CONFLICTS = "High-severity conflicts"

RISK_FACTOR_SEVERITY: dict[str, float] = {
    LOW_CONSENSUS: 0.7,
    LOW_COVERAGE: 0.5,
    UNRESOLVED_CONFLICTS: 0.8,
    HIGH_SEVERITY_CONFLICTS: 0.9,
}

MITIGATIONS: dict[str, str] = {
    LOW_CONSENSUS: "Re-run the analysis once slower oracles respond, or verify the version manually",
    LOW_COVERAGE: "Check registry and git connectivity so more oracles can answer",
    UNRESOLVED_CONFLICTS: "Resolve reported conflicts before publishing",
    HIGH_SEVERITY_CONFLICTS: "Have a maintainer review high-severity conflicts before publishing",
}


# ── Trait detection (shared by records and live analyses) ─────────────────


def _traits(consensus_score: float, oracle_count: int, severities: list[Severity]) -> set[str]:
    traits: set[str] = set()
    if consensus_score < PREDICTED_SUCCESS_MIN_CONSENSUS:
        traits.add(LOW_CONSENSUS)
    if oracle_count < LOW_COVERAGE_ORACLES:
        traits.add(LOW_COVERAGE)
    if severities:
        traits.add(UNRESOLVED_CONFLICTS)
    if any(s.rank >= Severity.HIGH.rank for s in severities):
        traits.add(HIGH_SEVERITY_CONFLICTS)
    return traits


def record_traits(record: HistoricalRecord) -> set[str]:
    return _traits(record.consensus_score, record.oracle_count, [c.severity for c in record.conflicts])


def analysis_traits(analysis: AnalysisResult) -> set[str]:
    return _traits(
        analysis.consensus_score,
        analysis.responding_oracles,
        [c.severity for c in analysis.conflicts],
    )


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class LearningEngine:
    """
    Adaptive, advisory feedback from historical outcomes.

    State lives entirely in the HistoryStore; the engine itself is stateless.
    """

    def __init__(
        self,
        store: Optional[HistoryStore] = None,
        confidence_threshold: float = HIGH_CONFIDENCE_SCORE,
        default_oracle_weights: Optional[dict[str, float]] = None,
    ):
        self.store = store or HistoryStore(path=None)
        self.confidence_threshold = confidence_threshold
        self.default_oracle_weights = dict(default_oracle_weights or DEFAULT_ORACLE_WEIGHTS)

    # ── Recording ──────────────────────────────────────────────────────

    def record_outcome(
        self,
        prior: AnalysisResult,
        outcome: Outcome | str,
        details: Optional[dict[str, Any]] = None,
    ) -> HistoricalRecord:
        """
        Append one (prior analysis, outcome) pair.

        Args:
            prior: The analysis the publish decision was based on
            outcome: success / failure / partial
            details: Free-form context (error output, registry response, ...)

        Returns:
            The stored HistoricalRecord
        """
        outcome = Outcome(outcome)
        record = HistoricalRecord(
            record_id=f"rec_{uuid.uuid4().hex[:12]}",
            package_name=prior.package_name,
            version=prior.candidate_version,
            prior_state=prior.state,
            prior_confidence=prior.confidence,
            consensus_score=prior.consensus_score,
            oracle_count=prior.responding_oracles,
            conflicts=[
                ConflictDigest(kind=c.kind, severity=c.severity, corroborated=c.corroborated)
                for c in prior.conflicts
            ],
            responding_oracles=[r.oracle_name for r in prior.oracle_results if r.succeeded],
            flagging_oracles=[
                r.oracle_name for r in prior.oracle_results if r.succeeded and r.conflicts
            ],
            outcome=outcome,
            outcome_details=details or {},
            prediction_accuracy=self.prediction_accuracy(prior, outcome),
            insights=self.generate_insights(prior, outcome),
        )
        self.store.append(record)

        logger.info(
            "outcome_recorded",
            record_id=record.record_id,
            package=record.package_name,
            version=record.version,
            outcome=str(outcome),
            prediction_accuracy=record.prediction_accuracy,
            persistent=self.store.persistent,
        )
        return record

    @staticmethod
    def prediction_accuracy(prior: AnalysisResult, outcome: Outcome) -> int:
        predicted_success = (
            prior.consensus_score > PREDICTED_SUCCESS_MIN_CONSENSUS and not prior.conflicts
        )
        actual_success = outcome == Outcome.SUCCESS
        return 1 if predicted_success == actual_success else 0

    def generate_insights(self, prior: AnalysisResult, outcome: Outcome) -> list[str]:
        insights: list[str] = []
        if outcome == Outcome.SUCCESS and prior.consensus_score > self.confidence_threshold:
            insights.append("High confidence prediction was accurate")
        if outcome == Outcome.FAILURE and prior.consensus_score > self.confidence_threshold:
            insights.append("High confidence prediction was inaccurate - review oracle reliability")
        if prior.responding_oracles < LOW_COVERAGE_ORACLES:
            insights.append("Low oracle coverage may have affected prediction accuracy")
        return insights

    # ── Pattern mining ─────────────────────────────────────────────────

    def analyze_historical_patterns(
        self,
        package_name: str,
        current: AnalysisResult,
    ) -> PatternReport:
        """
        Mine records for the same package OR the same decision state.

        With no matching history, returns a neutral report rather than failing.
        """
        relevant = [
            r for r in self.store.records()
            if r.package_name == package_name or r.prior_state == current.state
        ]
        if not relevant:
            return PatternReport(
                historical_confidence=NEUTRAL_HISTORICAL_CONFIDENCE,
                success_probability=NEUTRAL_SUCCESS_PROBABILITY,
                recommendations=[PatternRecommendation(
                    type="info",
                    message="Insufficient historical data",
                    priority="low",
                )],
            )

        success_rate = sum(1 for r in relevant if r.outcome == Outcome.SUCCESS) / len(relevant)
        patterns = self.detect_patterns(relevant)

        probability = success_rate
        confidence_factors: list[str] = []
        risk_factors: list[str] = []
        current_traits = analysis_traits(current)

        for pattern in patterns:
            if pattern.kind == PatternKind.SUCCESS and self._matches_success(current, pattern):
                probability *= 1 + pattern.confidence * SUCCESS_PATTERN_BOOST
                confidence_factors.append(
                    f"Matches success pattern ({round(pattern.confidence * 100)}% confidence)"
                )
            elif pattern.kind == PatternKind.FAILURE:
                for factor in pattern.risk_factors:
                    if factor.factor in current_traits:
                        probability *= 1 - factor.severity * FAILURE_FACTOR_PENALTY
                        risk_factors.append(factor.factor)

        probability = max(MIN_SUCCESS_PROBABILITY, min(MAX_SUCCESS_PROBABILITY, probability))

        return PatternReport(
            historical_confidence=round(success_rate, 4),
            success_probability=round(probability, 4),
            data_points=len(relevant),
            average_consensus=round(_mean([r.consensus_score for r in relevant]), 4),
            prediction_accuracy=round(_mean([float(r.prediction_accuracy) for r in relevant]), 4),
            patterns=patterns,
            confidence_factors=confidence_factors,
            risk_factors=risk_factors,
            recommendations=self._pattern_recommendations(
                probability, confidence_factors, risk_factors, current
            ),
        )

    def detect_patterns(self, records: list[HistoricalRecord]) -> list[DetectedPattern]:
        patterns: list[DetectedPattern] = []
        if not records:
            return patterns

        successes = [r for r in records if r.outcome == Outcome.SUCCESS]
        if successes:
            avg_consensus = _mean([r.consensus_score for r in successes])
            avg_oracles = _mean([float(r.oracle_count) for r in successes])
            patterns.append(DetectedPattern(
                kind=PatternKind.SUCCESS,
                confidence=round(len(successes) / len(records), 4),
                description=(
                    f"Successful releases typically have >{round(avg_consensus * 100)}% "
                    f"consensus and >{math.floor(avg_oracles)} oracles"
                ),
                min_consensus=round(avg_consensus * SUCCESS_CONSENSUS_MARGIN, 4),
                min_oracle_count=math.floor(avg_oracles * SUCCESS_ORACLE_MARGIN),
                conflict_tolerance=SUCCESS_CONFLICT_TOLERANCE,
            ))

        failures = [r for r in records if r.outcome == Outcome.FAILURE]
        if failures:
            factors = self.common_failure_factors(failures)
            patterns.append(DetectedPattern(
                kind=PatternKind.FAILURE,
                confidence=round(len(failures) / len(records), 4),
                description=(
                    "Common failure factors: " + ", ".join(f.factor for f in factors)
                    if factors else "No common failure factor"
                ),
                risk_factors=factors,
            ))

        patterns.extend(self.oracle_performance_patterns(records))
        return patterns

    @staticmethod
    def common_failure_factors(failures: list[HistoricalRecord]) -> list[RiskFactor]:
        """Traits present in at least FAILURE_FACTOR_MIN_FREQUENCY of failed records."""
        counts: Counter[str] = Counter()
        for record in failures:
            counts.update(record_traits(record))
        factors = [
            RiskFactor(factor=name, severity=RISK_FACTOR_SEVERITY[name])
            for name, count in counts.most_common()
            if count / len(failures) >= FAILURE_FACTOR_MIN_FREQUENCY
        ]
        return factors

    def oracle_accuracy(self, records: list[HistoricalRecord]) -> dict[str, tuple[float, int]]:
        """
        Per-oracle accuracy: an oracle was right when it flagged conflicts
        on a failed release or stayed quiet on a successful one.

        Returns:
            oracle name → (accuracy, records it responded to)
        """
        hits: Counter[str] = Counter()
        seen: Counter[str] = Counter()
        for record in records:
            if record.outcome == Outcome.PARTIAL:
                continue
            failed = record.outcome == Outcome.FAILURE
            for name in record.responding_oracles:
                seen[name] += 1
                if (name in record.flagging_oracles) == failed:
                    hits[name] += 1
        return {name: (hits[name] / count, count) for name, count in seen.items()}

    def oracle_performance_patterns(self, records: list[HistoricalRecord]) -> list[DetectedPattern]:
        patterns = []
        for name, (accuracy, count) in sorted(self.oracle_accuracy(records).items()):
            if count >= MIN_RECORDS_FOR_REWEIGHT and accuracy >= ORACLE_PATTERN_MIN_ACCURACY:
                patterns.append(DetectedPattern(
                    kind=PatternKind.ORACLE_PERFORMANCE,
                    confidence=round(accuracy, 4),
                    description=f"{name} predicted outcomes correctly in {round(accuracy * 100)}% of releases",
                    oracle_name=name,
                ))
        return patterns

    @staticmethod
    def _matches_success(current: AnalysisResult, pattern: DetectedPattern) -> bool:
        return (
            current.consensus_score >= (pattern.min_consensus or 0.0)
            and current.responding_oracles >= (pattern.min_oracle_count or 0)
            and len(current.conflicts) <= (pattern.conflict_tolerance or 0)
        )

    @staticmethod
    def _pattern_recommendations(
        probability: float,
        confidence_factors: list[str],
        risk_factors: list[str],
        current: AnalysisResult,
    ) -> list[PatternRecommendation]:
        recommendations: list[PatternRecommendation] = []
        if probability < 0.6:
            recommendations.append(PatternRecommendation(
                type="warning",
                message="Low success probability detected",
                action="Review risk factors and consider additional verification",
                priority="high",
            ))
        if not confidence_factors and current.consensus_score < PREDICTED_SUCCESS_MIN_CONSENSUS:
            recommendations.append(PatternRecommendation(
                type="action",
                message="Insufficient pattern matching confidence",
                action="Wait for more oracle responses or perform manual verification",
                priority="medium",
            ))
        if risk_factors:
            recommendations.append(PatternRecommendation(
                type="mitigation",
                message=f"Risk factors detected: {', '.join(risk_factors)}",
                action="Address risk factors before proceeding",
                priority="high",
            ))
        if probability > 0.8:
            recommendations.append(PatternRecommendation(
                type="proceed",
                message="High success probability with strong pattern support",
                action="Proceed with release",
                priority="low",
            ))
        return recommendations

    # ── Adaptation ─────────────────────────────────────────────────────

    def adapt_intelligence(self, analysis: AnalysisResult) -> LearningAdjustment:
        """
        Advisory feedback for one analysis.

        Confidence moves +0.1 when this package/state has historically been
        predicted well (> 0.8 accuracy) and −0.2 when badly (< 0.5).
        """
        report = self.analyze_historical_patterns(analysis.package_name, analysis)

        adjustment = 0.0
        if report.data_points and report.prediction_accuracy is not None:
            if report.prediction_accuracy > ACCURACY_BOOST_THRESHOLD:
                adjustment = CONFIDENCE_BOOST
            elif report.prediction_accuracy < ACCURACY_PENALTY_THRESHOLD:
                adjustment = CONFIDENCE_PENALTY

        risk_factors = self.identify_risk_factors(analysis)

        return LearningAdjustment(
            confidence_adjustment=adjustment,
            adjusted_confidence=round(clamp_confidence(analysis.confidence + adjustment), 4),
            historical_confidence=report.historical_confidence,
            success_probability=report.success_probability,
            data_points=report.data_points,
            oracle_weights=self.adjust_oracle_weights(),
            risk_factors=risk_factors,
            mitigation_strategies=[
                MitigationStrategy(risk=f.factor, strategy=MITIGATIONS[f.factor])
                for f in risk_factors
            ],
            patterns=report.patterns,
            recommendations=report.recommendations,
        )

    @staticmethod
    def identify_risk_factors(analysis: AnalysisResult) -> list[RiskFactor]:
        traits = analysis_traits(analysis)
        return [
            RiskFactor(factor=name, severity=severity)
            for name, severity in RISK_FACTOR_SEVERITY.items()
            if name in traits
        ]

    def adjust_oracle_weights(self) -> dict[str, float]:
        """
        Default weights nudged by each oracle's historical accuracy, then
        renormalized to sum to 1. Oracles with too little data keep their default.
        """
        weights = dict(self.default_oracle_weights)
        for name, (accuracy, count) in self.oracle_accuracy(self.store.records()).items():
            if name not in weights or count < MIN_RECORDS_FOR_REWEIGHT:
                continue
            weights[name] *= 1 + LEARNING_RATE * (accuracy - 0.5) * 2

        total = sum(weights.values())
        if total <= 0:
            return dict(self.default_oracle_weights)
        return {name: round(w / total, 4) for name, w in weights.items()}

    # ── Analytics ──────────────────────────────────────────────────────

    def get_analytics(self) -> LearningAnalytics:
        records = self.store.records()
        if not records:
            return LearningAnalytics(
                total_records=0,
                overall_success_rate=0.0,
                recent_success_rate=0.0,
                prediction_accuracy=0.0,
                learning_progress=LearningProgress.LEARNING,
                persistent=self.store.persistent,
            )

        recent = records[-RECENT_WINDOW:]
        success = [r for r in records if r.outcome == Outcome.SUCCESS]

        trait_counts: Counter[str] = Counter()
        for record in records:
            trait_counts.update(record_traits(record))

        return LearningAnalytics(
            total_records=len(records),
            overall_success_rate=round(len(success) / len(records), 4),
            recent_success_rate=round(
                sum(1 for r in recent if r.outcome == Outcome.SUCCESS) / len(recent), 4
            ),
            prediction_accuracy=round(_mean([float(r.prediction_accuracy) for r in records]), 4),
            learning_progress=self.learning_progress(recent),
            top_risk_factors=[
                RiskFactorFrequency(factor=name, frequency=round(count / len(records), 4))
                for name, count in trait_counts.most_common(5)
            ],
            most_successful_patterns=[
                p for p in self.detect_patterns(records) if p.kind == PatternKind.SUCCESS
            ],
            persistent=self.store.persistent,
        )

    @staticmethod
    def learning_progress(recent: list[HistoricalRecord]) -> LearningProgress:
        accuracy = _mean([float(r.prediction_accuracy) for r in recent])
        if accuracy > 0.9:
            return LearningProgress.EXCELLENT
        if accuracy > 0.8:
            return LearningProgress.GOOD
        if accuracy > 0.7:
            return LearningProgress.IMPROVING
        return LearningProgress.LEARNING
