"""
Consensus Fusion Engine.

Combines the answers of every oracle into one decision:

1. Critical override: if the version-policy oracle responded and reports a
   violation, the decision is version-violation at confidence 1.0. A burned
   version is a deterministic rule, not a probability; nothing the weaker
   oracles say can relax it.
2. Weighted vote over responding oracles: each state accumulates the
   confidence of the oracles that chose it.
       ratio      = winning weight / total weight
       confidence = ratio            if ratio ≥ threshold
                    ratio × 0.5      otherwise (inconclusive vote)
3. Version reconciliation (trust = reporters / responders) and conflict
   aggregation.
4. Recommendations: version-bump, manual-review, verification-needed, proceed.

Failed oracles never vote and never contribute conflicts.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

import structlog

from releasegate import versioning
from releasegate.engine.conflicts import ConflictAggregator
from releasegate.engine.schemas import (
    ReconciledVersion,
    Recommendation,
    RecommendationAction,
)
from releasegate.oracles.schemas import (
    POLICY_VIOLATION_KINDS,
    Conflict,
    ConflictKind,
    OracleResult,
    OracleState,
    Severity,
    clamp_confidence,
)

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

CONSENSUS_THRESHOLD: float = 0.6
INCONCLUSIVE_PENALTY: float = 0.5
VERSION_BUMP_MIN_CONFIDENCE: float = 0.8
MANUAL_REVIEW_CONFIDENCE: float = 0.9
VERIFICATION_CONFIDENCE_FACTOR: float = 0.7
POLICY_ORACLE_NAME: str = "version-policy"
FALLBACK_FIRST_VERSION: str = "0.0.0"


@dataclass(frozen=True)
class VoteResult:
    """Outcome of the weighted vote."""
    state: OracleState
    confidence: float
    agreement_ratio: float
    winning_weight: float
    total_weight: float
    agreeing_oracles: int
    weights: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class FusionOutcome:
    """Everything the fusion step decides; the analyzer wraps it in an AnalysisResult."""
    state: OracleState
    confidence: float
    conflicts: list[Conflict]
    recommendations: list[Recommendation]
    reconciled_versions: list[ReconciledVersion]
    agreement_ratio: float
    oracle_agreement_pct: float
    critical_override: bool = False
    override_corroboration: int = 0
    suggested_version: Optional[str] = None


class ConsensusFusionEngine:
    """
    Fuses oracle results into one decision.

    The only place in the system where a go/no-go state is chosen.
    """

    def __init__(
        self,
        consensus_threshold: float = CONSENSUS_THRESHOLD,
        policy_oracle_name: str = POLICY_ORACLE_NAME,
        aggregator: Optional[ConflictAggregator] = None,
    ):
        self.consensus_threshold = consensus_threshold
        self.policy_oracle_name = policy_oracle_name
        self.aggregator = aggregator or ConflictAggregator()

    def fuse(
        self,
        oracle_results: list[OracleResult],
        package_name: str,
        candidate_version: str,
    ) -> FusionOutcome:
        responded = [r for r in oracle_results if r.succeeded]
        reconciled = self.reconcile_versions(responded)

        # ── 1. Critical override ──────────────────────────────────────
        policy = next((r for r in responded if r.oracle_name == self.policy_oracle_name), None)
        violation = self._policy_violation(policy, package_name, candidate_version)
        if policy is not None and violation is not None:
            return self._override(
                policy, violation, responded, reconciled, package_name, candidate_version
            )

        # ── 2. Weighted vote ──────────────────────────────────────────
        vote = self.weighted_vote(responded)

        # ── 3. Conflict aggregation ───────────────────────────────────
        conflicts = self.aggregator.aggregate(c for r in responded for c in r.conflicts)

        # ── 4. Recommendations ────────────────────────────────────────
        recommendations = self.recommend(vote, conflicts, responded)
        suggested = next(
            (rec.suggested_version for rec in recommendations if rec.suggested_version),
            None,
        )

        logger.debug(
            "consensus_reached",
            package=package_name,
            version=candidate_version,
            state=str(vote.state),
            confidence=vote.confidence,
            agreement_ratio=vote.agreement_ratio,
            responded=len(responded),
            conflicts=len(conflicts),
        )

        return FusionOutcome(
            state=vote.state,
            confidence=vote.confidence,
            conflicts=conflicts,
            recommendations=recommendations,
            reconciled_versions=reconciled,
            agreement_ratio=vote.agreement_ratio,
            oracle_agreement_pct=self.oracle_agreement(responded),
            suggested_version=suggested,
        )

    # ── Override path ──────────────────────────────────────────────────

    def _policy_violation(
        self,
        policy: Optional[OracleResult],
        package_name: str,
        candidate_version: str,
    ) -> Optional[Conflict]:
        if policy is None:
            return None
        for conflict in policy.conflicts:
            if conflict.kind in POLICY_VIOLATION_KINDS:
                return conflict
        if policy.state == OracleState.VERSION_VIOLATION:
            return Conflict(
                kind=ConflictKind.OTHER,
                severity=Severity.CRITICAL,
                message=f"Version policy violation reported for {package_name}@{candidate_version}",
                sources=frozenset({policy.oracle_name}),
            )
        return None

    def _override(
        self,
        policy: OracleResult,
        violation: Conflict,
        responded: list[OracleResult],
        reconciled: list[ReconciledVersion],
        package_name: str,
        candidate_version: str,
    ) -> FusionOutcome:
        others = [r for r in responded if r is not policy]
        # Violation first, everything else attached for context
        conflicts = self.aggregator.aggregate([
            violation,
            *(c for c in policy.conflicts if c is not violation),
            *(c for r in others for c in r.conflicts),
        ])
        corroboration = self.override_corroboration(others, candidate_version)

        recommendation = Recommendation(
            action=RecommendationAction.VERSION_BUMP_REQUIRED,
            message=violation.message,
            confidence=1.0,
            auto_resolvable=violation.suggested_version is not None,
            suggested_version=violation.suggested_version,
            severity=violation.severity,
            corroborated_by=corroboration,
        )

        logger.warning(
            "critical_version_violation",
            package=package_name,
            version=candidate_version,
            kind=str(violation.kind),
            suggested_version=violation.suggested_version,
            corroboration=corroboration,
        )

        return FusionOutcome(
            state=OracleState.VERSION_VIOLATION,
            confidence=1.0,
            conflicts=conflicts,
            recommendations=[recommendation],
            reconciled_versions=reconciled,
            agreement_ratio=1.0,
            oracle_agreement_pct=100.0,
            critical_override=True,
            override_corroboration=corroboration,
            suggested_version=violation.suggested_version,
        )

    @staticmethod
    def override_corroboration(others: list[OracleResult], candidate_version: str) -> int:
        """How many other responders independently see the candidate as already existing."""
        target = versioning.normalize(candidate_version)
        count = 0
        for result in others:
            reported = {versioning.normalize(v) for v in result.reported_versions}
            if result.state == OracleState.VERSION_EXISTS or target in reported:
                count += 1
        return count

    # ── Voting ─────────────────────────────────────────────────────────

    def weighted_vote(self, responded: list[OracleResult]) -> VoteResult:
        """
        Confidence-weighted plurality. Ties go to the state first chosen by
        an earlier oracle. No responders → unknown at confidence 0.
        """
        if not responded:
            return VoteResult(
                state=OracleState.UNKNOWN,
                confidence=0.0,
                agreement_ratio=0.0,
                winning_weight=0.0,
                total_weight=0.0,
                agreeing_oracles=0,
            )

        weights: dict[OracleState, float] = {}
        for result in responded:
            weights[result.state] = weights.get(result.state, 0.0) + result.confidence

        winner = next(iter(weights))
        for state, weight in weights.items():
            if weight > weights[winner]:
                winner = state

        total = sum(weights.values())
        ratio = weights[winner] / total if total > 0 else 0.0
        confidence = ratio if ratio >= self.consensus_threshold else ratio * INCONCLUSIVE_PENALTY

        return VoteResult(
            state=winner,
            confidence=round(clamp_confidence(confidence), 4),
            agreement_ratio=round(clamp_confidence(ratio), 4),
            winning_weight=round(weights[winner], 4),
            total_weight=round(total, 4),
            agreeing_oracles=sum(1 for r in responded if r.state == winner),
            weights={str(s): round(w, 4) for s, w in weights.items()},
        )

    @staticmethod
    def oracle_agreement(responded: list[OracleResult]) -> float:
        """Unweighted plurality share, as a percentage."""
        if not responded:
            return 0.0
        counts = Counter(r.state for r in responded)
        return round(max(counts.values()) / len(responded) * 100, 2)

    # ── Version reconciliation ─────────────────────────────────────────

    @staticmethod
    def reconcile_versions(responded: list[OracleResult]) -> list[ReconciledVersion]:
        """
        Union of reported versions. A version is trusted in proportion to how
        many independent oracles mention it. Sorted by trust, then version.
        """
        if not responded:
            return []

        display: dict[str, str] = {}
        sources: dict[str, set[str]] = {}
        for result in responded:
            for version in result.reported_versions:
                key = versioning.normalize(version)
                display.setdefault(key, version)
                sources.setdefault(key, set()).add(result.oracle_name)

        reconciled = [
            ReconciledVersion(
                version=display[key],
                sources=frozenset(names),
                trust=round(len(names) / len(responded), 4),
            )
            for key, names in sources.items()
        ]
        by_version = versioning.sort_versions([r.version for r in reconciled], descending=True)
        rank = {v: i for i, v in enumerate(by_version)}
        reconciled.sort(key=lambda r: (-r.trust, rank[r.version]))
        return reconciled

    # ── Recommendations ────────────────────────────────────────────────

    def recommend(
        self,
        vote: VoteResult,
        conflicts: list[Conflict],
        responded: list[OracleResult],
    ) -> list[Recommendation]:
        recommendations: list[Recommendation] = []

        if vote.state == OracleState.VERSION_EXISTS and vote.confidence > VERSION_BUMP_MIN_CONFIDENCE:
            recommendations.append(Recommendation(
                action=RecommendationAction.VERSION_BUMP,
                message=(
                    f"Version conflict detected with "
                    f"{round(vote.agreement_ratio * 100)}% oracle agreement"
                ),
                confidence=vote.confidence,
                auto_resolvable=True,
                suggested_version=self.suggest_next_version(responded),
                corroborated_by=vote.agreeing_oracles,
            ))

        highest = ConflictAggregator.highest_severity(conflicts)
        if highest is not None and highest.rank >= Severity.HIGH.rank:
            recommendations.append(Recommendation(
                action=RecommendationAction.MANUAL_REVIEW,
                message="High-severity conflicts require manual review",
                confidence=MANUAL_REVIEW_CONFIDENCE,
                severity=highest,
            ))

        if vote.agreement_ratio < self.consensus_threshold:
            recommendations.append(Recommendation(
                action=RecommendationAction.VERIFICATION_NEEDED,
                message=(
                    f"Low oracle consensus ({round(vote.agreement_ratio * 100)}%). "
                    f"Additional verification recommended."
                ),
                confidence=round(vote.confidence * VERIFICATION_CONFIDENCE_FACTOR, 4),
            ))

        if not recommendations and vote.state != OracleState.UNKNOWN:
            recommendations.append(Recommendation(
                action=RecommendationAction.PROCEED,
                message=f"Oracles agree on {vote.state} with no blocking conflicts",
                confidence=vote.confidence,
                corroborated_by=vote.agreeing_oracles,
            ))

        return recommendations

    @staticmethod
    def suggest_next_version(responded: list[OracleResult]) -> str:
        """Patch bump of the most commonly reported latest version, avoiding known versions."""
        known = [v for r in responded for v in r.reported_versions]
        latest_reports = [r.latest_version for r in responded if r.latest_version]
        if not latest_reports:
            return versioning.next_available(FALLBACK_FIRST_VERSION, known)
        # Counter.most_common keeps first-seen order among equal counts
        latest = Counter(latest_reports).most_common(1)[0][0]
        return versioning.next_available(latest, known)
