"""
Release Analyzer: concurrent fan-out to every oracle, then fusion.

Pipeline:
1. Query all oracles concurrently (asyncio.gather); wait for every one
2. Fuse (override check → weighted vote → reconciliation → conflicts)
3. Score reliability
4. Build the frozen AnalysisResult (confidence clamped to [0, 1])
5. Store it in the result-cache oracle for later analyses

Latency is bounded by the slowest oracle, and each oracle by its own timeout.
"""

import asyncio
import time
from typing import Optional

import structlog

from releasegate.engine.fusion import ConsensusFusionEngine
from releasegate.engine.reliability import ReliabilityScorer
from releasegate.engine.schemas import AnalysisResult, IntelligenceLevel
from releasegate.oracles.base import Oracle
from releasegate.oracles.result_cache import ResultCacheOracle
from releasegate.oracles.schemas import OracleResult, clamp_confidence

logger = structlog.get_logger(__name__)


class ReleaseAnalyzer:
    """Runs the oracle set for one (package, version) and fuses the answers."""

    def __init__(
        self,
        oracles: list[Oracle],
        fusion: Optional[ConsensusFusionEngine] = None,
        scorer: Optional[ReliabilityScorer] = None,
        cache_oracle: Optional[ResultCacheOracle] = None,
    ):
        self.oracles = list(oracles)
        self.fusion = fusion or ConsensusFusionEngine()
        self.scorer = scorer or ReliabilityScorer(total_oracles=len(self.oracles))
        if cache_oracle is None:
            cache_oracle = next((o for o in self.oracles if isinstance(o, ResultCacheOracle)), None)
        self.cache_oracle = cache_oracle

    async def analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str] = None,
    ) -> AnalysisResult:
        started = time.perf_counter()
        logger.info(
            "analysis_started",
            package=package_name,
            version=candidate_version,
            oracles=len(self.oracles),
        )

        oracle_results = await self.run_oracles(package_name, candidate_version, package_path)
        result = self.build_result(
            oracle_results,
            package_name,
            candidate_version,
            package_path,
            analysis_time_ms=(time.perf_counter() - started) * 1000,
        )

        if self.cache_oracle is not None:
            self.cache_oracle.store(result)

        logger.info(
            "analysis_completed",
            package=package_name,
            version=candidate_version,
            state=str(result.state),
            confidence=result.confidence,
            consensus_score=result.consensus_score,
            reliability=str(result.reliability),
            responded=result.responding_oracles,
            conflicts=len(result.conflicts),
            critical_override=result.critical_override,
            analysis_time_ms=result.analysis_time_ms,
        )
        return result

    async def run_oracles(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str] = None,
    ) -> list[OracleResult]:
        """All oracle results, in oracle order. Never raises."""
        raw = await asyncio.gather(
            *(o.analyze(package_name, candidate_version, package_path) for o in self.oracles),
            return_exceptions=True,
        )

        results: list[OracleResult] = []
        for oracle, outcome in zip(self.oracles, raw):
            if isinstance(outcome, OracleResult):
                results.append(outcome)
                continue
            # Oracle.analyze already converts failures; this catches contract breaches
            logger.error(
                "oracle_contract_violation",
                oracle=oracle.name,
                error=str(outcome),
                error_type=type(outcome).__name__,
            )
            results.append(OracleResult.failed(oracle.name, str(outcome)))
        return results

    def build_result(
        self,
        oracle_results: list[OracleResult],
        package_name: str,
        candidate_version: str,
        package_path: Optional[str] = None,
        analysis_time_ms: float = 0.0,
    ) -> AnalysisResult:
        """Fuse and score already-collected oracle results. Pure given its inputs."""
        outcome = self.fusion.fuse(oracle_results, package_name, candidate_version)
        report = self.scorer.score(oracle_results)

        return AnalysisResult(
            package_name=package_name,
            candidate_version=candidate_version,
            package_path=package_path,
            state=outcome.state,
            confidence=clamp_confidence(outcome.confidence),
            conflicts=outcome.conflicts,
            recommendations=outcome.recommendations,
            suggested_version=outcome.suggested_version,
            critical_override=outcome.critical_override,
            override_corroboration=outcome.override_corroboration,
            consensus_score=clamp_confidence(report.consensus_score),
            reliability=report.reliability,
            agreement_ratio=outcome.agreement_ratio,
            oracle_agreement_pct=outcome.oracle_agreement_pct,
            intelligence_level=(
                IntelligenceLevel.CRITICAL_VIOLATION if outcome.critical_override
                else report.intelligence_level
            ),
            reconciled_versions=outcome.reconciled_versions,
            oracle_results=oracle_results,
            analysis_time_ms=round(analysis_time_ms, 2),
        )
