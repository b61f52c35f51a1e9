"""
Release Analyzer Tests.

Covers:
- Never-published package with unanimous oracles
- Burned version end-to-end through the real oracle set
- Repeat analyses over unchanged inputs give identical results
- Oracles that break the analyze() contract are contained
- The result-cache oracle sees completed analyses
"""

import asyncio

import pytest

from releasegate.engine.analyzer import ReleaseAnalyzer
from releasegate.engine.schemas import IntelligenceLevel, ReliabilityLabel
from releasegate.oracles.base import Oracle
from releasegate.oracles.factory import default_oracles
from releasegate.oracles.registry import RegistryOracle
from releasegate.oracles.result_cache import ResultCacheOracle
from releasegate.oracles.schemas import ConflictKind, OracleResult, OracleState
from releasegate.oracles.semver import SemanticVersionOracle
from releasegate.oracles.version_policy import VersionPolicyOracle
from tests.conftest import FakeAudit, FakeRegistry


class _StaticOracle(Oracle):
    def __init__(self, name: str, state: OracleState, confidence: float):
        super().__init__()
        self.name = name
        self.state = state
        self.confidence = confidence

    async def _analyze(self, package_name, candidate_version, package_path):
        return self._result(self.state, self.confidence)


class _ContractBreaker(Oracle):
    name = "breaker"

    async def analyze(self, package_name, candidate_version, package_path=None):
        raise RuntimeError("bypassed the base class")

    async def _analyze(self, package_name, candidate_version, package_path):
        raise NotImplementedError


def _burned_oracles() -> list[Oracle]:
    """0.9.0 and 1.0.0 both published once; 1.0.0 later unpublished."""
    registry = FakeRegistry({"lib-a": ["0.9.0"]})
    audit = FakeAudit(history={"lib-a": ["0.9.0", "1.0.0"]}, published={"lib-a": ["0.9.0"]})
    return default_oracles(registry, audit=audit)


class TestReleaseAnalyzer:
    @pytest.mark.asyncio
    async def test_new_package_consensus(self):
        confidences = [0.9, 0.85, 0.8, 0.9, 0.8, 0.85, 0.9]
        oracles = [
            _StaticOracle(f"oracle-{i}", OracleState.NEW_PACKAGE, c)
            for i, c in enumerate(confidences)
        ]
        result = await ReleaseAnalyzer(oracles).analyze("brand-new", "1.0.0")

        assert result.state == OracleState.NEW_PACKAGE
        assert result.consensus_score > 0.75
        assert result.reliability == ReliabilityLabel.HIGH
        assert result.intelligence_level == IntelligenceLevel.ADVANCED
        assert result.responding_oracles == 7
        assert result.critical_override is False

    @pytest.mark.asyncio
    async def test_burned_version_is_a_violation(self):
        result = await ReleaseAnalyzer(_burned_oracles()).analyze("lib-a", "1.0.0")

        assert result.state == OracleState.VERSION_VIOLATION
        assert result.is_violation
        assert result.confidence == 1.0
        assert result.critical_override is True
        assert result.intelligence_level == IntelligenceLevel.CRITICAL_VIOLATION
        assert result.conflicts[0].kind == ConflictKind.VERSION_REUSE_ATTEMPTED
        assert result.suggested_version not in {"0.9.0", "1.0.0"}
        assert result.suggested_version == "1.0.1"

    @pytest.mark.asyncio
    async def test_repeat_analysis_is_identical(self):
        registry = FakeRegistry({"lib-a": ["0.9.0"]})
        audit = FakeAudit(history={"lib-a": ["0.9.0", "1.0.0"]}, published={"lib-a": ["0.9.0"]})
        oracles = [
            RegistryOracle(registry),
            VersionPolicyOracle(registry=registry, audit=audit),
            SemanticVersionOracle(),
        ]
        analyzer = ReleaseAnalyzer(oracles)

        first = await analyzer.analyze("lib-a", "1.0.0")
        second = await analyzer.analyze("lib-a", "1.0.0")
        assert first.fingerprint() == second.fingerprint()

    @pytest.mark.asyncio
    async def test_build_result_is_pure(self):
        analyzer = ReleaseAnalyzer(_burned_oracles())
        oracle_results = await analyzer.run_oracles("lib-a", "1.0.0")
        first = analyzer.build_result(oracle_results, "lib-a", "1.0.0")
        second = analyzer.build_result(oracle_results, "lib-a", "1.0.0")
        assert first.fingerprint() == second.fingerprint()

    @pytest.mark.asyncio
    async def test_contract_breach_is_contained(self):
        oracles = [_ContractBreaker(), _StaticOracle("ok", OracleState.VALID_VERSION, 0.8)]
        results = await ReleaseAnalyzer(oracles).run_oracles("lib-a", "1.0.0")
        assert [r.oracle_name for r in results] == ["breaker", "ok"]
        assert results[0].succeeded is False
        assert results[1].succeeded is True

    @pytest.mark.asyncio
    async def test_oracles_run_concurrently(self):
        class _Sleeper(Oracle):
            name = "sleeper"

            async def _analyze(self, package_name, candidate_version, package_path):
                await asyncio.sleep(0.2)
                return self._result(OracleState.VALID_VERSION, 0.8)

        loop = asyncio.get_running_loop()
        started = loop.time()
        await ReleaseAnalyzer([_Sleeper() for _ in range(5)]).analyze("lib-a", "1.0.0")
        assert loop.time() - started < 0.8

    @pytest.mark.asyncio
    async def test_completed_analysis_feeds_result_cache(self):
        oracles = _burned_oracles()
        cache_oracle = next(o for o in oracles if isinstance(o, ResultCacheOracle))
        analyzer = ReleaseAnalyzer(oracles)
        assert analyzer.cache_oracle is cache_oracle

        await analyzer.analyze("lib-a", "1.0.0")
        second = await analyzer.analyze("lib-a", "1.0.0")
        cached = next(r for r in second.oracle_results if r.oracle_name == "result-cache")
        assert cached.state == OracleState.VERSION_VIOLATION
        assert cached.metadata["cached"] is True

    @pytest.mark.asyncio
    async def test_all_oracles_failing(self):
        oracles = [_ContractBreaker()]
        result = await ReleaseAnalyzer(oracles).analyze("lib-a", "1.0.0")
        assert result.state == OracleState.UNKNOWN
        assert result.confidence == 0.0
        assert result.responding_oracles == 0
        assert isinstance(result.oracle_results[0], OracleResult)
