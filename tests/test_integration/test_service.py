"""
ReleaseGate Service Tests.

End to end through the real oracle set, fusion, learning and monitoring,
with in-memory providers.
"""

import pytest

from releasegate.config import Settings
from releasegate.engine.schemas import AnalysisResult, ReliabilityLabel
from releasegate.learning.schemas import Outcome
from releasegate.monitoring.schemas import AnalysisOutcome
from releasegate.oracles.registry import RegistryOracle
from releasegate.oracles.schemas import OracleState
from releasegate.oracles.version_policy import VersionPolicyOracle
from releasegate.providers.npm import NpmRegistryClient
from releasegate.service import BLOCKING_STATES, ReleaseGate, can_publish
from tests.conftest import FakeRegistry


@pytest.fixture
def gate(burned_registry, burned_audit, source_control):
    return ReleaseGate.create(
        settings=Settings(history_path=""),
        registry=burned_registry,
        audit=burned_audit,
        source_control=source_control,
    )


def _make_result(state: OracleState) -> AnalysisResult:
    return AnalysisResult(
        package_name="lib-a",
        candidate_version="1.0.0",
        state=state,
        confidence=0.9,
        consensus_score=0.9,
        reliability=ReliabilityLabel.HIGH,
    )


class TestCanPublish:
    @pytest.mark.parametrize("state", sorted(BLOCKING_STATES))
    def test_blocking_states(self, state):
        assert can_publish(_make_result(state)) is False

    @pytest.mark.parametrize("state", [
        OracleState.NEW_PACKAGE,
        OracleState.VERSION_BUMP,
        OracleState.VERSION_COMPLIANT,
        OracleState.VALID_VERSION,
    ])
    def test_publishable_states(self, state):
        assert can_publish(_make_result(state)) is True


class TestReleaseGate:
    @pytest.mark.asyncio
    async def test_burned_version_is_blocked(self, gate):
        result = await gate.analyze("lib-a", "1.0.1")

        assert result.state == OracleState.VERSION_VIOLATION
        assert result.critical_override is True
        assert can_publish(result) is False
        assert result.suggested_version not in {"1.0.0", "1.0.1", "1.0.2"}
        assert result.learning is not None
        assert result.learning.advisory is True

    @pytest.mark.asyncio
    async def test_fresh_version_can_publish(self, gate, package_dir):
        result = await gate.analyze("lib-a", "1.0.3", package_path=str(package_dir))

        assert can_publish(result) is True
        assert result.critical_override is False
        assert result.responding_oracles == 7

    @pytest.mark.asyncio
    async def test_analyses_are_monitored(self, gate):
        await gate.analyze("lib-a", "1.0.1")
        await gate.analyze("lib-b", "0.1.0")

        snapshot = gate.snapshot()
        assert snapshot.metrics.total_analyses == 2
        assert snapshot.metrics.failed_analyses == 0
        assert [s.package_name for s in snapshot.recent_analyses] == ["lib-b", "lib-a"]
        assert snapshot.recent_analyses[1].details["state"] == "version-violation"

    @pytest.mark.asyncio
    async def test_no_responders_recorded_as_failure(self, gate, monkeypatch):
        async def _all_failed(package_name, candidate_version, package_path=None):
            return []

        monkeypatch.setattr(gate.analyzer, "run_oracles", _all_failed)
        result = await gate.analyze("lib-a", "1.0.3")
        assert result.state == OracleState.UNKNOWN
        assert gate.monitor.recent_analyses()[0].outcome == AnalysisOutcome.FAILURE

    @pytest.mark.asyncio
    async def test_outcomes_feed_learning(self, gate):
        result = await gate.analyze("lib-a", "1.0.1")
        record = gate.record_outcome(result, "failure", {"reason": "publish rejected"})

        assert record.outcome == Outcome.FAILURE
        analytics = gate.analytics()
        assert analytics.total_records == 1
        assert analytics.persistent is False

        again = await gate.analyze("lib-a", "1.0.1")
        assert again.learning.data_points == 1

    @pytest.mark.asyncio
    async def test_monitoring_loop(self, gate):
        gate.start_monitoring()
        assert gate.monitor.is_running is True
        gate.stop_monitoring()
        assert gate.monitor.is_running is False


class TestCreate:
    def test_npm_client_serves_registry_and_audit(self):
        gate = ReleaseGate.create(settings=Settings(history_path=""))

        registry_oracle = next(o for o in gate.analyzer.oracles if isinstance(o, RegistryOracle))
        policy_oracle = next(o for o in gate.analyzer.oracles if isinstance(o, VersionPolicyOracle))
        assert isinstance(registry_oracle.registry, NpmRegistryClient)
        assert policy_oracle.audit is registry_oracle.registry
        assert len(gate.analyzer.oracles) == 7

    def test_settings_flow_through(self):
        settings = Settings(
            history_path="",
            alert_min_oracle_count=2,
            monitor_interval_seconds=30,
            history_max_records=5,
        )
        gate = ReleaseGate.create(settings=settings, registry=FakeRegistry())

        assert gate.monitor.thresholds.min_oracle_count == 2
        assert gate.monitor.interval_seconds == 30
        assert gate.learning.store.max_records == 5
        assert gate.learning.store.persistent is False
