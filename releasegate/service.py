"""
ReleaseGate Service: the caller-facing facade.

Wires providers → oracles → analyzer, then feeds every analysis to the
learning engine (advisory adjustment) and the monitoring system.

Usage:
    gate = ReleaseGate.create()
    result = await gate.analyze("my-lib", "1.4.0", package_path=".")
    if not can_publish(result):
        ...
    gate.record_outcome(result, "success")
"""

from typing import Any, Optional

import structlog

from releasegate.config import Settings
from releasegate.config import settings as default_settings
from releasegate.engine.analyzer import ReleaseAnalyzer
from releasegate.engine.fusion import ConsensusFusionEngine
from releasegate.engine.schemas import AnalysisResult
from releasegate.learning.engine import LearningEngine
from releasegate.learning.schemas import HistoricalRecord, LearningAnalytics, Outcome
from releasegate.learning.store import HistoryStore
from releasegate.monitoring.monitor import MonitoringSystem
from releasegate.monitoring.schemas import (
    AnalysisOutcome,
    DashboardData,
    MonitoringThresholds,
)
from releasegate.oracles.factory import default_oracles
from releasegate.oracles.schemas import OracleState
from releasegate.providers.base import AuditProvider, RegistryProvider, SourceControlProvider
from releasegate.providers.git import GitClient
from releasegate.providers.npm import NpmRegistryClient

logger = structlog.get_logger(__name__)

BLOCKING_STATES: frozenset[OracleState] = frozenset({
    OracleState.VERSION_VIOLATION,
    OracleState.VERSION_EXISTS,
    OracleState.UNKNOWN,
})


def can_publish(result: AnalysisResult) -> bool:
    """False when the fused state forbids (or cannot vouch for) publishing."""
    return result.state not in BLOCKING_STATES


class ReleaseGate:
    """Analyzer + learning + monitoring behind one object."""

    def __init__(
        self,
        analyzer: ReleaseAnalyzer,
        learning: LearningEngine,
        monitor: MonitoringSystem,
    ):
        self.analyzer = analyzer
        self.learning = learning
        self.monitor = monitor

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        registry: Optional[RegistryProvider] = None,
        audit: Optional[AuditProvider] = None,
        source_control: Optional[SourceControlProvider] = None,
    ) -> "ReleaseGate":
        """
        Build the full stack from Settings.

        Without an explicit registry the npm client is used for both the
        registry and the unpublished-version audit.
        """
        cfg = settings or default_settings

        if registry is None:
            npm = NpmRegistryClient(cfg.registry_url, timeout=cfg.provider_timeout_seconds)
            registry = npm
            audit = audit or npm
        if source_control is None:
            source_control = GitClient(cfg.git_binary, timeout=cfg.provider_timeout_seconds)

        oracles = default_oracles(
            registry,
            audit=audit,
            source_control=source_control,
            timeout_seconds=cfg.oracle_timeout_seconds,
            history_cache_ttl_seconds=cfg.history_cache_ttl_seconds,
            result_cache_ttl_seconds=cfg.result_cache_ttl_seconds,
        )
        analyzer = ReleaseAnalyzer(
            oracles,
            fusion=ConsensusFusionEngine(consensus_threshold=cfg.consensus_threshold),
        )
        learning = LearningEngine(
            HistoryStore(path=cfg.history_path or None, max_records=cfg.history_max_records)
        )
        monitor = MonitoringSystem(
            thresholds=MonitoringThresholds.from_settings(cfg),
            interval_seconds=cfg.monitor_interval_seconds,
            history_size=cfg.monitor_history_size,
            queue_size=cfg.monitor_queue_size,
        )

        logger.info(
            "release_gate_created",
            oracles=[o.name for o in oracles],
            registry=type(registry).__name__,
            history_path=cfg.history_path or None,
            persistent_history=learning.store.persistent,
        )
        return cls(analyzer, learning, monitor)

    async def analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str] = None,
    ) -> AnalysisResult:
        """Analyze, attach the advisory learning adjustment, record in monitoring."""
        result = await self.analyzer.analyze(package_name, candidate_version, package_path)

        adjustment = self.learning.adapt_intelligence(result)
        result = result.model_copy(update={"learning": adjustment})

        outcome = AnalysisOutcome.SUCCESS if result.responding_oracles else AnalysisOutcome.FAILURE
        self.monitor.record_analysis(
            result,
            outcome=outcome,
            details={"state": str(result.state), "critical_override": result.critical_override},
        )
        return result

    def record_outcome(
        self,
        prior: AnalysisResult,
        outcome: Outcome | str,
        details: Optional[dict[str, Any]] = None,
    ) -> HistoricalRecord:
        return self.learning.record_outcome(prior, outcome, details)

    def analytics(self) -> LearningAnalytics:
        return self.learning.get_analytics()

    def snapshot(self) -> DashboardData:
        return self.monitor.dashboard()

    def start_monitoring(self) -> None:
        self.monitor.start()

    def stop_monitoring(self) -> None:
        self.monitor.stop()
