"""
Monitoring System: analysis metrics, health checks and alerting.

Every analysis is recorded here (counts, latency, consensus, per-oracle
latency windows). Alerts fire per analysis (slow, low confidence, thin
oracle coverage) and from periodic threshold checks. Alerts are
deduplicated by signature and stay open until resolved explicitly.

The periodic loop is an APScheduler interval job on the running event
loop: each tick runs the health check and threshold checks, then pushes a
dashboard snapshot onto a bounded queue (oldest snapshot dropped when full).

State is guarded by a threading.Lock so analyses may be recorded from any
thread.
"""

import asyncio
import itertools
import statistics
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from releasegate.engine.schemas import AnalysisResult
from releasegate.monitoring import export as metrics_export
from releasegate.monitoring.dedup import AlertDeduplicator, content_signature
from releasegate.monitoring.schemas import (
    Alert,
    AlertSeverity,
    AlertType,
    AnalysisOutcome,
    AnalysisSample,
    DashboardData,
    HealthReport,
    MetricsSnapshot,
    MonitoringThresholds,
    OracleHealth,
    OracleStatus,
    PerformanceWindow,
    SystemStatus,
    Uptime,
)

logger = structlog.get_logger(__name__)

# Configuration
ORACLE_LATENCY_WINDOW: int = 100
MAX_ALERTS: int = 1000
ACTIVE_ALERTS_LIMIT: int = 50
RECENT_ANALYSES_LIMIT: int = 10
TICK_JOB_ID: str = "monitor_tick"


class MonitoringSystem:
    """Collects analysis metrics and raises alerts."""

    def __init__(
        self,
        thresholds: Optional[MonitoringThresholds] = None,
        interval_seconds: float = 5.0,
        history_size: int = 1000,
        queue_size: int = 100,
        clock: Callable[[], float] = time.time,
        max_alerts: int = MAX_ALERTS,
    ):
        self.thresholds = thresholds or MonitoringThresholds()
        self.interval_seconds = interval_seconds
        self.max_alerts = max(1, max_alerts)
        self._clock = clock
        self._lock = threading.Lock()

        self.started_at = clock()
        self._total = 0
        self._successes = 0
        self._failures = 0
        self._sum_response_ms = 0.0
        self._sum_confidence = 0.0
        self._sum_oracle_count = 0
        self._last_analysis_at: Optional[float] = None
        self._samples: deque[AnalysisSample] = deque(maxlen=max(1, history_size))

        # Per-oracle state
        self._oracle_latency: dict[str, deque[float]] = {}
        self._oracle_calls: dict[str, int] = {}
        self._oracle_successes: dict[str, int] = {}
        self._oracle_last_seen: dict[str, float] = {}

        # Alerts
        self._alerts: list[Alert] = []
        self._dedup = AlertDeduplicator()
        self._alert_seq = itertools.count(1)

        # Loop
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._snapshots: asyncio.Queue = asyncio.Queue(maxsize=max(1, queue_size))
        self._last_status = SystemStatus.HEALTHY

    # ── Recording ──────────────────────────────────────────────────────

    def record_analysis(
        self,
        result: AnalysisResult,
        outcome: AnalysisOutcome = AnalysisOutcome.SUCCESS,
        details: Optional[dict[str, Any]] = None,
    ) -> AnalysisSample:
        """Record one analysis, then raise any per-analysis alerts."""
        now = self._clock()
        outcome = AnalysisOutcome(outcome)
        sample = AnalysisSample(
            timestamp=now,
            package_name=result.package_name,
            version=result.candidate_version,
            outcome=outcome,
            response_time_ms=result.analysis_time_ms,
            confidence=result.consensus_score,
            oracle_count=result.responding_oracles,
            conflicts=len(result.conflicts),
            intelligence_level=str(result.intelligence_level),
            state=str(result.state),
            details=details or {},
        )

        with self._lock:
            self._total += 1
            if outcome == AnalysisOutcome.SUCCESS:
                self._successes += 1
            else:
                self._failures += 1
            self._sum_response_ms += sample.response_time_ms
            self._sum_confidence += sample.confidence
            self._sum_oracle_count += sample.oracle_count
            self._last_analysis_at = now
            self._samples.append(sample)

            for oracle in result.oracle_results:
                name = oracle.oracle_name
                window = self._oracle_latency.setdefault(
                    name, deque(maxlen=ORACLE_LATENCY_WINDOW)
                )
                window.append(oracle.response_time_ms)
                self._oracle_calls[name] = self._oracle_calls.get(name, 0) + 1
                if oracle.succeeded:
                    self._oracle_successes[name] = self._oracle_successes.get(name, 0) + 1
                self._oracle_last_seen[name] = now

        self._check_analysis_alerts(sample, total_oracles=len(result.oracle_results))
        logger.debug(
            "analysis_recorded",
            package=sample.package_name,
            version=sample.version,
            outcome=str(outcome),
            response_time_ms=sample.response_time_ms,
        )
        return sample

    def _check_analysis_alerts(self, sample: AnalysisSample, total_oracles: int) -> None:
        t = self.thresholds
        pkg = sample.package_name

        if sample.response_time_ms > t.slow_analysis_ms:
            self.create_alert(
                AlertType.PERFORMANCE,
                AlertSeverity.WARNING,
                f"Slow analysis detected: {sample.response_time_ms:.0f}ms for {pkg}",
                signature=f"analysis:slow:{pkg}",
                metadata={"response_time_ms": sample.response_time_ms, "package": pkg},
            )

        if sample.confidence < t.low_confidence:
            self.create_alert(
                AlertType.INTELLIGENCE,
                AlertSeverity.WARNING,
                f"Low intelligence confidence: {sample.confidence * 100:.1f}% for {pkg}",
                signature=f"analysis:low_confidence:{pkg}",
                metadata={"confidence": sample.confidence, "package": pkg},
            )

        if sample.oracle_count < t.min_oracle_count:
            self.create_alert(
                AlertType.ORACLE,
                AlertSeverity.WARNING,
                f"Insufficient oracle coverage: {sample.oracle_count}/{total_oracles} for {pkg}",
                signature=f"analysis:low_coverage:{pkg}",
                metadata={"oracle_count": sample.oracle_count, "package": pkg},
            )

    # ── Health & thresholds ────────────────────────────────────────────

    def _idle_seconds(self, now: float) -> float:
        reference = self._last_analysis_at if self._last_analysis_at is not None else self.started_at
        return max(0.0, now - reference)

    def perform_health_check(self) -> HealthReport:
        now = self._clock()
        t = self.thresholds
        status = SystemStatus.HEALTHY
        issues: list[str] = []

        with self._lock:
            idle = self._idle_seconds(now)
            total = self._total
            failures = self._failures
            avg_response = self._sum_response_ms / total if total else 0.0
            active = sum(1 for a in self._alerts if not a.resolved)
            resolved = len(self._alerts) - active

        if idle > t.max_inactivity_seconds:
            status = SystemStatus.WARNING
            issues.append(f"No analyses for {int(idle // 60)} minutes")

        if total and failures / total > t.health_max_failure_rate:
            status = SystemStatus.CRITICAL
            issues.append(f"High failure rate: {failures / total * 100:.1f}%")

        if avg_response > t.health_max_response_ms:
            if status != SystemStatus.CRITICAL:
                status = SystemStatus.WARNING
            issues.append(f"Slow average response time: {avg_response:.0f}ms")

        return HealthReport(
            status=status,
            issues=issues,
            active_alerts=active,
            resolved_alerts=resolved,
        )

    def check_thresholds(self) -> list[Alert]:
        """Evaluate the global thresholds. Returns the alerts actually raised."""
        now = self._clock()
        t = self.thresholds

        with self._lock:
            total = self._total
            idle = self._idle_seconds(now)
            avg_response = self._sum_response_ms / total if total else 0.0
            success_rate = self._successes / total if total else 1.0
            avg_oracles = self._sum_oracle_count / total if total else 0.0

        raised: list[Optional[Alert]] = []

        if total:
            if avg_response > t.max_response_time_ms:
                raised.append(self.create_alert(
                    AlertType.PERFORMANCE,
                    AlertSeverity.HIGH,
                    f"Average response time exceeded threshold: {avg_response:.0f}ms",
                    signature="threshold:response_time",
                    metadata={"average_response_time_ms": avg_response},
                ))
            if success_rate < t.min_success_rate:
                raised.append(self.create_alert(
                    AlertType.RELIABILITY,
                    AlertSeverity.CRITICAL,
                    f"Success rate below threshold: {success_rate * 100:.1f}%",
                    signature="threshold:success_rate",
                    metadata={"success_rate": success_rate},
                ))
            if avg_oracles < t.min_oracle_count:
                raised.append(self.create_alert(
                    AlertType.ORACLE,
                    AlertSeverity.WARNING,
                    f"Average oracle count below threshold: {avg_oracles:.1f}",
                    signature="threshold:oracle_count",
                    metadata={"average_oracle_count": avg_oracles},
                ))

        if idle > t.max_inactivity_seconds:
            raised.append(self.create_alert(
                AlertType.SYSTEM,
                AlertSeverity.WARNING,
                f"System inactive for {int(idle // 60)} minutes",
                signature="threshold:inactivity",
                metadata={"idle_seconds": idle},
            ))

        return [a for a in raised if a is not None]

    # ── Alerts ─────────────────────────────────────────────────────────

    def create_alert(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        message: str,
        signature: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[Alert]:
        """Raise an alert, or return None if one with the same signature is still open."""
        alert_type = AlertType(alert_type)
        severity = AlertSeverity(severity)
        signature = signature or content_signature(alert_type, severity, message)
        now = self._clock()

        with self._lock:
            if self._dedup.should_suppress(signature):
                return None
            alert = Alert(
                alert_id=f"alert_{int(now * 1000)}_{next(self._alert_seq)}",
                type=alert_type,
                severity=severity,
                message=message,
                signature=signature,
                metadata=metadata or {},
            )
            self._alerts.append(alert)
            self._dedup.register(signature, alert.alert_id)

            overflow = len(self._alerts) - self.max_alerts
            if overflow > 0:
                for dropped in self._alerts[:overflow]:
                    if not dropped.resolved:
                        self._dedup.release(dropped.signature, dropped.alert_id)
                del self._alerts[:overflow]

        log = logger.error if severity == AlertSeverity.CRITICAL else logger.warning
        log(
            "alert_raised",
            alert_id=alert.alert_id,
            type=str(alert_type),
            severity=str(severity),
            message=message,
        )
        return alert

    def resolve_alert(self, alert_id: str, resolution: str = "") -> bool:
        with self._lock:
            alert = next((a for a in self._alerts if a.alert_id == alert_id), None)
            if alert is None or alert.resolved:
                return False
            alert.resolved = True
            alert.resolved_at = datetime.now(timezone.utc)
            alert.resolution = resolution
            self._dedup.release(alert.signature, alert.alert_id)

        logger.info("alert_resolved", alert_id=alert_id, resolution=resolution)
        return True

    def active_alerts(self, limit: int = ACTIVE_ALERTS_LIMIT) -> list[Alert]:
        """Unresolved alerts, newest first."""
        with self._lock:
            active = [a.model_copy() for a in reversed(self._alerts) if not a.resolved]
        return active[:limit]

    def all_alerts(self) -> list[Alert]:
        with self._lock:
            return [a.model_copy() for a in self._alerts]

    # ── Views ──────────────────────────────────────────────────────────

    def recent_performance(self, window_seconds: float = 300.0) -> PerformanceWindow:
        cutoff = self._clock() - window_seconds
        with self._lock:
            recent = [s for s in self._samples if s.timestamp >= cutoff]

        if not recent:
            return PerformanceWindow(window_seconds=window_seconds)

        n = len(recent)
        return PerformanceWindow(
            window_seconds=window_seconds,
            count=n,
            success_rate=sum(1 for s in recent if s.outcome == AnalysisOutcome.SUCCESS) / n,
            average_response_time_ms=statistics.fmean(s.response_time_ms for s in recent),
            average_confidence=statistics.fmean(s.confidence for s in recent),
            average_oracle_count=statistics.fmean(s.oracle_count for s in recent),
        )

    def oracle_health(self) -> list[OracleHealth]:
        now = self._clock()
        t = self.thresholds
        with self._lock:
            windows = {name: list(w) for name, w in self._oracle_latency.items()}
            calls = dict(self._oracle_calls)
            successes = dict(self._oracle_successes)
            last_seen = dict(self._oracle_last_seen)

        report: list[OracleHealth] = []
        for name in sorted(windows):
            latencies = windows[name]
            mean = statistics.fmean(latencies) if latencies else 0.0
            if mean > 0:
                variance = statistics.pvariance(latencies, mu=mean)
                consistency = max(0.0, 1.0 - variance / (mean * mean))
            else:
                consistency = 1.0
            success_ratio = successes.get(name, 0) / calls[name] if calls.get(name) else 0.0

            seen = last_seen.get(name)
            if seen is None or now - seen > t.oracle_inactive_seconds:
                status = OracleStatus.INACTIVE
            elif mean > t.oracle_critical_ms:
                status = OracleStatus.CRITICAL
            elif mean > t.oracle_warning_ms:
                status = OracleStatus.WARNING
            else:
                status = OracleStatus.HEALTHY

            report.append(OracleHealth(
                oracle_name=name,
                status=status,
                samples=len(latencies),
                average_response_time_ms=round(mean, 2),
                success_ratio=round(success_ratio, 4),
                reliability=round(success_ratio * consistency, 4),
                last_seen=seen,
            ))
        return report

    def uptime(self) -> Uptime:
        seconds = max(0.0, self._clock() - self.started_at)
        whole = int(seconds)
        return Uptime(
            seconds=round(seconds, 3),
            days=whole // 86400,
            hours=(whole % 86400) // 3600,
            minutes=(whole % 3600) // 60,
        )

    def collect_metrics(self) -> MetricsSnapshot:
        with self._lock:
            total = self._total
            return MetricsSnapshot(
                total_analyses=total,
                successful_analyses=self._successes,
                failed_analyses=self._failures,
                success_rate=self._successes / total if total else 1.0,
                average_response_time_ms=round(self._sum_response_ms / total, 2) if total else 0.0,
                average_confidence=round(self._sum_confidence / total, 4) if total else 0.0,
                average_oracle_count=round(self._sum_oracle_count / total, 2) if total else 0.0,
                last_analysis_at=self._last_analysis_at,
                active_alerts=sum(1 for a in self._alerts if not a.resolved),
            )

    def recent_analyses(self, limit: int = RECENT_ANALYSES_LIMIT) -> list[AnalysisSample]:
        """Most recent samples, newest first."""
        with self._lock:
            return list(reversed(self._samples))[:limit]

    def dashboard(self) -> DashboardData:
        return DashboardData(
            status=self.perform_health_check().status,
            uptime=self.uptime(),
            metrics=self.collect_metrics(),
            recent_performance=self.recent_performance(),
            oracle_health=self.oracle_health(),
            active_alerts=self.active_alerts(),
            recent_analyses=self.recent_analyses(),
        )

    def export_metrics(self, fmt: str = "json") -> str:
        """Dashboard as JSON or Prometheus text. Unknown formats raise ValueError."""
        return metrics_export.export(self.dashboard(), fmt)

    # ── Loop ───────────────────────────────────────────────────────────

    @property
    def snapshots(self) -> asyncio.Queue:
        return self._snapshots

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    async def tick(self) -> DashboardData:
        """One monitoring pass: health, thresholds, snapshot."""
        health = self.perform_health_check()
        if health.status != self._last_status:
            logger.info(
                "system_status_changed",
                previous=str(self._last_status),
                status=str(health.status),
                issues=health.issues,
            )
            self._last_status = health.status

        self.check_thresholds()
        snapshot = self.dashboard()

        if self._snapshots.full():
            self._snapshots.get_nowait()
        self._snapshots.put_nowait(snapshot)
        return snapshot

    def start(self) -> None:
        """Schedule tick() on the running event loop. No-op if already running."""
        if self._scheduler is not None:
            return
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self.interval_seconds),
            id=TICK_JOB_ID,
            max_instances=1,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("monitoring_started", interval_seconds=self.interval_seconds)

    def stop(self) -> None:
        """Shut the scheduler down. No-op if not running."""
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("monitoring_stopped")
