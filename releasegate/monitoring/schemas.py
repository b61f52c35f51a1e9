"""
Monitoring & Alert Schemas.

Alerts, thresholds, health reports, per-oracle health and the dashboard
snapshot pushed by the monitoring loop.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ──────────────────────────────────────────────────────────────


class AlertType(StrEnum):
    PERFORMANCE = "performance"
    INTELLIGENCE = "intelligence"
    ORACLE = "oracle"
    RELIABILITY = "reliability"
    SYSTEM = "system"


class AlertSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    HIGH = "high"
    CRITICAL = "critical"


class SystemStatus(StrEnum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class OracleStatus(StrEnum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    INACTIVE = "inactive"


class AnalysisOutcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


# ── Thresholds ─────────────────────────────────────────────────────────


class MonitoringThresholds(BaseModel):
    """Alert and health-check limits."""
    model_config = ConfigDict(frozen=True)

    max_response_time_ms: float = 5000.0
    min_success_rate: float = 0.9
    min_oracle_count: int = 4
    max_inactivity_seconds: float = 300.0
    slow_analysis_ms: float = 5000.0
    low_confidence: float = 0.6

    health_max_failure_rate: float = 0.2
    health_max_response_ms: float = 10000.0

    oracle_warning_ms: float = 5000.0
    oracle_critical_ms: float = 10000.0
    oracle_inactive_seconds: float = 60.0

    @classmethod
    def from_settings(cls, settings) -> "MonitoringThresholds":
        return cls(
            max_response_time_ms=settings.alert_max_response_ms,
            min_success_rate=settings.alert_min_success_rate,
            min_oracle_count=settings.alert_min_oracle_count,
            max_inactivity_seconds=settings.alert_max_inactivity_seconds,
            slow_analysis_ms=settings.alert_slow_analysis_ms,
            low_confidence=settings.alert_low_confidence,
            health_max_failure_rate=settings.health_max_failure_rate,
            health_max_response_ms=settings.health_max_response_ms,
        )


# ── Alert ──────────────────────────────────────────────────────────────


class Alert(BaseModel):
    """
    A raised alert.

    Only the resolution fields change after creation, and only through
    MonitoringSystem.resolve_alert.
    """
    alert_id: str
    type: AlertType
    severity: AlertSeverity
    message: str
    signature: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = Field(default_factory=dict)

    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolution: str = ""


# ── Samples & reports ─────────────────────────────────────────────────


class AnalysisSample(BaseModel):
    """One recorded analysis, as seen by the monitor."""
    model_config = ConfigDict(frozen=True)

    timestamp: float                  # clock() seconds
    package_name: str
    version: str
    outcome: AnalysisOutcome
    response_time_ms: float
    confidence: float                 # consensus score of the analysis
    oracle_count: int
    conflicts: int
    intelligence_level: str
    state: str
    details: dict[str, Any] = Field(default_factory=dict)


class HealthReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: SystemStatus
    issues: list[str] = Field(default_factory=list)
    active_alerts: int = 0
    resolved_alerts: int = 0
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PerformanceWindow(BaseModel):
    """Aggregates over the samples inside a time window."""
    model_config = ConfigDict(frozen=True)

    window_seconds: float
    count: int = 0
    success_rate: float = 1.0
    average_response_time_ms: float = 0.0
    average_confidence: float = 0.0
    average_oracle_count: float = 0.0


class OracleHealth(BaseModel):
    model_config = ConfigDict(frozen=True)

    oracle_name: str
    status: OracleStatus
    samples: int
    average_response_time_ms: float
    success_ratio: float
    reliability: float
    last_seen: Optional[float] = None


class Uptime(BaseModel):
    model_config = ConfigDict(frozen=True)

    seconds: float
    days: int
    hours: int
    minutes: int

    def __str__(self) -> str:
        return f"{self.days}d {self.hours}h {self.minutes}m"


class MetricsSnapshot(BaseModel):
    """Counters and running averages at one instant."""
    model_config = ConfigDict(frozen=True)

    total_analyses: int = 0
    successful_analyses: int = 0
    failed_analyses: int = 0
    success_rate: float = 1.0
    average_response_time_ms: float = 0.0
    average_confidence: float = 0.0
    average_oracle_count: float = 0.0
    last_analysis_at: Optional[float] = None
    active_alerts: int = 0


class DashboardData(BaseModel):
    """Everything a dashboard needs in one payload."""
    model_config = ConfigDict(frozen=True)

    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: SystemStatus
    uptime: Uptime
    metrics: MetricsSnapshot
    recent_performance: PerformanceWindow
    oracle_health: list[OracleHealth] = Field(default_factory=list)
    active_alerts: list[Alert] = Field(default_factory=list)
    recent_analyses: list[AnalysisSample] = Field(default_factory=list)
