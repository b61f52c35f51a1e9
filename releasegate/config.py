"""
ReleaseGate Configuration.

Pydantic Settings v2, loaded from .env and environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "ReleaseGate"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # ── External providers ───────────────────────────────────────────────
    registry_url: str = Field(
        default="https://registry.npmjs.org", alias="RELEASEGATE_REGISTRY_URL"
    )
    provider_timeout_seconds: float = Field(default=10.0, alias="PROVIDER_TIMEOUT_SECONDS")
    git_binary: str = Field(default="git", alias="RELEASEGATE_GIT_BINARY")

    # ── Oracles ──────────────────────────────────────────────────────────
    oracle_timeout_seconds: float = Field(default=15.0, alias="ORACLE_TIMEOUT_SECONDS")
    result_cache_ttl_seconds: float = Field(default=300.0, alias="RESULT_CACHE_TTL_SECONDS")
    history_cache_ttl_seconds: float = Field(default=600.0, alias="HISTORY_CACHE_TTL_SECONDS")

    # ── Consensus ────────────────────────────────────────────────────────
    consensus_threshold: float = Field(
        default=0.6, ge=0.0, le=1.0, alias="CONSENSUS_THRESHOLD",
        description="Minimum weighted agreement before confidence is penalized",
    )

    # ── Learning ─────────────────────────────────────────────────────────
    history_path: str = Field(
        default=".release-intelligence.json", alias="RELEASEGATE_HISTORY_PATH",
        description="Outcome history file; empty string keeps history in memory only",
    )
    history_max_records: int = Field(default=1000, alias="HISTORY_MAX_RECORDS")

    # ── Monitoring ───────────────────────────────────────────────────────
    monitor_interval_seconds: float = Field(default=5.0, alias="MONITOR_INTERVAL_SECONDS")
    monitor_history_size: int = Field(default=1000, alias="MONITOR_HISTORY_SIZE")
    monitor_queue_size: int = Field(default=100, alias="MONITOR_QUEUE_SIZE")

    # Alert thresholds
    alert_max_response_ms: float = Field(default=5000.0, alias="ALERT_MAX_RESPONSE_MS")
    alert_min_success_rate: float = Field(default=0.9, alias="ALERT_MIN_SUCCESS_RATE")
    alert_min_oracle_count: int = Field(default=4, alias="ALERT_MIN_ORACLE_COUNT")
    alert_max_inactivity_seconds: float = Field(default=300.0, alias="ALERT_MAX_INACTIVITY_SECONDS")
    alert_slow_analysis_ms: float = Field(default=5000.0, alias="ALERT_SLOW_ANALYSIS_MS")
    alert_low_confidence: float = Field(default=0.6, alias="ALERT_LOW_CONFIDENCE")

    # Health check
    health_max_failure_rate: float = Field(default=0.2, alias="HEALTH_MAX_FAILURE_RATE")
    health_max_response_ms: float = Field(default=10000.0, alias="HEALTH_MAX_RESPONSE_MS")

    # ── Operational ──────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")


settings = Settings()
