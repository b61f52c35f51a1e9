"""
Metrics Export: JSON and Prometheus text exposition.

Prometheus metrics are built in a fresh CollectorRegistry for each export,
so repeated exports never collide with each other or with the process-wide
default registry.

Metric names follow Prometheus conventions (snake_case, `releasegate_` prefix,
`_ms` suffix for millisecond durations).
"""

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from releasegate.monitoring.schemas import DashboardData, SystemStatus

SUPPORTED_FORMATS: tuple[str, ...] = ("json", "prometheus")


def to_json(dashboard: DashboardData) -> str:
    return dashboard.model_dump_json(indent=2)


def build_registry(dashboard: DashboardData) -> CollectorRegistry:
    registry = CollectorRegistry(auto_describe=True)
    metrics = dashboard.metrics

    Gauge(
        "releasegate_total_analyses",
        "Total number of analyses recorded",
        registry=registry,
    ).set(metrics.total_analyses)
    Gauge(
        "releasegate_failed_analyses",
        "Analyses in which no oracle responded",
        registry=registry,
    ).set(metrics.failed_analyses)
    Gauge(
        "releasegate_success_rate",
        "Fraction of analyses that succeeded",
        registry=registry,
    ).set(metrics.success_rate)
    Gauge(
        "releasegate_average_response_time_ms",
        "Running average analysis latency in milliseconds",
        registry=registry,
    ).set(metrics.average_response_time_ms)
    Gauge(
        "releasegate_average_confidence",
        "Average consensus score across analyses",
        registry=registry,
    ).set(metrics.average_confidence)
    Gauge(
        "releasegate_active_alerts",
        "Number of unresolved alerts",
        registry=registry,
    ).set(metrics.active_alerts)
    Gauge(
        "releasegate_uptime_seconds",
        "Seconds since the monitor was created",
        registry=registry,
    ).set(dashboard.uptime.seconds)

    status = Gauge(
        "releasegate_system_status",
        "1 for the current system status, 0 otherwise",
        ["status"],
        registry=registry,
    )
    for s in SystemStatus:
        status.labels(status=s.value).set(1 if dashboard.status == s else 0)

    latency = Gauge(
        "releasegate_oracle_response_time_ms",
        "Average oracle latency over its recent window",
        ["oracle"],
        registry=registry,
    )
    reliability = Gauge(
        "releasegate_oracle_reliability",
        "Oracle reliability (success ratio x latency consistency)",
        ["oracle"],
        registry=registry,
    )
    for health in dashboard.oracle_health:
        latency.labels(oracle=health.oracle_name).set(health.average_response_time_ms)
        reliability.labels(oracle=health.oracle_name).set(health.reliability)

    return registry


def to_prometheus(dashboard: DashboardData) -> str:
    return generate_latest(build_registry(dashboard)).decode("utf-8")


def export(dashboard: DashboardData, fmt: str = "json") -> str:
    """Render the dashboard in `fmt`. Unknown formats raise ValueError."""
    fmt = fmt.lower()
    if fmt == "json":
        return to_json(dashboard)
    if fmt == "prometheus":
        return to_prometheus(dashboard)
    raise ValueError(
        f"Unsupported metrics format: {fmt!r} (expected one of {', '.join(SUPPORTED_FORMATS)})"
    )
