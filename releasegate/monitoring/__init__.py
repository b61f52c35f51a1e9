"""
ReleaseGate Monitoring & Alerting.

Components:
- schemas: Alerts, thresholds, health reports, dashboard snapshot
- dedup: Signature-based suppression of duplicate open alerts
- monitor: Metrics recording, health/threshold checks, scheduled loop
- export: JSON and Prometheus text exposition
"""
