"""
Alert Deduplication: one open alert per signature.

A signature identifies the condition an alert reports (e.g. "the average
response time is over its limit"), not the exact message text, which
carries changing numbers. While an alert with a given signature is
unresolved, new alerts with that signature are suppressed. Resolving the
alert releases the signature. Nothing here resolves alerts on its own.

Not thread-safe on its own; MonitoringSystem calls it under its lock.
"""

import hashlib
from typing import Optional

import structlog

from releasegate.monitoring.schemas import AlertSeverity, AlertType

logger = structlog.get_logger(__name__)


def content_signature(alert_type: AlertType, severity: AlertSeverity, message: str) -> str:
    """Fallback signature when the caller names none: same type/severity/text → same hash."""
    content = f"{alert_type}|{severity}|{message}"
    return hashlib.sha256(content.encode()).hexdigest()


class AlertDeduplicator:
    """Tracks which signatures currently have an unresolved alert."""

    def __init__(self):
        # signature → alert_id of the open alert
        self._open: dict[str, str] = {}
        self.suppressed = 0

    def should_suppress(self, signature: str) -> bool:
        if signature in self._open:
            self.suppressed += 1
            logger.debug(
                "alert_suppressed_duplicate",
                signature=signature[:32],
                open_alert=self._open[signature],
            )
            return True
        return False

    def register(self, signature: str, alert_id: str) -> None:
        self._open[signature] = alert_id

    def release(self, signature: str, alert_id: Optional[str] = None) -> None:
        """Free the signature. With alert_id, only if that alert still holds it."""
        if alert_id is not None and self._open.get(signature) != alert_id:
            return
        self._open.pop(signature, None)
