"""
Conflict Aggregator: dedup + corroboration tracking.

Oracles often report the same finding independently. Aggregation turns
that noise into a small set of findings, each carrying every oracle that
reported it:

- Key: (kind, message)
- First occurrence seeds the merged record
- Later occurrences union their sources and promote severity to the max
- Output order: first-seen

Sources only ever grow: merging never drops an oracle from a finding.
"""

from typing import Iterable, Optional

import structlog

from releasegate.oracles.schemas import Conflict, ConflictKind, Severity

logger = structlog.get_logger(__name__)


class ConflictAggregator:
    """Merges conflict records by (kind, message)."""

    def aggregate(self, conflicts: Iterable[Conflict]) -> list[Conflict]:
        merged: dict[tuple[ConflictKind, str], Conflict] = {}

        for conflict in conflicts:
            existing = merged.get(conflict.key)
            if existing is None:
                merged[conflict.key] = conflict
                continue
            merged[conflict.key] = self._merge_pair(existing, conflict)

        result = list(merged.values())
        corroborated = sum(1 for c in result if c.corroborated)
        if corroborated:
            logger.debug(
                "conflicts_aggregated",
                total=len(result),
                corroborated=corroborated,
            )
        return result

    def merge(self, existing: list[Conflict], incoming: Iterable[Conflict]) -> list[Conflict]:
        """Fold ``incoming`` into an already-aggregated list."""
        return self.aggregate([*existing, *incoming])

    @staticmethod
    def _merge_pair(existing: Conflict, other: Conflict) -> Conflict:
        return existing.model_copy(update={
            "sources": existing.sources | other.sources,
            "severity": Severity.highest(existing.severity, other.severity),
            "suggested_version": existing.suggested_version or other.suggested_version,
        })

    @staticmethod
    def highest_severity(conflicts: Iterable[Conflict]) -> Optional[Severity]:
        severities = [c.severity for c in conflicts]
        return Severity.highest(*severities) if severities else None
