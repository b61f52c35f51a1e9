"""
Semantic Version Oracle: syntactic checks on the candidate string.

Malformed input is a conflict, never an exception.
"""

from typing import Optional

from releasegate import versioning
from releasegate.oracles.base import Oracle
from releasegate.oracles.schemas import ConflictKind, OracleResult, OracleState, Severity

_PRERELEASE_MARKERS = ("-", "alpha", "beta", "rc")


class SemanticVersionOracle(Oracle):
    name = "semver"
    default_confidence = 0.8

    async def _analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str],
    ) -> OracleResult:
        parsed = versioning.parse(candidate_version)
        conflicts = []

        if parsed is None:
            conflicts.append(self._conflict(
                ConflictKind.INVALID_SEMVER,
                Severity.HIGH,
                f"Invalid semantic version format: {candidate_version}",
            ))

        lowered = (candidate_version or "").lower()
        is_prerelease = (
            parsed.is_prerelease if parsed is not None
            else any(marker in lowered for marker in _PRERELEASE_MARKERS)
        )
        if is_prerelease:
            conflicts.append(self._conflict(
                ConflictKind.PRERELEASE_VERSION,
                Severity.MEDIUM,
                f"Pre-release version detected: {candidate_version}",
            ))

        metadata: dict = {
            "is_valid_format": parsed is not None,
            "is_prerelease": is_prerelease,
            "parsed": (
                {"major": parsed.major, "minor": parsed.minor, "patch": parsed.patch,
                 "prerelease": list(parsed.prerelease)}
                if parsed is not None else None
            ),
        }
        if parsed is not None and (parsed.major, parsed.minor, parsed.patch) == (0, 0, 0):
            metadata["guidance"] = "Consider using semantic versioning (e.g., 1.0.0 for first release)"
            metadata["suggested_version"] = "1.0.0"

        return self._result(
            OracleState.VERSION_ISSUES if conflicts else OracleState.VALID_VERSION,
            conflicts=conflicts,
            metadata=metadata,
        )
