"""
Oracle Schemas.

Closed enumerations for oracle states, conflict kinds and severities, plus
the immutable records every oracle produces.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from releasegate import versioning


# ── Enums ──────────────────────────────────────────────────────────────


class OracleState(StrEnum):
    NEW_PACKAGE = "new-package"
    VERSION_EXISTS = "version-exists"
    VERSION_BUMP = "version-bump"
    VERSION_COMPLIANT = "version-compliant"
    VERSION_VIOLATION = "version-violation"
    VERSION_CHANGED = "version-changed"
    BUILT = "built"
    NOT_BUILT = "not-built"
    INVALID_PACKAGE = "invalid-package"
    LOCAL_PACKAGE_EXISTS = "local-package-exists"
    PACKAGE_NOT_FOUND = "package-not-found"
    CACHE_MISS = "cache-miss"
    VALID_VERSION = "valid-version"
    VERSION_ISSUES = "version-issues"
    UNKNOWN = "unknown"


class ConflictKind(StrEnum):
    VERSION_REUSE_ATTEMPTED = "version-reuse-attempted"
    VERSION_NOT_GREATER = "version-not-greater"
    VERSION_EXISTS = "version-exists"
    INVALID_SEMVER = "invalid-semver"
    PRERELEASE_VERSION = "prerelease-version"
    MISSING_BUILD = "missing-build"
    VERSION_MISMATCH = "version-mismatch"
    ANALYSIS_FAILED = "analysis-failed"
    ORACLE_UNAVAILABLE = "oracle-unavailable"
    OTHER = "other"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def highest(cls, *severities: "Severity") -> "Severity":
        return max(severities, key=lambda s: s.rank)


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}

# Conflict kinds that mean "this exact version must not be published"
POLICY_VIOLATION_KINDS: frozenset[ConflictKind] = frozenset({
    ConflictKind.VERSION_REUSE_ATTEMPTED,
    ConflictKind.VERSION_NOT_GREATER,
})


def clamp_confidence(value: float) -> float:
    """Clamp to [0, 1]; NaN collapses to 0."""
    if value != value:
        return 0.0
    return max(0.0, min(1.0, value))


# ── Conflict ───────────────────────────────────────────────────────────


class Conflict(BaseModel):
    """
    A single finding that argues against publishing as-is.

    ``sources`` holds the names of every oracle that reported this finding.
    Two conflicts with the same (kind, message) are the same finding.
    """
    model_config = ConfigDict(frozen=True)

    kind: ConflictKind
    severity: Severity
    message: str
    sources: frozenset[str] = Field(default_factory=frozenset)
    suggested_version: Optional[str] = None

    @computed_field
    @property
    def corroborated(self) -> bool:
        return len(self.sources) > 1

    @computed_field
    @property
    def source_count(self) -> int:
        return len(self.sources)

    @property
    def key(self) -> tuple[ConflictKind, str]:
        return (self.kind, self.message)


# ── Oracle Result ──────────────────────────────────────────────────────


class OracleResult(BaseModel):
    """One oracle's answer for one (package, version) query."""
    model_config = ConfigDict(frozen=True)

    oracle_name: str
    succeeded: bool = True
    state: OracleState
    confidence: float = Field(ge=0.0, le=1.0)
    conflicts: list[Conflict] = Field(default_factory=list)
    reported_versions: list[str] = Field(default_factory=list)
    latest_version: Optional[str] = None
    response_time_ms: float = 0.0
    error: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def failed(
        cls,
        oracle_name: str,
        error: str,
        response_time_ms: float = 0.0,
        confidence: float = 0.1,
    ) -> "OracleResult":
        """Non-fatal placeholder for an oracle that could not answer."""
        return cls(
            oracle_name=oracle_name,
            succeeded=False,
            state=OracleState.UNKNOWN,
            confidence=confidence,
            response_time_ms=response_time_ms,
            error=error,
        )


# ── Version History ────────────────────────────────────────────────────


class VersionHistory(BaseModel):
    """
    Reconstructed history of every version a package ever had.

    burned_versions == all_versions_ever_seen: once a version string has
    existed it can never be published again, even after an unpublish.
    """
    model_config = ConfigDict(frozen=True)

    package_name: str
    all_versions_ever_seen: list[str] = Field(default_factory=list)
    currently_published: list[str] = Field(default_factory=list)
    unpublished_but_burned: list[str] = Field(default_factory=list)
    git_versions: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    sources_ok: dict[str, bool] = Field(default_factory=dict)
    built_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def burned_versions(self) -> list[str]:
        return self.all_versions_ever_seen

    @property
    def highest(self) -> Optional[str]:
        return versioning.highest(self.all_versions_ever_seen)

    def is_burned(self, version: str) -> bool:
        target = versioning.normalize(version)
        return any(versioning.normalize(v) == target for v in self.all_versions_ever_seen)


class PolicyVerdict(BaseModel):
    """Outcome of checking one candidate version against a VersionHistory."""
    model_config = ConfigDict(frozen=True)

    compliant: bool
    violation_kind: Optional[ConflictKind] = None
    severity: Optional[Severity] = None
    message: Optional[str] = None
    suggested_version: Optional[str] = None
    must_be_greater_than: Optional[str] = None
    history: VersionHistory
