"""
Version Policy Oracle: enforces the permanent version-burn rule.

npm never allows a version string to be reused, even after it was
unpublished. This oracle reconstructs the COMPLETE version history of a
package from three independent sub-sources and checks the candidate:

1. Registry:       versions currently published
2. Audit:          every version ever published (includes unpublished)
3. Source control: version tags in the local repository

    all_versions_ever_seen = registry ∪ audit ∪ git
    burned_versions        = all_versions_ever_seen

Checks, in order:
- candidate ∈ burned              → version-reuse-attempted (critical)
- candidate ≤ highest ever seen   → version-not-greater (high)
- otherwise                       → compliant

Each sub-source may fail independently; the history is built from
whatever answered. Only when every sub-source fails does the oracle fail.
"""

import asyncio
from typing import Optional

import structlog

from releasegate import versioning
from releasegate.exceptions import OracleError
from releasegate.oracles.base import Oracle
from releasegate.oracles.cache import TTLCache
from releasegate.oracles.schemas import (
    ConflictKind,
    OracleResult,
    OracleState,
    PolicyVerdict,
    Severity,
    VersionHistory,
    clamp_confidence,
)
from releasegate.providers.base import (
    AuditProvider,
    RegistryProvider,
    SourceControlProvider,
)

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

HISTORY_CACHE_TTL_SECONDS: float = 600.0

BASE_CONFIDENCE: float = 0.5
REGISTRY_CONFIDENCE_BONUS: float = 0.3
AUDIT_CONFIDENCE_BONUS: float = 0.2


def reuse_message(version: str) -> str:
    return f"Version {version} was previously published and cannot be reused"


def not_greater_message(version: str, highest: str) -> str:
    return f"Version {version} must be greater than highest published version {highest}"


def evaluate_policy(history: VersionHistory, candidate_version: str) -> PolicyVerdict:
    """
    Check a candidate against a version history. Pure function.

    The suggested version is always publishable: it is above the highest
    version ever seen and not burned.
    """
    highest = history.highest
    burned = history.burned_versions

    if history.is_burned(candidate_version):
        base = candidate_version
        if highest is not None and versioning.compare(highest, candidate_version) > 0:
            base = highest
        return PolicyVerdict(
            compliant=False,
            violation_kind=ConflictKind.VERSION_REUSE_ATTEMPTED,
            severity=Severity.CRITICAL,
            message=reuse_message(candidate_version),
            suggested_version=versioning.next_available(base, burned),
            must_be_greater_than=highest,
            history=history,
        )

    if highest is not None and versioning.compare(candidate_version, highest) <= 0:
        return PolicyVerdict(
            compliant=False,
            violation_kind=ConflictKind.VERSION_NOT_GREATER,
            severity=Severity.HIGH,
            message=not_greater_message(candidate_version, highest),
            suggested_version=versioning.next_available(highest, burned),
            must_be_greater_than=highest,
            history=history,
        )

    return PolicyVerdict(compliant=True, must_be_greater_than=highest, history=history)


class VersionPolicyOracle(Oracle):
    """
    Authoritative oracle for version-burn compliance.

    Histories are cached per (package, path) for HISTORY_CACHE_TTL_SECONDS.
    """

    name = "version-policy"
    default_confidence = BASE_CONFIDENCE
    authoritative = True

    def __init__(
        self,
        registry: Optional[RegistryProvider] = None,
        audit: Optional[AuditProvider] = None,
        source_control: Optional[SourceControlProvider] = None,
        cache: Optional[TTLCache] = None,
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(timeout_seconds)
        self.registry = registry
        self.audit = audit
        self.source_control = source_control
        self.cache = cache or TTLCache(ttl_seconds=HISTORY_CACHE_TTL_SECONDS, name="version-history")

    async def _analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str],
    ) -> OracleResult:
        verdict = await self.check_compliance(package_name, candidate_version, package_path)
        history = verdict.history

        metadata = {
            "burned_count": len(history.burned_versions),
            "unpublished": list(history.unpublished_but_burned),
            "must_be_greater_than": verdict.must_be_greater_than,
            "sources_ok": dict(history.sources_ok),
        }

        if verdict.compliant:
            return self._result(
                OracleState.VERSION_COMPLIANT,
                history.confidence,
                reported_versions=list(history.currently_published),
                latest_version=history.highest,
                metadata=metadata,
            )

        metadata["suggested_version"] = verdict.suggested_version
        return self._result(
            OracleState.VERSION_VIOLATION,
            history.confidence,
            conflicts=[self._conflict(
                verdict.violation_kind,
                verdict.severity,
                verdict.message,
                suggested_version=verdict.suggested_version,
            )],
            reported_versions=list(history.currently_published),
            latest_version=history.highest,
            metadata=metadata,
        )

    async def check_compliance(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str] = None,
    ) -> PolicyVerdict:
        history = await self.get_complete_version_history(package_name, package_path)
        verdict = evaluate_policy(history, candidate_version)
        if not verdict.compliant:
            logger.warning(
                "version_policy_violation",
                package=package_name,
                version=candidate_version,
                kind=str(verdict.violation_kind),
                suggested_version=verdict.suggested_version,
            )
        return verdict

    async def get_complete_version_history(
        self,
        package_name: str,
        package_path: Optional[str] = None,
    ) -> VersionHistory:
        """Union of registry, audit and git versions, cache-backed."""
        cache_key = (package_name, package_path)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        registry_task = self._registry_versions(package_name)
        audit_task = self._audit_versions(package_name)
        git_task = self._git_versions(package_name, package_path)
        registry_res, audit_res, git_res = await asyncio.gather(
            registry_task, audit_task, git_task, return_exceptions=True
        )

        sources_ok: dict[str, bool] = {}
        published: list[str] = []
        audited: list[str] = []
        unpublished: list[str] = []
        tagged: list[str] = []

        if self.registry is not None:
            sources_ok["registry"] = not isinstance(registry_res, BaseException)
            if sources_ok["registry"]:
                published = registry_res
        if self.audit is not None:
            sources_ok["audit"] = not isinstance(audit_res, BaseException)
            if sources_ok["audit"]:
                audited, unpublished = audit_res
        if self.source_control is not None:
            sources_ok["git"] = not isinstance(git_res, BaseException)
            if sources_ok["git"]:
                tagged = git_res

        for source, res in (("registry", registry_res), ("audit", audit_res), ("git", git_res)):
            if isinstance(res, BaseException):
                logger.warning(
                    "version_history_source_failed",
                    package=package_name,
                    source=source,
                    error=str(res),
                )

        if not any(sources_ok.values()):
            raise OracleError(self.name, f"no version-history source available for {package_name}")

        all_versions: list[str] = []
        seen: set[str] = set()
        for version in [*published, *audited, *tagged]:
            key = versioning.normalize(version)
            if key not in seen:
                seen.add(key)
                all_versions.append(version)

        confidence = BASE_CONFIDENCE
        if published:
            confidence += REGISTRY_CONFIDENCE_BONUS
        if audited:
            confidence += AUDIT_CONFIDENCE_BONUS

        history = VersionHistory(
            package_name=package_name,
            all_versions_ever_seen=all_versions,
            currently_published=published,
            unpublished_but_burned=unpublished,
            git_versions=tagged,
            confidence=clamp_confidence(confidence),
            sources_ok=sources_ok,
        )
        self.cache.set(cache_key, history)

        logger.info(
            "version_history_built",
            package=package_name,
            total=len(all_versions),
            published=len(published),
            unpublished=len(unpublished),
            git=len(tagged),
            confidence=history.confidence,
        )
        return history

    async def _registry_versions(self, package_name: str) -> list[str]:
        if self.registry is None:
            return []
        package = await self.registry.fetch_package(package_name)
        return list(package.versions) if package is not None else []

    async def _audit_versions(self, package_name: str) -> tuple[list[str], list[str]]:
        if self.audit is None:
            return [], []
        audit = await self.audit.fetch_version_audit(package_name)
        return list(audit.all_versions), list(audit.unpublished)

    async def _git_versions(self, package_name: str, package_path: Optional[str]) -> list[str]:
        if self.source_control is None:
            return []
        tags = await self.source_control.list_version_tags(package_path)
        return versioning.package_tag_versions(tags, package_name)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("version_history_cache_cleared")

    def status(self) -> dict:
        return {
            **self.describe(),
            "cache": self.cache.stats(),
            "sources": {
                "registry": self.registry is not None,
                "audit": self.audit is not None,
                "git": self.source_control is not None,
            },
        }
