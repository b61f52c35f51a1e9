"""
Registry Oracle: what the live package registry says right now.

- No versions (or not found) → new-package
- Candidate already published → version-exists (+ high conflict)
- Otherwise → version-bump
"""

from typing import Optional

import structlog

from releasegate import versioning
from releasegate.oracles.base import Oracle
from releasegate.oracles.schemas import ConflictKind, OracleResult, OracleState, Severity
from releasegate.providers.base import RegistryProvider

logger = structlog.get_logger(__name__)


def version_exists_message(package_name: str, version: str) -> str:
    return f"Version {version} of {package_name} is already published"


class RegistryOracle(Oracle):
    name = "registry"
    default_confidence = 0.9
    authoritative = True

    def __init__(self, registry: RegistryProvider, timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds)
        self.registry = registry

    async def _analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str],
    ) -> OracleResult:
        package = await self.registry.fetch_package(package_name)

        if package is None or not package.versions:
            return self._result(
                OracleState.NEW_PACKAGE,
                metadata={"found": package is not None},
            )

        published = {versioning.normalize(v) for v in package.versions}
        metadata = dict(package.metadata)
        metadata["published_count"] = len(package.versions)

        if versioning.normalize(candidate_version) in published:
            return self._result(
                OracleState.VERSION_EXISTS,
                conflicts=[self._conflict(
                    ConflictKind.VERSION_EXISTS,
                    Severity.HIGH,
                    version_exists_message(package_name, candidate_version),
                )],
                reported_versions=list(package.versions),
                latest_version=package.latest,
                metadata=metadata,
            )

        return self._result(
            OracleState.VERSION_BUMP,
            reported_versions=list(package.versions),
            latest_version=package.latest,
            metadata=metadata,
        )
