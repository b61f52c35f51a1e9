"""
Local Filesystem Oracles.

Both read ``<package_path>/package.json``; neither can answer without a path.

- BuildArtifactOracle: is there build output (dist/) for this version?
- LocalStateOracle:    does the local descriptor exist and match the candidate?
"""

import asyncio
from typing import Optional

from releasegate.oracles.base import Oracle
from releasegate.oracles.schemas import ConflictKind, OracleResult, OracleState, Severity
from releasegate.providers.local import PackageDescriptorReader

NO_PATH_ERROR = "package path not provided"
MISSING_DESCRIPTOR_CONFIDENCE: float = 0.1


def version_mismatch_message(local_version: Optional[str], candidate_version: str) -> str:
    return f"Local package.json version {local_version} does not match {candidate_version}"


class BuildArtifactOracle(Oracle):
    name = "build-artifact"
    default_confidence = 0.7

    def __init__(
        self,
        reader: Optional[PackageDescriptorReader] = None,
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(timeout_seconds)
        self.reader = reader or PackageDescriptorReader()

    async def analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str] = None,
    ) -> OracleResult:
        if not package_path:
            return OracleResult.failed(self.name, NO_PATH_ERROR)
        return await super().analyze(package_name, candidate_version, package_path)

    async def _analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str],
    ) -> OracleResult:
        descriptor = await asyncio.to_thread(self.reader.read, package_path)
        if descriptor is None:
            return self._result(
                OracleState.INVALID_PACKAGE,
                MISSING_DESCRIPTOR_CONFIDENCE,
                metadata={"package_path": package_path},
            )

        conflicts = []
        if descriptor.has_build_output:
            state = OracleState.BUILT
        else:
            state = OracleState.NOT_BUILT
            conflicts.append(self._conflict(
                ConflictKind.MISSING_BUILD,
                Severity.MEDIUM,
                "Package has not been built",
            ))

        if descriptor.version != candidate_version:
            conflicts.append(self._conflict(
                ConflictKind.VERSION_MISMATCH,
                Severity.MEDIUM,
                version_mismatch_message(descriptor.version, candidate_version),
            ))

        return self._result(
            state,
            conflicts=conflicts,
            metadata={
                "has_dist": descriptor.has_build_output,
                "package_version": descriptor.version,
            },
        )


class LocalStateOracle(Oracle):
    name = "local-state"
    default_confidence = 0.8

    def __init__(
        self,
        reader: Optional[PackageDescriptorReader] = None,
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(timeout_seconds)
        self.reader = reader or PackageDescriptorReader()

    async def analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str] = None,
    ) -> OracleResult:
        if not package_path:
            return OracleResult.failed(self.name, NO_PATH_ERROR)
        return await super().analyze(package_name, candidate_version, package_path)

    async def _analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str],
    ) -> OracleResult:
        descriptor = await asyncio.to_thread(self.reader.read, package_path)
        if descriptor is None:
            return self._result(OracleState.PACKAGE_NOT_FOUND, MISSING_DESCRIPTOR_CONFIDENCE)

        return self._result(
            OracleState.LOCAL_PACKAGE_EXISTS,
            metadata={
                "last_modified": descriptor.modified_at.isoformat(),
                "package_exists": True,
                "package_name": descriptor.name,
                "package_version": descriptor.version,
                "name_match": descriptor.name == package_name,
                "version_match": descriptor.version == candidate_version,
            },
        )
