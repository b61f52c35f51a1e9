"""
Source Control History Oracle.

Weak, corroborating signal from the local repository:
- version tags → reported versions
- recent commits mentioning version / bump / a semver string → version-changed
"""

import re
from typing import Optional

from releasegate import versioning
from releasegate.oracles.base import Oracle
from releasegate.oracles.schemas import OracleResult, OracleState
from releasegate.providers.base import SourceControlProvider

RECENT_COMMIT_LIMIT: int = 10

_VERSION_COMMIT_PATTERN = re.compile(r"version|bump|semver|\d+\.\d+\.\d+", re.IGNORECASE)


class SourceControlHistoryOracle(Oracle):
    name = "source-control"
    default_confidence = 0.6

    def __init__(self, source_control: SourceControlProvider, timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds)
        self.source_control = source_control

    async def _analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str],
    ) -> OracleResult:
        tags = await self.source_control.list_version_tags(package_path)
        commits = await self.source_control.recent_commits(package_path, limit=RECENT_COMMIT_LIMIT)

        # Prefer tags that name this package (monorepos); otherwise any version tag
        versions = versioning.package_tag_versions(tags, package_name)

        has_version_changes = any(_VERSION_COMMIT_PATTERN.search(c) for c in commits)

        return self._result(
            OracleState.VERSION_CHANGED if has_version_changes else OracleState.UNKNOWN,
            reported_versions=versioning.sort_versions(versions, descending=True),
            latest_version=versioning.highest(versions),
            metadata={
                "version_tags": len(versions),
                "recent_commit_count": len(commits),
                "has_recent_version_changes": has_version_changes,
                "candidate_tagged": versioning.normalize(candidate_version)
                in {versioning.normalize(v) for v in versions},
            },
        )
