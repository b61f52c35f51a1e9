"""
Pytest Configuration and Fixtures.

In-memory fakes for the three provider protocols, so oracles and the
analyzer can be exercised without a registry or a git checkout.
"""

import json
import os
from pathlib import Path
from typing import Optional

import pytest

# Keep tests away from a developer's real history file and .env
os.environ.setdefault("RELEASEGATE_HISTORY_PATH", "")

from releasegate import versioning
from releasegate.engine.schemas import AnalysisResult, IntelligenceLevel, ReliabilityLabel
from releasegate.oracles.schemas import OracleResult, OracleState
from releasegate.providers.base import RegistryPackage, VersionAudit


# ============================================================================
# PROVIDER FAKES
# ============================================================================


class FakeRegistry:
    """Package name → currently published versions."""

    def __init__(self, packages: Optional[dict[str, list[str]]] = None, error: Optional[Exception] = None):
        self.packages = packages or {}
        self.error = error
        self.calls = 0

    async def fetch_package(self, name: str) -> Optional[RegistryPackage]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        versions = self.packages.get(name)
        if versions is None:
            return None
        return RegistryPackage(name=name, versions=list(versions), latest=versioning.highest(versions))


class FakeAudit:
    """Package name → every version ever published; unpublished derived from the registry."""

    def __init__(
        self,
        history: Optional[dict[str, list[str]]] = None,
        published: Optional[dict[str, list[str]]] = None,
        error: Optional[Exception] = None,
    ):
        self.history = history or {}
        self.published = published or {}
        self.error = error
        self.calls = 0

    async def fetch_version_audit(self, name: str) -> VersionAudit:
        self.calls += 1
        if self.error is not None:
            raise self.error
        ever = list(self.history.get(name, []))
        live = set(self.published.get(name, []))
        return VersionAudit(name=name, all_versions=ever, unpublished=[v for v in ever if v not in live])


class FakeSourceControl:
    def __init__(
        self,
        tags: Optional[list[str]] = None,
        commits: Optional[list[str]] = None,
        error: Optional[Exception] = None,
    ):
        self.tags = tags or []
        self.commits = commits or []
        self.error = error

    async def list_version_tags(self, path: Optional[str] = None) -> list[str]:
        if self.error is not None:
            raise self.error
        return list(self.tags)

    async def recent_commits(self, path: Optional[str] = None, limit: int = 10) -> list[str]:
        if self.error is not None:
            raise self.error
        return list(self.commits[:limit])


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def burned_registry() -> FakeRegistry:
    """lib-a: 1.0.0 and 1.0.2 live, 1.0.1 was unpublished."""
    return FakeRegistry({"lib-a": ["1.0.0", "1.0.2"]})


@pytest.fixture
def burned_audit() -> FakeAudit:
    return FakeAudit(
        history={"lib-a": ["1.0.0", "1.0.1", "1.0.2"]},
        published={"lib-a": ["1.0.0", "1.0.2"]},
    )


@pytest.fixture
def source_control() -> FakeSourceControl:
    return FakeSourceControl(
        tags=["v1.0.0", "v1.0.1", "v1.0.2"],
        commits=["chore: bump version to 1.0.2", "fix: handle empty input"],
    )


def write_package(root: Path, name: str = "lib-a", version: str = "1.0.3", built: bool = True) -> Path:
    (root / "package.json").write_text(json.dumps({"name": name, "version": version}))
    if built:
        (root / "dist").mkdir(exist_ok=True)
    return root


@pytest.fixture
def package_dir(tmp_path) -> Path:
    """A built lib-a@1.0.3 checkout."""
    return write_package(tmp_path)


# ============================================================================
# MONITORING HELPERS
# ============================================================================


class FakeClock:
    """Manually advanced clock for MonitoringSystem(clock=...)."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_timed_result(
    package: str = "lib-a",
    responders: int = 6,
    failed: int = 1,
    consensus: float = 0.85,
    analysis_time_ms: float = 120.0,
    oracle_latency_ms: float = 40.0,
) -> AnalysisResult:
    """An analysis with the timing and coverage fields the monitor reads."""
    oracle_results = [
        OracleResult(
            oracle_name=f"oracle-{i}",
            state=OracleState.VERSION_BUMP,
            confidence=consensus,
            response_time_ms=oracle_latency_ms,
        )
        for i in range(responders)
    ]
    oracle_results += [
        OracleResult.failed(f"down-{i}", "unavailable", response_time_ms=oracle_latency_ms)
        for i in range(failed)
    ]
    return AnalysisResult(
        package_name=package,
        candidate_version="1.0.3",
        state=OracleState.VERSION_BUMP,
        confidence=consensus,
        consensus_score=consensus,
        reliability=ReliabilityLabel.HIGH,
        intelligence_level=IntelligenceLevel.ADVANCED,
        oracle_results=oracle_results,
        analysis_time_ms=analysis_time_ms,
    )
