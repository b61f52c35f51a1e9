"""
Local Filesystem Oracle Tests (build artifacts, local descriptor, result cache).
"""

from datetime import datetime, timezone

import pytest

from releasegate.exceptions import ProviderError
from releasegate.oracles.cache import TTLCache
from releasegate.oracles.local import BuildArtifactOracle, LocalStateOracle
from releasegate.oracles.result_cache import ResultCacheOracle
from releasegate.oracles.schemas import ConflictKind, OracleState
from releasegate.providers.local import PackageDescriptorReader
from tests.conftest import write_package


class TestBuildArtifactOracle:
    @pytest.mark.asyncio
    async def test_built_and_matching(self, package_dir):
        result = await BuildArtifactOracle().analyze("lib-a", "1.0.3", str(package_dir))
        assert result.state == OracleState.BUILT
        assert result.conflicts == []
        assert result.confidence == pytest.approx(0.7)

    @pytest.mark.asyncio
    async def test_not_built(self, tmp_path):
        write_package(tmp_path, built=False)
        result = await BuildArtifactOracle().analyze("lib-a", "1.0.3", str(tmp_path))
        assert result.state == OracleState.NOT_BUILT
        assert [c.kind for c in result.conflicts] == [ConflictKind.MISSING_BUILD]
        assert result.conflicts[0].message == "Package has not been built"

    @pytest.mark.asyncio
    async def test_version_mismatch(self, package_dir):
        result = await BuildArtifactOracle().analyze("lib-a", "2.0.0", str(package_dir))
        assert result.state == OracleState.BUILT
        assert [c.kind for c in result.conflicts] == [ConflictKind.VERSION_MISMATCH]

    @pytest.mark.asyncio
    async def test_missing_descriptor(self, tmp_path):
        result = await BuildArtifactOracle().analyze("lib-a", "1.0.0", str(tmp_path))
        assert result.succeeded is True
        assert result.state == OracleState.INVALID_PACKAGE
        assert result.confidence == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_no_path_is_excluded_from_vote(self):
        result = await BuildArtifactOracle().analyze("lib-a", "1.0.0")
        assert result.succeeded is False
        assert result.error == "package path not provided"

    @pytest.mark.asyncio
    async def test_malformed_descriptor_fails_softly(self, tmp_path):
        (tmp_path / "package.json").write_text("{not json")
        result = await BuildArtifactOracle().analyze("lib-a", "1.0.0", str(tmp_path))
        assert result.succeeded is False


class TestLocalStateOracle:
    @pytest.mark.asyncio
    async def test_descriptor_matches(self, package_dir):
        result = await LocalStateOracle().analyze("lib-a", "1.0.3", str(package_dir))
        assert result.state == OracleState.LOCAL_PACKAGE_EXISTS
        assert result.metadata["version_match"] is True
        assert result.metadata["name_match"] is True

    @pytest.mark.asyncio
    async def test_descriptor_mismatch(self, package_dir):
        result = await LocalStateOracle().analyze("lib-b", "9.9.9", str(package_dir))
        assert result.metadata["version_match"] is False
        assert result.metadata["name_match"] is False

    @pytest.mark.asyncio
    async def test_missing_descriptor(self, tmp_path):
        result = await LocalStateOracle().analyze("lib-a", "1.0.0", str(tmp_path))
        assert result.state == OracleState.PACKAGE_NOT_FOUND
        assert result.confidence == pytest.approx(0.1)


class TestPackageDescriptorReader:
    def test_reads_descriptor(self, package_dir):
        descriptor = PackageDescriptorReader().read(str(package_dir))
        assert descriptor.name == "lib-a"
        assert descriptor.version == "1.0.3"
        assert descriptor.has_build_output is True

    def test_missing_file(self, tmp_path):
        assert PackageDescriptorReader().read(str(tmp_path)) is None

    def test_non_object_json(self, tmp_path):
        (tmp_path / "package.json").write_text("[1, 2]")
        with pytest.raises(ProviderError):
            PackageDescriptorReader().read(str(tmp_path))


class _StoredAnalysis:
    package_name = "lib-a"
    candidate_version = "1.0.3"
    state = OracleState.VERSION_COMPLIANT
    confidence = 0.8
    suggested_version = None
    analyzed_at = datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestResultCacheOracle:
    @pytest.mark.asyncio
    async def test_miss(self):
        result = await ResultCacheOracle().analyze("lib-a", "1.0.3")
        assert result.state == OracleState.CACHE_MISS
        assert result.metadata["cached"] is False

    @pytest.mark.asyncio
    async def test_hit_discounts_confidence(self):
        oracle = ResultCacheOracle()
        oracle.store(_StoredAnalysis())
        result = await oracle.analyze("lib-a", "1.0.3")
        assert result.state == OracleState.VERSION_COMPLIANT
        assert result.confidence == pytest.approx(0.72)
        assert result.metadata["cached"] is True

    @pytest.mark.asyncio
    async def test_expired_entry_misses(self):
        now = [0.0]
        oracle = ResultCacheOracle(TTLCache(ttl_seconds=300, clock=lambda: now[0]))
        oracle.store(_StoredAnalysis())
        now[0] = 301.0
        result = await oracle.analyze("lib-a", "1.0.3")
        assert result.state == OracleState.CACHE_MISS
