"""
Oracle Contract Tests.

analyze() never raises: exceptions and timeouts become failed results with
state unknown and low confidence.
"""

import asyncio

import pytest

from releasegate.oracles.base import Oracle
from releasegate.oracles.schemas import OracleResult, OracleState


class _EchoOracle(Oracle):
    name = "echo"
    default_confidence = 0.75

    async def _analyze(self, package_name, candidate_version, package_path):
        return self._result(OracleState.VALID_VERSION, reported_versions=[candidate_version])


class _BrokenOracle(Oracle):
    name = "broken"

    async def _analyze(self, package_name, candidate_version, package_path):
        raise RuntimeError("registry exploded")


class _SlowOracle(Oracle):
    name = "slow"

    async def _analyze(self, package_name, candidate_version, package_path):
        await asyncio.sleep(5)
        return self._result(OracleState.VALID_VERSION)


class TestOracleContract:
    @pytest.mark.asyncio
    async def test_success_uses_default_confidence(self):
        result = await _EchoOracle().analyze("lib-a", "1.0.0")
        assert result.succeeded is True
        assert result.oracle_name == "echo"
        assert result.confidence == 0.75
        assert result.reported_versions == ["1.0.0"]
        assert result.response_time_ms >= 0.0

    @pytest.mark.asyncio
    async def test_exception_becomes_failed_result(self):
        result = await _BrokenOracle().analyze("lib-a", "1.0.0")
        assert result.succeeded is False
        assert result.state == OracleState.UNKNOWN
        assert result.confidence == pytest.approx(0.1)
        assert "registry exploded" in result.error

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_result(self):
        result = await _SlowOracle(timeout_seconds=0.01).analyze("lib-a", "1.0.0")
        assert result.succeeded is False
        assert result.state == OracleState.UNKNOWN
        assert "timed out" in result.error

    def test_default_timeout(self):
        assert _EchoOracle().timeout_seconds == 15.0

    def test_describe(self):
        info = _EchoOracle(timeout_seconds=2).describe()
        assert info == {
            "name": "echo",
            "default_confidence": 0.75,
            "authoritative": False,
            "timeout_seconds": 2,
        }

    def test_failed_factory(self):
        result = OracleResult.failed("x", "boom", response_time_ms=3.0)
        assert result.succeeded is False
        assert result.conflicts == []
        assert result.response_time_ms == 3.0
