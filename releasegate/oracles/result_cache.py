"""
Result Cache Oracle.

Remembers the outcome of recent analyses keyed by (package, version).

- Hit:  the cached state, confidence × CACHED_CONFIDENCE_FACTOR
- Miss: cache-miss at the default confidence

Entries are advisory. Concurrent analyses of the same key may race to
store; the last write wins.
"""

from datetime import datetime
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict

from releasegate.oracles.base import Oracle
from releasegate.oracles.cache import TTLCache
from releasegate.oracles.schemas import OracleResult, OracleState

RESULT_CACHE_TTL_SECONDS: float = 300.0
CACHED_CONFIDENCE_FACTOR: float = 0.9


class CachedAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: OracleState
    confidence: float
    suggested_version: Optional[str] = None
    analyzed_at: datetime


class _Storable(Protocol):
    package_name: str
    candidate_version: str
    state: OracleState
    confidence: float
    suggested_version: Optional[str]
    analyzed_at: datetime


class ResultCacheOracle(Oracle):
    name = "result-cache"
    default_confidence = 0.8

    def __init__(self, cache: Optional[TTLCache] = None, timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds)
        self.cache = cache or TTLCache(ttl_seconds=RESULT_CACHE_TTL_SECONDS, name="analysis-results")

    async def _analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str],
    ) -> OracleResult:
        cached: Optional[CachedAnalysis] = self.cache.get((package_name, candidate_version))
        if cached is None:
            return self._result(
                OracleState.CACHE_MISS,
                metadata={"cached": False, "ttl_seconds": self.cache.ttl_seconds},
            )

        return self._result(
            cached.state,
            cached.confidence * CACHED_CONFIDENCE_FACTOR,
            metadata={
                "cached": True,
                "cached_at": cached.analyzed_at.isoformat(),
                "suggested_version": cached.suggested_version,
            },
        )

    def store(self, result: _Storable) -> None:
        """Cache a completed analysis for its (package, version)."""
        self.cache.set(
            (result.package_name, result.candidate_version),
            CachedAnalysis(
                state=result.state,
                confidence=result.confidence,
                suggested_version=result.suggested_version,
                analyzed_at=result.analyzed_at,
            ),
        )
