"""
Oracle Base Class.

Every oracle answers one question, "what do you know about (package, version)?",
with an OracleResult. The contract:

1. ``analyze`` NEVER raises (except cancellation): any failure, including a
   timeout, becomes ``OracleResult.failed`` with state unknown and low confidence
2. ``analyze`` is bounded by ``timeout_seconds``
3. Response time is measured here, so subclasses never stamp it themselves

Subclasses implement ``_analyze`` and may raise freely inside it.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog

from releasegate.oracles.schemas import (
    Conflict,
    ConflictKind,
    OracleResult,
    OracleState,
    Severity,
    clamp_confidence,
)

logger = structlog.get_logger(__name__)

DEFAULT_ORACLE_TIMEOUT_SECONDS: float = 15.0


class Oracle(ABC):
    """
    Base class for all oracles.

    Class attributes:
        name: Stable identifier, used as the conflict source name
        default_confidence: Confidence of a normal, successful answer
        authoritative: True for the registry and version-policy oracles
    """

    name: str = "oracle"
    default_confidence: float = 0.5
    authoritative: bool = False

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds or DEFAULT_ORACLE_TIMEOUT_SECONDS

    async def analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str] = None,
    ) -> OracleResult:
        """Run the oracle under its timeout and convert any failure into a result."""
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self._analyze(package_name, candidate_version, package_path),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.warning(
                "oracle_timeout",
                oracle=self.name,
                package=package_name,
                timeout_seconds=self.timeout_seconds,
            )
            return OracleResult.failed(
                self.name,
                f"timed out after {self.timeout_seconds:.1f}s",
                response_time_ms=round(elapsed_ms, 2),
            )
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.warning(
                "oracle_failed",
                oracle=self.name,
                package=package_name,
                version=candidate_version,
                error=str(e),
                error_type=type(e).__name__,
            )
            return OracleResult.failed(self.name, str(e), response_time_ms=round(elapsed_ms, 2))

        elapsed_ms = (time.perf_counter() - started) * 1000
        return result.model_copy(update={"response_time_ms": round(elapsed_ms, 2)})

    @abstractmethod
    async def _analyze(
        self,
        package_name: str,
        candidate_version: str,
        package_path: Optional[str],
    ) -> OracleResult:
        """Oracle-specific logic. May raise; ``analyze`` handles it."""

    # ── Helpers for subclasses ─────────────────────────────────────────

    def _result(
        self,
        state: OracleState,
        confidence: Optional[float] = None,
        **fields: Any,
    ) -> OracleResult:
        return OracleResult(
            oracle_name=self.name,
            state=state,
            confidence=clamp_confidence(
                self.default_confidence if confidence is None else confidence
            ),
            **fields,
        )

    def _conflict(
        self,
        kind: ConflictKind,
        severity: Severity,
        message: str,
        suggested_version: Optional[str] = None,
    ) -> Conflict:
        return Conflict(
            kind=kind,
            severity=severity,
            message=message,
            sources=frozenset({self.name}),
            suggested_version=suggested_version,
        )

    def describe(self) -> dict:
        return {
            "name": self.name,
            "default_confidence": self.default_confidence,
            "authoritative": self.authoritative,
            "timeout_seconds": self.timeout_seconds,
        }
