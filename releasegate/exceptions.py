"""
Custom exceptions for ReleaseGate.

Provides structured error handling with error codes.

A detected version-policy violation is NOT an exception: it is a normal
AnalysisResult state. Exceptions here cover provider and storage failures,
which oracles and the learning store catch at their own boundary.
"""

import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Standard error codes for ReleaseGate."""
    # General errors (1xxx)
    UNKNOWN_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    CONFIGURATION_ERROR = "E1002"
    TIMEOUT_ERROR = "E1003"

    # Provider errors (2xxx)
    PROVIDER_UNAVAILABLE = "E2000"
    PROVIDER_TIMEOUT = "E2001"
    PROVIDER_MALFORMED_RESPONSE = "E2002"

    # Oracle errors (3xxx)
    ORACLE_FAILED = "E3000"
    ORACLE_TIMEOUT = "E3001"

    # Storage errors (4xxx)
    HISTORY_READ_FAILED = "E4000"
    HISTORY_WRITE_FAILED = "E4001"


class ReleaseGateError(Exception):
    """
    Base exception for ReleaseGate.

    All custom exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        cause: Optional[BaseException] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.cause = cause
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.stack_trace = traceback.format_exc() if cause else None

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging."""
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.details:
            result["details"] = self.details
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class ConfigurationError(ReleaseGateError):
    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code=ErrorCode.CONFIGURATION_ERROR, **kwargs)


class ProviderError(ReleaseGateError):
    """An external data provider failed or returned something unusable."""

    def __init__(
        self,
        provider: str,
        message: str,
        error_code: ErrorCode = ErrorCode.PROVIDER_UNAVAILABLE,
        **kwargs,
    ):
        super().__init__(f"{provider}: {message}", error_code=error_code, **kwargs)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    def __init__(self, provider: str, timeout_seconds: float, **kwargs):
        super().__init__(
            provider,
            f"timed out after {timeout_seconds:.1f}s",
            error_code=ErrorCode.PROVIDER_TIMEOUT,
            **kwargs,
        )
        self.timeout_seconds = timeout_seconds


class OracleError(ReleaseGateError):
    """Raised inside an oracle; always converted to a failed OracleResult."""

    def __init__(self, oracle: str, message: str, **kwargs):
        super().__init__(f"{oracle}: {message}", error_code=ErrorCode.ORACLE_FAILED, **kwargs)
        self.oracle = oracle


class HistoryStoreError(ReleaseGateError):
    """The outcome history file could not be read or written."""
