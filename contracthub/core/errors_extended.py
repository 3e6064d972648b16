"""
Extended Error Codes and Error Source Classification

Structured error payloads shared by every route: a stable code, where the
error came from, how severe it is and the context needed to act on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes surfaced to API consumers."""

    # ========== Input ==========
    INPUT_ERROR = "INPUT_ERROR"
    INVALID_VERSION = "INVALID_VERSION"
    INVALID_MIGRATION_TYPE = "INVALID_MIGRATION_TYPE"
    INVALID_ACTION = "INVALID_ACTION"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

    # ========== Migration engine ==========
    UNREACHABLE_PATH = "UNREACHABLE_PATH"
    INVALID_JOB_STATE = "INVALID_JOB_STATE"
    TRANSFORM_FAILURE = "TRANSFORM_FAILURE"

    # ========== Data ==========
    DATA_NOT_FOUND = "DATA_NOT_FOUND"

    # ========== Auth ==========
    AUTH_FAILED = "AUTH_FAILED"
    UNAUTHORIZED = "UNAUTHORIZED"

    # ========== System ==========
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class ErrorSource(str, Enum):
    """Where an error originated."""
    INPUT = "input"
    ENGINE = "engine"
    STORAGE = "storage"
    SYSTEM = "system"
    CONFIGURATION = "config"
    SECURITY = "security"


class ErrorSeverity(str, Enum):
    """How serious an error is."""
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ExtendedError:
    """Structured error information."""
    code: ErrorCode
    source: ErrorSource
    severity: ErrorSeverity
    message: str
    stage: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
    retry_after: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "code": self.code.value,
            "source": self.source.value,
            "severity": self.severity.value,
            "message": self.message,
        }

        if self.stage:
            result["stage"] = self.stage
        if self.context:
            result["context"] = self.context
        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


ERROR_SOURCE_MAPPING: Dict[ErrorCode, ErrorSource] = {
    ErrorCode.INPUT_ERROR: ErrorSource.INPUT,
    ErrorCode.INVALID_VERSION: ErrorSource.INPUT,
    ErrorCode.INVALID_MIGRATION_TYPE: ErrorSource.INPUT,
    ErrorCode.INVALID_ACTION: ErrorSource.INPUT,
    ErrorCode.MISSING_REQUIRED_FIELD: ErrorSource.INPUT,

    ErrorCode.UNREACHABLE_PATH: ErrorSource.ENGINE,
    ErrorCode.INVALID_JOB_STATE: ErrorSource.ENGINE,
    ErrorCode.TRANSFORM_FAILURE: ErrorSource.ENGINE,

    ErrorCode.DATA_NOT_FOUND: ErrorSource.STORAGE,
    ErrorCode.SERVICE_UNAVAILABLE: ErrorSource.STORAGE,

    ErrorCode.AUTH_FAILED: ErrorSource.SECURITY,
    ErrorCode.UNAUTHORIZED: ErrorSource.SECURITY,

    ErrorCode.INTERNAL_ERROR: ErrorSource.SYSTEM,
    ErrorCode.CONFIGURATION_ERROR: ErrorSource.CONFIGURATION,
}


ERROR_SEVERITY_MAPPING: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.SERVICE_UNAVAILABLE: ErrorSeverity.CRITICAL,

    ErrorCode.INTERNAL_ERROR: ErrorSeverity.ERROR,
    ErrorCode.CONFIGURATION_ERROR: ErrorSeverity.ERROR,
    ErrorCode.AUTH_FAILED: ErrorSeverity.ERROR,

    ErrorCode.TRANSFORM_FAILURE: ErrorSeverity.WARNING,
    ErrorCode.INVALID_JOB_STATE: ErrorSeverity.WARNING,

    ErrorCode.INPUT_ERROR: ErrorSeverity.INFO,
    ErrorCode.INVALID_VERSION: ErrorSeverity.INFO,
    ErrorCode.INVALID_MIGRATION_TYPE: ErrorSeverity.INFO,
    ErrorCode.INVALID_ACTION: ErrorSeverity.INFO,
    ErrorCode.UNREACHABLE_PATH: ErrorSeverity.INFO,
    ErrorCode.DATA_NOT_FOUND: ErrorSeverity.INFO,
}


def get_error_source(error_code: ErrorCode) -> ErrorSource:
    return ERROR_SOURCE_MAPPING.get(error_code, ErrorSource.SYSTEM)


def get_error_severity(error_code: ErrorCode) -> ErrorSeverity:
    return ERROR_SEVERITY_MAPPING.get(error_code, ErrorSeverity.ERROR)


def create_extended_error(
    error_code: ErrorCode,
    message: str,
    stage: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> ExtendedError:
    return ExtendedError(
        code=error_code,
        source=get_error_source(error_code),
        severity=get_error_severity(error_code),
        message=message,
        stage=stage,
        context=context
    )


def build_error(
    error_code: ErrorCode,
    stage: str,
    message: str,
    **context: Any,
) -> Dict[str, Any]:
    """Unified error dict builder for API responses.

    Returns a dict suitable for direct inclusion under `detail` or `error` fields.
    """
    return create_extended_error(
        error_code=error_code,
        message=message,
        stage=stage,
        context=context or None,
    ).to_dict()


__all__ = [
    "ErrorCode",
    "ErrorSource",
    "ErrorSeverity",
    "ExtendedError",
    "get_error_source",
    "get_error_severity",
    "create_extended_error",
    "build_error",
]
