"""Exceptions raised by the versioning and migration engine.

Hierarchy:
    VersioningError
    +-- InvalidVersionError
    +-- UnreachablePathError
    +-- InvalidJobStateError
    +-- MigrationJobNotFoundError
    +-- JobStoreError
    +-- TransformFailure

Every exception carries an ``ErrorCode`` and converts itself into the
structured error payload returned by the API.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from contracthub.core.errors_extended import ErrorCode, build_error


class VersioningError(Exception):
    """Base class for versioning/migration failures."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_error(self, stage: str) -> Dict[str, Any]:
        return build_error(self.code, stage=stage, message=self.message, **self.context)


class InvalidVersionError(VersioningError):
    """A version argument is not in the registry."""

    code = ErrorCode.INVALID_VERSION

    def __init__(self, version: Any, supported: Iterable[str]):
        self.version = version
        self.supported = [str(v) for v in supported]
        super().__init__(
            f"Invalid API version: {version!r}",
            requested_version=str(version),
            supported_versions=self.supported,
        )


class UnreachablePathError(VersioningError):
    """Both versions are valid but no migration chain connects them."""

    code = ErrorCode.UNREACHABLE_PATH

    def __init__(self, from_version: str, to_version: str, available_paths: Optional[list] = None):
        self.from_version = from_version
        self.to_version = to_version
        context: Dict[str, Any] = {"from_version": from_version, "to_version": to_version}
        if available_paths is not None:
            context["available_paths"] = available_paths
        super().__init__(
            f"Migration path not available from {from_version} to {to_version}",
            **context,
        )


class InvalidJobStateError(VersioningError):
    """A job transition was attempted from a status that does not allow it."""

    code = ErrorCode.INVALID_JOB_STATE

    def __init__(
        self,
        job_id: str,
        current: str,
        expected: str,
        action: str,
        message: Optional[str] = None,
    ):
        self.job_id = job_id
        self.current = current
        self.expected = expected
        self.action = action
        super().__init__(
            message or f"Cannot {action} migration {job_id}: status is '{current}', expected '{expected}'",
            migration_id=job_id,
            current_status=current,
            required_status=expected,
        )


class MigrationJobNotFoundError(VersioningError):
    """No job with this id exists for the tenant."""

    code = ErrorCode.DATA_NOT_FOUND

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Migration not found: {job_id}", migration_id=job_id)


class JobStoreError(VersioningError):
    """The job store could not complete a read or write."""

    code = ErrorCode.SERVICE_UNAVAILABLE


class TransformFailure(VersioningError):
    """A single record failed its migration step."""

    code = ErrorCode.TRANSFORM_FAILURE

    def __init__(self, message: str, test_case: Optional[int] = None):
        self.test_case = test_case
        super().__init__(message, test_case=test_case)
