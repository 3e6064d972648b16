"""Translation of engine exceptions into HTTP errors."""

import logging
from typing import Dict

from fastapi import HTTPException

from contracthub.core.errors_extended import ErrorCode, build_error
from contracthub.core.versioning.exceptions import VersioningError

logger = logging.getLogger(__name__)

STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.INPUT_ERROR: 400,
    ErrorCode.INVALID_VERSION: 400,
    ErrorCode.INVALID_MIGRATION_TYPE: 400,
    ErrorCode.INVALID_ACTION: 400,
    ErrorCode.MISSING_REQUIRED_FIELD: 400,
    ErrorCode.UNREACHABLE_PATH: 400,
    ErrorCode.INVALID_JOB_STATE: 400,
    ErrorCode.DATA_NOT_FOUND: 404,
    ErrorCode.AUTH_FAILED: 401,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
}


def http_error(exc: VersioningError, stage: str) -> HTTPException:
    status_code = STATUS_BY_CODE.get(exc.code, 500)
    logger.info(
        "request_rejected",
        extra={"operation": stage, "error_code": exc.code.value, "status": status_code},
    )
    return HTTPException(status_code=status_code, detail=exc.to_error(stage))


def input_error(code: ErrorCode, stage: str, message: str, **context) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_CODE.get(code, 400),
        detail=build_error(code, stage=stage, message=message, **context),
    )


def internal_error(stage: str, message: str) -> HTTPException:
    """Generic failure; the underlying exception is logged, never returned."""
    logger.exception("request_failed", extra={"operation": stage, "error_code": ErrorCode.INTERNAL_ERROR.value})
    return HTTPException(
        status_code=500,
        detail=build_error(ErrorCode.INTERNAL_ERROR, stage=stage, message=message),
    )
