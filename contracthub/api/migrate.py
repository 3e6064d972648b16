"""
Version migration endpoints.

POST plans, executes or validates a migration between two API versions;
GET reports the tenant's migration history; PUT rolls a completed
migration back.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from contracthub.api.dependencies import CallerContext, get_caller_context
from contracthub.api.errors import http_error, input_error, internal_error
from contracthub.core.errors_extended import ErrorCode
from contracthub.core.migration_orchestrator import get_migration_orchestrator
from contracthub.core.versioning.exceptions import VersioningError

logger = logging.getLogger(__name__)
router = APIRouter()

MIGRATION_TYPES = ("plan", "execute", "validate")
ACTIONS = ("rollback",)


class MigrationRequest(BaseModel):
    """Migration request."""
    from_version: Optional[Any] = Field(None, description="Version the tenant is currently on")
    to_version: Optional[Any] = Field(None, description="Version to migrate to")
    migration_type: str = Field("plan", description="plan | execute | validate")
    test_data: Optional[List[Any]] = Field(None, description="Sample records for validate")
    rollback_plan: bool = Field(False, description="Include a detailed rollback plan (plan only)")


class MigrationUpdateRequest(BaseModel):
    """Migration update request."""
    action: Optional[str] = Field(None, description="Update action; only 'rollback' is supported")
    migration_id: Optional[str] = Field(None, description="Migration job id")


class MigrationExecuteResponse(BaseModel):
    message: str = Field(..., description="Outcome message")
    migration_id: str = Field(..., description="Created migration job id")
    results: Dict[str, Any] = Field(..., description="Per-endpoint execution results")
    next_steps: List[str] = Field(..., description="Follow-up actions for the tenant")


class RollbackResponse(BaseModel):
    message: str = Field(..., description="Outcome message")
    migration_id: str = Field(..., description="Rolled back migration job id")
    rollback_completed_at: str = Field(..., description="ISO-8601 rollback timestamp")


@router.post("/migrate")
async def migrate(payload: MigrationRequest, caller: CallerContext = Depends(get_caller_context)):
    """
    Plan, execute or validate a migration.

    - plan: checklist, testing recommendations, impact estimate and plan document
    - execute: creates a tracked job and runs the migration
    - validate: compatibility report and per-sample transformation tests
    """
    stage = f"migration_{payload.migration_type}"
    if payload.from_version is None or payload.to_version is None:
        raise input_error(
            ErrorCode.MISSING_REQUIRED_FIELD,
            stage=stage,
            message="Missing required fields: from_version, to_version",
        )

    orchestrator = get_migration_orchestrator()
    try:
        orchestrator.check_path(payload.from_version, payload.to_version)
        if payload.migration_type == "plan":
            return await orchestrator.plan(
                caller.tenant_id,
                payload.from_version,
                payload.to_version,
                include_rollback_plan=payload.rollback_plan,
            )
        if payload.migration_type == "execute":
            result = await orchestrator.execute(
                caller.tenant_id,
                payload.from_version,
                payload.to_version,
                user_id=caller.user_id,
            )
            return MigrationExecuteResponse(**result)
        if payload.migration_type == "validate":
            return orchestrator.validate(payload.from_version, payload.to_version, payload.test_data or [])
    except VersioningError as exc:
        raise http_error(exc, stage)
    except Exception:
        raise internal_error(stage, "Migration operation failed")

    raise input_error(
        ErrorCode.INVALID_MIGRATION_TYPE,
        stage=stage,
        message="Invalid migration type. Must be: plan, execute, or validate",
        allowed=list(MIGRATION_TYPES),
    )


@router.get("/migrate")
async def migration_status(caller: CallerContext = Depends(get_caller_context)):
    """Migration history, current usage, deprecation notices and available migrations."""
    try:
        return await get_migration_orchestrator().overview(caller.tenant_id)
    except VersioningError as exc:
        raise http_error(exc, "migration_status")
    except Exception:
        raise internal_error("migration_status", "Failed to get migration status")


@router.put("/migrate", response_model=RollbackResponse)
async def update_migration(payload: MigrationUpdateRequest, caller: CallerContext = Depends(get_caller_context)):
    """Roll back a completed migration."""
    if not payload.migration_id:
        raise input_error(ErrorCode.MISSING_REQUIRED_FIELD, stage="migration_update", message="Migration ID is required")
    if payload.action not in ACTIONS:
        raise input_error(
            ErrorCode.INVALID_ACTION,
            stage="migration_update",
            message="Invalid action. Supported actions: rollback",
            allowed=list(ACTIONS),
        )

    try:
        result = await get_migration_orchestrator().rollback(
            caller.tenant_id, payload.migration_id, user_id=caller.user_id
        )
    except VersioningError as exc:
        raise http_error(exc, "migration_rollback")
    except Exception:
        raise internal_error("migration_rollback", "Failed to update migration")
    return RollbackResponse(**result)
