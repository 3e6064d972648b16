"""
Versioned resource endpoints.

Responses are built once in the newest shape and shaped down to the caller's
requested version on the way out.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from contracthub.api.dependencies import CallerContext, get_caller_context
from contracthub.api.errors import internal_error
from contracthub.api.versioning import get_request_version, versioned_response
from contracthub.core.usage_analytics import get_usage_analytics
from contracthub.core.versioning.version import ApiVersion

logger = logging.getLogger(__name__)
router = APIRouter()

EXAMPLE_ENDPOINT = "example/versioned"


def example_resource(tenant_id: str) -> Dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "name": "Example Resource",
        "tenant_id": tenant_id,
        "created_at": datetime.now(timezone.utc),
        "enhanced_analytics": {"views": 42, "interactions": 15},
        "advanced_permissions": ["read", "write", "admin"],
        "metadata": {"api_enhancements": ["enhanced_analytics", "advanced_permissions"]},
        "pagination": {"current_page": 1, "total_items": 1, "items_per_page": 20},
    }


async def _serve_example(caller: CallerContext, version: ApiVersion):
    try:
        await get_usage_analytics().track_version_usage(caller.tenant_id, version.value, EXAMPLE_ENDPOINT)
    except Exception:
        raise internal_error("versioned_resource", "Failed to retrieve resource")
    logger.debug(
        "versioned_resource_served",
        extra={"tenant_id": caller.tenant_id, "to_version": version.value, "operation": EXAMPLE_ENDPOINT},
    )
    return versioned_response(example_resource(caller.tenant_id), version)


@router.get("/example/versioned")
async def get_example(
    caller: CallerContext = Depends(get_caller_context),
    version: ApiVersion = Depends(get_request_version),
):
    """Example resource in the shape of the version requested via Accept or X-API-Version."""
    return await _serve_example(caller, version)


@router.get("/v{api_version}/example/versioned")
async def get_example_by_path(
    api_version: str,
    caller: CallerContext = Depends(get_caller_context),
    version: ApiVersion = Depends(get_request_version),
):
    """Example resource pinned by a ``/api/v<X.Y>/`` path segment."""
    return await _serve_example(caller, version)
