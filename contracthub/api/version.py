"""
API version information endpoints.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from contracthub.api.dependencies import CallerContext, get_caller_context
from contracthub.api.errors import internal_error
from contracthub.api.versioning import get_request_version, version_headers
from contracthub.core.config import get_settings
from contracthub.core.usage_analytics import (
    get_deprecation_notices,
    get_usage_analytics,
    migration_recommendations,
)
from contracthub.core.versioning.compatibility import compatibility_info
from contracthub.core.versioning.resolver import migration_matrix
from contracthub.core.versioning.version import VERSION_REGISTRY, ApiVersion

logger = logging.getLogger(__name__)
router = APIRouter()


class TimeRange(BaseModel):
    start: Optional[datetime] = Field(None, description="Window start (informational)")
    end: Optional[datetime] = Field(None, description="Window end (informational)")


class UsageRequest(BaseModel):
    """Usage analytics request."""
    time_range: Optional[TimeRange] = Field(None, description="Reporting window")


class UsageResponse(BaseModel):
    tenant_id: str = Field(..., description="Tenant the analytics belong to")
    analytics: Dict[str, Any] = Field(..., description="Per-version and per-endpoint request counts")
    deprecation_notices: List[Dict[str, Any]] = Field(..., description="Deprecated versions still in use")
    migration_recommendations: List[Dict[str, Any]] = Field(..., description="Suggested upgrades")
    generated_at: str = Field(..., description="ISO-8601 generation timestamp")


def _version_details(version: ApiVersion, docs_base_url: str) -> Dict[str, Any]:
    info = VERSION_REGISTRY.info(version)
    return {
        "version": version.value,
        "status": info.status.value,
        "sunset_date": info.sunset_date.isoformat() if info.sunset_date else None,
        "compatibility_info": compatibility_info(version),
        "documentation_url": f"{docs_base_url.rstrip('/')}/v{version.value}",
        "features": list(info.features),
        "breaking_changes": list(info.breaking_changes),
        "deprecated_features": list(info.deprecated_features),
    }


@router.get("")
async def version_info(
    caller: CallerContext = Depends(get_caller_context),
    requested: ApiVersion = Depends(get_request_version),
):
    """Supported versions, per-version details, tenant usage and migration paths."""
    settings = get_settings()
    analytics_provider = get_usage_analytics()
    try:
        await analytics_provider.track_version_usage(caller.tenant_id, requested.value, "version")
        analytics = await analytics_provider.get_version_usage_analytics(caller.tenant_id)
        latest = VERSION_REGISTRY.latest
        body = {
            "versions": {
                "supported": [v.value for v in VERSION_REGISTRY.list_versions()],
                "default": VERSION_REGISTRY.default.value,
                "latest": latest.value,
                "recommended": latest.value,
                "requested": requested.value,
            },
            "version_details": [
                _version_details(v, settings.API_DOCS_BASE_URL) for v in VERSION_REGISTRY.list_versions()
            ],
            "tenant_usage": {
                "current_usage": analytics.to_dict(),
                "deprecation_notices": get_deprecation_notices(analytics, settings.API_DOCS_BASE_URL),
                "migration_recommendations": migration_recommendations(
                    analytics,
                    settings.API_DOCS_BASE_URL,
                    medium_threshold=settings.IMPACT_MEDIUM_THRESHOLD,
                    high_threshold=settings.IMPACT_HIGH_THRESHOLD,
                ),
            },
            "migration_paths": {
                "available_paths": migration_matrix(),
                "migration_guide_url": f"{settings.API_DOCS_BASE_URL.rstrip('/')}/migration",
            },
        }
    except Exception:
        raise internal_error("version_info", "Failed to retrieve version information")

    headers = version_headers(latest)
    headers["Cache-Control"] = "public, max-age=3600"
    return JSONResponse(content=body, headers=headers)


@router.post("/usage", response_model=UsageResponse)
async def version_usage(
    payload: Optional[UsageRequest] = None,
    caller: CallerContext = Depends(get_caller_context),
):
    """Tenant usage analytics with deprecation notices and recommendations."""
    settings = get_settings()
    try:
        analytics = await get_usage_analytics().get_version_usage_analytics(caller.tenant_id)
    except Exception:
        raise internal_error("version_usage", "Failed to retrieve usage analytics")

    return UsageResponse(
        tenant_id=caller.tenant_id,
        analytics=analytics.to_dict(),
        deprecation_notices=get_deprecation_notices(analytics, settings.API_DOCS_BASE_URL),
        migration_recommendations=migration_recommendations(
            analytics,
            settings.API_DOCS_BASE_URL,
            medium_threshold=settings.IMPACT_MEDIUM_THRESHOLD,
            high_threshold=settings.IMPACT_HIGH_THRESHOLD,
        ),
        generated_at=datetime.now(timezone.utc).isoformat(),
    )
