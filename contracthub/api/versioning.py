"""API version negotiation and versioned responses.

Features:
- Requested version resolution via Accept media type, header or path
- Per-version response shaping
- Deprecation, sunset and breaking-change headers
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, time, timezone
from email.utils import format_datetime
from typing import Any, Dict, Optional

from fastapi import Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from contracthub.core.config import get_settings
from contracthub.core.usage_analytics import migration_guide_url
from contracthub.core.versioning.shaper import shape
from contracthub.core.versioning.version import VERSION_REGISTRY, ApiVersion

logger = logging.getLogger(__name__)

_ACCEPT_VERSION = re.compile(r"application/vnd\.contracthub\.v(\d+\.\d+)\+json")
_PATH_VERSION = re.compile(r"/api/v(\d+\.\d+)/")


def media_type_for(version: ApiVersion) -> str:
    return f"application/vnd.contracthub.v{version.value}+json"


def resolve_version(
    accept: Optional[str] = None,
    header_version: Optional[str] = None,
    path: Optional[str] = None,
) -> ApiVersion:
    """Resolve the API version to use.

    Accept media type wins over ``X-API-Version``, which wins over a
    ``/api/v<X.Y>/`` path segment. Unsupported candidates are skipped.
    """
    candidates = []
    if accept:
        match = _ACCEPT_VERSION.search(accept)
        if match:
            candidates.append(match.group(1))
    if header_version:
        candidates.append(header_version.strip())
    if path:
        match = _PATH_VERSION.search(path)
        if match:
            candidates.append(match.group(1))

    for candidate in candidates:
        tag = VERSION_REGISTRY.coerce(candidate)
        if tag is not None:
            return tag
    return VERSION_REGISTRY.default


async def get_request_version(
    request: Request,
    x_api_version: Optional[str] = Header(None, alias="X-API-Version"),
) -> ApiVersion:
    """FastAPI dependency resolving the caller's API version."""
    return resolve_version(
        accept=request.headers.get("accept"),
        header_version=x_api_version,
        path=request.url.path,
    )


def _midnight_utc(value) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def version_headers(version: ApiVersion) -> Dict[str, str]:
    """Response headers describing ``version``'s lifecycle."""
    info = VERSION_REGISTRY.info(version)
    latest = VERSION_REGISTRY.latest
    headers: Dict[str, str] = {
        "X-API-Version": version.value,
        "X-Supported-Versions": ", ".join(v.value for v in VERSION_REGISTRY.list_versions()),
        "X-Latest-Version": latest.value,
    }

    if info.deprecated_features:
        features = ", ".join(info.deprecated_features)
        headers["X-API-Deprecated-Features"] = features
        headers["Warning"] = f'299 - "API version {version.value} contains deprecated features: {features}"'

    if info.is_deprecated:
        headers["X-API-Version-Status"] = info.status.value
        if info.sunset_date:
            sunset = _midnight_utc(info.sunset_date)
            headers["X-API-Sunset-Date"] = sunset.isoformat()
            headers["Sunset"] = format_datetime(sunset, usegmt=True)
        headers["X-API-Migration-Guide"] = migration_guide_url(
            get_settings().API_DOCS_BASE_URL, version, latest
        )

    if info.breaking_changes:
        headers["X-API-Breaking-Changes"] = ", ".join(info.breaking_changes)

    return headers


def versioned_response(
    data: Any,
    version: ApiVersion,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Shape ``data`` for ``version`` and attach version headers."""
    body = jsonable_encoder(shape(data, version))
    merged = version_headers(version)
    if headers:
        merged.update(headers)
    return JSONResponse(
        content=body,
        status_code=status_code,
        headers=merged,
        media_type=media_type_for(version),
    )
