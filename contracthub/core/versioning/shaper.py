"""Version-specific response shaping.

Each registry version has one shaping function, dispatched through the
``SHAPERS`` lookup table. Shaping only restructures record-like payloads
(mappings); everything else passes through untouched. Shaping never mutates
its input and never raises.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from contracthub.core.versioning.version import VERSION_REGISTRY, ApiVersion
from contracthub.utils.metrics import version_shape_total

logger = logging.getLogger(__name__)

# Fields every version shares; always copied through as-is.
CORE_FIELDS = ("id", "name")

# Introduced in 1.1
EXTENSION_FIELDS = ("enhanced_analytics", "advanced_permissions", "metadata")
# Introduced in 2.0
ENVELOPE_FIELDS = ("version_info", "deprecation_warnings", "migration_hints")

DATE_FIELDS = ("created_at", "updated_at")

DEFAULT_PAGE_SIZE = 20

Shaper = Callable[[Mapping[str, Any]], Dict[str, Any]]


def _as_int(value: Any) -> Optional[int]:
    """Best-effort integer coercion; None when the value is unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if math.isfinite(number) else None
    return None


def _first(pagination: Mapping[str, Any], *keys: str) -> Optional[int]:
    """First non-zero integer found under ``keys``."""
    for key in keys:
        number = _as_int(pagination.get(key))
        if number:
            return number
    return None


def _or(value: Optional[int], default: int) -> int:
    return default if value is None else value


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def _rich_pagination(pagination: Mapping[str, Any]) -> Dict[str, int]:
    """Pagination in the 1.1+ field names."""
    items_per_page = max(
        _or(_first(pagination, "items_per_page", "per_page"), DEFAULT_PAGE_SIZE), 1
    )
    total_items = max(_or(_first(pagination, "total_items", "total"), 0), 0)
    total_pages = _first(pagination, "total_pages")
    if total_pages is None:
        total_pages = _ceil_div(total_items, items_per_page)
    return {
        "current_page": max(_or(_first(pagination, "current_page", "page"), 1), 1),
        "total_pages": max(total_pages, 1),
        "total_items": total_items,
        "items_per_page": items_per_page,
    }


def _legacy_pagination(pagination: Mapping[str, Any]) -> Dict[str, int]:
    """Pagination in the 1.0 field names."""
    return {
        "page": max(_or(_first(pagination, "current_page", "page"), 1), 1),
        "total": max(_or(_first(pagination, "total_items", "total"), 0), 0),
        "per_page": max(_or(_first(pagination, "items_per_page", "per_page"), DEFAULT_PAGE_SIZE), 1),
    }


def _copy_record(payload: Mapping[str, Any], drop: tuple = ()) -> Dict[str, Any]:
    """Shallow copy without dropped fields and without top-level None values."""
    return {
        key: value
        for key, value in payload.items()
        if key not in drop and (value is not None or key in CORE_FIELDS)
    }


def _reshape_pagination(record: Dict[str, Any], builder: Callable[[Mapping[str, Any]], Dict[str, Any]]) -> None:
    pagination = record.get("pagination")
    if isinstance(pagination, Mapping):
        record["pagination"] = builder(pagination)


def shape_v1_0(payload: Mapping[str, Any]) -> Dict[str, Any]:
    record = _copy_record(payload, drop=EXTENSION_FIELDS + ENVELOPE_FIELDS)
    _reshape_pagination(record, _legacy_pagination)
    for key in DATE_FIELDS:
        value = record.get(key)
        if isinstance(value, (datetime, date)):
            record[key] = value.isoformat()
    return record


def shape_v1_1(payload: Mapping[str, Any]) -> Dict[str, Any]:
    record = _copy_record(payload, drop=ENVELOPE_FIELDS)
    _reshape_pagination(record, _rich_pagination)
    return record


def _navigable_pagination(pagination: Mapping[str, Any]) -> Dict[str, Any]:
    rich: Dict[str, Any] = _rich_pagination(pagination)
    rich["has_next"] = rich["current_page"] < rich["total_pages"]
    rich["has_previous"] = rich["current_page"] > 1
    return rich


def version_envelope(version: ApiVersion = ApiVersion.V2_0) -> Dict[str, str]:
    return {
        "api_version": version.value,
        "response_format": "v" + version.value.split(".")[0],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def shape_v2_0(payload: Mapping[str, Any]) -> Dict[str, Any]:
    record = _copy_record(payload)
    _reshape_pagination(record, _navigable_pagination)
    record["version_info"] = version_envelope(ApiVersion.V2_0)
    return record


SHAPERS: Dict[ApiVersion, Shaper] = {
    ApiVersion.V1_0: shape_v1_0,
    ApiVersion.V1_1: shape_v1_1,
    ApiVersion.V2_0: shape_v2_0,
}


def shape(payload: Any, version: Any) -> Any:
    """Shape ``payload`` for consumers pinned to ``version``.

    Non-mapping payloads and unknown versions are returned unchanged.
    """
    if not isinstance(payload, Mapping):
        return payload

    tag = VERSION_REGISTRY.coerce(version)
    if tag is None:
        version_shape_total.labels(version="unknown").inc()
        logger.debug("shape_unknown_version %r", version)
        return payload

    version_shape_total.labels(version=tag.value).inc()
    return SHAPERS[tag](payload)
