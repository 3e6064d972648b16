"""Per-tenant API version usage analytics.

The migration planner reads per-version and per-endpoint request counts to
estimate impact; deprecation notices are derived from the same counters.
``InMemoryUsageAnalytics`` is the process-local provider used by default.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from contracthub.core.versioning.version import VERSION_REGISTRY, ApiVersion, VersionRegistry

URGENCY_HIGH_PERCENT = 50.0
URGENCY_MEDIUM_PERCENT = 20.0
SUNSET_URGENCY_WINDOW = timedelta(days=90)


@dataclass
class VersionUsageAnalytics:
    total_requests: int = 0
    version_breakdown: Dict[str, int] = field(default_factory=dict)
    endpoint_breakdown: Dict[str, Dict[str, int]] = field(default_factory=dict)
    deprecated_version_usage: int = 0
    migration_urgency: str = "low"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "version_breakdown": dict(self.version_breakdown),
            "endpoint_breakdown": {k: dict(v) for k, v in self.endpoint_breakdown.items()},
            "deprecated_version_usage": self.deprecated_version_usage,
            "migration_urgency": self.migration_urgency,
        }


def migration_urgency(deprecated_requests: int, total_requests: int) -> str:
    if total_requests <= 0:
        return "low"
    percent = deprecated_requests / total_requests * 100
    if percent > URGENCY_HIGH_PERCENT:
        return "high"
    if percent > URGENCY_MEDIUM_PERCENT:
        return "medium"
    return "low"


class UsageAnalyticsProvider(ABC):
    """Source of per-tenant version usage counts."""

    @abstractmethod
    async def track_version_usage(
        self, tenant_id: str, version: str, endpoint: str, count: int = 1
    ) -> None: ...

    @abstractmethod
    async def get_version_usage_analytics(self, tenant_id: str) -> VersionUsageAnalytics: ...

    def reset(self) -> None:
        """Testing helper."""


class InMemoryUsageAnalytics(UsageAnalyticsProvider):
    def __init__(self, registry: VersionRegistry = VERSION_REGISTRY) -> None:
        self._registry = registry
        self._lock = threading.Lock()
        # tenant -> endpoint -> version -> count
        self._counts: Dict[str, Dict[str, Dict[str, int]]] = defaultdict(
            lambda: defaultdict(lambda: defaultdict(int))
        )

    async def track_version_usage(
        self, tenant_id: str, version: str, endpoint: str, count: int = 1
    ) -> None:
        tag = self._registry.coerce(version)
        if tag is None:
            raise ValueError(f"Unsupported API version: {version!r}")
        if count < 0:
            raise ValueError("count must be non-negative")
        with self._lock:
            self._counts[tenant_id][endpoint][tag.value] += count

    async def get_version_usage_analytics(self, tenant_id: str) -> VersionUsageAnalytics:
        versions = [v.value for v in self._registry.list_versions()]
        deprecated = {v.value for v in self._registry.deprecated_versions()}
        analytics = VersionUsageAnalytics(version_breakdown={v: 0 for v in versions})

        with self._lock:
            endpoints = {
                endpoint: dict(per_version)
                for endpoint, per_version in self._counts.get(tenant_id, {}).items()
            }

        for endpoint, per_version in endpoints.items():
            row = {v: 0 for v in versions}
            for version, count in per_version.items():
                row[version] += count
                analytics.version_breakdown[version] += count
                analytics.total_requests += count
                if version in deprecated:
                    analytics.deprecated_version_usage += count
            analytics.endpoint_breakdown[endpoint] = row

        analytics.migration_urgency = migration_urgency(
            analytics.deprecated_version_usage, analytics.total_requests
        )
        return analytics

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()


def get_deprecation_notices(
    analytics: VersionUsageAnalytics,
    docs_base_url: str,
    registry: VersionRegistry = VERSION_REGISTRY,
) -> List[Dict[str, Any]]:
    """Notices for every deprecated version the tenant still calls."""
    notices: List[Dict[str, Any]] = []
    for version in registry.deprecated_versions():
        info = registry.info(version)
        if analytics.version_breakdown.get(version.value, 0) <= 0 or info.sunset_date is None:
            continue
        affected = [
            endpoint
            for endpoint, per_version in analytics.endpoint_breakdown.items()
            if per_version.get(version.value, 0) > 0
        ]
        notices.append(
            {
                "version": version.value,
                "deprecation_date": info.deprecation_date.isoformat() if info.deprecation_date else None,
                "sunset_date": info.sunset_date.isoformat(),
                "reason": f"Version {version.value} is deprecated and will be sunset",
                "migration_guide_url": migration_guide_url(docs_base_url, version),
                "affected_endpoints": affected,
                "replacement_version": registry.replacement_for(version).value,
            }
        )
    return notices


def migration_guide_url(docs_base_url: str, version: ApiVersion, target: Optional[ApiVersion] = None) -> str:
    base = f"{docs_base_url.rstrip('/')}/migration/v{version.value}"
    if target is None:
        return base
    return f"{base}-to-v{target.value}"


def migration_recommendations(
    analytics: VersionUsageAnalytics,
    docs_base_url: str,
    *,
    today: Optional[date] = None,
    medium_threshold: int = 100,
    high_threshold: int = 1000,
    registry: VersionRegistry = VERSION_REGISTRY,
) -> List[Dict[str, Any]]:
    """Suggested upgrades for deprecated versions still receiving traffic.

    Urgency is ``high`` when the sunset date falls within
    ``SUNSET_URGENCY_WINDOW`` of ``today`` (or has passed).
    """
    today = today or date.today()
    latest = registry.latest
    recommendations: List[Dict[str, Any]] = []
    for version in registry.deprecated_versions():
        usage = analytics.version_breakdown.get(version.value, 0)
        if usage <= 0:
            continue
        sunset = registry.info(version).sunset_date
        urgent = sunset is not None and sunset <= today + SUNSET_URGENCY_WINDOW
        if usage > high_threshold:
            effort = "high"
        elif usage > medium_threshold:
            effort = "medium"
        else:
            effort = "low"
        recommendations.append(
            {
                "from_version": version.value,
                "to_version": latest.value,
                "urgency": "high" if urgent else "medium",
                "affected_requests": usage,
                "sunset_date": sunset.isoformat() if sunset else None,
                "migration_guide": migration_guide_url(docs_base_url, version, latest),
                "estimated_effort": effort,
            }
        )
    return recommendations


_PROVIDER: Optional[UsageAnalyticsProvider] = None
_PROVIDER_LOCK = threading.Lock()


def get_usage_analytics() -> UsageAnalyticsProvider:
    global _PROVIDER
    with _PROVIDER_LOCK:
        if _PROVIDER is None:
            _PROVIDER = InMemoryUsageAnalytics()
        return _PROVIDER


def set_usage_analytics(provider: Optional[UsageAnalyticsProvider]) -> None:
    global _PROVIDER
    with _PROVIDER_LOCK:
        _PROVIDER = provider


def reset_usage_analytics() -> None:
    """Reset the analytics provider (testing helper)."""
    global _PROVIDER
    with _PROVIDER_LOCK:
        if _PROVIDER is not None:
            _PROVIDER.reset()
        _PROVIDER = None
