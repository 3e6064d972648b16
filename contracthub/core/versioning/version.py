"""API Version Registry.

Provides the fixed, ordered catalog of public API versions:
- Typed version tags (one per supported version)
- Lifecycle status, sunset dates and feature flags
- Backward compatibility checks

The registry is built once at import time and never mutated afterwards;
adding a version requires a new deployment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


class ApiVersion(str, Enum):
    """Supported API versions, declared oldest first."""

    V1_0 = "1.0"
    V1_1 = "1.1"
    V2_0 = "2.0"

    def __str__(self) -> str:
        return self.value


class VersionStatus(str, Enum):
    """API version lifecycle status."""

    ACTIVE = "active"
    DEPRECATED = "deprecated"
    SUNSET = "sunset"


@dataclass(frozen=True)
class VersionInfo:
    """Metadata for a registered API version."""

    version: ApiVersion
    status: VersionStatus = VersionStatus.ACTIVE
    sunset_date: Optional[date] = None
    deprecation_date: Optional[date] = None
    compatible_with: Tuple[ApiVersion, ...] = ()
    deprecated_features: Tuple[str, ...] = ()
    breaking_changes: Tuple[str, ...] = ()
    features: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_deprecated(self) -> bool:
        return self.status == VersionStatus.DEPRECATED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version.value,
            "status": self.status.value,
            "sunset_date": self.sunset_date.isoformat() if self.sunset_date else None,
            "deprecation_date": self.deprecation_date.isoformat() if self.deprecation_date else None,
            "compatible_versions": [v.value for v in self.compatible_with],
            "deprecated_features": list(self.deprecated_features),
            "breaking_changes": list(self.breaking_changes),
            "features": list(self.features),
        }


class VersionRegistry:
    """Ordered, read-only registry of API versions.

    The declaration order of the entries is the canonical order used for
    "adjacent" and "distance" reasoning everywhere else in the engine.
    """

    def __init__(self, entries: Iterable[VersionInfo]):
        ordered = tuple(entries)
        if not ordered:
            raise ValueError("Version registry requires at least one version")
        versions = tuple(info.version for info in ordered)
        if len(set(versions)) != len(versions):
            raise ValueError(f"Duplicate versions in registry: {[v.value for v in versions]}")

        self._versions: Tuple[ApiVersion, ...] = versions
        self._values: frozenset = frozenset(v.value for v in versions)
        self._index: Mapping[ApiVersion, int] = MappingProxyType(
            {v: i for i, v in enumerate(versions)}
        )
        self._info: Mapping[ApiVersion, VersionInfo] = MappingProxyType(
            {info.version: info for info in ordered}
        )

    def is_version_supported(self, candidate: Any) -> bool:
        """Exact, case-sensitive membership test. Never raises."""
        return isinstance(candidate, str) and str.__str__(candidate) in self._values

    def coerce(self, candidate: Any) -> Optional[ApiVersion]:
        """Return the registry tag for ``candidate`` or None if unsupported."""
        if not self.is_version_supported(candidate):
            return None
        return ApiVersion(str.__str__(candidate))

    def list_versions(self) -> Tuple[ApiVersion, ...]:
        return self._versions

    def index_of(self, version: ApiVersion) -> int:
        return self._index[ApiVersion(version)]

    def next_version(self, version: ApiVersion) -> Optional[ApiVersion]:
        """The adjacent newer version, or None for the newest entry."""
        idx = self.index_of(version)
        if idx + 1 < len(self._versions):
            return self._versions[idx + 1]
        return None

    @property
    def default(self) -> ApiVersion:
        return self._versions[0]

    @property
    def oldest(self) -> ApiVersion:
        return self._versions[0]

    @property
    def latest(self) -> ApiVersion:
        return self._versions[-1]

    def info(self, version: ApiVersion) -> VersionInfo:
        return self._info[ApiVersion(version)]

    def is_version_compatible(self, requested: Any, target: Any) -> bool:
        """True if clients pinned to ``requested`` can be served by ``target``."""
        requested_tag = self.coerce(requested)
        target_tag = self.coerce(target)
        if requested_tag is None or target_tag is None:
            return False
        return requested_tag in self._info[target_tag].compatible_with

    def deprecated_versions(self) -> List[ApiVersion]:
        return [v for v in self._versions if self._info[v].is_deprecated]

    def replacement_for(self, version: ApiVersion) -> ApiVersion:
        """Version clients of ``version`` should move to."""
        return self.next_version(version) or self.latest


VERSION_REGISTRY = VersionRegistry(
    [
        VersionInfo(
            version=ApiVersion.V1_0,
            status=VersionStatus.DEPRECATED,
            sunset_date=date(2025, 12, 31),
            deprecation_date=date(2024, 1, 1),
            compatible_with=(ApiVersion.V1_0,),
            deprecated_features=("legacy_pagination", "simple_auth"),
            features=(
                "Basic CRUD operations",
                "Simple authentication",
                "Basic error handling",
                "Simple pagination",
                "Core CRM functionality",
            ),
        ),
        VersionInfo(
            version=ApiVersion.V1_1,
            compatible_with=(ApiVersion.V1_0, ApiVersion.V1_1),
            deprecated_features=("legacy_lead_format", "basic_filtering"),
            features=(
                "Enhanced filtering and search",
                "Improved error responses",
                "Advanced permissions",
                "Enhanced analytics",
                "Better pagination",
                "Lead scoring",
                "Pipeline management",
            ),
        ),
        VersionInfo(
            version=ApiVersion.V2_0,
            compatible_with=(ApiVersion.V1_0, ApiVersion.V1_1, ApiVersion.V2_0),
            breaking_changes=("pagination_format", "error_response_format", "date_format"),
            features=(
                "Comprehensive filtering and search",
                "Rich error details with codes",
                "Real-time analytics",
                "Modern pagination with navigation",
                "Advanced lead scoring",
                "Complete pipeline management",
                "Webhook support",
                "Bulk operations",
                "Multi-tenant isolation",
            ),
        ),
    ]
)


def get_version_registry() -> VersionRegistry:
    return VERSION_REGISTRY


def is_version_supported(candidate: Any) -> bool:
    return VERSION_REGISTRY.is_version_supported(candidate)


def list_versions() -> Tuple[ApiVersion, ...]:
    return VERSION_REGISTRY.list_versions()
