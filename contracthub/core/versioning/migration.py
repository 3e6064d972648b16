"""Migration catalog.

One ``Migration`` per adjacent pair of registry versions, oldest to newest.
Longer transitions are composed by the resolver, never authored here.
Each step's transform produces the destination version's shape, so migrating
a payload and shaping it for the destination agree on every shared field.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from contracthub.core.versioning.shaper import shape_v1_1, shape_v2_0
from contracthub.core.versioning.version import VERSION_REGISTRY, ApiVersion, VersionRegistry

Transform = Callable[[Any], Any]


@dataclass(frozen=True)
class Migration:
    """A single adjacent-version step."""

    from_version: ApiVersion
    to_version: ApiVersion
    description: str
    breaking: bool
    migrate: Transform

    def apply(self, payload: Any) -> Any:
        return self.migrate(payload)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_version.value,
            "to": self.to_version.value,
            "description": self.description,
            "breaking": self.breaking,
        }


def _add_extensions(payload: Any) -> Any:
    """1.0 -> 1.1: enable analytics and permission extensions."""
    if not isinstance(payload, Mapping):
        return payload
    record = shape_v1_1(payload)
    record.setdefault("enhanced_analytics", {})
    record.setdefault("advanced_permissions", [])
    return record


def _modernize(payload: Any) -> Any:
    """1.1 -> 2.0: navigable pagination plus version envelope."""
    if not isinstance(payload, Mapping):
        return payload
    return shape_v2_0(payload)


class MigrationCatalog:
    """Immutable table of adjacent migrations keyed by ``(from, to)``."""

    def __init__(self, registry: VersionRegistry, migrations: Iterable[Migration]):
        table: Dict[Tuple[ApiVersion, ApiVersion], Migration] = {}
        for migration in migrations:
            gap = registry.index_of(migration.to_version) - registry.index_of(migration.from_version)
            if abs(gap) != 1:
                raise ValueError(
                    f"Migration {migration.from_version}->{migration.to_version} "
                    "does not connect adjacent versions"
                )
            key = (migration.from_version, migration.to_version)
            if key in table:
                raise ValueError(f"Duplicate migration {key[0]}->{key[1]}")
            table[key] = migration

        self._registry = registry
        self._table: Mapping[Tuple[ApiVersion, ApiVersion], Migration] = MappingProxyType(table)

    @property
    def registry(self) -> VersionRegistry:
        return self._registry

    def get(self, from_version: ApiVersion, to_version: ApiVersion) -> Optional[Migration]:
        return self._table.get((from_version, to_version))

    def all(self) -> List[Migration]:
        return list(self._table.values())

    def __len__(self) -> int:
        return len(self._table)


MIGRATION_CATALOG = MigrationCatalog(
    VERSION_REGISTRY,
    [
        Migration(
            from_version=ApiVersion.V1_0,
            to_version=ApiVersion.V1_1,
            description="Added enhanced analytics and advanced permissions",
            breaking=False,
            migrate=_add_extensions,
        ),
        Migration(
            from_version=ApiVersion.V1_1,
            to_version=ApiVersion.V2_0,
            description="Updated pagination format, error responses, and date handling",
            breaking=True,
            migrate=_modernize,
        ),
    ],
)


def get_migration_catalog() -> MigrationCatalog:
    return MIGRATION_CATALOG
