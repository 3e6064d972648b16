"""Migration path resolution and chain execution."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from contracthub.core.versioning.migration import MIGRATION_CATALOG, Migration, MigrationCatalog
from contracthub.core.versioning.version import ApiVersion

logger = logging.getLogger(__name__)


class PathResolver:
    """Computes the ordered chain of adjacent migrations between two versions.

    The catalog is forward-only: a descending request, an unsupported version
    or a gap in the catalog yields an empty or partial path. Callers check
    ``is_migration_available`` before trusting a result.
    """

    def __init__(self, catalog: MigrationCatalog = MIGRATION_CATALOG):
        self._catalog = catalog
        self._registry = catalog.registry

    def resolve(self, from_version: Any, to_version: Any) -> List[Migration]:
        start = self._registry.coerce(from_version)
        end = self._registry.coerce(to_version)
        if start is None or end is None:
            return []
        if self._registry.index_of(start) >= self._registry.index_of(end):
            return []

        path: List[Migration] = []
        current: Optional[ApiVersion] = start
        while current is not None and current != end:
            following = self._registry.next_version(current)
            if following is None:
                break
            step = self._catalog.get(current, following)
            if step is None:
                break
            path.append(step)
            current = following
        if current != end:
            logger.debug(
                "migration_path_incomplete",
                extra={"from_version": start.value, "to_version": end.value},
            )
        return path

    def is_migration_available(self, from_version: Any, to_version: Any) -> bool:
        """True iff a non-empty, gap-free path connects the two versions."""
        path = self.resolve(from_version, to_version)
        return bool(path) and path[-1].to_version == self._registry.coerce(to_version)

    def has_breaking_changes(self, from_version: Any, to_version: Any) -> bool:
        return any(step.breaking for step in self.resolve(from_version, to_version))


class ChainExecutor:
    """Applies a resolved path to a payload, left to right."""

    def __init__(self, resolver: Optional[PathResolver] = None):
        self._resolver = resolver or PathResolver()

    def apply_chain(self, payload: Any, from_version: Any, to_version: Any) -> Any:
        if from_version == to_version:
            return payload
        result = payload
        for step in self._resolver.resolve(from_version, to_version):
            result = step.apply(result)
        return result


_RESOLVER = PathResolver()
_EXECUTOR = ChainExecutor(_RESOLVER)


def get_path_resolver() -> PathResolver:
    return _RESOLVER


def get_migration_path(from_version: Any, to_version: Any) -> List[Migration]:
    return _RESOLVER.resolve(from_version, to_version)


def is_migration_available(from_version: Any, to_version: Any) -> bool:
    return _RESOLVER.is_migration_available(from_version, to_version)


def apply_migration_chain(payload: Any, from_version: Any, to_version: Any) -> Any:
    return _EXECUTOR.apply_chain(payload, from_version, to_version)


def migration_matrix(include_unavailable: bool = False) -> List[Dict[str, Any]]:
    """Every ``(from, to)`` pair with availability, breaking flag and step count."""
    versions = MIGRATION_CATALOG.registry.list_versions()
    matrix: List[Dict[str, Any]] = []
    for source in versions:
        for target in versions:
            path = _RESOLVER.resolve(source, target)
            available = source != target and _RESOLVER.is_migration_available(source, target)
            if not available and not include_unavailable:
                continue
            matrix.append(
                {
                    "from": source.value,
                    "to": target.value,
                    "available": available,
                    "breaking": any(step.breaking for step in path),
                    "steps": len(path),
                }
            )
    return matrix
