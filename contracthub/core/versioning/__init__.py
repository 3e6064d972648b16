"""API Versioning Module.

Version compatibility and migration engine:
- Version registry
- Per-version response shaping
- Adjacent migration catalog, path resolution and chain execution
- Compatibility validation
"""

from contracthub.core.versioning.version import (
    ApiVersion,
    VersionStatus,
    VersionInfo,
    VersionRegistry,
    VERSION_REGISTRY,
    get_version_registry,
    is_version_supported,
    list_versions,
)
from contracthub.core.versioning.shaper import (
    CORE_FIELDS,
    SHAPERS,
    shape,
)
from contracthub.core.versioning.migration import (
    Migration,
    MigrationCatalog,
    MIGRATION_CATALOG,
)
from contracthub.core.versioning.resolver import (
    PathResolver,
    ChainExecutor,
    apply_migration_chain,
    get_migration_path,
    is_migration_available,
    migration_matrix,
)
from contracthub.core.versioning.compatibility import (
    CompatibilityIssue,
    CompatibilityReport,
    CompatibilityValidator,
    IssueSeverity,
    IssueType,
    TransformationTest,
    compatibility_info,
    run_transformation_tests,
)
from contracthub.core.versioning.exceptions import (
    VersioningError,
    InvalidVersionError,
    UnreachablePathError,
    InvalidJobStateError,
    MigrationJobNotFoundError,
    JobStoreError,
    TransformFailure,
)

__all__ = [
    # Registry
    "ApiVersion",
    "VersionStatus",
    "VersionInfo",
    "VersionRegistry",
    "VERSION_REGISTRY",
    "get_version_registry",
    "is_version_supported",
    "list_versions",
    # Shaping
    "CORE_FIELDS",
    "SHAPERS",
    "shape",
    # Migration
    "Migration",
    "MigrationCatalog",
    "MIGRATION_CATALOG",
    "PathResolver",
    "ChainExecutor",
    "apply_migration_chain",
    "get_migration_path",
    "is_migration_available",
    "migration_matrix",
    # Compatibility
    "CompatibilityIssue",
    "CompatibilityReport",
    "CompatibilityValidator",
    "IssueSeverity",
    "IssueType",
    "TransformationTest",
    "compatibility_info",
    "run_transformation_tests",
    # Errors
    "VersioningError",
    "InvalidVersionError",
    "UnreachablePathError",
    "InvalidJobStateError",
    "MigrationJobNotFoundError",
    "JobStoreError",
    "TransformFailure",
]
