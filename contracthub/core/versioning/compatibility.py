"""Compatibility validation for sample payloads.

Two independent reports are produced for a prospective migration:

* ``CompatibilityValidator.validate`` shapes each sample for the target
  version and classifies structural deltas as issues.
* ``run_transformation_tests`` pushes each sample through the migration
  chain and records per-sample success or failure. A failing sample never
  aborts the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from contracthub.core.versioning.exceptions import InvalidVersionError, TransformFailure
from contracthub.core.versioning.resolver import (
    ChainExecutor,
    PathResolver,
    get_path_resolver,
)
from contracthub.core.versioning.shaper import CORE_FIELDS, shape
from contracthub.core.versioning.version import VERSION_REGISTRY, ApiVersion, VersionRegistry
from contracthub.utils.metrics import migration_validation_issues_total

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id",)


class IssueSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IssueType(str, Enum):
    MISSING_FIELD = "missing_field"
    TYPE_MISMATCH = "type_mismatch"
    DATA_LOSS = "data_loss"
    FORMAT_CHANGE = "format_change"


@dataclass
class CompatibilityIssue:
    """A single structural delta found while shaping a sample."""

    type: IssueType
    severity: IssueSeverity
    message: str
    affected_fields: List[str] = field(default_factory=list)
    sample_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "affected_fields": list(self.affected_fields),
            "sample_index": self.sample_index,
        }


@dataclass
class CompatibilityReport:
    """Outcome of one validation run. Not persisted."""

    target_version: ApiVersion
    issues: List[CompatibilityIssue] = field(default_factory=list)
    samples_checked: int = 0

    @property
    def compatible(self) -> bool:
        return not any(issue.severity == IssueSeverity.HIGH for issue in self.issues)

    def has_severity(self, severity: IssueSeverity) -> bool:
        return any(issue.severity == severity for issue in self.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_version": self.target_version.value,
            "compatible": self.compatible,
            "samples_checked": self.samples_checked,
            "issues": [issue.to_dict() for issue in self.issues],
        }


def _type_name(value: Any) -> str:
    return type(value).__name__


class CompatibilityValidator:
    """Shapes samples for a target version and reports what changes."""

    def __init__(self, registry: VersionRegistry = VERSION_REGISTRY):
        self._registry = registry

    def validate(self, target_version: Any, samples: Sequence[Any]) -> CompatibilityReport:
        target = self._registry.coerce(target_version)
        if target is None:
            raise InvalidVersionError(target_version, [v.value for v in self._registry.list_versions()])

        report = CompatibilityReport(target_version=target)
        for index, sample in enumerate(samples):
            report.issues.extend(self._check_sample(target, index, sample))
            report.samples_checked += 1

        for issue in report.issues:
            migration_validation_issues_total.labels(severity=issue.severity.value).inc()
        return report

    def _check_sample(self, target: ApiVersion, index: int, sample: Any) -> List[CompatibilityIssue]:
        if not isinstance(sample, Mapping):
            return [
                CompatibilityIssue(
                    type=IssueType.TYPE_MISMATCH,
                    severity=IssueSeverity.HIGH,
                    message=f"Sample {index + 1} is a {_type_name(sample)}, expected a record",
                    sample_index=index,
                )
            ]

        issues: List[CompatibilityIssue] = []
        shaped = shape(sample, target)

        missing = [name for name in REQUIRED_FIELDS if shaped.get(name) is None]
        if missing:
            issues.append(
                CompatibilityIssue(
                    type=IssueType.MISSING_FIELD,
                    severity=IssueSeverity.HIGH,
                    message=f"Required fields missing for version {target.value}",
                    affected_fields=missing,
                    sample_index=index,
                )
            )

        for name in CORE_FIELDS:
            value = shaped.get(name)
            if value is None or isinstance(value, str):
                continue
            if name == "id" and isinstance(value, int) and not isinstance(value, bool):
                continue
            issues.append(
                CompatibilityIssue(
                    type=IssueType.TYPE_MISMATCH,
                    severity=IssueSeverity.HIGH if name == "id" else IssueSeverity.MEDIUM,
                    message=f"Field '{name}' has unexpected type {_type_name(value)}",
                    affected_fields=[name],
                    sample_index=index,
                )
            )

        lost = [key for key, value in sample.items() if value is not None and key not in shaped]
        if lost:
            issues.append(
                CompatibilityIssue(
                    type=IssueType.DATA_LOSS,
                    severity=IssueSeverity.MEDIUM,
                    message=f"Data loss when shaping for version {target.value}",
                    affected_fields=[str(key) for key in lost],
                    sample_index=index,
                )
            )

        issues.extend(self._check_pagination(target, index, sample.get("pagination"), shaped.get("pagination")))
        issues.extend(self._check_dates(target, index, shaped))
        return issues

    def _check_pagination(
        self, target: ApiVersion, index: int, original: Any, shaped: Any
    ) -> List[CompatibilityIssue]:
        if original is None:
            return []
        if not isinstance(original, Mapping):
            return [
                CompatibilityIssue(
                    type=IssueType.TYPE_MISMATCH,
                    severity=IssueSeverity.MEDIUM,
                    message=f"Pagination is a {_type_name(original)}, expected a record; left unchanged",
                    affected_fields=["pagination"],
                    sample_index=index,
                )
            ]
        renamed = sorted(str(key) for key in original if key not in shaped)
        if not renamed:
            return []
        return [
            CompatibilityIssue(
                type=IssueType.FORMAT_CHANGE,
                severity=IssueSeverity.LOW,
                message=f"Pagination fields renamed for version {target.value}",
                affected_fields=[f"pagination.{key}" for key in renamed],
                sample_index=index,
            )
        ]

    def _check_dates(self, target: ApiVersion, index: int, shaped: Mapping[str, Any]) -> List[CompatibilityIssue]:
        odd = [
            key
            for key in ("created_at", "updated_at")
            if key in shaped and not isinstance(shaped[key], (str, datetime, date))
        ]
        if not odd:
            return []
        return [
            CompatibilityIssue(
                type=IssueType.FORMAT_CHANGE,
                severity=IssueSeverity.LOW,
                message=f"Date fields are not ISO-8601 strings for version {target.value}",
                affected_fields=odd,
                sample_index=index,
            )
        ]


@dataclass
class TransformationTest:
    """Per-sample chain transform outcome."""

    test_case: int
    original_data: Any
    transformed_data: Any
    success: bool
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_case": self.test_case,
            "original_data": self.original_data,
            "transformed_data": self.transformed_data,
            "success": self.success,
            "issues": list(self.issues),
        }


def run_transformation_tests(
    samples: Sequence[Any],
    from_version: Any,
    to_version: Any,
    executor: Optional[ChainExecutor] = None,
) -> List[TransformationTest]:
    executor = executor or ChainExecutor(get_path_resolver())
    results: List[TransformationTest] = []
    for index, sample in enumerate(samples):
        case = index + 1
        try:
            transformed = executor.apply_chain(sample, from_version, to_version)
        except Exception as exc:  # a failing record is reported, never raised
            failure = TransformFailure(f"Transformation failed: {exc}", test_case=case)
            logger.warning(
                "transformation_test_failed",
                extra={
                    "from_version": str(from_version),
                    "to_version": str(to_version),
                    "error_code": failure.code.value,
                },
            )
            results.append(
                TransformationTest(
                    test_case=case,
                    original_data=sample,
                    transformed_data=None,
                    success=False,
                    issues=[failure.message],
                )
            )
            continue
        results.append(
            TransformationTest(
                test_case=case,
                original_data=sample,
                transformed_data=transformed,
                success=True,
            )
        )
    return results


def compatibility_info(version: Any, resolver: Optional[PathResolver] = None) -> Dict[str, Any]:
    """Lifecycle and migration summary for one registry version."""
    tag = VERSION_REGISTRY.coerce(version)
    if tag is None:
        raise InvalidVersionError(version, [v.value for v in VERSION_REGISTRY.list_versions()])
    resolver = resolver or get_path_resolver()
    info = VERSION_REGISTRY.info(tag).to_dict()
    info["migration_available_to"] = [
        other.value
        for other in VERSION_REGISTRY.list_versions()
        if other != tag and resolver.is_migration_available(tag, other)
    ]
    return info
