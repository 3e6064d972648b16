"""Tenant-initiated API version migrations.

The orchestrator is the only stateful layer of the versioning engine. It
plans migrations from usage analytics, executes them as tracked jobs,
validates caller-supplied sample data and rolls completed jobs back.

Invalid or unreachable version pairs are rejected before any job is created.
A failure after the job row exists marks the job ``failed`` with the error
captured before the exception propagates.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from contracthub.core.config import Settings, get_settings
from contracthub.core.migration_jobs import (
    MigrationJob,
    MigrationJobStatus,
    MigrationJobStore,
    get_migration_job_store,
    new_job_id,
)
from contracthub.core.usage_analytics import (
    UsageAnalyticsProvider,
    VersionUsageAnalytics,
    get_deprecation_notices,
    get_usage_analytics,
)
from contracthub.core.versioning.compatibility import (
    CompatibilityReport,
    CompatibilityValidator,
    IssueSeverity,
    TransformationTest,
    run_transformation_tests,
)
from contracthub.core.versioning.exceptions import (
    InvalidJobStateError,
    InvalidVersionError,
    UnreachablePathError,
    VersioningError,
)
from contracthub.core.versioning.migration import Migration
from contracthub.core.versioning.resolver import (
    ChainExecutor,
    PathResolver,
    get_path_resolver,
    migration_matrix,
)
from contracthub.core.versioning.shaper import CORE_FIELDS
from contracthub.core.versioning.version import VERSION_REGISTRY, ApiVersion
from contracthub.utils.metrics import (
    migration_operation_duration_seconds,
    migration_operations_total,
)

logger = logging.getLogger(__name__)

BASE_CHECKLIST = (
    "Review migration documentation",
    "Backup current API configurations",
    "Identify all client applications using the API",
    "Set up staging environment for testing",
)

BREAKING_CHECKLIST = (
    "Update client code to handle breaking changes",
    "Test all affected endpoints thoroughly",
    "Prepare rollback procedures",
    "Schedule maintenance window",
)

TESTING_RECOMMENDATIONS = (
    "Test all currently used API endpoints",
    "Verify data transformation accuracy",
    "Test error handling and edge cases",
    "Validate authentication and permissions",
    "Check rate limiting behavior",
    "Test webhook deliveries (if applicable)",
    "Verify backward compatibility (if required)",
    "Load test with production-like traffic",
)

NEXT_STEPS = (
    "Update your client applications to use the new API version",
    "Test all integrations with the new version",
    "Monitor API usage for any issues",
    "Update documentation and team training materials",
)

MIGRATED_ENDPOINTS = ("leads", "invoices", "contracts")

ROLLBACK_TIME_ESTIMATE = "15-30 minutes"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _observe(operation: str) -> Iterator[None]:
    started = time.perf_counter()
    status = "error"
    try:
        yield
        status = "success"
    except VersioningError:
        status = "rejected"
        raise
    finally:
        migration_operations_total.labels(operation=operation, status=status).inc()
        migration_operation_duration_seconds.labels(operation=operation).observe(
            time.perf_counter() - started
        )


class MigrationOrchestrator:
    """Plans, executes, validates and rolls back version migrations."""

    def __init__(
        self,
        store: MigrationJobStore,
        analytics: UsageAnalyticsProvider,
        settings: Optional[Settings] = None,
        resolver: Optional[PathResolver] = None,
        validator: Optional[CompatibilityValidator] = None,
    ):
        self._store = store
        self._analytics = analytics
        self._settings = settings or get_settings()
        self._resolver = resolver or get_path_resolver()
        self._executor = ChainExecutor(self._resolver)
        self._validator = validator or CompatibilityValidator()

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def check_path(self, from_version: Any, to_version: Any) -> Tuple[ApiVersion, ApiVersion, List[Migration]]:
        """Validate a version pair and return its migration path.

        Raises ``InvalidVersionError`` or ``UnreachablePathError``.
        """
        supported = [v.value for v in VERSION_REGISTRY.list_versions()]
        source = VERSION_REGISTRY.coerce(from_version)
        if source is None:
            raise InvalidVersionError(from_version, supported)
        target = VERSION_REGISTRY.coerce(to_version)
        if target is None:
            raise InvalidVersionError(to_version, supported)
        if not self._resolver.is_migration_available(source, target):
            raise UnreachablePathError(
                source.value,
                target.value,
                available_paths=[
                    {"to": v, "available": self._resolver.is_migration_available(source, v)}
                    for v in supported
                ],
            )
        return source, target, self._resolver.resolve(source, target)

    # ------------------------------------------------------------------
    # Impact and plan documents
    # ------------------------------------------------------------------

    def _tier(self, affected_requests: int, high: str, medium: str, low: str) -> str:
        if affected_requests > self._settings.IMPACT_HIGH_THRESHOLD:
            return high
        if affected_requests > self._settings.IMPACT_MEDIUM_THRESHOLD:
            return medium
        return low

    def estimate_impact(self, analytics: VersionUsageAnalytics, from_version: ApiVersion) -> Dict[str, Any]:
        affected = analytics.version_breakdown.get(from_version.value, 0)
        return {
            "affected_requests": affected,
            "affected_endpoints": [
                endpoint
                for endpoint, per_version in analytics.endpoint_breakdown.items()
                if per_version.get(from_version.value, 0) > 0
            ],
            "estimated_downtime": self._tier(affected, "2-4 hours", "30-60 minutes", "5-15 minutes"),
            "risk_level": self._tier(affected, "high", "medium", "low"),
        }

    def _estimate_effort(self, step: Migration, affected_requests: int) -> str:
        if step.breaking and affected_requests > self._settings.IMPACT_HIGH_THRESHOLD:
            return "high"
        if step.breaking or affected_requests > self._settings.IMPACT_MEDIUM_THRESHOLD:
            return "medium"
        return "low"

    @staticmethod
    def _required_changes(step: Migration) -> List[str]:
        changes = [step.description]
        if step.breaking:
            changes.extend(
                [
                    "Update client code to handle breaking changes",
                    "Test all affected endpoints",
                    "Update API documentation",
                ]
            )
        return changes

    def _timeline(self, path: Sequence[Migration], affected_requests: int) -> Dict[str, str]:
        complex_path = any(step.breaking for step in path)
        scale = self._tier(affected_requests, "large", "medium", "small")
        if complex_path and scale == "large":
            return {"preparation_phase": "2-4 weeks", "migration_phase": "1-2 weeks", "validation_phase": "1 week"}
        if complex_path or scale == "large":
            return {"preparation_phase": "1-2 weeks", "migration_phase": "3-5 days", "validation_phase": "2-3 days"}
        return {"preparation_phase": "2-3 days", "migration_phase": "1 day", "validation_phase": "1 day"}

    def plan_document(
        self,
        source: ApiVersion,
        target: ApiVersion,
        path: Sequence[Migration],
        analytics: VersionUsageAnalytics,
    ) -> Dict[str, Any]:
        affected = analytics.version_breakdown.get(source.value, 0)
        return {
            "from_version": source.value,
            "to_version": target.value,
            "migration_steps": [
                {
                    "step": index + 1,
                    "description": step.description,
                    "breaking": step.breaking,
                    "estimated_effort": self._estimate_effort(step, affected),
                    "required_changes": self._required_changes(step),
                }
                for index, step in enumerate(path)
            ],
            "timeline": self._timeline(path, affected),
            "rollback_plan": (
                f"If issues occur during migration from {source.value} to {target.value}, "
                f"revert API version headers to {source.value} and restore previous client configurations. "
                "All data transformations are reversible within 24 hours of migration."
            ),
        }

    @staticmethod
    def preparation_checklist(path: Sequence[Migration]) -> List[str]:
        checklist = list(BASE_CHECKLIST)
        if any(step.breaking for step in path):
            checklist.extend(BREAKING_CHECKLIST)
        return checklist

    @staticmethod
    def detailed_rollback_plan() -> Dict[str, Any]:
        return {
            "rollback_triggers": [
                "Critical errors in production",
                "Data integrity issues",
                "Performance degradation > 50%",
                "Client application failures",
            ],
            "rollback_steps": [
                "Stop new API requests temporarily",
                "Revert API version configuration",
                "Restore previous data transformations",
                "Validate system functionality",
                "Resume API traffic",
                "Notify affected clients",
            ],
            "rollback_time_estimate": ROLLBACK_TIME_ESTIMATE,
            "data_recovery": "All data transformations are reversible within 24 hours",
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def plan(
        self,
        tenant_id: str,
        from_version: Any,
        to_version: Any,
        include_rollback_plan: bool = False,
    ) -> Dict[str, Any]:
        with _observe("plan"):
            source, target, path = self.check_path(from_version, to_version)
            analytics = await self._analytics.get_version_usage_analytics(tenant_id)
            response: Dict[str, Any] = {
                "migration_plan": self.plan_document(source, target, path, analytics),
                "estimated_impact": self.estimate_impact(analytics, source),
                "preparation_checklist": self.preparation_checklist(path),
                "testing_recommendations": list(TESTING_RECOMMENDATIONS),
            }
            if include_rollback_plan:
                response["rollback_plan"] = self.detailed_rollback_plan()
            logger.info(
                "migration_planned",
                extra={
                    "tenant_id": tenant_id,
                    "from_version": source.value,
                    "to_version": target.value,
                    "operation": "plan",
                },
            )
            return response

    def _perform(self, source: ApiVersion, target: ApiVersion) -> Dict[str, Any]:
        """Run the chain over one sample record per endpoint.

        Stored records are not rewritten; responses are shaped per request.
        """
        started_at = _now_iso()
        validation_passed = True
        for endpoint in MIGRATED_ENDPOINTS:
            sample = {"id": f"{endpoint}-sample", "name": endpoint, "pagination": {"page": 1, "per_page": 20, "total": 0}}
            migrated = self._executor.apply_chain(sample, source, target)
            if any(migrated.get(name) != sample[name] for name in CORE_FIELDS):
                validation_passed = False
        return {
            "started_at": started_at,
            "completed_at": _now_iso(),
            "success": validation_passed,
            "endpoints_migrated": list(MIGRATED_ENDPOINTS),
            "data_transformed": True,
            "validation_passed": validation_passed,
        }

    async def execute(
        self,
        tenant_id: str,
        from_version: Any,
        to_version: Any,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        with _observe("execute"):
            source, target, path = self.check_path(from_version, to_version)
            analytics = await self._analytics.get_version_usage_analytics(tenant_id)
            job = MigrationJob(
                job_id=new_job_id(),
                tenant_id=tenant_id,
                from_version=source.value,
                to_version=target.value,
                status=MigrationJobStatus.IN_PROGRESS,
                plan=self.plan_document(source, target, path, analytics),
                created_by=user_id,
            )
            job.started_at = job.created_at
            await self._store.insert(job)
            log_extra = {
                "tenant_id": tenant_id,
                "job_id": job.job_id,
                "from_version": source.value,
                "to_version": target.value,
                "operation": "execute",
            }
            logger.info("migration_started", extra={**log_extra, "status": job.status.value})

            try:
                results = self._perform(source, target)
                job = await self._store.update_status(
                    job.job_id,
                    tenant_id,
                    expected=MigrationJobStatus.IN_PROGRESS,
                    status=MigrationJobStatus.COMPLETED,
                    results=results,
                )
            except Exception as exc:
                logger.exception("migration_failed", extra={**log_extra, "status": "failed"})
                await self._mark_failed(job, exc)
                raise

            logger.info("migration_completed", extra={**log_extra, "status": job.status.value})
            return {
                "message": "Migration executed successfully",
                "migration_id": job.job_id,
                "results": job.results,
                "next_steps": list(NEXT_STEPS),
            }

    async def _mark_failed(self, job: MigrationJob, exc: BaseException) -> None:
        try:
            await self._store.update_status(
                job.job_id,
                job.tenant_id,
                expected=MigrationJobStatus.IN_PROGRESS,
                status=MigrationJobStatus.FAILED,
                results={"success": False},
                error=str(exc) or type(exc).__name__,
            )
        except Exception:
            logger.exception(
                "migration_mark_failed_error",
                extra={"tenant_id": job.tenant_id, "job_id": job.job_id},
            )

    def validate(self, from_version: Any, to_version: Any, test_data: Sequence[Any]) -> Dict[str, Any]:
        with _observe("validate"):
            source, target, _ = self.check_path(from_version, to_version)
            samples = list(test_data or [])
            report = self._validator.validate(target, samples)
            tests = run_transformation_tests(samples, source, target, executor=self._executor)
            return {
                "validation_results": report.to_dict(),
                "transformation_tests": [test.to_dict() for test in tests],
                "overall_compatibility": report.compatible and all(t.success for t in tests),
                "recommendations": validation_recommendations(report, tests),
            }

    async def rollback(self, tenant_id: str, job_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        with _observe("rollback"):
            job = await self._store.get(job_id, tenant_id)
            if job.status != MigrationJobStatus.COMPLETED:
                raise InvalidJobStateError(
                    job_id,
                    current=job.status.value,
                    expected=MigrationJobStatus.COMPLETED.value,
                    action="rollback",
                    message="Can only rollback completed migrations",
                )
            executed_at = _now_iso()
            await self._store.update_status(
                job_id,
                tenant_id,
                expected=MigrationJobStatus.COMPLETED,
                status=MigrationJobStatus.ROLLED_BACK,
                results={"rollback_executed_at": executed_at, "rollback_executed_by": user_id},
            )
            logger.info(
                "migration_rolled_back",
                extra={
                    "tenant_id": tenant_id,
                    "job_id": job_id,
                    "operation": "rollback",
                    "status": MigrationJobStatus.ROLLED_BACK.value,
                },
            )
            return {
                "message": "Migration rolled back successfully",
                "migration_id": job_id,
                "rollback_completed_at": executed_at,
            }

    async def overview(self, tenant_id: str) -> Dict[str, Any]:
        """Job history, usage, deprecation notices and available migrations."""
        with _observe("overview"):
            history = await self._store.list_for_tenant(tenant_id)
            analytics = await self._analytics.get_version_usage_analytics(tenant_id)
            return {
                "migration_history": [job.to_dict() for job in history],
                "current_usage": analytics.to_dict(),
                "deprecation_notices": get_deprecation_notices(analytics, self._settings.API_DOCS_BASE_URL),
                "available_migrations": migration_matrix(),
            }


def validation_recommendations(report: CompatibilityReport, tests: Sequence[TransformationTest]) -> List[str]:
    recommendations: List[str] = []
    if not report.compatible:
        recommendations.append("Address compatibility issues before migration")
    failed = [t for t in tests if not t.success]
    if failed:
        recommendations.append(f"Fix {len(failed)} transformation test failures")
    if report.has_severity(IssueSeverity.HIGH):
        recommendations.append("Resolve high-severity issues before proceeding")
    if not recommendations:
        recommendations.append("Validation passed - migration can proceed safely")
    return recommendations


def get_migration_orchestrator() -> MigrationOrchestrator:
    return MigrationOrchestrator(
        store=get_migration_job_store(),
        analytics=get_usage_analytics(),
        settings=get_settings(),
    )
