"""Tests for migration planning, execution, validation and rollback."""

from __future__ import annotations

import asyncio

import pytest

from contracthub.core.config import Settings
from contracthub.core.migration_jobs import InMemoryMigrationJobStore, MigrationJobStatus
from contracthub.core.migration_orchestrator import (
    BASE_CHECKLIST,
    BREAKING_CHECKLIST,
    TESTING_RECOMMENDATIONS,
    MigrationOrchestrator,
)
from contracthub.core.usage_analytics import InMemoryUsageAnalytics
from contracthub.core.versioning.exceptions import (
    InvalidJobStateError,
    InvalidVersionError,
    MigrationJobNotFoundError,
    UnreachablePathError,
)


def _orchestrator(orchestrator_cls=MigrationOrchestrator):
    store = InMemoryMigrationJobStore()
    analytics = InMemoryUsageAnalytics()
    return orchestrator_cls(store=store, analytics=analytics, settings=Settings()), store, analytics


class TestCheckPath:
    """Tests for version pair validation."""

    def test_valid_pair(self):
        orchestrator, _, _ = _orchestrator()

        source, target, path = orchestrator.check_path("1.0", "2.0")

        assert (source.value, target.value, len(path)) == ("1.0", "2.0", 2)

    @pytest.mark.parametrize("pair", [("0.9", "2.0"), ("1.0", "v2"), (None, "2.0")])
    def test_invalid_versions(self, pair):
        orchestrator, _, _ = _orchestrator()

        with pytest.raises(InvalidVersionError):
            orchestrator.check_path(*pair)

    @pytest.mark.parametrize("pair", [("2.0", "1.0"), ("1.1", "1.1")])
    def test_unreachable(self, pair):
        orchestrator, _, _ = _orchestrator()

        with pytest.raises(UnreachablePathError) as exc_info:
            orchestrator.check_path(*pair)

        error = exc_info.value.to_error("migration_plan")
        assert error["code"] == "UNREACHABLE_PATH"
        assert "available_paths" in error["context"]


class TestPlan:
    """Tests for MigrationOrchestrator.plan."""

    @pytest.mark.asyncio
    async def test_non_breaking_plan(self):
        orchestrator, _, _ = _orchestrator()

        result = await orchestrator.plan("tenant_1", "1.0", "1.1")

        assert result["preparation_checklist"] == list(BASE_CHECKLIST)
        assert result["testing_recommendations"] == list(TESTING_RECOMMENDATIONS)
        assert len(result["migration_plan"]["migration_steps"]) == 1
        assert result["migration_plan"]["timeline"]["migration_phase"] == "1 day"
        assert "rollback_plan" not in result

    @pytest.mark.asyncio
    async def test_breaking_plan_adds_checklist(self):
        orchestrator, _, _ = _orchestrator()

        result = await orchestrator.plan("tenant_1", "1.0", "2.0", include_rollback_plan=True)

        assert result["preparation_checklist"] == list(BASE_CHECKLIST) + list(BREAKING_CHECKLIST)
        steps = result["migration_plan"]["migration_steps"]
        assert [s["step"] for s in steps] == [1, 2]
        assert steps[1]["breaking"] is True
        assert steps[1]["estimated_effort"] == "medium"
        assert "Update client code to handle breaking changes" in steps[1]["required_changes"]
        assert result["rollback_plan"]["rollback_time_estimate"] == "15-30 minutes"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "requests,risk,downtime",
        [(0, "low", "5-15 minutes"), (100, "low", "5-15 minutes"), (101, "medium", "30-60 minutes"), (1001, "high", "2-4 hours")],
    )
    async def test_impact_tiers(self, requests, risk, downtime):
        orchestrator, _, analytics = _orchestrator()
        if requests:
            await analytics.track_version_usage("tenant_1", "1.0", "/contacts", requests)

        impact = (await orchestrator.plan("tenant_1", "1.0", "2.0"))["estimated_impact"]

        assert impact["affected_requests"] == requests
        assert impact["risk_level"] == risk
        assert impact["estimated_downtime"] == downtime
        assert impact["affected_endpoints"] == (["/contacts"] if requests else [])

    @pytest.mark.asyncio
    async def test_large_breaking_migration_timeline(self):
        orchestrator, _, analytics = _orchestrator()
        await analytics.track_version_usage("tenant_1", "1.0", "/contacts", 5000)

        plan = (await orchestrator.plan("tenant_1", "1.0", "2.0"))["migration_plan"]

        assert plan["timeline"]["preparation_phase"] == "2-4 weeks"
        assert plan["migration_steps"][1]["estimated_effort"] == "high"

    @pytest.mark.asyncio
    async def test_plan_creates_no_job(self):
        orchestrator, store, _ = _orchestrator()

        await orchestrator.plan("tenant_1", "1.0", "2.0")

        assert await store.list_for_tenant("tenant_1") == []


class TestExecuteAndRollback:
    """Tests for execution and rollback."""

    @pytest.mark.asyncio
    async def test_execute_completes_job(self):
        orchestrator, store, _ = _orchestrator()

        result = await orchestrator.execute("tenant_1", "1.0", "1.1", user_id="user_1")

        assert result["message"] == "Migration executed successfully"
        job = await store.get(result["migration_id"], "tenant_1")
        assert job.status == MigrationJobStatus.COMPLETED
        assert job.created_by == "user_1"
        assert job.results["validation_passed"] is True
        assert job.results["endpoints_migrated"] == ["leads", "invoices", "contracts"]
        assert job.plan["to_version"] == "1.1"

    @pytest.mark.asyncio
    async def test_rejected_pair_creates_no_job(self):
        orchestrator, store, _ = _orchestrator()

        with pytest.raises(UnreachablePathError):
            await orchestrator.execute("tenant_1", "2.0", "1.0")

        assert await store.list_for_tenant("tenant_1") == []

    @pytest.mark.asyncio
    async def test_failure_marks_job_failed(self):
        class BrokenOrchestrator(MigrationOrchestrator):
            def _perform(self, source, target):
                raise RuntimeError("transform exploded")

        orchestrator, store, _ = _orchestrator(BrokenOrchestrator)

        with pytest.raises(RuntimeError):
            await orchestrator.execute("tenant_1", "1.0", "2.0")

        jobs = await store.list_for_tenant("tenant_1")
        assert len(jobs) == 1
        assert jobs[0].status == MigrationJobStatus.FAILED
        assert jobs[0].error == "transform exploded"

    @pytest.mark.asyncio
    async def test_rollback_once_then_rejected(self):
        orchestrator, store, _ = _orchestrator()
        migration_id = (await orchestrator.execute("tenant_1", "1.0", "2.0"))["migration_id"]

        result = await orchestrator.rollback("tenant_1", migration_id, user_id="user_2")

        assert result["message"] == "Migration rolled back successfully"
        job = await store.get(migration_id, "tenant_1")
        assert job.status == MigrationJobStatus.ROLLED_BACK
        assert job.results["rollback_executed_by"] == "user_2"

        with pytest.raises(InvalidJobStateError) as exc_info:
            await orchestrator.rollback("tenant_1", migration_id)
        assert exc_info.value.message == "Can only rollback completed migrations"

    @pytest.mark.asyncio
    async def test_concurrent_rollbacks_one_wins(self):
        class YieldingStore(InMemoryMigrationJobStore):
            async def get(self, job_id, tenant_id):
                job = await super().get(job_id, tenant_id)
                await asyncio.sleep(0)
                return job

        store = YieldingStore()
        orchestrator = MigrationOrchestrator(store=store, analytics=InMemoryUsageAnalytics(), settings=Settings())
        migration_id = (await orchestrator.execute("tenant_1", "1.0", "2.0"))["migration_id"]

        outcomes = await asyncio.gather(
            orchestrator.rollback("tenant_1", migration_id, user_id="user_a"),
            orchestrator.rollback("tenant_1", migration_id, user_id="user_b"),
            return_exceptions=True,
        )

        succeeded = [o for o in outcomes if isinstance(o, dict)]
        rejected = [o for o in outcomes if isinstance(o, InvalidJobStateError)]
        assert len(succeeded) == 1
        assert len(rejected) == 1
        job = await store.get(migration_id, "tenant_1")
        assert job.status == MigrationJobStatus.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_rollback_other_tenant_not_found(self):
        orchestrator, _, _ = _orchestrator()
        migration_id = (await orchestrator.execute("tenant_1", "1.0", "1.1"))["migration_id"]

        with pytest.raises(MigrationJobNotFoundError):
            await orchestrator.rollback("tenant_2", migration_id)


class TestValidate:
    """Tests for MigrationOrchestrator.validate."""

    def test_clean_samples(self):
        orchestrator, _, _ = _orchestrator()

        result = orchestrator.validate("1.0", "2.0", [{"id": "1", "name": "a"}])

        assert result["overall_compatibility"] is True
        assert result["recommendations"] == ["Validation passed - migration can proceed safely"]
        assert result["transformation_tests"][0]["success"] is True

    def test_high_issue_blocks(self):
        orchestrator, _, _ = _orchestrator()

        result = orchestrator.validate("1.0", "1.1", [{"name": "missing id"}])

        assert result["overall_compatibility"] is False
        assert "Address compatibility issues before migration" in result["recommendations"]
        assert "Resolve high-severity issues before proceeding" in result["recommendations"]

    def test_empty_samples(self):
        orchestrator, _, _ = _orchestrator()

        result = orchestrator.validate("1.0", "1.1", None)

        assert result["overall_compatibility"] is True
        assert result["transformation_tests"] == []


class TestOverview:
    """Tests for MigrationOrchestrator.overview."""

    @pytest.mark.asyncio
    async def test_overview(self):
        orchestrator, _, analytics = _orchestrator()
        await analytics.track_version_usage("tenant_1", "1.0", "/contacts", 3)
        await orchestrator.execute("tenant_1", "1.0", "1.1")

        overview = await orchestrator.overview("tenant_1")

        assert len(overview["migration_history"]) == 1
        assert overview["migration_history"][0]["migration_status"] == "completed"
        assert overview["current_usage"]["total_requests"] == 3
        assert overview["deprecation_notices"][0]["version"] == "1.0"
        assert {(m["from"], m["to"]) for m in overview["available_migrations"]} == {
            ("1.0", "1.1"),
            ("1.0", "2.0"),
            ("1.1", "2.0"),
        }
