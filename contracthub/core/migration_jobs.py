"""Migration job records and the job store contract.

A migration job tracks one tenant-initiated version migration:

    pending -> in_progress -> completed | failed
    completed -> rolled_back

Jobs are retained for audit; a rollback marks the job ``rolled_back`` and
never deletes it. Every status change is a single conditional update keyed
by job id and tenant id: the update only applies if the stored status still
equals the caller's expected status.

Backends:
- ``InMemoryMigrationJobStore``: process-local, default.
- ``RedisMigrationJobStore`` (``contracthub.core.migration_jobs_redis``):
  shared across workers, selected with ``MIGRATION_JOB_BACKEND=redis``.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from contracthub.core.versioning.exceptions import InvalidJobStateError, MigrationJobNotFoundError
from contracthub.utils.metrics import migration_jobs_transitions_total

logger = logging.getLogger(__name__)


class MigrationJobStatus(str, Enum):
    """Lifecycle status for a migration job."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


ALLOWED_TRANSITIONS: Mapping[MigrationJobStatus, FrozenSet[MigrationJobStatus]] = {
    MigrationJobStatus.PENDING: frozenset({MigrationJobStatus.IN_PROGRESS, MigrationJobStatus.FAILED}),
    MigrationJobStatus.IN_PROGRESS: frozenset({MigrationJobStatus.COMPLETED, MigrationJobStatus.FAILED}),
    MigrationJobStatus.COMPLETED: frozenset({MigrationJobStatus.ROLLED_BACK}),
    MigrationJobStatus.FAILED: frozenset(),
    MigrationJobStatus.ROLLED_BACK: frozenset(),
}

_TRANSITION_ACTIONS = {
    MigrationJobStatus.IN_PROGRESS: "start",
    MigrationJobStatus.COMPLETED: "complete",
    MigrationJobStatus.FAILED: "fail",
    MigrationJobStatus.ROLLED_BACK: "rollback",
}


def can_transition(current: MigrationJobStatus, target: MigrationJobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition_action(target: MigrationJobStatus) -> str:
    return _TRANSITION_ACTIONS.get(target, target.value)


def _iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def new_job_id() -> str:
    return str(uuid.uuid4())


@dataclass
class MigrationJob:
    job_id: str
    tenant_id: str
    from_version: str
    to_version: str
    status: MigrationJobStatus = MigrationJobStatus.PENDING
    plan: Dict[str, Any] = field(default_factory=dict)
    results: Dict[str, Any] = field(default_factory=dict)
    created_by: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    updated_at: Optional[float] = None
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    error: Optional[str] = None

    def is_finished(self) -> bool:
        return self.status in {
            MigrationJobStatus.COMPLETED,
            MigrationJobStatus.FAILED,
            MigrationJobStatus.ROLLED_BACK,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.job_id,
            "tenant_id": self.tenant_id,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "migration_status": self.status.value,
            "migration_plan": self.plan,
            "migration_results": self.results,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "error": self.error,
        }


class MigrationJobStore(ABC):
    """Persistence contract for migration jobs, scoped by tenant."""

    @abstractmethod
    async def insert(self, job: MigrationJob) -> MigrationJob:
        """Persist a new job."""

    @abstractmethod
    async def get(self, job_id: str, tenant_id: str) -> MigrationJob:
        """Return the tenant's job or raise ``MigrationJobNotFoundError``."""

    @abstractmethod
    async def update_status(
        self,
        job_id: str,
        tenant_id: str,
        *,
        expected: MigrationJobStatus,
        status: MigrationJobStatus,
        results: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> MigrationJob:
        """Move a job from ``expected`` to ``status`` atomically.

        ``results`` is merged into the stored results. Raises
        ``InvalidJobStateError`` when the stored status differs from
        ``expected`` or the transition is not allowed.
        """

    @abstractmethod
    async def list_for_tenant(self, tenant_id: str, limit: int = 100) -> List[MigrationJob]:
        """Tenant's jobs, newest first."""

    def reset(self) -> None:
        """Testing helper; backends without local state ignore it."""


def apply_transition(
    job: MigrationJob,
    *,
    expected: MigrationJobStatus,
    status: MigrationJobStatus,
    results: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
    now: Optional[float] = None,
) -> MigrationJob:
    """Validate and apply a transition to ``job`` in place."""
    if job.status != expected or not can_transition(job.status, status):
        raise InvalidJobStateError(
            job.job_id,
            current=job.status.value,
            expected=expected.value,
            action=transition_action(status),
        )
    now = time.time() if now is None else now
    job.status = status
    job.updated_at = now
    if results:
        job.results = {**job.results, **results}
    if error is not None:
        job.error = error
    if status == MigrationJobStatus.IN_PROGRESS and job.started_at is None:
        job.started_at = now
    if status in {MigrationJobStatus.COMPLETED, MigrationJobStatus.FAILED}:
        job.completed_at = now
    return job


class InMemoryMigrationJobStore(MigrationJobStore):
    """Process-local job store guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: Dict[str, MigrationJob] = {}

    async def insert(self, job: MigrationJob) -> MigrationJob:
        with self._lock:
            if job.job_id in self._jobs:
                raise ValueError(f"Migration job already exists: {job.job_id}")
            self._jobs[job.job_id] = copy.deepcopy(job)
        migration_jobs_transitions_total.labels(to_status=job.status.value).inc()
        return copy.deepcopy(job)

    def _get_locked(self, job_id: str, tenant_id: str) -> MigrationJob:
        job = self._jobs.get(job_id)
        if job is None or job.tenant_id != tenant_id:
            raise MigrationJobNotFoundError(job_id)
        return job

    async def get(self, job_id: str, tenant_id: str) -> MigrationJob:
        with self._lock:
            return copy.deepcopy(self._get_locked(job_id, tenant_id))

    async def update_status(
        self,
        job_id: str,
        tenant_id: str,
        *,
        expected: MigrationJobStatus,
        status: MigrationJobStatus,
        results: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> MigrationJob:
        with self._lock:
            job = self._get_locked(job_id, tenant_id)
            updated = apply_transition(
                copy.deepcopy(job),
                expected=expected,
                status=status,
                results=results,
                error=error,
            )
            self._jobs[job_id] = updated
        migration_jobs_transitions_total.labels(to_status=status.value).inc()
        return copy.deepcopy(updated)

    async def list_for_tenant(self, tenant_id: str, limit: int = 100) -> List[MigrationJob]:
        with self._lock:
            jobs = [j for j in self._jobs.values() if j.tenant_id == tenant_id]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return [copy.deepcopy(j) for j in jobs[: max(0, int(limit))]]

    def reset(self) -> None:
        with self._lock:
            self._jobs.clear()


_JOB_STORE: Optional[MigrationJobStore] = None
_JOB_STORE_LOCK = threading.Lock()


def get_migration_job_store() -> MigrationJobStore:
    """Get the process-wide job store for the configured backend."""
    global _JOB_STORE
    with _JOB_STORE_LOCK:
        if _JOB_STORE is None:
            from contracthub.core.config import get_settings

            backend = get_settings().MIGRATION_JOB_BACKEND.strip().lower()
            if backend == "redis":
                from contracthub.core.migration_jobs_redis import (
                    RedisMigrationJobConfig,
                    RedisMigrationJobStore,
                )

                _JOB_STORE = RedisMigrationJobStore(RedisMigrationJobConfig.from_settings())
            elif backend == "memory":
                _JOB_STORE = InMemoryMigrationJobStore()
            else:
                raise ValueError(f"Unknown MIGRATION_JOB_BACKEND: {backend!r}")
            logger.info("migration_job_store_ready", extra={"operation": backend})
        return _JOB_STORE


def set_migration_job_store(store: Optional[MigrationJobStore]) -> None:
    global _JOB_STORE
    with _JOB_STORE_LOCK:
        _JOB_STORE = store


def reset_migration_job_store() -> None:
    """Reset the job store (testing helper)."""
    global _JOB_STORE
    with _JOB_STORE_LOCK:
        if _JOB_STORE is not None:
            _JOB_STORE.reset()
        _JOB_STORE = None
