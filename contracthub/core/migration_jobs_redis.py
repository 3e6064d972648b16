"""Redis-backed migration job store.

Layout:
  - Job hash: ``{prefix}:job:{job_id}`` (plan/results stored as JSON strings)
  - Tenant index: ``{prefix}:tenant:{tenant_id}:jobs`` sorted set scored by created_at

Jobs are audit records and carry no TTL. Status updates use WATCH/MULTI so a
concurrent writer on the same job makes the loser retry against fresh state.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from contracthub.core.migration_jobs import (
    MigrationJob,
    MigrationJobStatus,
    MigrationJobStore,
    apply_transition,
)
from contracthub.core.versioning.exceptions import JobStoreError, MigrationJobNotFoundError
from contracthub.utils.metrics import migration_jobs_transitions_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedisMigrationJobConfig:
    redis_url: str
    key_prefix: str
    max_watch_retries: int = 5

    @classmethod
    def from_settings(cls) -> "RedisMigrationJobConfig":
        from contracthub.core.config import get_settings

        settings = get_settings()
        key_prefix = settings.MIGRATION_JOB_KEY_PREFIX.strip() or "contracthub:migrations"
        return cls(redis_url=settings.REDIS_URL, key_prefix=key_prefix)


def _job_key(cfg: RedisMigrationJobConfig, job_id: str) -> str:
    return f"{cfg.key_prefix}:job:{job_id}"


def _tenant_jobs_key(cfg: RedisMigrationJobConfig, tenant_id: str) -> str:
    tenant_id = str(tenant_id or "").strip()
    if not tenant_id:
        raise ValueError("tenant_id is empty")
    return f"{cfg.key_prefix}:tenant:{tenant_id}:jobs"


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _hgetall_str(data: Dict[Any, Any]) -> Dict[str, str]:
    return {_to_str(k): _to_str(v) for k, v in data.items()}


def _maybe_float(value: Any) -> Optional[float]:
    s = _to_str(value).strip()
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _load_json(value: str) -> Dict[str, Any]:
    if not value:
        return {}
    try:
        loaded = json.loads(value)
    except ValueError:
        logger.warning("migration_job_json_corrupt")
        return {}
    return loaded if isinstance(loaded, dict) else {}


def job_to_mapping(job: MigrationJob) -> Dict[str, str]:
    return {
        "job_id": job.job_id,
        "tenant_id": job.tenant_id,
        "from_version": job.from_version,
        "to_version": job.to_version,
        "status": job.status.value,
        "plan": json.dumps(job.plan, default=str),
        "results": json.dumps(job.results, default=str),
        "created_by": job.created_by or "",
        "created_at": str(job.created_at),
        "updated_at": _to_str(job.updated_at),
        "started_at": _to_str(job.started_at),
        "completed_at": _to_str(job.completed_at),
        "error": job.error or "",
    }


def job_from_mapping(data: Dict[str, str]) -> MigrationJob:
    status_raw = data.get("status") or MigrationJobStatus.PENDING.value
    try:
        status = MigrationJobStatus(status_raw)
    except ValueError:
        status = MigrationJobStatus.PENDING
    return MigrationJob(
        job_id=data.get("job_id", ""),
        tenant_id=data.get("tenant_id", ""),
        from_version=data.get("from_version", ""),
        to_version=data.get("to_version", ""),
        status=status,
        plan=_load_json(data.get("plan", "")),
        results=_load_json(data.get("results", "")),
        created_by=data.get("created_by") or None,
        created_at=_maybe_float(data.get("created_at")) or time.time(),
        updated_at=_maybe_float(data.get("updated_at")),
        started_at=_maybe_float(data.get("started_at")),
        completed_at=_maybe_float(data.get("completed_at")),
        error=data.get("error") or None,
    )


class RedisMigrationJobStore(MigrationJobStore):
    """Job store shared across API workers through Redis."""

    def __init__(self, cfg: RedisMigrationJobConfig, client: Optional[Any] = None):
        self._cfg = cfg
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = redis.from_url(self._cfg.redis_url, decode_responses=True)
        return self._client

    async def insert(self, job: MigrationJob) -> MigrationJob:
        client = self._get_client()
        job_key = _job_key(self._cfg, job.job_id)
        tenant_key = _tenant_jobs_key(self._cfg, job.tenant_id)
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.hset(job_key, mapping=job_to_mapping(job))
                pipe.zadd(tenant_key, {job.job_id: float(job.created_at)})
                await pipe.execute()
        except RedisError as exc:
            logger.exception("migration_job_insert_failed", extra={"job_id": job.job_id})
            raise JobStoreError("Failed to create migration record") from exc
        migration_jobs_transitions_total.labels(to_status=job.status.value).inc()
        return job

    async def get(self, job_id: str, tenant_id: str) -> MigrationJob:
        client = self._get_client()
        try:
            raw = await client.hgetall(_job_key(self._cfg, job_id))
        except RedisError as exc:
            logger.exception("migration_job_read_failed", extra={"job_id": job_id})
            raise JobStoreError("Failed to read migration record", migration_id=job_id) from exc
        if not raw:
            raise MigrationJobNotFoundError(job_id)
        data = _hgetall_str(raw)
        if data.get("tenant_id") != tenant_id:
            raise MigrationJobNotFoundError(job_id)
        return job_from_mapping(data)

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
        client = self._get_client()
        job_key = _job_key(self._cfg, job_id)
        try:
            for _ in range(max(1, self._cfg.max_watch_retries)):
                async with client.pipeline(transaction=True) as pipe:
                    try:
                        await pipe.watch(job_key)
                        raw = await pipe.hgetall(job_key)
                        if not raw:
                            raise MigrationJobNotFoundError(job_id)
                        data = _hgetall_str(raw)
                        if data.get("tenant_id") != tenant_id:
                            raise MigrationJobNotFoundError(job_id)
                        job = apply_transition(
                            job_from_mapping(data),
                            expected=expected,
                            status=status,
                            results=results,
                            error=error,
                        )
                        pipe.multi()
                        pipe.hset(job_key, mapping=job_to_mapping(job))
                        await pipe.execute()
                    except WatchError:
                        logger.debug("migration_job_watch_conflict", extra={"job_id": job_id})
                        continue
                migration_jobs_transitions_total.labels(to_status=status.value).inc()
                return job
        except RedisError as exc:
            logger.exception("migration_job_update_failed", extra={"job_id": job_id})
            raise JobStoreError("Failed to update migration status", migration_id=job_id) from exc
        raise JobStoreError("Migration record is being modified concurrently", migration_id=job_id)

    async def list_for_tenant(self, tenant_id: str, limit: int = 100) -> List[MigrationJob]:
        client = self._get_client()
        limit = max(0, int(limit))
        if limit == 0:
            return []
        jobs: List[MigrationJob] = []
        try:
            job_ids = await client.zrevrange(_tenant_jobs_key(self._cfg, tenant_id), 0, limit - 1)
            for raw_id in job_ids:
                job_id = _to_str(raw_id)
                raw = await client.hgetall(_job_key(self._cfg, job_id))
                if not raw:
                    continue
                data = _hgetall_str(raw)
                if data.get("tenant_id") != tenant_id:
                    continue
                jobs.append(job_from_mapping(data))
        except RedisError as exc:
            logger.exception("migration_job_list_failed", extra={"tenant_id": tenant_id})
            raise JobStoreError("Failed to get migration history") from exc
        return jobs
