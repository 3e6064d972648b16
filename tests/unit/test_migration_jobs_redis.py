"""Tests for the Redis-backed migration job store using an in-process fake client."""

from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from contracthub.core.migration_jobs import MigrationJob, MigrationJobStatus
from contracthub.core.migration_jobs_redis import (
    RedisMigrationJobConfig,
    RedisMigrationJobStore,
    job_from_mapping,
    job_to_mapping,
)
from contracthub.core.versioning.exceptions import (
    InvalidJobStateError,
    JobStoreError,
    MigrationJobNotFoundError,
)


class FakePipeline:
    def __init__(self, client):
        self._client = client
        self._queued = []
        self.watched = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._queued = []
        return False

    async def watch(self, *keys):
        self.watched.extend(keys)

    async def hgetall(self, key):
        return dict(self._client.hashes.get(key, {}))

    def multi(self):
        self._queued = []

    def hset(self, key, mapping):
        self._queued.append(("hset", key, mapping))
        return self

    def zadd(self, key, members):
        self._queued.append(("zadd", key, members))
        return self

    async def execute(self):
        if self._client.fail_with is not None:
            raise self._client.fail_with
        if self._client.conflicts > 0:
            self._client.conflicts -= 1
            raise WatchError("watched key changed")
        for op, key, payload in self._queued:
            if op == "hset":
                self._client.hashes.setdefault(key, {}).update(payload)
            else:
                self._client.zsets.setdefault(key, {}).update(payload)
        self._client.executed += 1
        return [True] * len(self._queued)


class FakeRedis:
    def __init__(self):
        self.hashes = {}
        self.zsets = {}
        self.conflicts = 0
        self.fail_with = None
        self.executed = 0

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def hgetall(self, key):
        if self.fail_with is not None:
            raise self.fail_with
        return dict(self.hashes.get(key, {}))

    async def zrevrange(self, key, start, end):
        members = sorted(self.zsets.get(key, {}).items(), key=lambda item: item[1], reverse=True)
        return [member for member, _ in members][start : end + 1]


CFG = RedisMigrationJobConfig(redis_url="redis://unused", key_prefix="test:migrations", max_watch_retries=3)


def _store():
    fake = FakeRedis()
    return RedisMigrationJobStore(CFG, client=fake), fake


def _job(job_id="job-1", tenant_id="tenant_1", created_at=1000.0):
    return MigrationJob(
        job_id=job_id,
        tenant_id=tenant_id,
        from_version="1.0",
        to_version="1.1",
        status=MigrationJobStatus.IN_PROGRESS,
        plan={"steps": 1},
        created_by="user_1",
        created_at=created_at,
    )


class TestMappingCodec:
    """Tests for the hash field encoding."""

    def test_decodes_bytes_and_blanks(self):
        from contracthub.core.migration_jobs_redis import _hgetall_str

        data = _hgetall_str({b"job_id": b"j", b"status": b"completed", b"results": b'{"ok": true}', b"error": b""})
        job = job_from_mapping(data)

        assert job.job_id == "j"
        assert job.status == MigrationJobStatus.COMPLETED
        assert job.results == {"ok": True}
        assert job.error is None

    def test_corrupt_values_fall_back(self):
        job = job_from_mapping({"job_id": "j", "status": "exploded", "plan": "{not json", "started_at": "soon"})

        assert job.status == MigrationJobStatus.PENDING
        assert job.plan == {}
        assert job.started_at is None

    def test_encodes_all_fields_as_strings(self):
        mapping = job_to_mapping(_job())

        assert all(isinstance(v, str) for v in mapping.values())
        assert mapping["completed_at"] == ""


class TestRedisMigrationJobStore:
    """Tests for RedisMigrationJobStore."""

    @pytest.mark.asyncio
    async def test_insert_writes_hash_and_tenant_index(self):
        store, fake = _store()
        await store.insert(_job())

        assert fake.hashes["test:migrations:job:job-1"]["status"] == "in_progress"
        assert fake.zsets["test:migrations:tenant:tenant_1:jobs"] == {"job-1": 1000.0}

    @pytest.mark.asyncio
    async def test_get_scoped_to_tenant(self):
        store, _ = _store()
        await store.insert(_job())

        job = await store.get("job-1", "tenant_1")
        assert job.plan == {"steps": 1}
        with pytest.raises(MigrationJobNotFoundError):
            await store.get("job-1", "tenant_2")
        with pytest.raises(MigrationJobNotFoundError):
            await store.get("missing", "tenant_1")

    @pytest.mark.asyncio
    async def test_update_status_conditional(self):
        store, _ = _store()
        await store.insert(_job())

        done = await store.update_status(
            "job-1",
            "tenant_1",
            expected=MigrationJobStatus.IN_PROGRESS,
            status=MigrationJobStatus.COMPLETED,
            results={"migrated_endpoints": 2},
        )
        assert done.status == MigrationJobStatus.COMPLETED
        assert (await store.get("job-1", "tenant_1")).results == {"migrated_endpoints": 2}

        await store.update_status(
            "job-1", "tenant_1", expected=MigrationJobStatus.COMPLETED, status=MigrationJobStatus.ROLLED_BACK
        )
        with pytest.raises(InvalidJobStateError):
            await store.update_status(
                "job-1", "tenant_1", expected=MigrationJobStatus.COMPLETED, status=MigrationJobStatus.ROLLED_BACK
            )

    @pytest.mark.asyncio
    async def test_watch_conflict_retries(self):
        store, fake = _store()
        await store.insert(_job())
        fake.conflicts = 2

        job = await store.update_status(
            "job-1", "tenant_1", expected=MigrationJobStatus.IN_PROGRESS, status=MigrationJobStatus.FAILED, error="x"
        )

        assert job.status == MigrationJobStatus.FAILED
        assert fake.hashes["test:migrations:job:job-1"]["error"] == "x"

    @pytest.mark.asyncio
    async def test_persistent_conflict_gives_up(self):
        store, fake = _store()
        await store.insert(_job())
        fake.conflicts = 10

        with pytest.raises(JobStoreError):
            await store.update_status(
                "job-1", "tenant_1", expected=MigrationJobStatus.IN_PROGRESS, status=MigrationJobStatus.COMPLETED
            )
        assert fake.hashes["test:migrations:job:job-1"]["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_redis_errors_become_store_errors(self):
        store, fake = _store()
        fake.fail_with = RedisConnectionError("down")

        with pytest.raises(JobStoreError) as insert_error:
            await store.insert(_job())
        with pytest.raises(JobStoreError) as read_error:
            await store.get("job-1", "tenant_1")

        assert insert_error.value.message == "Failed to create migration record"
        assert insert_error.value.context == {}
        assert read_error.value.message == "Failed to read migration record"
        assert "down" not in str(insert_error.value)
        assert "down" not in str(read_error.value)

    @pytest.mark.asyncio
    async def test_list_newest_first(self):
        store, _ = _store()
        await store.insert(_job("a", created_at=1.0))
        await store.insert(_job("b", created_at=3.0))
        await store.insert(_job("c", created_at=2.0))

        jobs = await store.list_for_tenant("tenant_1", limit=2)

        assert [j.job_id for j in jobs] == ["b", "c"]
        assert await store.list_for_tenant("tenant_1", limit=0) == []

    def test_config_from_settings(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
        monkeypatch.setenv("MIGRATION_JOB_KEY_PREFIX", "  ")

        cfg = RedisMigrationJobConfig.from_settings()

        assert cfg.redis_url == "redis://cache:6379/2"
        assert cfg.key_prefix == "contracthub:migrations"


class TestStoreFailuresOverHttp:
    """Store outages surface as a generic failure without internal details."""

    def test_execute_hides_redis_error_text(self, client, tenant_headers):
        from contracthub.core.migration_jobs import set_migration_job_store

        store, fake = _store()
        fake.fail_with = RedisConnectionError("Error 111 connecting to 10.0.0.5:6379. Connection refused.")
        set_migration_job_store(store)

        response = client.post(
            "/api/version/migrate",
            headers=tenant_headers,
            json={"from_version": "1.0", "to_version": "1.1", "migration_type": "execute"},
        )

        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["code"] == "SERVICE_UNAVAILABLE"
        assert detail["message"] == "Failed to create migration record"
        assert "context" not in detail
        assert "10.0.0.5" not in response.text
        assert "Error 111" not in response.text

    def test_status_hides_redis_error_text(self, client, tenant_headers):
        from contracthub.core.migration_jobs import set_migration_job_store

        class FailingListRedis(FakeRedis):
            async def zrevrange(self, key, start, end):
                raise RedisConnectionError("Error 111 connecting to 10.0.0.5:6379.")

        set_migration_job_store(RedisMigrationJobStore(CFG, client=FailingListRedis()))

        response = client.get("/api/version/migrate", headers=tenant_headers)

        assert response.status_code == 503
        assert response.json()["detail"]["message"] == "Failed to get migration history"
        assert "10.0.0.5" not in response.text
