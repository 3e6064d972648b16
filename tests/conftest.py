import pytest


@pytest.fixture(autouse=True)
def config_cache_isolation():
    """Reset config settings cache between tests."""
    import contracthub.core.config as cfg

    backup_cache = cfg._settings_cache
    cfg._settings_cache = None
    yield
    cfg._settings_cache = backup_cache


@pytest.fixture(autouse=True)
def migration_job_store_isolation():
    """Fresh process-wide migration job store per test."""
    from contracthub.core.migration_jobs import reset_migration_job_store

    reset_migration_job_store()
    yield
    reset_migration_job_store()


@pytest.fixture(autouse=True)
def usage_analytics_isolation():
    """Fresh usage analytics provider per test."""
    from contracthub.core.usage_analytics import reset_usage_analytics

    reset_usage_analytics()
    yield
    reset_usage_analytics()


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from contracthub.main import app

    return TestClient(app)


@pytest.fixture
def tenant_headers():
    return {"X-API-Key": "test", "x-tenant-id": "tenant_1", "x-user-id": "user_1"}
