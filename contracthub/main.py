"""
ContractHub API - version compatibility service entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from prometheus_client import make_asgi_app
import uvicorn

from contracthub.api import api_router
from contracthub.core.config import get_settings
from contracthub.core.migration_jobs import get_migration_job_store
from contracthub.core.versioning.version import VERSION_REGISTRY
from contracthub.utils.logging import setup_logging

settings = get_settings()

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle."""
    logger.info("Starting ContractHub API...")
    get_migration_job_store()
    logger.info(
        "Version registry loaded",
        extra={"from_version": VERSION_REGISTRY.default.value, "to_version": VERSION_REGISTRY.latest.value},
    )
    yield
    logger.info("Shutting down ContractHub API...")


app = FastAPI(
    title="ContractHub API",
    description="API version compatibility and migration service",
    version="2.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-API-Version", "X-Supported-Versions", "X-Latest-Version", "Warning", "Sunset"],
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

app.include_router(api_router, prefix="/api")

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/")
async def root():
    return {
        "name": "ContractHub API",
        "supported_versions": [v.value for v in VERSION_REGISTRY.list_versions()],
        "latest_version": VERSION_REGISTRY.latest.value,
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "job_backend": settings.MIGRATION_JOB_BACKEND,
        "versions": {
            "default": VERSION_REGISTRY.default.value,
            "latest": VERSION_REGISTRY.latest.value,
        },
    }


if __name__ == "__main__":
    uvicorn.run(
        "contracthub.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
