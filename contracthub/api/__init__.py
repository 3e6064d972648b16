"""API router aggregation."""
from fastapi import APIRouter

from contracthub.api import migrate, resources, version

api_router = APIRouter()

api_router.include_router(version.router, prefix="/version", tags=["version"])
api_router.include_router(migrate.router, prefix="/version", tags=["migration"])
api_router.include_router(resources.router, tags=["resources"])
