"""Request dependencies: API key and caller identity."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from contracthub.core.config import get_settings
from contracthub.core.errors_extended import ErrorCode, build_error


@dataclass(frozen=True)
class CallerContext:
    tenant_id: str
    user_id: Optional[str] = None


async def get_api_key(x_api_key: str = Header(default="test", alias="X-API-Key")) -> str:
    if not x_api_key:
        raise HTTPException(
            status_code=401,
            detail=build_error(
                ErrorCode.AUTH_FAILED,
                stage="auth",
                message="Missing API Key",
                hint="Provide X-API-Key header",
            ),
        )
    return x_api_key


async def get_caller_context(request: Request, api_key: str = Depends(get_api_key)) -> CallerContext:
    """Resolve tenant and user from the configured identity headers."""
    settings = get_settings()
    tenant_id = (request.headers.get(settings.TENANT_HEADER) or "").strip()
    if not tenant_id:
        raise HTTPException(
            status_code=401,
            detail=build_error(
                ErrorCode.UNAUTHORIZED,
                stage="auth",
                message="Missing tenant context",
                hint=f"Provide {settings.TENANT_HEADER} header",
            ),
        )
    user_id = (request.headers.get(settings.USER_HEADER) or "").strip() or None
    return CallerContext(tenant_id=tenant_id, user_id=user_id)
