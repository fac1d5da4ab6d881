"""
Health router.

Served from an excluded path: tenant resolution never runs here, so the
endpoint answers without any credentials.
"""

from fastapi import APIRouter

from middleware.jwt_auth import is_jwt_auth_configured
from utils import tenant_context

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "jwt_auth_configured": is_jwt_auth_configured(),
        "tenant_context_set": tenant_context.is_set(),
    }
