"""
Context router.

Exposes the security view of the current request so clients and operators
can see which tenant, user and roles a request resolved to.
"""

from fastapi import APIRouter, Depends

from models.identity import Identity
from models.security_context import TenantSecurityContext
from utils.tenant_guard import require_tenant_context

router = APIRouter(prefix="/context", tags=["context"])


@router.get("/me")
async def get_current_context(identity: Identity = Depends(require_tenant_context)):
    security = TenantSecurityContext.current()
    body = security.to_dict()
    body["is_admin"] = security.is_admin()
    body["is_agent"] = security.is_agent()
    return body


@router.get("/access/{target_tenant_id}")
async def check_tenant_access(
    target_tenant_id: str,
    identity: Identity = Depends(require_tenant_context),
):
    """Report whether the caller may act on the given tenant."""
    security = TenantSecurityContext.current()
    return {
        "target_tenant_id": target_tenant_id,
        "allowed": security.can_access_tenant(target_tenant_id),
    }
