"""
Tenant Guards

Explicit checks applied at the boundary layer:
- require_tenant_context: FastAPI dependency returning the bound Identity
- require_roles: FastAPI dependency factory enforcing role membership
- tenant_aware: decorator for plain sync/async callables (services, jobs)
"""

import inspect
import functools
import logging
from typing import Awaitable, Callable

from fastapi import HTTPException

from models.identity import Identity
from models.security_context import TenantSecurityContext
from utils import tenant_context
from utils.tenant_context import TenantContextRequiredError

logger = logging.getLogger(__name__)


class TenantAccessDeniedError(Exception):
    """
    Raised when the acting user lacks the roles an operation needs.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging/metrics
    """
    def __init__(self, message: str, code: str = "TENANT_ACCESS_DENIED"):
        self.message = message
        self.code = code
        super().__init__(message)

    @classmethod
    def for_tenant(cls, tenant_id: str) -> "TenantAccessDeniedError":
        return cls(f"Access denied for tenant: {tenant_id}")


async def require_tenant_context() -> Identity:
    """
    FastAPI dependency returning the bound identity.

    Raises:
        HTTPException: 400 when no tenant is bound
    """
    identity = tenant_context.get_identity()
    if identity is None:
        logger.warning("Tenant context required but not set")
        raise HTTPException(status_code=400, detail="Tenant context is required")
    return identity


def require_roles(*roles: str) -> Callable[[], Awaitable[TenantSecurityContext]]:
    """
    Build a dependency that admits callers holding any of the given roles.

    Usage:
        @router.delete("/{id}", dependencies=[Depends(require_roles("ADMIN"))])

    Raises (from the dependency):
        TenantAccessDeniedError: When none of the roles is held
    """
    async def dependency() -> TenantSecurityContext:
        security = TenantSecurityContext.current()
        if security.tenant_id is None:
            raise HTTPException(status_code=400, detail="Tenant context is required")
        if not security.has_any_role(*roles):
            logger.warning(
                f"Role check failed: tenant_id={security.tenant_id}, "
                f"user_id={security.user_id}, required_any={list(roles)}"
            )
            raise TenantAccessDeniedError.for_tenant(security.tenant_id)
        return security

    return dependency


def tenant_aware(enforce: bool = True, message: str = "Tenant context is required"):
    """
    Decorator asserting that a tenant is bound before the function body runs.

    Works for both regular and coroutine functions. With enforce=False the
    check is skipped, which lets a call path be marked tenant-aware without
    rejecting tenant-agnostic callers.

    Raises (from the wrapped function):
        TenantContextRequiredError: When enforce is set and no tenant is bound
    """
    def decorator(func):
        def check() -> None:
            if enforce and not tenant_context.is_set():
                logger.warning(f"{func.__qualname__} called without tenant context")
                raise TenantContextRequiredError(message)

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                check()
                return await func(*args, **kwargs)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            check()
            return func(*args, **kwargs)
        return wrapper

    return decorator
