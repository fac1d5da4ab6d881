"""
Tenant Security Context

Read-only view combining the bound identity with the ambient authentication
state. It is recomputed from the context store on every current() call and
must not be cached across requests, since the store can be cleared or
repopulated at any time.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from utils import tenant_context

ADMIN_ROLE = "ADMIN"
AGENT_ROLE = "AGENT"


@dataclass(frozen=True)
class TenantSecurityContext:
    """
    Snapshot of who is acting and for which tenant.

    Attributes:
        tenant_id: Bound tenant, or None when the context is unset
        user_id: Acting user, or None
        roles: Role names; empty when unset
        email: Optional e-mail of the acting user
        authenticated: Whether the identity came from verified credentials
    """
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    roles: Tuple[str, ...] = field(default_factory=tuple)
    email: Optional[str] = None
    authenticated: bool = False

    @classmethod
    def current(cls) -> "TenantSecurityContext":
        """Build a fresh snapshot from the context store."""
        return cls(
            tenant_id=tenant_context.get_tenant_id(),
            user_id=tenant_context.get_user_id(),
            roles=tenant_context.get_roles(),
            email=tenant_context.get_email(),
            authenticated=tenant_context.is_authenticated(),
        )

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)

    def has_all_roles(self, *roles: str) -> bool:
        if not self.roles:
            return False
        return all(role in self.roles for role in roles)

    def is_valid(self) -> bool:
        """True for a fully resolved, authenticated context."""
        return (
            self.tenant_id is not None
            and self.user_id is not None
            and self.authenticated
        )

    def is_admin(self) -> bool:
        return self.has_role(ADMIN_ROLE)

    def is_agent(self) -> bool:
        return self.has_any_role(ADMIN_ROLE, AGENT_ROLE)

    def can_access_tenant(self, target_tenant_id: Optional[str]) -> bool:
        """Single authorization primitive for tenant-boundary checks."""
        return self.tenant_id is not None and self.tenant_id == target_tenant_id

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "roles": list(self.roles),
            "email": self.email,
            "authenticated": self.authenticated,
            "valid": self.is_valid(),
        }
