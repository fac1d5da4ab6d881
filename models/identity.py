"""
Identity Data Model

This module defines the Identity dataclass holding the resolved
(tenant_id, user_id, roles) triple for one inbound request.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple, Union

RolesInput = Union[str, Iterable[str], None]


def parse_roles(roles: RolesInput) -> Tuple[str, ...]:
    """
    Normalize a roles value into an ordered tuple of unique role names.

    Accepts a comma-separated string ("ADMIN,AGENT") or any iterable of
    strings. Whitespace is stripped, empty entries are dropped and the
    first occurrence of a duplicate wins.

    Args:
        roles: CSV string, iterable of strings, or None

    Returns:
        Tuple of role names (empty when roles is None or blank)
    """
    if roles is None:
        return ()

    if isinstance(roles, str):
        candidates = roles.split(",")
    else:
        candidates = roles

    seen = []
    for role in candidates:
        if role is None:
            continue
        name = str(role).strip()
        if name and name not in seen:
            seen.append(name)
    return tuple(seen)


@dataclass(frozen=True)
class Identity:
    """
    Identity resolved for a single request.

    Attributes:
        tenant_id: Identifier of the tenant (customer organization)
        user_id: Identifier of the acting user, if known
        roles: Ordered, de-duplicated role names
    """
    tenant_id: str
    user_id: Optional[str] = None
    roles: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.tenant_id or not str(self.tenant_id).strip():
            raise ValueError("tenant_id must not be empty")
        object.__setattr__(self, "roles", parse_roles(self.roles))

    def __repr__(self) -> str:
        return (
            f"Identity(tenant={self.tenant_id!r}, user={self.user_id!r}, "
            f"roles={list(self.roles)!r})"
        )


@dataclass(frozen=True)
class ResolvedIdentity:
    """
    Resolver output: the identity plus how it was established.

    Attributes:
        identity: The resolved identity triple
        authenticated: True when the identity came from a verified token
        email: Optional e-mail claim carried by the token
    """
    identity: Identity
    authenticated: bool = False
    email: Optional[str] = None
