"""
Tenant Context Store

Request-scoped storage for the resolved identity (tenant id, user id, roles)
and the ambient authentication flag.

The store is a single ContextVar. Each asyncio task, and each threadpool call
made on behalf of a request, runs with its own copy of the context, so values
set while handling one request are never visible to a concurrent one.

Clearing writes an explicit empty sentinel instead of deleting the value, so
an execution unit that is reused for the next request always starts from a
known-empty state.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Tuple

from models.identity import Identity, ResolvedIdentity, RolesInput

logger = logging.getLogger(__name__)


class TenantContextRequiredError(Exception):
    """
    Raised when an operation needs a tenant but none is bound.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging/metrics
    """
    def __init__(
        self,
        message: str = "Tenant context is required",
        code: str = "TENANT_CONTEXT_REQUIRED",
    ):
        self.message = message
        self.code = code
        super().__init__(message)


class _Empty:
    """Sentinel stored when no identity is bound."""

    def __repr__(self) -> str:
        return "<empty tenant context>"


EMPTY = _Empty()

_current: ContextVar[object] = ContextVar("tenant_context", default=EMPTY)


def _state() -> Optional[ResolvedIdentity]:
    value = _current.get()
    if isinstance(value, ResolvedIdentity):
        return value
    return None


def set_identity(
    tenant_id: str,
    user_id: Optional[str] = None,
    roles: RolesInput = None,
    authenticated: bool = False,
    email: Optional[str] = None,
) -> Identity:
    """
    Bind an identity to the current execution unit.

    Overwrites any previously bound identity; there is no nesting.

    Args:
        tenant_id: Tenant identifier (required, non-empty)
        user_id: Acting user, if known
        roles: CSV string or iterable of role names
        authenticated: Whether the identity came from verified credentials
        email: Optional e-mail of the acting user

    Returns:
        The Identity that was stored

    Raises:
        ValueError: If tenant_id is empty
    """
    identity = Identity(tenant_id=tenant_id, user_id=user_id, roles=roles)
    _current.set(
        ResolvedIdentity(identity=identity, authenticated=authenticated, email=email)
    )
    logger.debug(f"Setting tenant context: {identity!r}")
    return identity


def set_resolved(resolved: ResolvedIdentity) -> Identity:
    """Bind a resolver result to the current execution unit."""
    return set_identity(
        tenant_id=resolved.identity.tenant_id,
        user_id=resolved.identity.user_id,
        roles=resolved.identity.roles,
        authenticated=resolved.authenticated,
        email=resolved.email,
    )


def get_identity() -> Optional[Identity]:
    state = _state()
    return state.identity if state else None


def get_tenant_id() -> Optional[str]:
    state = _state()
    return state.identity.tenant_id if state else None


def get_user_id() -> Optional[str]:
    state = _state()
    return state.identity.user_id if state else None


def get_roles() -> Tuple[str, ...]:
    state = _state()
    return state.identity.roles if state else ()


def get_email() -> Optional[str]:
    state = _state()
    return state.email if state else None


def is_authenticated() -> bool:
    state = _state()
    return bool(state and state.authenticated)


def is_set() -> bool:
    """True iff a tenant id is bound to the current execution unit."""
    return get_tenant_id() is not None


def clear() -> None:
    """
    Remove the bound identity from the current execution unit.

    Idempotent: clearing an already-empty context is a no-op.
    """
    _current.set(EMPTY)
    logger.debug("Tenant context cleared")


def require_tenant_id() -> str:
    """
    Get the bound tenant id, failing closed when none is bound.

    Raises:
        TenantContextRequiredError: If no tenant is bound
    """
    tenant_id = get_tenant_id()
    if tenant_id is None:
        raise TenantContextRequiredError()
    return tenant_id


def get_current_context() -> str:
    """Describe the current context for log lines."""
    state = _state()
    if state is None:
        return "TenantContext{unset}"
    return (
        f"TenantContext{{tenantId='{state.identity.tenant_id}', "
        f"userId='{state.identity.user_id}', "
        f"roles='{','.join(state.identity.roles)}', "
        f"authenticated={state.authenticated}}}"
    )


@contextmanager
def tenant_scope(
    tenant_id: str,
    user_id: Optional[str] = None,
    roles: RolesInput = None,
    authenticated: bool = False,
    email: Optional[str] = None,
) -> Iterator[Identity]:
    """
    Bind an identity for the duration of a with-block.

    Intended for work that runs outside an HTTP request (batch jobs,
    scripts, tests). Whatever was bound before the block is restored on
    exit, including when the block raises.

    Usage:
        with tenant_scope("acme", user_id="job-runner"):
            await repository.count()

    Yields:
        The Identity bound inside the block
    """
    identity = Identity(tenant_id=tenant_id, user_id=user_id, roles=roles)
    token = _current.set(
        ResolvedIdentity(identity=identity, authenticated=authenticated, email=email)
    )
    logger.debug(f"Entering tenant scope: {identity!r}")
    try:
        yield identity
    finally:
        try:
            _current.reset(token)
        except ValueError:
            # Token from another context (generator closed elsewhere).
            _current.set(EMPTY)
        logger.debug("Exited tenant scope")
