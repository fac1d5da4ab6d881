"""
Tenant Resolution

Turns an inbound request into a ResolvedIdentity. The interceptor depends
only on the TenantResolver contract; JWTTenantResolver is the default
implementation used by the application.

Resolution priority for JWTTenantResolver:
1. Authorization: Bearer <internal JWT>
2. X-Tenant-ID / X-User-ID / X-User-Roles headers, unless
   ALLOW_LEGACY_HEADER_AUTH is set to false

A bearer token that fails verification is a resolution failure; the resolver
never falls back to headers after a bad token.
"""

import logging
from abc import ABC, abstractmethod

from starlette.requests import Request

from middleware.jwt_auth import (
    JWTVerificationError,
    extract_bearer_token,
    verify_internal_jwt,
)
from models.identity import Identity, ResolvedIdentity
from utils.config import is_legacy_header_auth_enabled

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-ID"
USER_HEADER = "X-User-ID"
ROLES_HEADER = "X-User-Roles"
AUTHORIZATION_HEADER = "Authorization"


class TenantResolutionError(Exception):
    """
    Raised when a request carries no extractable identity.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging/metrics
    """
    def __init__(self, message: str, code: str = "TENANT_NOT_FOUND"):
        self.message = message
        self.code = code
        super().__init__(message)


class TenantResolver(ABC):
    """Contract for producing the identity of an inbound request."""

    @abstractmethod
    def resolve(self, request: Request) -> ResolvedIdentity:
        """
        Resolve the identity for a request.

        Raises:
            TenantResolutionError: If no valid identity can be extracted
        """


class JWTTenantResolver(TenantResolver):
    """Resolves identity from the internal JWT, with optional header fallback."""

    def resolve(self, request: Request) -> ResolvedIdentity:
        authorization = request.headers.get(AUTHORIZATION_HEADER)
        token = extract_bearer_token(authorization)

        if token is not None:
            return self._resolve_from_token(token)

        if authorization:
            logger.warning("Authorization header present but not a bearer token")
            raise TenantResolutionError(
                "Unsupported authorization scheme",
                code="TENANT_INVALID_TOKEN"
            )

        if is_legacy_header_auth_enabled():
            return self._resolve_from_headers(request)

        logger.warning("No tenant identity found in request")
        raise TenantResolutionError("Tenant ID not found in request")

    def _resolve_from_token(self, token: str) -> ResolvedIdentity:
        try:
            claims = verify_internal_jwt(token)
        except JWTVerificationError as e:
            raise TenantResolutionError(e.message, code="TENANT_INVALID_TOKEN") from e

        logger.debug(f"Resolved tenant ID from JWT: {claims.tenant_id}")
        return ResolvedIdentity(
            identity=Identity(
                tenant_id=claims.tenant_id,
                user_id=claims.user_id,
                roles=claims.roles,
            ),
            authenticated=True,
            email=claims.email,
        )

    def _resolve_from_headers(self, request: Request) -> ResolvedIdentity:
        tenant_id = (request.headers.get(TENANT_HEADER) or "").strip()
        if not tenant_id:
            logger.warning("No tenant ID found in request headers")
            raise TenantResolutionError("Tenant ID not found in request")

        user_id = (request.headers.get(USER_HEADER) or "").strip() or None
        roles = request.headers.get(ROLES_HEADER)

        logger.debug(f"Resolved tenant ID from header: {tenant_id}")
        return ResolvedIdentity(
            identity=Identity(tenant_id=tenant_id, user_id=user_id, roles=roles),
            authenticated=False,
        )
