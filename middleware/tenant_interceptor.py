"""
Tenant Context Middleware

Wraps every inbound request:
1. Requests to excluded paths skip resolution entirely.
2. Otherwise the resolver runs; on failure the request is rejected with 400
   and the context store is never populated.
3. On success the store is populated before any handler code runs and is
   cleared in a finally block after the handler returns, raises or is
   cancelled.
"""

import logging
from typing import Iterable, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from middleware.tenant_resolver import (
    JWTTenantResolver,
    TenantResolutionError,
    TenantResolver,
)
from utils import tenant_context
from utils.config import get_excluded_paths

logger = logging.getLogger(__name__)

TENANT_RESPONSE_HEADER = "X-Tenant-ID"


def is_excluded_path(path: str, patterns: Iterable[str]) -> bool:
    """
    Check a request path against the exclusion patterns.

    A pattern ending in "/**" matches its prefix and anything below it
    ("/health/**" matches "/health" and "/health/db"). Any other pattern
    must equal the path.
    """
    for pattern in patterns:
        if pattern.endswith("/**"):
            prefix = pattern[:-3]
            if path == prefix or path.startswith(prefix + "/"):
                return True
        elif path == pattern:
            return True
    return False


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Populates and tears down the tenant context around each request."""

    def __init__(
        self,
        app,
        resolver: Optional[TenantResolver] = None,
        excluded_paths: Optional[List[str]] = None,
    ):
        super().__init__(app)
        self.resolver = resolver or JWTTenantResolver()
        self.excluded_paths = (
            list(excluded_paths) if excluded_paths is not None else get_excluded_paths()
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        if is_excluded_path(path, self.excluded_paths):
            # Never resolved, but still guaranteed empty for the handler.
            tenant_context.clear()
            try:
                return await call_next(request)
            finally:
                tenant_context.clear()

        try:
            resolved = self.resolver.resolve(request)
        except TenantResolutionError as e:
            logger.warning(
                f"Tenant resolution failed: path={path}, code={e.code}"
            )
            return self._reject(e.code)
        except Exception as e:
            logger.error(
                f"Failed to set tenant context: path={path}, "
                f"error={type(e).__name__}",
                exc_info=True
            )
            return self._reject("TENANT_RESOLUTION_FAILED")

        try:
            identity = tenant_context.set_resolved(resolved)
            request.state.identity = identity
            logger.debug(f"Tenant context set: {tenant_context.get_current_context()}")

            response = await call_next(request)
            response.headers[TENANT_RESPONSE_HEADER] = identity.tenant_id
            return response
        finally:
            tenant_context.clear()

    @staticmethod
    def _reject(code: str) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": "Unable to resolve tenant context", "code": code},
        )
