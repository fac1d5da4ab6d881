from contextlib import asynccontextmanager
from typing import List, Optional
import os
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from middleware.jwt_auth import is_jwt_auth_configured
from middleware.tenant_interceptor import TenantContextMiddleware
from middleware.tenant_resolver import TenantResolver
from routers import context, health, tickets
from services.database import close_engine, create_tables
from services.tenant_repository import EntityNotFoundError
from utils.config import get_excluded_paths, is_legacy_header_auth_enabled
from utils.tenant_context import TenantContextRequiredError
from utils.tenant_guard import TenantAccessDeniedError

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def validate_auth_configuration():
    """
    Log how tenant identity will be resolved.

    Missing JWT configuration does not stop the service: every request that
    needs a tenant is then rejected, and excluded paths keep working.
    """
    if is_jwt_auth_configured():
        logger.info("Internal JWT authentication ENABLED")
    else:
        logger.warning("=" * 60)
        logger.warning("Internal JWT authentication NOT CONFIGURED")
        logger.warning("INTERNAL_JWT_SECRET is missing or shorter than 32 characters")
        logger.warning("=" * 60)

    if is_legacy_header_auth_enabled():
        logger.warning("Header auth ENABLED (X-Tenant-ID/X-User-ID accepted without JWT)")
    else:
        logger.info("Header auth DISABLED (bearer JWT required)")

    logger.info(f"Tenant resolution excluded paths: {get_excluded_paths()}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true":
        await create_tables()
    yield
    await close_engine()


def _error_body(message: str, code: str) -> dict:
    return {"detail": message, "code": code}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(EntityNotFoundError)
    async def entity_not_found_handler(request: Request, exc: EntityNotFoundError):
        logger.info(f"Entity not found: path={request.url.path}")
        return JSONResponse(status_code=404, content=_error_body(exc.message, exc.code))

    @app.exception_handler(TenantContextRequiredError)
    async def tenant_required_handler(request: Request, exc: TenantContextRequiredError):
        logger.warning(f"Tenant context required: path={request.url.path}")
        return JSONResponse(status_code=400, content=_error_body(exc.message, exc.code))

    @app.exception_handler(TenantAccessDeniedError)
    async def access_denied_handler(request: Request, exc: TenantAccessDeniedError):
        logger.warning(f"Tenant access denied: path={request.url.path}")
        return JSONResponse(
            status_code=403,
            content=_error_body("Access denied", exc.code),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unexpected error: path={request.url.path}, error={type(exc).__name__}",
            exc_info=exc
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("An unexpected error occurred", "INTERNAL_ERROR"),
        )


def create_app(
    resolver: Optional[TenantResolver] = None,
    excluded_paths: Optional[List[str]] = None,
) -> FastAPI:
    """
    Assemble the application.

    Args:
        resolver: Tenant resolver, defaults to JWTTenantResolver
        excluded_paths: Paths bypassing resolution, defaults to configuration
    """
    app = FastAPI(title="Inticky Tenant Context Service", lifespan=lifespan)

    app.add_middleware(
        TenantContextMiddleware,
        resolver=resolver,
        excluded_paths=excluded_paths,
    )
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(context.router)
    app.include_router(tickets.router)

    return app


validate_auth_configuration()

app = create_app()
