"""Shared fixtures.

JWT settings are exported before any application module is imported so that
main.py sees a configured secret.
"""
import os
import time
import uuid

import jwt as pyjwt
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

os.environ.setdefault("INTERNAL_JWT_SECRET", "test-secret-that-is-at-least-32-characters-long")
os.environ.setdefault("INTERNAL_JWT_ISSUER", "inticky-gateway")
os.environ.setdefault("INTERNAL_JWT_AUDIENCE", "inticky-services")

import models.db_models  # noqa: E402,F401  (registers tables on SQLModel.metadata)
from utils import tenant_context  # noqa: E402


def generate_test_jwt(
    tenant_id: str = None,
    user_id: str = None,
    roles=None,
    email: str = None,
    issuer: str = None,
    audience: str = None,
    exp_offset: int = 300,
    secret: str = None,
    extra: dict = None,
) -> str:
    """Generate a test JWT with configurable claims."""
    now = int(time.time())
    payload = {
        "tenant_id": tenant_id or str(uuid.uuid4()),
        "user_id": user_id or "user-123",
        "iss": issuer or "inticky-gateway",
        "aud": audience or "inticky-services",
        "iat": now,
        "exp": now + exp_offset,
    }
    if roles is not None:
        payload["roles"] = roles
    if email is not None:
        payload["email"] = email
    if extra:
        payload.update(extra)
    secret = secret or os.environ["INTERNAL_JWT_SECRET"]
    return pyjwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def make_token():
    """Factory fixture returning signed internal JWTs."""
    return generate_test_jwt


@pytest.fixture(autouse=True)
def clean_tenant_context():
    """Every test starts and ends with an empty context store."""
    tenant_context.clear()
    yield
    tenant_context.clear()


@pytest_asyncio.fixture
async def async_session():
    """Create an in-memory async SQLite session for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async_session_maker = sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()
