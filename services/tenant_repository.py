"""Tenant-scoped data access.

TenantScopedRepository is the only way business code reads or writes
tenant-owned rows. Every statement it issues carries a tenant_id predicate,
and every row it writes is stamped with the active tenant, so scoping does not
depend on each call site remembering a WHERE clause.

Each operation accepts an explicit tenant_id. When it is omitted the tenant
bound in the context store is used; when neither exists the call fails with
TenantContextRequiredError instead of running unscoped.

A row that exists under another tenant is indistinguishable from a row that
does not exist at all: reads return None/False, deletes are no-ops.
"""
import logging
from datetime import datetime, timezone
from typing import Generic, List, Optional, Type, TypeVar, Union
from uuid import UUID

from sqlalchemy import delete, func, inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from models.db_models import TenantScopedModel
from models.page import Page, PageRequest
from utils import tenant_context
from utils.tenant_context import TenantContextRequiredError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=TenantScopedModel)
EntityId = Union[UUID, str]


class EntityNotFoundError(Exception):
    """
    Raised when a tenant-scoped lookup finds nothing.

    Raised identically whether the row is absent or belongs to another
    tenant.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging/metrics
    """
    def __init__(self, message: str, code: str = "ENTITY_NOT_FOUND"):
        self.message = message
        self.code = code
        super().__init__(message)


def coerce_id(entity_id: EntityId) -> Optional[UUID]:
    if isinstance(entity_id, UUID):
        return entity_id
    try:
        return UUID(str(entity_id))
    except (ValueError, TypeError, AttributeError):
        return None


class TenantScopedRepository(Generic[ModelT]):
    """Generic CRUD over a TenantScopedModel, filtered by tenant."""

    model: Type[ModelT]

    def __init__(self, session: AsyncSession, model: Optional[Type[ModelT]] = None):
        self.session = session
        if model is not None:
            self.model = model
        if getattr(self, "model", None) is None:
            raise TypeError(f"{type(self).__name__} requires a model class")

    # -- tenant resolution -------------------------------------------------

    def _tenant(self, tenant_id: Optional[str]) -> str:
        if tenant_id is None:
            return tenant_context.require_tenant_id()
        if not str(tenant_id).strip():
            raise TenantContextRequiredError("tenant_id must not be empty")
        return tenant_id

    def _scoped(self, tenant_id: str):
        return select(self.model).where(self.model.tenant_id == tenant_id)

    def _log_miss(self, entity_id, tenant_id: str) -> None:
        logger.debug(
            f"{self.model.__name__} not found in tenant scope: "
            f"id={entity_id}, tenant_id={tenant_id}"
        )

    # -- reads -------------------------------------------------------------

    async def find_by_id(
        self, entity_id: EntityId, tenant_id: Optional[str] = None
    ) -> Optional[ModelT]:
        """Return the entity only if both id and tenant match."""
        tenant = self._tenant(tenant_id)
        uid = coerce_id(entity_id)
        if uid is None:
            self._log_miss(entity_id, tenant)
            return None

        result = await self.session.execute(
            self._scoped(tenant).where(self.model.id == uid)
        )
        entity = result.scalars().first()
        if entity is None:
            self._log_miss(entity_id, tenant)
        return entity

    async def get_by_id(
        self, entity_id: EntityId, tenant_id: Optional[str] = None
    ) -> ModelT:
        """Like find_by_id, but raise EntityNotFoundError on a miss."""
        entity = await self.find_by_id(entity_id, tenant_id)
        if entity is None:
            raise EntityNotFoundError(f"{self.model.__name__} not found: {entity_id}")
        return entity

    async def find_all(
        self,
        tenant_id: Optional[str] = None,
        page: Optional[PageRequest] = None,
    ) -> Union[List[ModelT], Page]:
        """
        Return the tenant's entities ordered by creation time.

        Args:
            tenant_id: Explicit tenant, defaults to the bound tenant
            page: Optional page request; when given a Page is returned

        Returns:
            A list of entities, or a Page when page is given
        """
        tenant = self._tenant(tenant_id)
        query = self._scoped(tenant).order_by(self.model.created_at, self.model.id)

        if page is None:
            result = await self.session.execute(query)
            return list(result.scalars().all())

        total = await self.count(tenant)
        result = await self.session.execute(query.offset(page.offset).limit(page.size))
        return Page(
            items=list(result.scalars().all()),
            total=total,
            page=page.page,
            size=page.size,
        )

    async def count(self, tenant_id: Optional[str] = None) -> int:
        tenant = self._tenant(tenant_id)
        result = await self.session.execute(
            select(func.count())
            .select_from(self.model)
            .where(self.model.tenant_id == tenant)
        )
        return int(result.scalar_one())

    async def exists_by_id(
        self, entity_id: EntityId, tenant_id: Optional[str] = None
    ) -> bool:
        tenant = self._tenant(tenant_id)
        uid = coerce_id(entity_id)
        if uid is None:
            return False

        result = await self.session.execute(
            select(func.count())
            .select_from(self.model)
            .where(self.model.id == uid, self.model.tenant_id == tenant)
        )
        return result.scalar_one() > 0

    # -- writes ------------------------------------------------------------

    async def save(self, entity: ModelT, tenant_id: Optional[str] = None) -> ModelT:
        """
        Insert or update an entity within the active tenant.

        New entities are stamped with the tenant. An entity that carries, or
        is persisted under, a different tenant is treated as not found.

        Raises:
            EntityNotFoundError: If the entity belongs to another tenant
        """
        tenant = self._tenant(tenant_id)

        # The tenant the entity was loaded under, even if the caller changed it.
        loaded_tenant = None
        state = inspect(entity)
        if state.persistent:
            history = state.attrs.tenant_id.history
            if history.deleted:
                loaded_tenant = history.deleted[0]

        if loaded_tenant is not None and loaded_tenant != tenant:
            await self._reject(entity, tenant)
        if entity.tenant_id is None:
            entity.tenant_id = tenant
        elif entity.tenant_id != tenant:
            await self._reject(entity, tenant)

        persisted_tenant = persisted_created_at = None
        if entity.id is not None:
            with self.session.sync_session.no_autoflush:
                result = await self.session.execute(
                    select(self.model.tenant_id, self.model.created_at)
                    .where(self.model.id == entity.id)
                )
                row = result.first()
            if row is not None:
                persisted_tenant, persisted_created_at = row

            if persisted_tenant is not None and persisted_tenant != tenant:
                await self._reject(entity, tenant)

        try:
            if persisted_tenant is None:
                self.session.add(entity)
            else:
                entity.updated_at = datetime.now(timezone.utc)
                if not state.persistent:
                    # Detached or rebuilt copy of an existing row.
                    entity.created_at = persisted_created_at
                    entity = await self.session.merge(entity)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(entity)
        return entity

    async def _reject(self, entity: ModelT, tenant: str) -> None:
        """Discard the caller's unsaved changes and raise not-found."""
        state = inspect(entity)
        with self.session.sync_session.no_autoflush:
            if state.persistent:
                await self.session.refresh(entity)
            elif state.pending:
                self.session.expunge(entity)
        self._log_miss(entity.id, tenant)
        raise EntityNotFoundError(f"{self.model.__name__} not found: {entity.id}")

    async def delete_by_id(
        self, entity_id: EntityId, tenant_id: Optional[str] = None
    ) -> bool:
        """
        Delete the entity if both id and tenant match.

        A mismatch is a no-op, not an error.

        Returns:
            True if a row was deleted
        """
        tenant = self._tenant(tenant_id)
        uid = coerce_id(entity_id)
        if uid is None:
            return False

        try:
            result = await self.session.execute(
                delete(self.model).where(
                    self.model.id == uid, self.model.tenant_id == tenant
                )
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        deleted = (result.rowcount or 0) > 0
        if not deleted:
            self._log_miss(entity_id, tenant)
        return deleted
