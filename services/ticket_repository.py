"""Ticket and comment repositories.

Domain-specific finders layered on TenantScopedRepository. Each finder starts
from the scoped base query, so the tenant predicate is always present.
"""
import logging
import re
from typing import List, Optional

from sqlalchemy import case, func
from sqlmodel import select

from models.db_models import CommentModel, Priority, TicketModel, TicketStatus
from services.tenant_repository import EntityId, TenantScopedRepository, coerce_id

logger = logging.getLogger(__name__)

TICKET_NUMBER_PREFIX = "TCK"
_TICKET_NUMBER_RE = re.compile(rf"^{TICKET_NUMBER_PREFIX}-(\d+)$")

# Sort order for find_by_assignee, most urgent first.
_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class TicketRepository(TenantScopedRepository[TicketModel]):
    model = TicketModel

    async def find_by_ticket_number(
        self, ticket_number: str, tenant_id: Optional[str] = None
    ) -> Optional[TicketModel]:
        tenant = self._tenant(tenant_id)
        result = await self.session.execute(
            self._scoped(tenant).where(TicketModel.ticket_number == ticket_number)
        )
        return result.scalars().first()

    async def find_by_status(
        self, status: TicketStatus, tenant_id: Optional[str] = None
    ) -> List[TicketModel]:
        """Tickets in the given status, newest first."""
        tenant = self._tenant(tenant_id)
        result = await self.session.execute(
            self._scoped(tenant)
            .where(TicketModel.status == status)
            .order_by(TicketModel.created_at.desc(), TicketModel.id)
        )
        return list(result.scalars().all())

    async def find_by_assignee(
        self, assignee_id: str, tenant_id: Optional[str] = None
    ) -> List[TicketModel]:
        """Tickets assigned to a user, most urgent and then oldest first."""
        tenant = self._tenant(tenant_id)
        priority_rank = case(
            {priority.name: rank for priority, rank in _PRIORITY_RANK.items()},
            value=TicketModel.priority,
            else_=len(_PRIORITY_RANK),
        )
        result = await self.session.execute(
            self._scoped(tenant)
            .where(TicketModel.assignee_id == assignee_id)
            .order_by(priority_rank, TicketModel.created_at, TicketModel.id)
        )
        return list(result.scalars().all())

    async def next_ticket_number(self, tenant_id: Optional[str] = None) -> str:
        """
        Next sequential ticket number for the tenant, e.g. "TCK-000042".

        Numbers are per tenant; two tenants may both have TCK-000001.
        """
        tenant = self._tenant(tenant_id)
        result = await self.session.execute(
            select(TicketModel.ticket_number).where(TicketModel.tenant_id == tenant)
        )
        highest = 0
        for number in result.scalars().all():
            match = _TICKET_NUMBER_RE.match(number or "")
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{TICKET_NUMBER_PREFIX}-{highest + 1:06d}"


class CommentRepository(TenantScopedRepository[CommentModel]):
    model = CommentModel

    async def find_by_ticket(
        self,
        ticket_id: EntityId,
        tenant_id: Optional[str] = None,
        include_internal: bool = True,
    ) -> List[CommentModel]:
        """Comments on a ticket in posting order."""
        tenant = self._tenant(tenant_id)
        uid = coerce_id(ticket_id)
        if uid is None:
            return []

        query = self._scoped(tenant).where(CommentModel.ticket_id == uid)
        if not include_internal:
            query = query.where(CommentModel.is_internal.is_(False))
        result = await self.session.execute(
            query.order_by(CommentModel.created_at, CommentModel.id)
        )
        return list(result.scalars().all())

    async def count_by_ticket(
        self, ticket_id: EntityId, tenant_id: Optional[str] = None
    ) -> int:
        tenant = self._tenant(tenant_id)
        uid = coerce_id(ticket_id)
        if uid is None:
            return 0

        result = await self.session.execute(
            select(func.count())
            .select_from(CommentModel)
            .where(CommentModel.tenant_id == tenant, CommentModel.ticket_id == uid)
        )
        return int(result.scalar_one())
