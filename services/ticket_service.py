"""
Ticket service.

Thin orchestration over TicketRepository. Every public method is
tenant-aware: it refuses to run without a bound tenant and takes the tenant
and reporter from the context store, never from the caller.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.db_models import TicketModel
from models.page import Page, PageRequest
from models.ticket_request import TicketCreateRequest
from services.ticket_repository import TicketRepository
from utils import tenant_context
from utils.tenant_guard import tenant_aware

logger = logging.getLogger(__name__)

TICKET_NUMBER_ATTEMPTS = 3


class TicketService:
    def __init__(self, session: AsyncSession):
        self.repository = TicketRepository(session)

    @tenant_aware()
    async def create_ticket(self, request: TicketCreateRequest) -> TicketModel:
        """
        Create a ticket with the tenant's next ticket number.

        A concurrent create can claim the same number first; the unique
        (tenant_id, ticket_number) constraint rejects the loser, which retries
        with a fresh number up to TICKET_NUMBER_ATTEMPTS times.
        """
        for attempt in range(1, TICKET_NUMBER_ATTEMPTS + 1):
            ticket_number = await self.repository.next_ticket_number()
            ticket = TicketModel(
                ticket_number=ticket_number,
                title=request.title,
                description=request.description,
                priority=request.priority,
                category=request.category,
                assignee_id=request.assignee_id,
                reporter_id=tenant_context.get_user_id(),
            )
            try:
                ticket = await self.repository.save(ticket)
                break
            except IntegrityError:
                if attempt == TICKET_NUMBER_ATTEMPTS:
                    raise
                logger.warning(
                    f"Ticket number collision: ticket_number={ticket_number}, "
                    f"tenant_id={tenant_context.get_tenant_id()}, attempt={attempt}"
                )
        logger.info(
            f"Ticket created: ticket_number={ticket.ticket_number}, "
            f"tenant_id={ticket.tenant_id}, reporter_id={ticket.reporter_id}"
        )
        return ticket

    @tenant_aware()
    async def get_ticket(self, ticket_id: str) -> TicketModel:
        return await self.repository.get_by_id(ticket_id)

    @tenant_aware()
    async def list_tickets(self, page: PageRequest) -> Page:
        return await self.repository.find_all(page=page)

    @tenant_aware()
    async def count_tickets(self) -> int:
        return await self.repository.count()

    @tenant_aware()
    async def delete_ticket(self, ticket_id: str) -> bool:
        deleted = await self.repository.delete_by_id(ticket_id)
        if deleted:
            logger.info(
                f"Ticket deleted: id={ticket_id}, "
                f"tenant_id={tenant_context.get_tenant_id()}"
            )
        return deleted

    @tenant_aware()
    async def find_by_number(self, ticket_number: str) -> Optional[TicketModel]:
        return await self.repository.find_by_ticket_number(ticket_number)
