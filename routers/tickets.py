"""
Ticket router.

Minimal ticket surface on top of the tenant-scoped repository. Lookups for a
ticket owned by another tenant return 404, exactly like a missing ticket.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from models.identity import Identity
from models.page import PageRequest
from models.ticket_request import TicketCreateRequest, TicketPageResponse, TicketResponse
from services.database import get_session
from services.ticket_service import TicketService
from utils.config import get_default_page_size, get_max_page_size
from utils.tenant_guard import require_roles, require_tenant_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["tickets"])


def get_ticket_service(session: AsyncSession = Depends(get_session)) -> TicketService:
    return TicketService(session)


@router.post("", response_model=TicketResponse, status_code=201)
async def create_ticket(
    body: TicketCreateRequest,
    identity: Identity = Depends(require_tenant_context),
    service: TicketService = Depends(get_ticket_service),
):
    """Create a ticket for the bound tenant, reported by the acting user."""
    ticket = await service.create_ticket(body)
    return TicketResponse.model_validate(ticket)


@router.get("", response_model=TicketPageResponse)
async def list_tickets(
    page: int = Query(default=0, ge=0),
    size: int | None = Query(default=None, ge=1),
    identity: Identity = Depends(require_tenant_context),
    service: TicketService = Depends(get_ticket_service),
):
    """List the bound tenant's tickets, oldest first."""
    size = min(size or get_default_page_size(), get_max_page_size())
    result = await service.list_tickets(PageRequest(page=page, size=size))
    return TicketPageResponse(
        items=[TicketResponse.model_validate(t) for t in result.items],
        total=result.total,
        page=result.page,
        size=result.size,
        total_pages=result.total_pages,
    )


@router.get("/count")
async def count_tickets(
    identity: Identity = Depends(require_tenant_context),
    service: TicketService = Depends(get_ticket_service),
):
    return {"tenant_id": identity.tenant_id, "count": await service.count_tickets()}


@router.get("/by-number/{ticket_number}", response_model=TicketResponse)
async def get_ticket_by_number(
    ticket_number: str,
    identity: Identity = Depends(require_tenant_context),
    service: TicketService = Depends(get_ticket_service),
):
    ticket = await service.find_by_number(ticket_number)
    if ticket is None:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return TicketResponse.model_validate(ticket)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: str,
    identity: Identity = Depends(require_tenant_context),
    service: TicketService = Depends(get_ticket_service),
):
    ticket = await service.get_ticket(ticket_id)
    return TicketResponse.model_validate(ticket)


@router.delete(
    "/{ticket_id}",
    status_code=204,
    dependencies=[Depends(require_roles("ADMIN", "AGENT"))],
)
async def delete_ticket(
    ticket_id: str,
    service: TicketService = Depends(get_ticket_service),
):
    """Delete a ticket. Deleting an unknown ticket is not an error."""
    await service.delete_ticket(ticket_id)
    return Response(status_code=204)
