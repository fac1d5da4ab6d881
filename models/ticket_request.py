"""
Ticket Request/Response Models

Pydantic models for the /tickets endpoints. Tenant and reporter are never
accepted from the body; they come from the bound tenant context.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.db_models import Category, Priority, TicketStatus


class TicketCreateRequest(BaseModel):
    """
    Request body for creating a ticket.

    Attributes:
        title: Short summary (required, not blank)
        description: Optional long-form description
        priority: Ticket priority (default: MEDIUM)
        category: Ticket category (default: SUPPORT)
        assignee_id: Optional user to assign the ticket to
    """
    title: str = Field(..., max_length=255, description="Short summary")
    description: Optional[str] = Field(default=None, description="Details")
    priority: Priority = Field(default=Priority.MEDIUM)
    category: Category = Field(default=Category.SUPPORT)
    assignee_id: Optional[str] = Field(default=None, max_length=255)

    @field_validator('title')
    @classmethod
    def title_must_not_be_blank(cls, v: str) -> str:
        """Validate that title is not empty or whitespace-only."""
        if not v or not v.strip():
            raise ValueError("title cannot be empty or contain only whitespace")
        return v.strip()


class TicketResponse(BaseModel):
    """Ticket as returned to API callers."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    ticket_number: str
    title: str
    description: Optional[str] = None
    status: TicketStatus
    priority: Priority
    category: Category
    reporter_id: Optional[str] = None
    assignee_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TicketPageResponse(BaseModel):
    """One page of tickets."""
    items: List[TicketResponse]
    total: int
    page: int
    size: int
    total_pages: int
