"""SQLModel table definitions for tenant-scoped helpdesk data.

Every table derives from TenantScopedModel, which carries the tenant_id
column the scoped repositories filter and stamp on every operation.
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Text, UniqueConstraint
from typing import Optional
from datetime import datetime, timezone
from uuid import UUID, uuid4
import enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Enums ---

class TicketStatus(str, enum.Enum):
    """Ticket lifecycle states."""
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class Priority(str, enum.Enum):
    """Ticket priority, most urgent first."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Category(str, enum.Enum):
    """Ticket categories."""
    TECHNICAL = "TECHNICAL"
    ACCOUNT = "ACCOUNT"
    FEATURE_REQUEST = "FEATURE_REQUEST"
    BUG = "BUG"
    SUPPORT = "SUPPORT"
    DOCUMENTATION = "DOCUMENTATION"
    SECURITY = "SECURITY"
    PERFORMANCE = "PERFORMANCE"
    INTEGRATION = "INTEGRATION"
    OTHER = "OTHER"


# --- Base ---

class TenantScopedModel(SQLModel):
    """Columns shared by every tenant-owned table."""
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    # Stamped by the scoped repository when left unset
    tenant_id: Optional[str] = Field(default=None, index=True, nullable=False, max_length=64)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=_utcnow, nullable=False)


# --- Table Models ---

class TicketModel(TenantScopedModel, table=True):
    """Support ticket raised by a tenant's user."""
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("tenant_id", "ticket_number", name="uq_tickets_tenant_number"),
    )

    ticket_number: str = Field(index=True, max_length=32)
    title: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: TicketStatus = Field(default=TicketStatus.OPEN)
    priority: Priority = Field(default=Priority.MEDIUM)
    category: Category = Field(default=Category.SUPPORT)
    reporter_id: Optional[str] = Field(default=None, max_length=255)
    assignee_id: Optional[str] = Field(default=None, max_length=255)


class CommentModel(TenantScopedModel, table=True):
    """Comment on a ticket. Internal comments are visible to agents only."""
    __tablename__ = "ticket_comments"

    ticket_id: UUID = Field(foreign_key="tickets.id", index=True)
    author_id: Optional[str] = Field(default=None, max_length=255)
    content: str = Field(sa_column=Column(Text, nullable=False))
    is_internal: bool = Field(default=False)
