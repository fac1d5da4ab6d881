"""Data models for the tenant context service."""
from .identity import Identity, ResolvedIdentity, parse_roles
from .page import Page, PageRequest
from .db_models import (
    TenantScopedModel,
    TicketModel,
    CommentModel,
    TicketStatus,
    Priority,
    Category,
)

__all__ = [
    # Identity
    "Identity",
    "ResolvedIdentity",
    "parse_roles",
    # Pagination
    "Page",
    "PageRequest",
    # Database models
    "TenantScopedModel",
    "TicketModel",
    "CommentModel",
    "TicketStatus",
    "Priority",
    "Category",
]
