# servicedesk/schemas/tickets.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from servicedesk.db.models import TicketPriority, TicketStatus, TicketType
from servicedesk.schemas.common import ProfileBrief


class TicketCreate(BaseModel):
    # порожній title перевіряє сервіс (після strip) → ValidationFailed
    title: str = Field(default="", max_length=255)
    description: Optional[str] = None
    type: Optional[TicketType] = None
    priority: Optional[TicketPriority] = None
    category: Optional[str] = Field(default=None, max_length=128)
    subcategory: Optional[str] = Field(default=None, max_length=128)
    sla_due_at: Optional[datetime] = None

    # приймаємо, але ігноруємо: нова заявка завжди у статусі new
    status: Optional[TicketStatus] = None


class TicketUpdate(BaseModel):
    # усі поля опційні; змінюються частково.
    # assignee_id=null явно → зняти виконавця (дивимось model_fields_set)
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assignee_id: Optional[int] = None
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=128)
    subcategory: Optional[str] = Field(default=None, max_length=128)
    sla_due_at: Optional[datetime] = None


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_number: int
    type: TicketType
    status: TicketStatus
    priority: TicketPriority
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    requester_id: int
    assignee_id: Optional[int] = None
    sla_due_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    requester: Optional[ProfileBrief] = None
    assignee: Optional[ProfileBrief] = None


class TicketView(TicketOut):
    # рахується на читанні, ніде не зберігається
    sla_breached: bool = False


class TicketStats(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    open_tickets: int = 0
    breached: int = 0
    resolved_today: int = 0
    sla_compliance: int = 100
