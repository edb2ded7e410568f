"""
Tickets service (життєвий цикл заявки)

Тут живуть переходи статусів, SLA, призначення і правила видимості коментарів.
Роутери лише викликають ці функції й віддають результат.

Правила:
  - створити заявку може будь-який автентифікований принципал; статус завжди new;
  - змінювати статус/пріоритет/виконавця: лише IT staff (admin/manager);
    між шістьма статусами дозволено будь-який перехід (включно з reopen);
  - resolved_at/closed_at ставляться один раз і при reopen НЕ скидаються;
  - внутрішні коментарі бачить лише IT staff у SI-інтерфейсі;
  - останній запис перемагає (без версій/etag).
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.core.errors import NotFound, PermissionDenied, RemoteFailure, ValidationFailed
from servicedesk.db.models import (
    Ticket,
    TicketComment,
    TicketPriority,
    TicketStatus,
    TicketType,
    User,
)
from servicedesk.db.session import commit_or_raise
from servicedesk.schemas.comments import CommentOut
from servicedesk.schemas.tickets import TicketCreate, TicketOut, TicketStats, TicketUpdate, TicketView
from servicedesk.services import cache as view_cache
from servicedesk.services.interface_mode import Surface
from servicedesk.services.notifications import enqueue, ticket_payload
from servicedesk.services.roles import RoleFacts
from servicedesk.services.session import DeskSession

log = logging.getLogger(__name__)

OPEN_STATUSES = frozenset({
    TicketStatus.new,
    TicketStatus.open,
    TicketStatus.in_progress,
    TicketStatus.pending,
})
DONE_STATUSES = frozenset({TicketStatus.resolved, TicketStatus.closed})

# Підписи для UI. Повні таблиці по кожному enum (перевіряється тестами).
STATUS_LABELS: dict[TicketStatus, str] = {
    TicketStatus.new: "New",
    TicketStatus.open: "Open",
    TicketStatus.in_progress: "In progress",
    TicketStatus.pending: "Pending",
    TicketStatus.resolved: "Resolved",
    TicketStatus.closed: "Closed",
}
PRIORITY_LABELS: dict[TicketPriority, str] = {
    TicketPriority.low: "Low",
    TicketPriority.medium: "Medium",
    TicketPriority.high: "High",
    TicketPriority.critical: "Critical",
}
TYPE_LABELS: dict[TicketType, str] = {
    TicketType.incident: "Incident",
    TicketType.request: "Request",
    TicketType.problem: "Problem",
    TicketType.change: "Change",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite повертає naive-дати; вважаємо їх UTC
    if dt is None:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return as_utc(dt).astimezone(timezone.utc)


# ==== SLA ====


def is_breached(ticket, now: Optional[datetime] = None) -> bool:
    """Прострочено ⇔ due < now і заявка ще не resolved/closed."""
    due = as_utc(ticket.sla_due_at)
    if due is None:
        return False
    if TicketStatus(ticket.status) in DONE_STATUSES:
        return False
    return due < (now or utcnow())


def apply_status(ticket, status: TicketStatus, now: Optional[datetime] = None) -> TicketStatus:
    """
    Переводить заявку в status і повертає попередній статус.
    resolved_at/closed_at фіксуються при першому вході і ніколи не скидаються.
    """
    now = now or utcnow()
    previous = ticket.status
    ticket.status = status
    if status in DONE_STATUSES and ticket.resolved_at is None:
        ticket.resolved_at = now
    if status is TicketStatus.closed and ticket.closed_at is None:
        ticket.closed_at = now
    return previous


# ==== читання ====


def _serialize(ticket: Ticket) -> dict:
    return TicketOut.model_validate(ticket).model_dump(mode="json")


def to_view(data: dict, now: Optional[datetime] = None) -> TicketView:
    view = TicketView.model_validate(data)
    view.sla_breached = is_breached(view, now)
    return view


async def _fetch_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    stmt = (
        select(Ticket)
        .where(Ticket.id == ticket_id)
        .execution_options(populate_existing=True)
    )
    t = (await db.execute(stmt)).unique().scalar_one_or_none()
    if t is None:
        raise NotFound("Ticket not found")
    return t


async def _load_ticket_list(db: AsyncSession) -> list[dict]:
    rows = (await db.execute(
        select(Ticket).order_by(Ticket.created_at.desc(), Ticket.id.desc())
    )).unique().scalars().all()
    return [_serialize(t) for t in rows]


async def _ticket_data(db: AsyncSession, ticket_id: int) -> dict:
    async def loader() -> dict:
        return _serialize(await _fetch_ticket(db, ticket_id))

    return await view_cache.cached(view_cache.get_cache(), view_cache.ticket_key(ticket_id), loader)


def _can_view(session: DeskSession, facts: RoleFacts, data: dict) -> bool:
    # портал однаковий для списку й картки: лише власні заявки
    if facts.is_it_staff and session.surface is Surface.back_office:
        return True
    return data["requester_id"] == session.principal.id


async def list_tickets(
    db: AsyncSession,
    session: DeskSession,
    *,
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    type: Optional[TicketType] = None,
    assignee_id: Optional[int] = None,
    mine: bool = False,
    limit: int = 50,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> list[TicketView]:
    """
    SI-інтерфейс бачить усі заявки; портал: лише власні заявки принципала.
    """
    session.require_facts()
    rows = await view_cache.cached(view_cache.get_cache(), view_cache.TICKETS, lambda: _load_ticket_list(db))

    me = session.principal.id
    if session.surface is Surface.portal or mine:
        rows = [r for r in rows if r["requester_id"] == me]
    if status is not None:
        rows = [r for r in rows if r["status"] == status.value]
    if priority is not None:
        rows = [r for r in rows if r["priority"] == priority.value]
    if type is not None:
        rows = [r for r in rows if r["type"] == type.value]
    if assignee_id is not None:
        rows = [r for r in rows if r["assignee_id"] == assignee_id]

    return [to_view(r, now) for r in rows[offset:offset + limit]]


async def get_ticket(
    db: AsyncSession,
    session: DeskSession,
    ticket_id: int,
    now: Optional[datetime] = None,
) -> TicketView:
    facts = session.require_facts()
    data = await _ticket_data(db, ticket_id)
    if not _can_view(session, facts, data):
        raise PermissionDenied("Not your ticket")
    return to_view(data, now)


# ==== мутації ====


async def _invalidate_ticket(ticket_id: int) -> None:
    await view_cache.get_cache().invalidate(view_cache.TICKETS, view_cache.ticket_key(ticket_id))


async def _ensure_assignable(db: AsyncSession, user_id: int) -> User:
    u = await db.get(User, user_id)
    if u is None or not u.is_active:
        raise ValidationFailed(f"Assignee {user_id} does not exist")
    return u


async def _next_ticket_number(db: AsyncSession) -> int:
    current = (await db.execute(
        select(func.coalesce(func.max(Ticket.ticket_number), 0))
    )).scalar_one()
    return int(current) + 1


async def create_ticket(db: AsyncSession, session: DeskSession, payload: TicketCreate) -> TicketView:
    principal = session.require_principal()
    session.require_facts()

    title = (payload.title or "").strip()
    if not title:
        raise ValidationFailed("Title is required")

    t = Ticket(
        ticket_number=await _next_ticket_number(db),
        title=title,
        description=payload.description,
        type=payload.type or TicketType.incident,
        priority=payload.priority or TicketPriority.medium,
        status=TicketStatus.new,
        category=payload.category,
        subcategory=payload.subcategory,
        sla_due_at=to_utc(payload.sla_due_at),
        requester_id=principal.id,
    )
    db.add(t)
    try:
        await commit_or_raise(db)
    except IntegrityError as e:
        # паралельне створення зайняло той самий номер
        raise RemoteFailure("Ticket number allocation collided, retry") from e

    t = await _fetch_ticket(db, t.id)
    await _invalidate_ticket(t.id)
    data = _serialize(t)

    log.info("ticket_created", extra={"ticket_id": t.id, "ticket_number": t.ticket_number, "requester_id": principal.id})
    enqueue("ticket_created", {"ticket": ticket_payload(data)})
    return to_view(data)


async def update_ticket(
    db: AsyncSession,
    session: DeskSession,
    ticket_id: int,
    changes: TicketUpdate,
    now: Optional[datetime] = None,
) -> TicketView:
    """
    Часткове оновлення (PATCH): лише для IT staff.
    requester змінити неможливо: такого поля в TicketUpdate немає.
    """
    session.require_it_staff()
    t = await _fetch_ticket(db, ticket_id)
    fields = changes.model_fields_set

    # спершу всі перевірки: відхилена зміна не лишає брудних полів у сесії
    title: Optional[str] = None
    if "title" in fields and changes.title is not None:
        title = changes.title.strip()
        if not title:
            raise ValidationFailed("Title is required")
    reassign = "assignee_id" in fields and changes.assignee_id != t.assignee_id
    if reassign and changes.assignee_id is not None:
        await _ensure_assignable(db, changes.assignee_id)

    if title is not None:
        t.title = title
    if "description" in fields:
        t.description = changes.description
    if "category" in fields:
        t.category = changes.category
    if "subcategory" in fields:
        t.subcategory = changes.subcategory
    if "sla_due_at" in fields:
        t.sla_due_at = to_utc(changes.sla_due_at)
    if "priority" in fields and changes.priority is not None:
        t.priority = changes.priority

    assigned: Optional[tuple] = None
    if reassign:
        assigned = (t.assignee_id, changes.assignee_id)
        t.assignee_id = changes.assignee_id

    transition: Optional[tuple] = None
    if "status" in fields and changes.status is not None and changes.status != t.status:
        old = apply_status(t, changes.status, now)
        transition = (old, changes.status)

    await commit_or_raise(db)
    await _invalidate_ticket(ticket_id)
    t = await _fetch_ticket(db, ticket_id)
    data = _serialize(t)

    actor_id = session.principal.id
    if transition is not None:
        old, new = transition
        log.info("status_changed", extra={"ticket_id": ticket_id, "from": old.value, "to": new.value, "actor_id": actor_id})
        enqueue("status_changed", {"ticket": ticket_payload(data), "from": old.value, "to": new.value})
    if assigned is not None:
        log.info("ticket_assigned", extra={"ticket_id": ticket_id, "from": assigned[0], "to": assigned[1], "actor_id": actor_id})
        enqueue("ticket_assigned", {"ticket": ticket_payload(data), "assignee_id": assigned[1]})

    return to_view(data, now)


async def update_status(
    db: AsyncSession,
    session: DeskSession,
    ticket_id: int,
    status: TicketStatus,
    now: Optional[datetime] = None,
) -> TicketView:
    return await update_ticket(db, session, ticket_id, TicketUpdate(status=status), now=now)


async def update_priority(
    db: AsyncSession,
    session: DeskSession,
    ticket_id: int,
    priority: TicketPriority,
) -> TicketView:
    return await update_ticket(db, session, ticket_id, TicketUpdate(priority=priority))


async def assign_ticket(
    db: AsyncSession,
    session: DeskSession,
    ticket_id: int,
    assignee_id: Optional[int],
) -> TicketView:
    return await update_ticket(db, session, ticket_id, TicketUpdate(assignee_id=assignee_id))


# ==== коментарі ====


def can_see_internal(facts: RoleFacts, surface: Surface) -> bool:
    return facts.is_it_staff and surface is Surface.back_office


def visible_comments(comments: Iterable[CommentOut], facts: RoleFacts, surface: Surface) -> list[CommentOut]:
    """Для порталу/не-staff внутрішні коментарі повністю прибираються."""
    if can_see_internal(facts, surface):
        return list(comments)
    return [c for c in comments if not c.is_internal]


async def _load_comments(db: AsyncSession, ticket_id: int) -> list[dict]:
    rows = (await db.execute(
        select(TicketComment)
        .where(TicketComment.ticket_id == ticket_id)
        .order_by(TicketComment.created_at.asc(), TicketComment.id.asc())
    )).unique().scalars().all()
    return [CommentOut.model_validate(c).model_dump(mode="json") for c in rows]


async def list_comments(db: AsyncSession, session: DeskSession, ticket_id: int) -> list[CommentOut]:
    await get_ticket(db, session, ticket_id)  # NotFound / PermissionDenied
    rows = await view_cache.cached(
        view_cache.get_cache(),
        view_cache.comments_key(ticket_id),
        lambda: _load_comments(db, ticket_id),
    )
    comments = [CommentOut.model_validate(r) for r in rows]
    return visible_comments(comments, session.facts, session.surface)


async def add_comment(
    db: AsyncSession,
    session: DeskSession,
    ticket_id: int,
    content: str,
    is_internal: bool = False,
) -> CommentOut:
    principal = session.require_principal()
    facts = session.require_facts()
    t = await _fetch_ticket(db, ticket_id)

    if not facts.is_it_staff and t.requester_id != principal.id:
        raise PermissionDenied("Only the requester or IT staff can comment")

    text = (content or "").strip()
    if not text:
        raise ValidationFailed("Comment is empty")

    if is_internal and not facts.is_it_staff:
        raise ValidationFailed("Internal comments are reserved for IT staff")
    if is_internal and session.surface is Surface.portal:
        raise ValidationFailed("Comments posted from the portal are always public")

    c = TicketComment(ticket_id=ticket_id, author_id=principal.id, content=text, is_internal=is_internal)
    db.add(c)
    await commit_or_raise(db)
    await view_cache.get_cache().invalidate(view_cache.comments_key(ticket_id))

    c = (await db.execute(
        select(TicketComment)
        .where(TicketComment.id == c.id)
        .execution_options(populate_existing=True)
    )).unique().scalar_one()
    out = CommentOut.model_validate(c)

    log.info("comment_added", extra={"ticket_id": ticket_id, "comment_id": out.id, "is_internal": is_internal})
    enqueue("comment_added", {
        "ticket": ticket_payload(_serialize(t)),
        "comment_id": out.id,
        "author_id": principal.id,
        "is_internal": is_internal,
    })
    return out


# ==== статистика ====


def compute_stats(tickets: Iterable[TicketOut], now: Optional[datetime] = None) -> TicketStats:
    now = now or utcnow()
    tickets = list(tickets)
    stats = TicketStats(total=len(tickets))

    stats.by_status = dict(Counter(TicketStatus(t.status).value for t in tickets))
    stats.by_priority = dict(Counter(TicketPriority(t.priority).value for t in tickets))
    stats.by_type = dict(Counter(TicketType(t.type).value for t in tickets))
    stats.open_tickets = sum(1 for t in tickets if TicketStatus(t.status) in OPEN_STATUSES)
    stats.breached = sum(1 for t in tickets if is_breached(t, now))
    stats.resolved_today = sum(
        1 for t in tickets
        if t.resolved_at is not None and as_utc(t.resolved_at).date() == now.date()
    )

    tracked = [t for t in tickets if t.sla_due_at is not None]
    if tracked:
        ok = sum(1 for t in tracked if not is_breached(t, now))
        stats.sla_compliance = round(ok * 100 / len(tracked))
    return stats


async def ticket_stats(db: AsyncSession, session: DeskSession, now: Optional[datetime] = None) -> TicketStats:
    session.require_it_staff()
    rows = await view_cache.cached(view_cache.get_cache(), view_cache.TICKETS, lambda: _load_ticket_list(db))
    return compute_stats((TicketOut.model_validate(r) for r in rows), now)
