# servicedesk/api/routes/tickets.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from servicedesk.api.deps import DBDep, SessionDep, require_it_staff
from servicedesk.db.models import TicketPriority, TicketStatus, TicketType
from servicedesk.schemas.tickets import TicketCreate, TicketStats, TicketUpdate, TicketView
from servicedesk.services import tickets as svc

router = APIRouter()


@router.post("", response_model=TicketView, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreate, db: DBDep, session: SessionDep):
    return await svc.create_ticket(db, session, payload)


@router.get("", response_model=list[TicketView])
async def list_tickets(
    db: DBDep,
    session: SessionDep,
    status_: TicketStatus | None = Query(default=None, alias="status"),
    priority: TicketPriority | None = None,
    type_: TicketType | None = Query(default=None, alias="type"),
    assignee_id: int | None = None,
    mine: bool = False,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    return await svc.list_tickets(
        db,
        session,
        status=status_,
        priority=priority,
        type=type_,
        assignee_id=assignee_id,
        mine=mine,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=TicketStats, dependencies=[Depends(require_it_staff())])
async def ticket_stats(db: DBDep, session: SessionDep):
    return await svc.ticket_stats(db, session)


@router.get("/{ticket_id}", response_model=TicketView)
async def get_ticket(ticket_id: int, db: DBDep, session: SessionDep):
    return await svc.get_ticket(db, session, ticket_id)


@router.patch("/{ticket_id}", response_model=TicketView)
async def patch_ticket(ticket_id: int, payload: TicketUpdate, db: DBDep, session: SessionDep):
    return await svc.update_ticket(db, session, ticket_id, payload)
