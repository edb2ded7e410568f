# servicedesk/api/routes/session.py
from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from servicedesk.api.deps import SessionDep, get_optional_desk_session
from servicedesk.schemas.session import ModeIn, NavigationOut, RoleFactsOut, SessionOut
from servicedesk.services.guard import RedirectTo, Suspend, home_route, resolve_path
from servicedesk.services.session import DeskSession

router = APIRouter()


def _session_out(session: DeskSession) -> SessionOut:
    facts = session.require_facts()
    return SessionOut(
        user_id=session.principal.id,
        email=session.principal.email,
        facts=RoleFactsOut(**facts.as_dict()),
        mode=session.mode,
        surface=session.surface,
        can_switch_mode=session.interface.can_switch_mode,
        home=home_route(facts.primary_role),
    )


@router.get("", response_model=SessionOut)
async def get_session_state(session: SessionDep):
    return _session_out(session)


@router.put("/mode", response_model=SessionOut)
async def set_mode(payload: ModeIn, session: SessionDep):
    # для не-staff це no-op: режим лишається user, cookie не пишеться
    session.interface.set_mode(payload.mode)
    return _session_out(session)


@router.post("/mode/toggle", response_model=SessionOut)
async def toggle_mode(session: SessionDep):
    session.interface.toggle_mode()
    return _session_out(session)


@router.get("/navigate", response_model=NavigationOut)
async def navigate(
    session: Annotated[DeskSession, Depends(get_optional_desk_session)],
    path: str = Query(..., min_length=1),
):
    """Рішення route guard для шляху UI (allow / suspend / redirect)."""
    decision = resolve_path(path, session)
    if isinstance(decision, RedirectTo):
        return NavigationOut(
            action="redirect",
            path=path,
            location=decision.location,
            from_location=decision.from_location,
        )
    if isinstance(decision, Suspend):
        return NavigationOut(action="suspend", path=path, reason=decision.reason)
    return NavigationOut(action="allow", path=path)
