# servicedesk/schemas/session.py
from __future__ import annotations

from typing import Literal, Optional
from pydantic import BaseModel

from servicedesk.db.models import RoleEnum
from servicedesk.services.interface_mode import InterfaceMode, Surface


class RoleFactsOut(BaseModel):
    roles: list[RoleEnum]
    is_admin: bool
    is_manager: bool
    is_technician: bool
    is_agent: bool
    is_it_staff: bool
    is_front_office: bool
    primary_role: RoleEnum


class SessionOut(BaseModel):
    user_id: int
    email: str
    facts: RoleFactsOut
    mode: InterfaceMode
    surface: Surface
    can_switch_mode: bool
    home: str


class ModeIn(BaseModel):
    mode: InterfaceMode


class NavigationOut(BaseModel):
    action: Literal["allow", "suspend", "redirect"]
    path: str
    location: Optional[str] = None
    from_location: Optional[str] = None
    reason: Optional[str] = None
