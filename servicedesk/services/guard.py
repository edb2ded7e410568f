"""
Route guard (чиста політика доступу до навігаційних цілей).

decide(...) нічого не робить з I/O і ніколи не кидає: повертає
Allow | Suspend | RedirectTo. HTTP-шар лише віддає рішення клієнту.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional, Union

from servicedesk.core.config import settings
from servicedesk.db.models import RoleEnum
from servicedesk.services.interface_mode import InterfaceMode, Surface
from servicedesk.services.roles import Failed, Loading, RoleFacts, RoleState


class Requirement(str, enum.Enum):
    none = "none"
    admin = "admin"
    agent = "agent"
    it_staff = "it_staff"
    front_office = "front_office"


# ==== Рішення ====


@dataclass(frozen=True)
class Allow:
    route: Optional["Route"] = None


@dataclass(frozen=True)
class Suspend:
    reason: str = "loading"


@dataclass(frozen=True)
class RedirectTo:
    location: str
    from_location: Optional[str] = None


Decision = Union[Allow, Suspend, RedirectTo]


# ==== Таблиця маршрутів ====


@dataclass(frozen=True)
class Route:
    pattern: str
    surface: Surface
    requirement: Requirement = Requirement.none
    # портальний еквівалент back-office шляху ({id} підставляється)
    portal_path: Optional[str] = None

    @property
    def regex(self) -> re.Pattern:
        body = re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", self.pattern)
        return re.compile(f"^{body}$")

    def match(self, path: str) -> Optional[dict]:
        m = self.regex.match(path)
        return m.groupdict() if m else None


_BO = Surface.back_office
_PO = Surface.portal

ROUTES: tuple[Route, ...] = (
    # back office (SI)
    Route("/", _BO, Requirement.it_staff, "/portal"),
    Route("/tickets", _BO, Requirement.it_staff, "/portal/tickets"),
    Route("/tickets/new", _BO, Requirement.it_staff, "/portal/tickets/new"),
    Route("/tickets/{id}", _BO, Requirement.it_staff, "/portal/tickets/{id}"),
    Route("/catalog", _BO, Requirement.it_staff, "/portal/catalog"),
    Route("/knowledge", _BO, Requirement.it_staff, "/portal/knowledge"),
    Route("/inventory", _BO, Requirement.it_staff, "/portal"),
    Route("/users", _BO, Requirement.admin, "/portal"),
    Route("/settings", _BO, Requirement.admin, "/portal/profile"),
    # portal
    Route("/portal", _PO, Requirement.front_office),
    Route("/portal/tickets", _PO, Requirement.front_office),
    Route("/portal/tickets/new", _PO, Requirement.front_office),
    Route("/portal/tickets/{id}", _PO, Requirement.front_office),
    Route("/portal/catalog", _PO, Requirement.front_office),
    Route("/portal/knowledge", _PO, Requirement.front_office),
    Route("/portal/profile", _PO, Requirement.front_office),
)


def normalize_path(path: str) -> str:
    path = "/" + path.split("?", 1)[0].split("#", 1)[0].strip("/")
    return path


def find_route(path: str) -> tuple[Optional[Route], dict]:
    path = normalize_path(path)
    for route in ROUTES:
        params = route.match(path)
        if params is not None:
            return route, params
    return None, {}


def portal_equivalent(path: str) -> str:
    route, params = find_route(path)
    if route is None:
        return settings.portal_root
    if route.surface is Surface.portal:
        return normalize_path(path)
    return (route.portal_path or settings.portal_root).format(**params)


def home_route(primary_role: RoleEnum) -> str:
    if primary_role in (RoleEnum.admin, RoleEnum.manager):
        return settings.backoffice_root
    return settings.portal_root


def effective_surface(facts: RoleFacts, mode: InterfaceMode) -> Surface:
    if facts.is_it_staff and mode is InterfaceMode.si:
        return Surface.back_office
    return Surface.portal


def satisfies(requirement: Requirement, facts: RoleFacts, mode: InterfaceMode = InterfaceMode.si) -> bool:
    if requirement is Requirement.admin:
        return facts.is_admin
    if requirement is Requirement.agent:
        return facts.is_agent
    if requirement is Requirement.it_staff:
        return facts.is_it_staff
    if requirement is Requirement.front_office:
        return effective_surface(facts, mode) is Surface.portal
    return True


def _failure_redirect(requirement: Requirement, facts: RoleFacts) -> str:
    if requirement is Requirement.it_staff:
        # у не-staff немає back-office fallback
        return settings.portal_root
    if requirement is Requirement.front_office:
        return settings.backoffice_root
    return home_route(facts.primary_role)


def decide(
    *,
    authenticated: bool,
    role_state: RoleState,
    requirement: Requirement,
    path: str,
    mode: InterfaceMode = InterfaceMode.si,
    route: Optional[Route] = None,
) -> Decision:
    if not authenticated:
        return RedirectTo(settings.sign_in_path, from_location=path)

    if isinstance(role_state, Loading):
        return Suspend("loading")
    if isinstance(role_state, Failed):
        return Suspend("roles_unavailable")

    facts = role_state.value

    # staff у режимі user: back-office шляхи тихо ведуть у портал
    if route is not None and route.surface is Surface.back_office:
        if facts.is_it_staff and mode is InterfaceMode.user:
            return RedirectTo(portal_equivalent(path))

    if not satisfies(requirement, facts, mode):
        return RedirectTo(_failure_redirect(requirement, facts))

    return Allow(route)


def resolve_path(path: str, session) -> Decision:
    """Рішення для шляху з таблиці ROUTES для DeskSession."""
    route, _ = find_route(path)
    requirement = route.requirement if route is not None else Requirement.none
    return decide(
        authenticated=session.authenticated,
        role_state=session.role_state,
        requirement=requirement,
        path=path,
        mode=session.mode,
        route=route,
    )
