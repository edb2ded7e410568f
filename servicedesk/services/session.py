"""
DeskSession: явний об'єкт сесії принципала.

Створюється при вході (в HTTP-шарі: на кожен автентифікований запит),
закривається при виході. Тримає principal, стан ролей і контролер режиму.
Усі похідні факти: чисті функції поточного списку грантів.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.core.errors import PermissionDenied, RemoteFailure, Unauthenticated
from servicedesk.services.interface_mode import (
    InterfaceMode,
    InterfaceModeController,
    MemoryModeStore,
    ModeStore,
    Surface,
)
from servicedesk.services.roles import (
    Failed,
    Loading,
    Ready,
    RoleFacts,
    RoleState,
    load_role_state,
    resolve_roles,
)


@dataclass(frozen=True)
class Principal:
    id: int
    email: str


class DeskSession:
    def __init__(self, principal: Optional[Principal], mode_store: ModeStore | None = None):
        self.principal = principal
        self.role_state: RoleState = Loading()
        self.interface = InterfaceModeController(lambda: self.facts, mode_store or MemoryModeStore())
        self.closed = False

    # ---- lifecycle ----

    @classmethod
    def with_grants(cls, principal: Principal, grants, mode_store: ModeStore | None = None) -> "DeskSession":
        """Сесія з уже відомими грантами (скрипти, тести)."""
        session = cls(principal, mode_store)
        session.set_grants(grants)
        return session

    def set_grants(self, grants) -> None:
        self.role_state = Ready(resolve_roles(grants))
        self.interface.start()

    async def refresh_roles(self, db: AsyncSession) -> RoleState:
        if self.principal is None:
            self.role_state = Ready(RoleFacts())
            return self.role_state
        self.role_state = await load_role_state(db, self.principal.id)
        if isinstance(self.role_state, Ready):
            self.interface.start()
        return self.role_state

    def close(self) -> None:
        self.principal = None
        self.role_state = Loading()
        self.closed = True

    # ---- derived ----

    @property
    def authenticated(self) -> bool:
        return self.principal is not None

    @property
    def loading(self) -> bool:
        return isinstance(self.role_state, Loading)

    @property
    def facts(self) -> RoleFacts:
        """Поки ролі не завантажені: порожній набір (але guard дивиться на role_state)."""
        if isinstance(self.role_state, Ready):
            return self.role_state.value
        return RoleFacts()

    @property
    def mode(self) -> InterfaceMode:
        return self.interface.mode

    @property
    def surface(self) -> Surface:
        return self.interface.surface

    def require_principal(self) -> Principal:
        if self.principal is None:
            raise Unauthenticated("Sign in required")
        return self.principal

    def require_facts(self) -> RoleFacts:
        self.require_principal()
        if isinstance(self.role_state, Failed):
            raise RemoteFailure(str(self.role_state.error)) from self.role_state.error
        if isinstance(self.role_state, Loading):
            raise PermissionDenied("Roles are not loaded yet")
        return self.role_state.value

    def require_it_staff(self) -> RoleFacts:
        facts = self.require_facts()
        if not facts.is_it_staff:
            raise PermissionDenied("IT staff only")
        return facts

    def require_admin(self) -> RoleFacts:
        facts = self.require_facts()
        if not facts.is_admin:
            raise PermissionDenied("Admin only")
        return facts
