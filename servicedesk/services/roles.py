"""
Role resolver.

Зводить сирий список грантів (user_id, role) у набір похідних прапорців і одну
"основну" роль для відображення/дефолтних маршрутів. Чиста функція від списку
грантів: нічого не зберігає.

Пріоритет основної ролі: admin > manager > agent > user (без грантів → user).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Generic, Iterable, TypeVar, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.core.errors import RemoteFailure
from servicedesk.db.models import RoleEnum, UserRole

log = logging.getLogger(__name__)

ROLE_PRECEDENCE: tuple[RoleEnum, ...] = (
    RoleEnum.admin,
    RoleEnum.manager,
    RoleEnum.agent,
    RoleEnum.user,
)

T = TypeVar("T")


# ==== Стан завантаження (Loading | Ready | Failed) ====


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Ready(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failed:
    error: Exception


# ==== Похідні факти ====


@dataclass(frozen=True)
class RoleFacts:
    roles: frozenset[RoleEnum] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return RoleEnum.admin in self.roles

    @property
    def is_manager(self) -> bool:
        return RoleEnum.manager in self.roles

    @property
    def is_technician(self) -> bool:
        # alias: manager = technician в IT-контексті
        return self.is_manager

    @property
    def is_agent(self) -> bool:
        return RoleEnum.agent in self.roles or self.is_admin

    @property
    def is_it_staff(self) -> bool:
        return self.is_manager or self.is_admin

    @property
    def is_front_office(self) -> bool:
        return not self.is_it_staff

    @property
    def primary_role(self) -> RoleEnum:
        for role in ROLE_PRECEDENCE:
            if role in self.roles:
                return role
        return RoleEnum.user

    def as_dict(self) -> dict:
        return {
            "roles": sorted(r.value for r in self.roles),
            "is_admin": self.is_admin,
            "is_manager": self.is_manager,
            "is_technician": self.is_technician,
            "is_agent": self.is_agent,
            "is_it_staff": self.is_it_staff,
            "is_front_office": self.is_front_office,
            "primary_role": self.primary_role.value,
        }


RoleState = Union[Loading, Ready[RoleFacts], Failed]


def _coerce_role(grant) -> RoleEnum | None:
    raw = getattr(grant, "role", grant)
    if isinstance(raw, RoleEnum):
        return raw
    try:
        return RoleEnum(str(raw))
    except ValueError:
        return None


def resolve_roles(grants: Iterable) -> RoleFacts:
    """
    grants: RoleEnum | str | UserRole. Невідомі значення ігноруються.
    """
    roles = frozenset(r for r in (_coerce_role(g) for g in grants) if r is not None)
    return RoleFacts(roles=roles)


async def fetch_grants(db: AsyncSession, user_id: int) -> list[RoleEnum]:
    rows = (await db.execute(
        select(UserRole.role).where(UserRole.user_id == user_id)
    )).scalars().all()
    return list(rows)


async def load_role_state(db: AsyncSession, user_id: int) -> Ready[RoleFacts] | Failed:
    """Ніколи не кидає: помилка сховища → Failed(RemoteFailure)."""
    try:
        grants = await fetch_grants(db, user_id)
    except SQLAlchemyError as e:
        log.warning("role_grants_fetch_failed", extra={"user_id": user_id})
        return Failed(RemoteFailure(f"Unable to load roles: {e.__class__.__name__}"))
    return Ready(resolve_roles(grants))
