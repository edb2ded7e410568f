"""
Керування користувачами: ролі (лише admin) і профілі (сам користувач або admin).
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.core.errors import Conflict, NotFound, PermissionDenied
from servicedesk.db.models import RoleEnum, Ticket, TicketComment, User, UserRole
from servicedesk.db.session import commit_or_raise
from servicedesk.schemas.users import ProfileOut, ProfileUpdate, UserWithRoles
from servicedesk.services import cache as view_cache
from servicedesk.services.notifications import enqueue
from servicedesk.services.session import DeskSession

log = logging.getLogger(__name__)


async def _get_user(db: AsyncSession, user_id: int) -> User:
    u = await db.get(User, user_id)
    if u is None:
        raise NotFound("User not found")
    return u


async def _load_users_with_roles(db: AsyncSession) -> list[dict]:
    users = (await db.execute(
        select(User).order_by(User.full_name.asc(), User.id.asc())
    )).scalars().all()
    grants = (await db.execute(select(UserRole.user_id, UserRole.role))).all()

    by_user: dict[int, list[RoleEnum]] = {}
    for user_id, role in grants:
        by_user.setdefault(user_id, []).append(role)

    return [
        UserWithRoles(
            **ProfileOut.model_validate(u).model_dump(),
            roles=sorted(by_user.get(u.id, []), key=lambda r: r.value),
        ).model_dump(mode="json")
        for u in users
    ]


async def list_users_with_roles(db: AsyncSession, session: DeskSession) -> list[UserWithRoles]:
    session.require_admin()
    rows = await view_cache.cached(
        view_cache.get_cache(),
        view_cache.USERS_WITH_ROLES,
        lambda: _load_users_with_roles(db),
    )
    return [UserWithRoles.model_validate(r) for r in rows]


async def list_roles(db: AsyncSession, user_id: int) -> list[RoleEnum]:
    rows = (await db.execute(
        select(UserRole.role).where(UserRole.user_id == user_id)
    )).scalars().all()
    return sorted(rows, key=lambda r: r.value)


async def add_role(db: AsyncSession, session: DeskSession, user_id: int, role: RoleEnum) -> list[RoleEnum]:
    """Дубль (user, role) → Conflict, список грантів не змінюється."""
    session.require_admin()
    await _get_user(db, user_id)

    exists = (await db.execute(
        select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role)
    )).scalar_one_or_none()
    if exists is not None:
        raise Conflict("User already has this role")

    db.add(UserRole(user_id=user_id, role=role))
    try:
        await commit_or_raise(db)
    except IntegrityError as e:
        # гонка з паралельним додаванням того самого гранту
        raise Conflict("User already has this role") from e

    await view_cache.get_cache().invalidate(view_cache.USERS_WITH_ROLES)
    log.info("role_added", extra={"user_id": user_id, "role": role.value, "actor_id": session.principal.id})
    enqueue("role_changed", {"user_id": user_id, "role": role.value, "action": "added"})
    return await list_roles(db, user_id)


async def remove_role(db: AsyncSession, session: DeskSession, user_id: int, role: RoleEnum) -> list[RoleEnum]:
    session.require_admin()
    await _get_user(db, user_id)

    grant = (await db.execute(
        select(UserRole).where(UserRole.user_id == user_id, UserRole.role == role)
    )).scalar_one_or_none()
    if grant is None:
        raise NotFound("User does not have this role")

    await db.delete(grant)
    await commit_or_raise(db)

    await view_cache.get_cache().invalidate(view_cache.USERS_WITH_ROLES)
    log.info("role_removed", extra={"user_id": user_id, "role": role.value, "actor_id": session.principal.id})
    enqueue("role_changed", {"user_id": user_id, "role": role.value, "action": "removed"})
    return await list_roles(db, user_id)


async def update_profile(
    db: AsyncSession,
    session: DeskSession,
    user_id: int,
    changes: ProfileUpdate,
) -> ProfileOut:
    principal = session.require_principal()
    facts = session.require_facts()
    if principal.id != user_id and not facts.is_admin:
        raise PermissionDenied("Only the owner or an admin can edit this profile")

    u = await _get_user(db, user_id)
    for field in changes.model_fields_set:
        setattr(u, field, getattr(changes, field))

    if changes.model_fields_set:
        await commit_or_raise(db)
        await db.refresh(u)
        # профіль вбудований у заявки, коментарі й інвентар → скидаємо й ці представлення
        await view_cache.get_cache().invalidate(
            view_cache.USERS_WITH_ROLES, view_cache.TICKETS, view_cache.ASSETS,
            *await _profile_view_keys(db, user_id),
        )
    return ProfileOut.model_validate(u)


async def _profile_view_keys(db: AsyncSession, user_id: int) -> list[str]:
    """Ключі карток заявок і стрічок коментарів, де показано цей профіль."""
    ticket_ids = (await db.execute(
        select(Ticket.id).where(or_(Ticket.requester_id == user_id, Ticket.assignee_id == user_id))
    )).scalars().all()
    commented = (await db.execute(
        select(TicketComment.ticket_id).where(TicketComment.author_id == user_id).distinct()
    )).scalars().all()
    return [view_cache.ticket_key(i) for i in ticket_ids] + [view_cache.comments_key(i) for i in commented]
