from __future__ import annotations

from typing import Annotated, Optional
from fastapi import Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.db.session import get_session
from servicedesk.core.config import settings
from servicedesk.core.errors import PermissionDenied, Unauthenticated
from servicedesk.core.security import decode_token
from servicedesk.db.models import User
from servicedesk.services.guard import Requirement, satisfies
from servicedesk.services.session import DeskSession, Principal

# OAuth2 bearer (для інтеграції з /api/docs); префікс /api виставляється в main.py
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

# Тип для DI сесії БД
DBDep = Annotated[AsyncSession, Depends(get_session)]

# cookie режиму живе рік: вибір прив'язаний до пристрою, а не до акаунта
MODE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


class CookieModeStore:
    """Слот interface mode у cookie браузера (itsm-interface-mode)."""

    def __init__(self, request: Request, response: Response, key: str | None = None):
        self.request = request
        self.response = response
        self.key = key or settings.interface_mode_key

    def read(self) -> Optional[str]:
        return self.request.cookies.get(self.key)

    def write(self, value: str) -> None:
        self.response.set_cookie(
            self.key,
            value,
            max_age=MODE_COOKIE_MAX_AGE,
            httponly=False,
            samesite="lax",
        )


async def get_optional_user(
    db: DBDep,
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> Optional[User]:
    if not token:
        return None
    try:
        payload = decode_token(token)
        user_id = int(payload["sub"])
    except (ValueError, KeyError, TypeError):
        return None

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(user: Annotated[Optional[User], Depends(get_optional_user)]) -> User:
    """
    Декодує Bearer JWT, дістає користувача з БД і перевіряє активність.
    """
    if user is None:
        raise Unauthenticated("Invalid or expired token")
    return user


async def get_desk_session(
    request: Request,
    response: Response,
    db: DBDep,
    user: Annotated[User, Depends(get_current_user)],
) -> DeskSession:
    session = DeskSession(Principal(id=user.id, email=user.email), CookieModeStore(request, response))
    await session.refresh_roles(db)
    return session


async def get_optional_desk_session(
    request: Request,
    response: Response,
    db: DBDep,
    user: Annotated[Optional[User], Depends(get_optional_user)],
) -> DeskSession:
    principal = Principal(id=user.id, email=user.email) if user is not None else None
    session = DeskSession(principal, CookieModeStore(request, response))
    if principal is not None:
        await session.refresh_roles(db)
    return session


SessionDep = Annotated[DeskSession, Depends(get_desk_session)]


def require_capability(requirement: Requirement):
    """
    Пускає лише сесії, що задовольняють вимогу guard-а.
    Приклад: @router.get(..., dependencies=[Depends(require_capability(Requirement.admin))])
    """

    async def _guard(session: SessionDep) -> DeskSession:
        facts = session.require_facts()
        if not satisfies(requirement, facts, session.mode):
            raise PermissionDenied("Forbidden")
        return session

    return _guard


def require_admin():
    return require_capability(Requirement.admin)


def require_it_staff():
    return require_capability(Requirement.it_staff)
