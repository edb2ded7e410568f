# servicedesk/services/auth.py
from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.core.config import settings
from servicedesk.core.errors import Conflict, PermissionDenied, Unauthenticated
from servicedesk.core.security import verify_password, hash_password, create_access_token
from servicedesk.db.models import User
from servicedesk.db.session import commit_or_raise

log = logging.getLogger(__name__)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(User.email == email.strip().lower()))
    return res.scalar_one_or_none()


async def authenticate(db: AsyncSession, *, email: str, password: str) -> User:
    user = await get_user_by_email(db, email)
    # однакова відповідь для "нема користувача" і "невірний пароль"
    if user is None:
        raise Unauthenticated("Invalid email or password")
    ok, new_hash = verify_password(password or "", user.password_hash)
    if not ok:
        raise Unauthenticated("Invalid email or password")
    if not user.is_active:
        raise PermissionDenied("Account is disabled")
    if new_hash is not None:
        # bcrypt-параметри змінились → тихо оновлюємо хеш
        user.password_hash = new_hash
        await commit_or_raise(db)
        log.info("password_rehashed", extra={"user_id": user.id})
    return user


async def register_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    full_name: str | None = None,
    department: str | None = None,
    job_title: str | None = None,
) -> User:
    """Явна реєстрація: без грантів, тобто primary role = user."""
    if not settings.allow_self_signup:
        raise PermissionDenied("Self sign-up is disabled")

    email = email.strip().lower()
    if await get_user_by_email(db, email):
        raise Conflict("User with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(password),
        is_active=True,
        full_name=full_name,
        department=department,
        job_title=job_title,
    )
    db.add(user)
    try:
        await commit_or_raise(db)
    except IntegrityError as e:
        raise Conflict("User with this email already exists") from e
    await db.refresh(user)
    return user


def make_token_for_user(user: User, *, remember_me: bool = False) -> str:
    """
    Створюємо access-токен (sub = id користувача).
    remember_me=True → збільшений TTL з jwt_remember_expires_min.
    """
    minutes = (
        settings.jwt_remember_expires_min
        if remember_me
        else settings.jwt_expires_min
    )
    return create_access_token(
        subject=str(user.id),
        expires_minutes=minutes,
    )
