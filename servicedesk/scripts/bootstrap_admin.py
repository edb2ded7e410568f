from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.core.config import settings
from servicedesk.core.logging import setup_logging
from servicedesk.core.security import hash_password
from servicedesk.db.models import RoleEnum, User, UserRole
from servicedesk.db.session import AsyncSessionLocal, engine

log = logging.getLogger("bootstrap")

DEMO_USERS = (
    # (email, password, name, grant)
    ("manager@example.com", "Manager123!", "Manager", RoleEnum.manager),
    ("agent@example.com", "Agent123!", "Agent", RoleEnum.agent),
    ("user@example.com", "User123!", "User", None),
)


async def _get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(User.email == email))
    return res.scalar_one_or_none()


async def _ensure_user(
    db: AsyncSession,
    *,
    email: str,
    password_plain: Optional[str],
    name: Optional[str],
    grant: Optional[RoleEnum],
) -> User:
    """
    Якщо користувача немає, створює його (потрібен password_plain).
    Якщо є, активує та додає грант, якого бракує. Пароль не чіпає.
    """
    email = email.strip().lower()
    user = await _get_user_by_email(db, email)

    if user is None:
        if not password_plain:
            raise ValueError(f"Не задано пароль для нового користувача {email}")
        user = User(
            email=email,
            password_hash=hash_password(password_plain),
            is_active=True,
            full_name=name,
        )
        db.add(user)
        await db.flush()
        log.info("user_created", extra={"email": email})
    elif not user.is_active:
        user.is_active = True
        log.info("user_reactivated", extra={"email": email})

    if grant is not None:
        res = await db.execute(
            select(UserRole).where(UserRole.user_id == user.id, UserRole.role == grant)
        )
        if res.scalar_one_or_none() is None:
            db.add(UserRole(user_id=user.id, role=grant))
            log.info("grant_added", extra={"email": email, "role": grant.value})

    await db.commit()
    return user


async def _seed(db: AsyncSession, *, admin_email: str, admin_password: str, admin_name: Optional[str], demo: bool) -> None:
    await _ensure_user(
        db,
        email=admin_email,
        password_plain=admin_password,
        name=admin_name,
        grant=RoleEnum.admin,
    )
    if demo:
        for email, password, name, grant in DEMO_USERS:
            await _ensure_user(db, email=email, password_plain=password, name=name, grant=grant)
    log.info("bootstrap_done")


async def _run(**kwargs) -> None:
    async with AsyncSessionLocal() as db:
        await _seed(db, **kwargs)
    await engine.dispose()


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed адміністратора та демо-користувачів")
    p.add_argument("email", nargs="?", default=settings.admin_email, help="Email адміністратора")
    p.add_argument("password", nargs="?", default=settings.admin_password, help="Пароль адміністратора")
    p.add_argument("-n", "--name", default=settings.admin_name, help="Ім'я адміністратора")
    p.add_argument("--demo", action="store_true", help="Створити demo manager/agent/user")
    return p.parse_args()


def main() -> None:
    setup_logging(settings.log_level, json_output=settings.env == "prod")
    args = _parse_args()

    if not args.email:
        raise SystemExit("Помилка: не задано email адміністратора (аргумент або ADMIN_EMAIL у .env)")
    if not args.password:
        raise SystemExit("Помилка: не задано пароль адміністратора (аргумент або ADMIN_PASSWORD у .env)")

    asyncio.run(
        _run(
            admin_email=args.email,
            admin_password=args.password,
            admin_name=args.name,
            demo=args.demo,
        )
    )


if __name__ == "__main__":
    main()
