# servicedesk/db/session.py
from __future__ import annotations

import logging
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from servicedesk.core.config import settings
from servicedesk.core.errors import RemoteFailure

log = logging.getLogger(__name__)

engine = create_async_engine(settings.database_url, pool_pre_ping=True, future=True)

# expire_on_commit=False: після commit об'єкти лишаються читабельними без lazy-load
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


async def commit_or_raise(db: AsyncSession) -> None:
    """
    Commit із перекладом помилок сховища в RemoteFailure.
    IntegrityError викликач ловить сам (напр. дубль гранту → Conflict),
    тому тут його пропускаємо далі без змін.
    """
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        log.exception("store_commit_failed")
        raise RemoteFailure("Storage is unavailable, try again later") from e
