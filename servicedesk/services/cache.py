"""
Кеш представлень (read-through + явна інвалідація після мутацій).

Ключі:
  tickets                 : повний список заявок (сирі дані, без sla_breached)
  ticket:{id}             : одна заявка
  ticket-comments:{id}    : коментарі заявки (усі, фільтр видимості: після кешу)
  assets                  : інвентар
  users-with-roles        : користувачі з ролями

Значення: JSON-сумісні dict/list. Похідні від часу речі (SLA breach, статистика)
в кеш не кладуться: рахуються на читанні.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Protocol

import redis.asyncio as aioredis

from servicedesk.core.config import settings

log = logging.getLogger(__name__)

TICKETS = "tickets"
ASSETS = "assets"
USERS_WITH_ROLES = "users-with-roles"


def ticket_key(ticket_id: int) -> str:
    return f"ticket:{ticket_id}"


def comments_key(ticket_id: int) -> str:
    return f"ticket-comments:{ticket_id}"


class ViewCache(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def invalidate(self, *keys: str) -> None: ...


class MemoryViewCache:
    def __init__(self, ttl_seconds: int = 300):
        self.ttl = ttl_seconds
        self._data: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[Any]:
        item = self._data.get(key)
        if item is None:
            return None
        expires, raw = item
        if expires < time.monotonic():
            self._data.pop(key, None)
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = (time.monotonic() + self.ttl, json.dumps(value))

    async def invalidate(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class RedisViewCache:
    prefix = "servicedesk:view:"

    def __init__(self, url: str, ttl_seconds: int = 300):
        self.ttl = ttl_seconds
        self._redis = aioredis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._redis.get(self.prefix + key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        await self._redis.set(self.prefix + key, json.dumps(value), ex=self.ttl)

    async def invalidate(self, *keys: str) -> None:
        if keys:
            await self._redis.delete(*(self.prefix + k for k in keys))


async def cached(cache: ViewCache, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
    value = await cache.get(key)
    if value is not None:
        return value
    value = await loader()
    await cache.set(key, value)
    return value


_cache: ViewCache | None = None


def get_cache() -> ViewCache:
    global _cache
    if _cache is None:
        if settings.cache_url:
            _cache = RedisViewCache(settings.cache_url, settings.cache_ttl_seconds)
            log.info("view_cache_backend", extra={"backend": "redis"})
        else:
            _cache = MemoryViewCache(settings.cache_ttl_seconds)
    return _cache
