"""Session storage — where per-browser login state lives between requests.

Three backends share one interface:

- CookieSessionStore keeps the value itself in an HTTP-only cookie.
- MemorySessionStore and RedisSessionStore keep the value server-side and put
  only a random handle in the cookie, so `pop` is enforced as single-use even
  if the browser replays an old cookie.

Access tokens always go through a CookieSessionStore; they are never stored
server-side.
"""

from __future__ import annotations

import secrets
import time
from abc import ABC, abstractmethod

import redis.asyncio as aioredis
from fastapi import Request, Response


class SessionStore(ABC):
    """Get/set of short-lived values keyed by name, scoped to one browser."""

    backend: str = "abstract"

    def __init__(self, *, secure: bool = True) -> None:
        self.secure = secure

    @abstractmethod
    async def set(self, response: Response, key: str, value: str, max_age: int) -> None:
        """Store `value` under `key`, attaching any cookie to `response`."""

    @abstractmethod
    async def get(self, request: Request, key: str) -> str | None:
        """Return the value stored under `key`, or None."""

    @abstractmethod
    async def pop(self, request: Request, response: Response, key: str) -> str | None:
        """Return the value under `key` and remove it so it cannot be read again."""

    def _set_cookie(self, response: Response, key: str, value: str, max_age: int) -> None:
        response.set_cookie(
            key,
            value,
            max_age=max_age,
            httponly=True,
            samesite="lax",
            secure=self.secure,
        )

    def _clear_cookie(self, response: Response, key: str) -> None:
        response.delete_cookie(key, httponly=True, samesite="lax", secure=self.secure)


class CookieSessionStore(SessionStore):
    backend = "cookie"

    async def set(self, response: Response, key: str, value: str, max_age: int) -> None:
        self._set_cookie(response, key, value, max_age)

    async def get(self, request: Request, key: str) -> str | None:
        return request.cookies.get(key) or None

    async def pop(self, request: Request, response: Response, key: str) -> str | None:
        value = await self.get(request, key)
        self._clear_cookie(response, key)
        return value


class KeyedSessionStore(SessionStore):
    """Server-side store: the cookie carries an opaque handle, not the value."""

    @staticmethod
    def _name(handle: str, key: str) -> str:
        return f"session:{handle}:{key}"

    @abstractmethod
    async def _write(self, name: str, value: str, ttl: int) -> None: ...

    @abstractmethod
    async def _read(self, name: str) -> str | None: ...

    @abstractmethod
    async def _take(self, name: str) -> str | None: ...

    async def set(self, response: Response, key: str, value: str, max_age: int) -> None:
        handle = secrets.token_urlsafe(24)
        await self._write(self._name(handle, key), value, max_age)
        self._set_cookie(response, key, handle, max_age)

    async def get(self, request: Request, key: str) -> str | None:
        handle = request.cookies.get(key)
        if not handle:
            return None
        return await self._read(self._name(handle, key))

    async def pop(self, request: Request, response: Response, key: str) -> str | None:
        handle = request.cookies.get(key)
        self._clear_cookie(response, key)
        if not handle:
            return None
        return await self._take(self._name(handle, key))


class MemorySessionStore(KeyedSessionStore):
    """In-process store with expiry. Suitable for tests and single workers."""

    backend = "memory"

    def __init__(self, *, secure: bool = True) -> None:
        super().__init__(secure=secure)
        self._values: dict[str, tuple[str, float]] = {}

    async def _write(self, name: str, value: str, ttl: int) -> None:
        self._values[name] = (value, time.monotonic() + ttl)

    async def _read(self, name: str) -> str | None:
        entry = self._values.get(name)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            self._values.pop(name, None)
            return None
        return value

    async def _take(self, name: str) -> str | None:
        value = await self._read(name)
        self._values.pop(name, None)
        return value


class RedisSessionStore(KeyedSessionStore):
    """Redis-backed store. Values expire with the cookie's max-age."""

    backend = "redis"

    def __init__(self, redis: aioredis.Redis, *, secure: bool = True) -> None:
        super().__init__(secure=secure)
        self._redis = redis

    async def _write(self, name: str, value: str, ttl: int) -> None:
        await self._redis.set(name, value, ex=ttl)

    async def _read(self, name: str) -> str | None:
        return await self._redis.get(name)

    async def _take(self, name: str) -> str | None:
        return await self._redis.getdel(name)
