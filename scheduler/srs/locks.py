"""Per-key locks that serialize schedule updates to the same card.

A lock is a time-bounded claim: the holder gets ``ttl`` seconds, after which
any other caller may reclaim the key. Acquisition is retried with a short
exponential backoff and gives up with ``LockUnavailable``.
"""

import logging
import time
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from scheduler.config import settings, utcnow
from scheduler.errors import LockUnavailable, PersistenceError
from scheduler.models.card_lock import CardLock

logger = logging.getLogger(__name__)


def card_lock_key(card_id: str) -> str:
    return f"card:{card_id}"


def _new_token() -> str:
    return uuid.uuid4().hex


class LockBackend(Protocol):
    """A named lock primitive. ``acquire`` never blocks; retries live in ``CardLocker``.

    ``acquire`` returns an owner token, or ``None`` if the key is held. ``release``
    frees the key only while that token still owns it.
    """

    async def acquire(self, key: str, ttl: float) -> str | None: ...

    async def release(self, key: str, token: str) -> None: ...


class InMemoryLockBackend:
    """Process-local lock table with expiry, on an injectable monotonic clock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._claims: dict[str, tuple[str, float]] = {}

    async def acquire(self, key: str, ttl: float) -> str | None:
        now = self._clock()
        claim = self._claims.get(key)
        if claim is not None:
            if claim[1] > now:
                return None
            logger.debug("Reclaiming expired lock %s", key)
        token = _new_token()
        self._claims[key] = (token, now + ttl)
        return token

    async def release(self, key: str, token: str) -> None:
        claim = self._claims.get(key)
        if claim is None or claim[0] != token:
            logger.debug("Lock %s no longer owned by this holder, leaving it", key)
            return
        del self._claims[key]

    def is_held(self, key: str) -> bool:
        claim = self._claims.get(key)
        return claim is not None and claim[1] > self._clock()


class SqlLockBackend:
    """Lock rows in ``distributed_locks``; the primary key rejects a second holder."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def acquire(self, key: str, ttl: float) -> str | None:
        token = await self._try_insert(key, ttl)
        if token is not None:
            return token

        async with self._session_factory() as db:
            expires_at = (
                await db.execute(select(CardLock.expires_at).where(CardLock.lock_key == key))
            ).scalar_one_or_none()
            if expires_at is None or expires_at >= utcnow():
                return None
            # Only delete the claim we saw expire, not a fresh one
            await db.execute(
                delete(CardLock).where(CardLock.lock_key == key, CardLock.expires_at == expires_at)
            )
            await db.commit()
        logger.debug("Reclaimed expired lock %s", key)
        return await self._try_insert(key, ttl)

    async def _try_insert(self, key: str, ttl: float) -> str | None:
        now = utcnow()
        token = _new_token()
        async with self._session_factory() as db:
            db.add(CardLock(lock_key=key, owner=token, acquired_at=now, expires_at=now + timedelta(seconds=ttl)))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                return None
        return token

    async def release(self, key: str, token: str) -> None:
        async with self._session_factory() as db:
            result = await db.execute(delete(CardLock).where(CardLock.lock_key == key, CardLock.owner == token))
            await db.commit()
        if not result.rowcount:
            logger.debug("Lock %s no longer owned by this holder, leaving it", key)

    async def cleanup_expired(self) -> int:
        """Delete every expired lock row and return how many were removed."""
        async with self._session_factory() as db:
            result = await db.execute(delete(CardLock).where(CardLock.expires_at < utcnow()))
            await db.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info("Removed %d expired locks", removed)
        return removed


class CardLocker:
    """Bounded-retry acquisition and scoped release over a ``LockBackend``."""

    def __init__(
        self,
        backend: LockBackend,
        ttl_seconds: float = settings.lock_ttl_seconds,
        max_attempts: int = settings.lock_max_attempts,
        retry_delay: float = settings.lock_retry_delay_seconds,
        max_retry_delay: float = settings.lock_max_retry_delay_seconds,
    ) -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay

    async def acquire(self, key: str) -> str:
        """Acquire ``key`` or raise ``LockUnavailable`` once the retry budget is spent.

        Returns:
            The owner token to pass to ``release``.

        Raises:
            LockUnavailable: The key stayed held for every attempt.
            PersistenceError: The lock backend itself failed.
        """
        token: str | None = None
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.retry_delay, max=self.max_retry_delay),
                retry=retry_if_exception_type(LockUnavailable),
                reraise=True,
            ):
                with attempt:
                    token = await self.backend.acquire(key, self.ttl_seconds)
                    if token is None:
                        raise LockUnavailable(key)
        except LockUnavailable:
            logger.warning("Lock %s still held after %d attempts", key, self.max_attempts)
            raise
        except SQLAlchemyError as exc:
            logger.exception("Lock backend failed acquiring %s", key)
            raise PersistenceError(f"Could not acquire lock {key}") from exc
        logger.debug("Acquired lock %s", key)
        return token

    async def release(self, key: str, token: str) -> None:
        try:
            await self.backend.release(key, token)
        except SQLAlchemyError:
            # The row will expire on its own after the TTL
            logger.exception("Failed to release lock %s", key)
            return
        logger.debug("Released lock %s", key)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[str]:
        """Hold ``key`` for the body of an ``async with`` block; always released."""
        token = await self.acquire(key)
        try:
            yield token
        finally:
            await self.release(key, token)
