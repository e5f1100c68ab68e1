"""Tests for card locks: in-memory and SQL backends, retry budget, scoped release."""

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scheduler.errors import LockUnavailable, PersistenceError
from scheduler.models.card_lock import CardLock
from scheduler.srs.locks import CardLocker, InMemoryLockBackend, SqlLockBackend, card_lock_key

# --- Helpers ---


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedBackend:
    """Returns the scripted acquire results in order, recording calls."""

    def __init__(self, results: list[bool]) -> None:
        self.results = list(results)
        self.acquire_calls = 0
        self.released: list[str] = []

    async def acquire(self, key: str, ttl: float) -> str | None:
        self.acquire_calls += 1
        return f"token-{self.acquire_calls}" if self.results.pop(0) else None

    async def release(self, key: str, token: str) -> None:
        self.released.append(key)


class BrokenBackend:
    def __init__(self) -> None:
        self.acquire_calls = 0

    async def acquire(self, key: str, ttl: float) -> str | None:
        self.acquire_calls += 1
        raise OperationalError("INSERT INTO distributed_locks", {}, Exception("disk I/O error"))

    async def release(self, key: str, token: str) -> None:
        pass


def _make_locker(backend: object, max_attempts: int = 5, ttl: float = 30) -> CardLocker:
    return CardLocker(backend, ttl_seconds=ttl, max_attempts=max_attempts, retry_delay=0.001, max_retry_delay=0.005)


def test_card_lock_key() -> None:
    assert card_lock_key("abc-123") == "card:abc-123"


# --- In-memory backend ---


class TestInMemoryLockBackend:
    def setup_method(self) -> None:
        self.clock = FakeClock()
        self.backend = InMemoryLockBackend(clock=self.clock)

    @pytest.mark.asyncio
    async def test_second_acquire_is_refused(self) -> None:
        assert await self.backend.acquire("card:1", ttl=30)
        assert not await self.backend.acquire("card:1", ttl=30)
        assert self.backend.is_held("card:1")

    @pytest.mark.asyncio
    async def test_keys_are_independent(self) -> None:
        assert await self.backend.acquire("card:1", ttl=30)
        assert await self.backend.acquire("card:2", ttl=30)

    @pytest.mark.asyncio
    async def test_release_allows_reacquire(self) -> None:
        token = await self.backend.acquire("card:1", ttl=30)
        await self.backend.release("card:1", token)
        assert not self.backend.is_held("card:1")
        assert await self.backend.acquire("card:1", ttl=30)

    @pytest.mark.asyncio
    async def test_expired_lock_is_reclaimed(self) -> None:
        await self.backend.acquire("card:1", ttl=30)
        self.clock.advance(29)
        assert not await self.backend.acquire("card:1", ttl=30)
        self.clock.advance(2)
        assert not self.backend.is_held("card:1")
        assert await self.backend.acquire("card:1", ttl=30)

    @pytest.mark.asyncio
    async def test_release_of_unknown_key_is_noop(self) -> None:
        await self.backend.release("card:missing", "no-such-token")

    @pytest.mark.asyncio
    async def test_late_release_keeps_the_new_claim(self) -> None:
        stale = await self.backend.acquire("card:1", ttl=30)
        self.clock.advance(31)
        assert await self.backend.acquire("card:1", ttl=30)

        # The first holder overran its TTL and releases after being replaced
        await self.backend.release("card:1", stale)
        assert self.backend.is_held("card:1")
        assert await self.backend.acquire("card:1", ttl=30) is None


# --- Retry budget and scoped release ---


class TestCardLocker:
    @pytest.mark.asyncio
    async def test_acquires_after_contention_clears(self) -> None:
        backend = ScriptedBackend([False, False, True])
        await _make_locker(backend).acquire("card:1")
        assert backend.acquire_calls == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        backend = ScriptedBackend([False] * 10)
        with pytest.raises(LockUnavailable) as exc_info:
            await _make_locker(backend, max_attempts=4).acquire("card:1")
        assert exc_info.value.key == "card:1"
        assert backend.acquire_calls == 4

    @pytest.mark.asyncio
    async def test_held_lock_times_out_until_expiry(self) -> None:
        clock = FakeClock()
        backend = InMemoryLockBackend(clock=clock)
        locker = _make_locker(backend, max_attempts=2)
        await locker.acquire("card:1")

        with pytest.raises(LockUnavailable):
            await locker.acquire("card:1")

        # The holder crashed without releasing; its claim runs out
        clock.advance(31)
        await locker.acquire("card:1")

    @pytest.mark.asyncio
    async def test_backend_failure_is_persistence_error_without_retry(self) -> None:
        backend = BrokenBackend()
        with pytest.raises(PersistenceError):
            await _make_locker(backend).acquire("card:1")
        assert backend.acquire_calls == 1

    @pytest.mark.asyncio
    async def test_hold_releases_on_success(self) -> None:
        backend = InMemoryLockBackend()
        locker = _make_locker(backend)
        async with locker.hold("card:1"):
            assert backend.is_held("card:1")
        assert not backend.is_held("card:1")

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self) -> None:
        backend = InMemoryLockBackend()
        locker = _make_locker(backend)
        with pytest.raises(RuntimeError):
            async with locker.hold("card:1"):
                raise RuntimeError("boom")
        assert not backend.is_held("card:1")

    @pytest.mark.asyncio
    async def test_hold_serializes_concurrent_holders(self) -> None:
        locker = _make_locker(InMemoryLockBackend(), max_attempts=50)
        inside = 0
        max_inside = 0

        async def worker() -> None:
            nonlocal inside, max_inside
            async with locker.hold("card:1"):
                inside += 1
                max_inside = max(max_inside, inside)
                await asyncio.sleep(0)
                inside -= 1

        await asyncio.gather(*(worker() for _ in range(5)))
        assert max_inside == 1


# --- SQL backend ---


class TestSqlLockBackend:
    @pytest.mark.asyncio
    async def test_acquire_release_cycle(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        backend = SqlLockBackend(session_factory)
        token = await backend.acquire("card:1", ttl=30)
        assert token
        assert await backend.acquire("card:1", ttl=30) is None
        await backend.release("card:1", token)
        assert await backend.acquire("card:1", ttl=30)

    @pytest.mark.asyncio
    async def test_expired_row_is_reclaimed(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        backend = SqlLockBackend(session_factory)
        assert await backend.acquire("card:1", ttl=-5)  # already expired
        assert await backend.acquire("card:1", ttl=30)
        assert not await backend.acquire("card:1", ttl=30)

    @pytest.mark.asyncio
    async def test_late_release_keeps_the_new_claim(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        backend = SqlLockBackend(session_factory)
        stale = await backend.acquire("card:1", ttl=-5)
        fresh = await backend.acquire("card:1", ttl=30)
        assert fresh is not None

        await backend.release("card:1", stale)
        assert await backend.acquire("card:1", ttl=30) is None

        await backend.release("card:1", fresh)
        assert await backend.acquire("card:1", ttl=30) is not None

    @pytest.mark.asyncio
    async def test_concurrent_acquire_has_one_winner(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        backend = SqlLockBackend(session_factory)
        results = await asyncio.gather(*(backend.acquire("card:1", ttl=30) for _ in range(4)))
        assert sum(token is not None for token in results) == 1

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        backend = SqlLockBackend(session_factory)
        await backend.acquire("card:old-1", ttl=-10)
        await backend.acquire("card:old-2", ttl=-10)
        await backend.acquire("card:live", ttl=30)

        assert await backend.cleanup_expired() == 2

        async with session_factory() as db:
            keys = (await db.execute(select(CardLock.lock_key))).scalars().all()
        assert keys == ["card:live"]

    @pytest.mark.asyncio
    async def test_locker_over_sql_backend(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        locker = _make_locker(SqlLockBackend(session_factory), max_attempts=2)
        async with locker.hold("card:1"):
            with pytest.raises(LockUnavailable):
                await locker.acquire("card:1")
        await locker.acquire("card:1")
