"""FastAPI dependency factories."""

from datetime import date

from fastapi import Depends

from scheduler.config import local_today
from scheduler.database import async_session
from scheduler.srs.coordinator import ReviewCoordinator
from scheduler.srs.locks import CardLocker, SqlLockBackend
from scheduler.srs.store import CardStore, SqlCardStore


def get_today() -> date:
    """Today's date in the configured timezone -- override in tests to pin the clock."""
    return local_today()


def get_card_store() -> CardStore:
    return SqlCardStore(async_session)


def get_card_locker() -> CardLocker:
    return CardLocker(SqlLockBackend(async_session))


def get_coordinator(
    store: CardStore = Depends(get_card_store),
    locker: CardLocker = Depends(get_card_locker),
) -> ReviewCoordinator:
    return ReviewCoordinator(store, locker)
