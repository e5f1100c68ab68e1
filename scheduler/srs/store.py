"""Card stores: where scheduling state is read from and written to.

The coordinator only needs ``get`` and ``update``; ``add`` exists so that
content generation can initialize new cards with a default schedule.
"""

import asyncio
import logging
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scheduler.errors import CardExists, CardNotFound, PersistenceError, ValidationError
from scheduler.models.card import Card
from scheduler.srs.sm2 import CardState

logger = logging.getLogger(__name__)

# Fields the coordinator is allowed to write
SCHEDULE_FIELDS = frozenset(
    {
        "interval",
        "repetitions",
        "easiness_factor",
        "next_due_date",
        "last_reviewed_date",
        "last_reviewed",
        "streak",
        "lapses",
        "quality_rating",
    }
)


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - SCHEDULE_FIELDS
    if unknown:
        raise ValidationError(f"Not a schedule field: {', '.join(sorted(unknown))}")


class CardStore(Protocol):
    async def get(self, card_id: str) -> CardState: ...

    async def update(self, card_id: str, fields: dict[str, Any]) -> CardState: ...

    async def add(self, state: CardState) -> CardState: ...


class InMemoryCardStore:
    """Dict-backed store. Each call yields to the event loop once, like a real I/O call."""

    def __init__(self, cards: list[CardState] | None = None) -> None:
        self._cards: dict[str, CardState] = {c.card_id: c.copy() for c in cards or []}
        self.update_count = 0

    async def get(self, card_id: str) -> CardState:
        await asyncio.sleep(0)
        card = self._cards.get(card_id)
        if card is None:
            raise CardNotFound(card_id)
        return card.copy()

    async def update(self, card_id: str, fields: dict[str, Any]) -> CardState:
        _check_fields(fields)
        await asyncio.sleep(0)
        card = self._cards.get(card_id)
        if card is None:
            raise CardNotFound(card_id)
        for name, value in fields.items():
            setattr(card, name, value)
        self.update_count += 1
        return card.copy()

    async def add(self, state: CardState) -> CardState:
        await asyncio.sleep(0)
        if state.card_id in self._cards:
            raise CardExists(state.card_id)
        self._cards[state.card_id] = state.copy()
        return state.copy()


def to_card_state(card: Card) -> CardState:
    return CardState(
        card_id=card.id,
        kind=card.kind,
        interval=card.interval,
        repetitions=card.repetitions,
        easiness_factor=card.easiness_factor,
        next_due_date=card.next_due_date,
        last_reviewed_date=card.last_reviewed_date,
        last_reviewed=card.last_reviewed,
        streak=card.streak,
        lapses=card.lapses,
        quality_rating=card.quality_rating,
    )


class SqlCardStore:
    """Card store over the ``cards`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, card_id: str) -> CardState:
        try:
            async with self._session_factory() as db:
                card = await db.get(Card, card_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to read card %s", card_id)
            raise PersistenceError(f"Failed to read card {card_id}") from exc
        if card is None:
            raise CardNotFound(card_id)
        return to_card_state(card)

    async def update(self, card_id: str, fields: dict[str, Any]) -> CardState:
        """Write ``fields`` in one UPDATE statement and return the stored row."""
        _check_fields(fields)
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    update(Card)
                    .where(Card.id == card_id)
                    .values(**fields)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    await db.rollback()
                    raise CardNotFound(card_id)
                await db.commit()
                card = (
                    await db.execute(
                        select(Card).where(Card.id == card_id).execution_options(populate_existing=True)
                    )
                ).scalar_one()
        except SQLAlchemyError as exc:
            logger.exception("Failed to update card %s", card_id)
            raise PersistenceError(f"Failed to update card {card_id}") from exc
        return to_card_state(card)

    async def add(self, state: CardState) -> CardState:
        card = Card(
            id=state.card_id,
            kind=state.kind,
            interval=state.interval,
            repetitions=state.repetitions,
            easiness_factor=state.easiness_factor,
            next_due_date=state.next_due_date,
            last_reviewed_date=state.last_reviewed_date,
            last_reviewed=state.last_reviewed,
            streak=state.streak,
            lapses=state.lapses,
            quality_rating=state.quality_rating,
        )
        try:
            async with self._session_factory() as db:
                db.add(card)
                await db.commit()
        except IntegrityError as exc:
            raise CardExists(state.card_id) from exc
        except SQLAlchemyError as exc:
            logger.exception("Failed to add card %s", state.card_id)
            raise PersistenceError(f"Failed to add card {state.card_id}") from exc
        logger.info("Initialized card %s (%s), due %s", state.card_id, state.kind, state.next_due_date)
        return state.copy()
