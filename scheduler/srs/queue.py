"""Review queue and due-status statistics.

Read-only views over the ``cards`` table: which cards are due, and how the
learner's schedule looks (due today, overdue, next due date).
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from scheduler.config import settings
from scheduler.models.card import Card
from scheduler.srs.sm2 import CardState, difficulty_level
from scheduler.srs.store import to_card_state

logger = logging.getLogger(__name__)

MATURE_REPETITIONS = 5


@dataclass
class QueueConfig:
    """Configuration for queue building."""

    max_cards: int = settings.max_due_cards
    new_card_ratio: float = 0.25  # 1 new card per 4 reviews


@dataclass
class ReviewQueue:
    """Cards eligible for review today."""

    due_cards: list[CardState] = field(default_factory=list)
    new_cards: list[CardState] = field(default_factory=list)
    total: int = 0

    def interleaved(self) -> list[CardState]:
        """Return reviews with new cards inserted at regular intervals."""
        if not self.new_cards:
            return list(self.due_cards)
        if not self.due_cards:
            return list(self.new_cards)

        result: list[CardState] = []
        new = list(self.new_cards)
        every = max(1, len(self.due_cards) // (len(new) + 1))
        new_idx = 0

        for i, card in enumerate(self.due_cards):
            result.append(card)
            if new_idx < len(new) and (i + 1) % every == 0:
                result.append(new[new_idx])
                new_idx += 1

        result.extend(new[new_idx:])
        return result


@dataclass
class ReviewStats:
    total_cards: int = 0
    due_today: int = 0  # includes overdue
    overdue: int = 0
    new_cards: int = 0
    mature_cards: int = 0
    next_due_date: date | None = None  # earliest date after today
    difficulty: dict[str, int] = field(default_factory=dict)


async def build_queue(
    session: AsyncSession,
    today: date,
    config: QueueConfig | None = None,
) -> ReviewQueue:
    """Build today's review queue.

    Due cards (reviewed before, due on or before today) come most overdue
    first; never-reviewed cards fill the remaining slots, oldest first.
    """
    config = config or QueueConfig()

    due_stmt = (
        select(Card)
        .where(and_(Card.last_reviewed_date.is_not(None), Card.next_due_date <= today))
        .order_by(Card.next_due_date.asc(), Card.id.asc())
        .limit(config.max_cards)
    )
    due_cards = [to_card_state(c) for c in (await session.execute(due_stmt)).scalars().all()]

    new_slots = max(0, config.max_cards - len(due_cards))
    if due_cards:
        new_slots = min(new_slots, max(1, int(len(due_cards) * config.new_card_ratio)))

    new_cards: list[CardState] = []
    if new_slots:
        new_stmt = (
            select(Card)
            .where(and_(Card.last_reviewed_date.is_(None), Card.next_due_date <= today))
            .order_by(Card.created_at.asc(), Card.id.asc())
            .limit(new_slots)
        )
        new_cards = [to_card_state(c) for c in (await session.execute(new_stmt)).scalars().all()]

    queue = ReviewQueue(due_cards=due_cards, new_cards=new_cards, total=len(due_cards) + len(new_cards))
    logger.info(
        "Built queue for %s: %d due + %d new = %d total",
        today,
        len(due_cards),
        len(new_cards),
        queue.total,
    )
    return queue


async def review_stats(session: AsyncSession, today: date) -> ReviewStats:
    """Summarize due status across all cards."""
    total = (await session.execute(select(func.count(Card.id)))).scalar() or 0
    due_today = (
        await session.execute(select(func.count(Card.id)).where(Card.next_due_date <= today))
    ).scalar() or 0
    overdue = (
        await session.execute(select(func.count(Card.id)).where(Card.next_due_date < today))
    ).scalar() or 0
    new_cards = (
        await session.execute(select(func.count(Card.id)).where(Card.last_reviewed_date.is_(None)))
    ).scalar() or 0
    mature = (
        await session.execute(select(func.count(Card.id)).where(Card.repetitions >= MATURE_REPETITIONS))
    ).scalar() or 0
    next_due = (
        await session.execute(select(func.min(Card.next_due_date)).where(Card.next_due_date > today))
    ).scalar()

    factors = (await session.execute(select(Card.easiness_factor))).scalars().all()
    difficulty = Counter(difficulty_level(ef) for ef in factors)

    return ReviewStats(
        total_cards=total,
        due_today=due_today,
        overdue=overdue,
        new_cards=new_cards,
        mature_cards=mature,
        next_due_date=next_due,
        difficulty={level: difficulty.get(level, 0) for level in ("easy", "medium", "hard")},
    )
