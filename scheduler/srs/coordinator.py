"""Per-card review coordinator.

Applies a learner action to a stored card under a per-card lock, with at
most one schedule change per card per calendar day.
"""

import logging
from collections.abc import Callable
from datetime import date

from scheduler.config import local_today, utcnow
from scheduler.srs.locks import CardLocker, card_lock_key
from scheduler.srs.quality import ReviewAction
from scheduler.srs.sm2 import CardState, calculate_sm2
from scheduler.srs.store import CardStore
from scheduler.srs.streak import update_streak_and_lapses

logger = logging.getLogger(__name__)


class ReviewCoordinator:
    """Serializes read-modify-write of a card's schedule."""

    def __init__(
        self,
        store: CardStore,
        locker: CardLocker,
        clock: Callable[[], date] = local_today,
    ) -> None:
        self.store = store
        self.locker = locker
        self.clock = clock

    async def review_card(
        self,
        card_id: str,
        action: ReviewAction,
        today: date | None = None,
    ) -> CardState:
        """Apply ``action`` to the card and return its updated state.

        A second review of the same card on the same day returns the stored
        card unchanged, exactly as if it had been applied.

        Args:
            card_id: The card being reviewed.
            action: The learner's swipe or quiz answer.
            today: Calendar date of the review (defaults to the configured clock).

        Raises:
            ValidationError: The action is malformed.
            LockUnavailable: Another review of this card held the lock too long; retry.
            CardNotFound: No such card.
            PersistenceError: The store failed; nothing was written.
        """
        quality = action.to_quality()
        today = today or self.clock()

        async with self.locker.hold(card_lock_key(card_id)):
            card = await self.store.get(card_id)

            if card.last_reviewed_date == today:
                logger.info("Card %s already reviewed on %s, skipping SM-2 update", card_id, today)
                return card

            result = calculate_sm2(quality, card.repetitions, card.interval, card.easiness_factor, today)
            counters = update_streak_and_lapses(quality, card.streak, card.lapses)

            updated = await self.store.update(
                card_id,
                {
                    "interval": result.interval,
                    "repetitions": result.repetitions,
                    "easiness_factor": result.easiness_factor,
                    "next_due_date": result.next_due_date,
                    "last_reviewed_date": today,
                    "last_reviewed": utcnow(),
                    "quality_rating": result.quality_rating,
                    "streak": counters.streak,
                    "lapses": counters.lapses,
                },
            )

        logger.info(
            "Reviewed card %s (%s): quality %d, interval %d -> %d, EF %.2f -> %.2f, next due %s",
            card_id,
            action.describe(),
            result.quality_rating,
            card.interval,
            result.interval,
            card.easiness_factor,
            result.easiness_factor,
            result.next_due_date,
        )
        return updated
