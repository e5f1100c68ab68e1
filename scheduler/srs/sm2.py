"""SM-2 spaced repetition algorithm with a custom second-repetition rule.

Based on SuperMemo SM-2. Reference: https://super-memory.com/english/ol/sm2.htm

Key concepts:
- Quality (q): 0-5 recall rating; q >= 3 is a pass.
- Repetitions (n): consecutive passes since the last lapse.
- Interval (I): days until the next review.
- Easiness factor (EF): interval multiplier, floored at 1.3.

Deviation from textbook SM-2: on the second repetition a quality-3 pass gives
3 days instead of 6, so hesitant recalls come back sooner than confident ones.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta

from scheduler.srs.quality import PASSING_QUALITY, clamp_quality, round_half_up

DEFAULT_EASINESS_FACTOR = 2.5
MIN_EASINESS_FACTOR = 1.3

FIRST_INTERVAL = 1
SECOND_INTERVAL_SOMEWHAT = 3  # q == 3 on the second repetition
SECOND_INTERVAL_CONFIDENT = 6  # q >= 4 on the second repetition

# Difficulty thresholds on the easiness factor
EASY_THRESHOLD = 2.5
MEDIUM_THRESHOLD = 1.9


@dataclass
class CardState:
    """The scheduling state of a card as read from or written to a store."""

    card_id: str
    next_due_date: date
    interval: int = FIRST_INTERVAL
    repetitions: int = 0
    easiness_factor: float = DEFAULT_EASINESS_FACTOR
    last_reviewed_date: date | None = None
    last_reviewed: datetime | None = None
    streak: int = 0
    lapses: int = 0
    quality_rating: int | None = None
    kind: str = "flashcard"

    def is_due(self, today: date) -> bool:
        return self.next_due_date <= today

    def copy(self) -> "CardState":
        return replace(self)


@dataclass(frozen=True)
class SM2Result:
    """The outcome of applying one quality rating."""

    interval: int
    repetitions: int
    easiness_factor: float
    next_due_date: date
    quality_rating: int

    @property
    def was_reset(self) -> bool:
        return self.quality_rating < PASSING_QUALITY


def initial_state(
    card_id: str,
    today: date,
    kind: str = "flashcard",
    easiness_factor: float = DEFAULT_EASINESS_FACTOR,
) -> CardState:
    """Create the default schedule for a newly generated card: due today."""
    return CardState(
        card_id=card_id,
        next_due_date=today,
        interval=FIRST_INTERVAL,
        repetitions=0,
        easiness_factor=easiness_factor,
        kind=kind,
    )


def next_easiness_factor(easiness_factor: float, quality: int) -> float:
    """EF' = max(1.3, EF + (0.1 - (5-q) * (0.08 + (5-q) * 0.02))), to 2 decimals."""
    miss = 5 - quality
    ef = max(MIN_EASINESS_FACTOR, easiness_factor + (0.1 - miss * (0.08 + miss * 0.02)))
    return round_half_up(ef * 100) / 100


def calculate_sm2(
    quality: float,
    repetitions: int,
    interval: int,
    easiness_factor: float,
    today: date,
) -> SM2Result:
    """Apply one review to a card's SM-2 state.

    Args:
        quality: Raw quality rating; rounded and clamped to 0-5.
        repetitions: Consecutive passes before this review.
        interval: Current interval in days.
        easiness_factor: Current easiness factor.
        today: Calendar date of the review; the due date is counted from it.

    Returns:
        SM2Result with the new interval, repetitions, EF and due date.
    """
    q = clamp_quality(quality)

    if q >= PASSING_QUALITY:
        if repetitions == 0:
            new_interval = FIRST_INTERVAL
        elif repetitions == 1:
            new_interval = SECOND_INTERVAL_SOMEWHAT if q == PASSING_QUALITY else SECOND_INTERVAL_CONFIDENT
        else:
            # Uses the EF from before this review
            new_interval = round_half_up(interval * easiness_factor)
        new_repetitions = repetitions + 1
    else:
        new_repetitions = 0
        new_interval = FIRST_INTERVAL

    return SM2Result(
        interval=new_interval,
        repetitions=new_repetitions,
        easiness_factor=next_easiness_factor(easiness_factor, q),
        next_due_date=today + timedelta(days=new_interval),
        quality_rating=q,
    )


def difficulty_level(easiness_factor: float) -> str:
    """Bucket an easiness factor into easy / medium / hard."""
    if easiness_factor >= EASY_THRESHOLD:
        return "easy"
    if easiness_factor >= MEDIUM_THRESHOLD:
        return "medium"
    return "hard"


def _plural(count: int, unit: str) -> str:
    return f"1 {unit}" if count == 1 else f"{count} {unit}s"


def format_interval(interval: int) -> str:
    """Human-readable interval: "New", "3 days", "2 weeks", "1 month", ..."""
    if interval == 0:
        return "New"
    if interval < 7:
        return _plural(interval, "day")
    if interval < 30:
        return _plural(interval // 7, "week")
    if interval < 365:
        return _plural(interval // 30, "month")
    return _plural(interval // 365, "year")
