"""Mapping from learner actions to SM-2 quality ratings.

Flashcards (confidence-based swipes):
- Left swipe (forgot): quality 1, interval resets to 1 day
- Up swipe (somewhat know): quality 3, slow progression (1 -> 3 -> 7 days)
- Right swipe (confident): quality 4, normal progression (1 -> 6 -> 15 days)

Quizzes (correctness only, no confidence signal):
- Incorrect: quality 1
- Correct: quality 3

Quality 5 is never emitted: it grows intervals too fast for frequent low-stakes
practice. Quality 2 is unused.
"""

import math
from dataclasses import dataclass
from enum import Enum, IntEnum

from scheduler.errors import ValidationError

MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3


class QualityScale(IntEnum):
    """The three quality levels this system emits."""

    FORGOT = 1       # Flashcard: left swipe | Quiz: incorrect
    SOMEWHAT = 3     # Flashcard: up swipe | Quiz: correct
    CONFIDENT = 4    # Flashcard: right swipe only


class SwipeDirection(str, Enum):
    LEFT = "left"
    UP = "up"
    RIGHT = "right"


SWIPE_TO_QUALITY = {
    SwipeDirection.LEFT: QualityScale.FORGOT,
    SwipeDirection.UP: QualityScale.SOMEWHAT,
    SwipeDirection.RIGHT: QualityScale.CONFIDENT,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    Python's ``round`` uses banker's rounding (``round(2.5) == 2``), which would
    change long-term interval growth, so it is not used for scheduling math.
    """
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def clamp_quality(value: float) -> int:
    """Clamp a raw quality value into [0, 5] and round it."""
    return round_half_up(max(MIN_QUALITY, min(MAX_QUALITY, value)))


def is_passing(quality: float) -> bool:
    return clamp_quality(quality) >= PASSING_QUALITY


def swipe_to_quality(direction: str | SwipeDirection) -> int:
    """Convert a flashcard swipe direction to a quality rating.

    Unrecognized directions count as "somewhat know".
    """
    try:
        swipe = SwipeDirection(direction)
    except ValueError:
        return int(QualityScale.SOMEWHAT)
    return int(SWIPE_TO_QUALITY[swipe])


def quiz_to_quality(is_correct: bool) -> int:
    """Convert a quiz result to a quality rating (conservative: correct = 3)."""
    return int(QualityScale.SOMEWHAT if is_correct else QualityScale.FORGOT)


@dataclass(frozen=True)
class ReviewAction:
    """A single learner action on a card: a flashcard swipe or a quiz answer."""

    direction: str | None = None
    correct: bool | None = None

    @classmethod
    def swipe(cls, direction: str | SwipeDirection) -> "ReviewAction":
        value = direction.value if isinstance(direction, SwipeDirection) else direction
        return cls(direction=value)

    @classmethod
    def quiz(cls, correct: bool) -> "ReviewAction":
        return cls(correct=correct)

    def to_quality(self) -> int:
        """Return the quality rating for this action.

        Raises:
            ValidationError: If the action is neither a swipe nor a quiz answer,
                or claims to be both.
        """
        if self.direction is not None and self.correct is not None:
            raise ValidationError("Review action must be a swipe or a quiz answer, not both")
        if self.direction is not None:
            return swipe_to_quality(self.direction)
        if self.correct is not None:
            return quiz_to_quality(self.correct)
        raise ValidationError("Review action needs a swipe direction or a quiz result")

    def describe(self) -> str:
        if self.direction is not None:
            return f"swipe:{self.direction}"
        return f"quiz:{'correct' if self.correct else 'incorrect'}"
