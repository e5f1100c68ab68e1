"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from scheduler.srs.sm2 import CardState, difficulty_level, format_interval

# --- Cards ---


class CardCreateRequest(BaseModel):
    """Request to initialize a card with the default schedule."""

    card_id: str = Field(min_length=1, max_length=64)
    kind: Literal["flashcard", "quiz"] = "flashcard"


class ReviewRequest(BaseModel):
    """A swipe (``direction``) or a quiz answer (``correct``), not both."""

    direction: str | None = None  # left, up, right
    correct: bool | None = None


class CardResponse(BaseModel):
    card_id: str
    kind: str
    interval: int
    interval_label: str
    repetitions: int
    easiness_factor: float
    difficulty: str
    next_due_date: date
    last_reviewed_date: date | None
    last_reviewed: datetime | None
    streak: int
    lapses: int
    quality_rating: int | None

    @classmethod
    def from_state(cls, state: CardState) -> "CardResponse":
        return cls(
            card_id=state.card_id,
            kind=state.kind,
            interval=state.interval,
            interval_label=format_interval(state.interval),
            repetitions=state.repetitions,
            easiness_factor=state.easiness_factor,
            difficulty=difficulty_level(state.easiness_factor),
            next_due_date=state.next_due_date,
            last_reviewed_date=state.last_reviewed_date,
            last_reviewed=state.last_reviewed,
            streak=state.streak,
            lapses=state.lapses,
            quality_rating=state.quality_rating,
        )


# --- Stats ---


class ReviewStatsResponse(BaseModel):
    """Due status across all cards."""

    total_cards: int
    due_today: int
    overdue: int
    new_cards: int
    mature_cards: int  # repetitions >= 5
    next_due_date: date | None
    difficulty: dict[str, int]


class DueCardsResponse(BaseModel):
    today: date
    total: int
    due_cards: int
    new_cards: int
    cards: list[CardResponse]
