"""Card model holding SM-2 scheduling state for a flashcard or quiz question."""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from scheduler.models.base import Base, TimestampMixin


class Card(Base, TimestampMixin):
    """A reviewable card and its SM-2 schedule."""

    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="flashcard")  # flashcard, quiz
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    easiness_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    next_due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    last_reviewed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_reviewed: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quality_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 0-5, last applied
