"""SQLAlchemy ORM models for the review scheduler database."""

from scheduler.models.base import Base
from scheduler.models.card import Card
from scheduler.models.card_lock import CardLock

__all__ = ["Base", "Card", "CardLock"]
