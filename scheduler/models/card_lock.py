from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from scheduler.config import utcnow
from scheduler.models.base import Base


class CardLock(Base):
    """A time-bounded claim on a lock key. The primary key is the mutex."""

    __tablename__ = "distributed_locks"

    lock_key: Mapped[str] = mapped_column(String(200), primary_key=True)
    owner: Mapped[str] = mapped_column(String(32), nullable=False)  # token of the current holder
    acquired_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
