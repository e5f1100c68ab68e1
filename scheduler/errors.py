"""
Exceptions raised by the review scheduler.
"""


class SchedulerError(Exception):
    """Base exception for all scheduler errors."""


class ValidationError(SchedulerError):
    """Raised when a review action is malformed."""


class CardNotFound(SchedulerError):
    """Raised when a card identifier does not exist in the store."""

    def __init__(self, card_id: str) -> None:
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class LockUnavailable(SchedulerError):
    """Raised when a card lock could not be acquired within the retry budget.

    Retryable: the caller should present this as "please try again".
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"Failed to acquire lock for key: {key}")
        self.key = key


class PersistenceError(SchedulerError):
    """Raised when the underlying card store read or write fails."""


class CardExists(SchedulerError):
    """Raised when initializing a card whose identifier is already taken."""

    def __init__(self, card_id: str) -> None:
        super().__init__(f"Card already exists: {card_id}")
        self.card_id = card_id
