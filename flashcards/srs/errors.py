"""Errors raised by the scheduling core.

All of them are recoverable by the caller: fix the input, reread and retry,
or surface a "please try again" to the learner. The core never retries.
"""


class SchedulingError(Exception):
    """Base class for scheduling core errors."""


class InvalidGrade(SchedulingError):
    """The submitted grade is not one of Again, Hard, Good, Easy."""


class InvalidState(SchedulingError):
    """A stored review state already violates its invariants."""


class CardNotFound(SchedulingError):
    """The referenced card does not exist."""

    def __init__(self, card_id: int) -> None:
        super().__init__(f"Card {card_id} not found")
        self.card_id = card_id


class StaleState(SchedulingError):
    """The review state changed since it was read; reread and retry."""

    def __init__(self, card_id: int, user_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Review state for card {card_id} / user {user_id} is at version {actual}, "
            f"expected {expected}"
        )
        self.card_id = card_id
        self.user_id = user_id
        self.expected = expected
        self.actual = actual
