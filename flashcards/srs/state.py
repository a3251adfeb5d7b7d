"""Review state types shared by the scheduler, planner and stores."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, IntEnum

from flashcards.srs.errors import InvalidGrade


class Grade(IntEnum):
    """Self-reported recall quality for one review."""

    AGAIN = 1  # Complete failure
    HARD = 2  # Recalled with difficulty
    GOOD = 3  # Recalled correctly
    EASY = 4  # Recalled with no effort


class Phase(str, Enum):
    """Lifecycle phase of a card for one user."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


def parse_grade(value: object) -> Grade:
    """Convert a Grade, its integer value or its name into a Grade.

    Raises:
        InvalidGrade: For anything that is not exactly one of the four grades.
            Out-of-range numbers are rejected, not clamped.
    """
    if isinstance(value, Grade):
        return value
    # bool is an int subclass; True must not pass as Again
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return Grade(value)
        except ValueError:
            raise InvalidGrade(f"Unknown grade value: {value!r}") from None
    if isinstance(value, str):
        try:
            return Grade[value.strip().upper()]
        except KeyError:
            raise InvalidGrade(f"Unknown grade name: {value!r}") from None
    raise InvalidGrade(f"Unsupported grade type: {type(value).__name__}")


@dataclass(frozen=True)
class ReviewState:
    """Scheduling memory for one (card, user) pair.

    ``version`` is an opaque compare-and-swap token owned by the store:
    0 means the state has never been persisted.
    """

    stability: float  # Days until recall probability drops to the reference threshold
    difficulty: float  # Intrinsic item hardness, higher = harder
    repetitions: int  # Successful reviews since the last lapse
    lapses: int  # Failed reviews, ever
    due_at: datetime
    last_reviewed_at: datetime | None
    phase: Phase
    version: int = 0

    @classmethod
    def new(cls, now: datetime, stability: float, difficulty: float) -> ReviewState:
        """Create the default state for a card that has never been reviewed."""
        return cls(
            stability=stability,
            difficulty=difficulty,
            repetitions=0,
            lapses=0,
            due_at=now,
            last_reviewed_at=None,
            phase=Phase.NEW,
        )

    def with_version(self, version: int) -> ReviewState:
        return replace(self, version=version)

    @property
    def is_new(self) -> bool:
        return self.phase is Phase.NEW
