"""Outcome recorder: the single point where review state changes.

Validates a graded review, loads the current state (or synthesizes a New
one), runs the scheduling engine and hands back the next state. It does not
persist anything; the caller writes the result through the store's
compare-and-swap.
"""

import logging
from datetime import datetime

from flashcards.srs.errors import CardNotFound, StaleState
from flashcards.srs.scheduler import ReviewResult, Scheduler
from flashcards.srs.state import Grade, ReviewState, parse_grade
from flashcards.srs.store import ReviewStore

logger = logging.getLogger(__name__)


class OutcomeRecorder:
    """Turns one graded review event into the next review state."""

    def __init__(self, store: ReviewStore, scheduler: Scheduler | None = None) -> None:
        self.store = store
        self.scheduler = scheduler or Scheduler()

    async def load_current(self, card_id: int, user_id: str, now: datetime) -> ReviewState:
        """Return the stored state, or a fresh New state if there is none.

        Raises:
            CardNotFound: If the card does not exist.
        """
        if not await self.store.card_exists(card_id):
            raise CardNotFound(card_id)
        state = await self.store.load_review_state(card_id, user_id)
        return state if state is not None else self.scheduler.new_state(now)

    async def evaluate(
        self,
        card_id: int,
        user_id: str,
        grade: Grade | int | str,
        now: datetime,
        expected_version: int | None = None,
    ) -> tuple[ReviewState, Grade, ReviewResult]:
        """Run the full recording pipeline, returning (previous state, grade, result)."""
        parsed = parse_grade(grade)
        current = await self.load_current(card_id, user_id, now)
        if expected_version is not None and current.version != expected_version:
            raise StaleState(card_id, user_id, expected_version, current.version)
        result = self.scheduler.review(current, parsed, now)
        return current, parsed, result

    async def record(
        self,
        card_id: int,
        user_id: str,
        grade: Grade | int | str,
        now: datetime,
        expected_version: int | None = None,
    ) -> ReviewState:
        """Compute the state that results from grading a card.

        Args:
            card_id: The reviewed card.
            user_id: The reviewing learner.
            grade: A Grade, or its integer value or name.
            now: Time of the review.
            expected_version: Version the caller read; checked when given.

        Returns:
            The next ReviewState, carrying the version it was derived from.

        Raises:
            InvalidGrade: Unrecognized grade, checked before any lookup.
            CardNotFound: The card does not exist.
            StaleState: The stored version differs from ``expected_version``.
            InvalidState: The stored state violates its invariants.
        """
        _, _, result = await self.evaluate(card_id, user_id, grade, now, expected_version)
        return result.state
