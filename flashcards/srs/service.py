"""Review service: the entry points the HTTP layer calls.

Coordinates the session planner, the outcome recorder and the store's
compare-and-swap write into the three operations the API exposes.
"""

import logging
from datetime import datetime

from flashcards.srs.errors import StaleState
from flashcards.srs.planner import SessionPlan, SessionPlanner
from flashcards.srs.recorder import OutcomeRecorder
from flashcards.srs.scheduler import Scheduler
from flashcards.srs.state import Grade, ReviewState
from flashcards.srs.store import ReviewStore

logger = logging.getLogger(__name__)


class ReviewService:
    """Study-session operations over a ReviewStore."""

    def __init__(
        self,
        store: ReviewStore,
        scheduler: Scheduler | None = None,
        planner: SessionPlanner | None = None,
    ) -> None:
        self.store = store
        self.scheduler = scheduler or Scheduler()
        self.planner = planner or SessionPlanner()
        self.recorder = OutcomeRecorder(store, self.scheduler)

    async def load_review_state(self, card_id: int, user_id: str) -> ReviewState | None:
        return await self.store.load_review_state(card_id, user_id)

    async def plan_session(
        self,
        user_id: str,
        now: datetime,
        limit: int | None = None,
    ) -> SessionPlan:
        """Plan a study session for a learner."""
        candidates = await self.store.list_due_candidates(user_id, now)
        plan = self.planner.plan(candidates, now, limit)
        logger.info(
            "Planned session for user %s: %d cards (%d due in total)",
            user_id,
            plan.total,
            plan.total_due,
        )
        return plan

    async def list_due_cards(
        self,
        user_id: str,
        now: datetime,
        limit: int | None = None,
    ) -> list[int]:
        """Return the ids of due cards in review order, capped at ``limit``."""
        plan = await self.plan_session(user_id, now, limit)
        return plan.card_ids

    async def submit_review(
        self,
        card_id: int,
        user_id: str,
        grade: Grade | int | str,
        now: datetime,
        expected_version: int,
    ) -> ReviewState:
        """Grade a card and persist the resulting state.

        Of several submissions made against the same ``expected_version``,
        exactly one succeeds; the rest raise StaleState and must reread.

        Returns:
            The persisted ReviewState with its new version.

        Raises:
            InvalidGrade, InvalidState, CardNotFound, StaleState.
        """
        before, parsed, result = await self.recorder.evaluate(
            card_id, user_id, grade, now, expected_version
        )
        try:
            saved = await self.store.record_review(
                card_id, user_id, parsed, before, result.state, expected_version
            )
        except StaleState:
            logger.warning(
                "Stale review for card %d / user %s at version %d",
                card_id,
                user_id,
                expected_version,
            )
            raise

        logger.info(
            "Recorded %s for card %d / user %s: %s -> %s, due %s",
            parsed.name,
            card_id,
            user_id,
            before.phase.value,
            saved.phase.value,
            saved.due_at,
        )
        return saved
