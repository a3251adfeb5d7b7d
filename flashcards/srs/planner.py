"""Session planning: which cards are due now, in what order, and how many.

Ordering is fully deterministic (no random jitter) so a given set of
candidates always produces the same session:

1. Relearning cards, most overdue first. They decay fastest.
2. New cards (no state yet, or still in the New phase) by deck, then creation.
3. Learning and Review cards, most overdue first.

Any remaining tie is broken by card id.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from flashcards.config import settings
from flashcards.srs.state import Phase, ReviewState

logger = logging.getLogger(__name__)

RANK_RELEARNING = 0
RANK_NEW = 1
RANK_REVIEW = 2


@dataclass(frozen=True)
class DueCandidate:
    """A card the store considers for a session, with its state if it has one."""

    card_id: int
    deck_id: int
    created_at: datetime
    state: ReviewState | None = None

    def is_due(self, now: datetime) -> bool:
        """Return True if the card should be reviewed at ``now``."""
        return self.state is None or self.state.due_at <= now

    @property
    def rank(self) -> int:
        if self.state is None or self.state.phase is Phase.NEW:
            return RANK_NEW
        if self.state.phase is Phase.RELEARNING:
            return RANK_RELEARNING
        return RANK_REVIEW


@dataclass
class SessionPlan:
    """Ordered card ids for one study session."""

    card_ids: list[int] = field(default_factory=list)
    relearning: int = 0
    new: int = 0
    review: int = 0
    total_due: int = 0  # Due before the batch cap was applied
    states: dict[int, ReviewState | None] = field(default_factory=dict)  # By selected card id

    @property
    def total(self) -> int:
        return len(self.card_ids)


def _sort_key(candidate: DueCandidate) -> tuple:
    rank = candidate.rank
    if rank == RANK_NEW:
        return (rank, candidate.deck_id, candidate.created_at, candidate.card_id)
    return (rank, candidate.state.due_at, candidate.card_id)  # type: ignore[union-attr]


class SessionPlanner:
    """Selects and orders the due cards for a study session."""

    def __init__(self, default_limit: int = settings.max_cards_per_session) -> None:
        self.default_limit = default_limit

    def plan(
        self,
        candidates: Iterable[DueCandidate],
        now: datetime,
        limit: int | None = None,
    ) -> SessionPlan:
        """Build a session plan.

        Args:
            candidates: Cards owned by the learner, with their states.
            now: Time the session starts; a card due exactly at ``now`` is due.
            limit: Maximum cards in the session (defaults to ``default_limit``).

        Returns:
            A SessionPlan whose ``card_ids`` is the head of the full ordering.
            Empty when nothing is due.

        Raises:
            ValueError: If ``limit`` is negative.
        """
        limit = self.default_limit if limit is None else limit
        if limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")

        due = sorted((c for c in candidates if c.is_due(now)), key=_sort_key)
        selected = due[:limit]

        plan = SessionPlan(card_ids=[c.card_id for c in selected], total_due=len(due))
        for candidate in selected:
            plan.states[candidate.card_id] = candidate.state
            if candidate.rank == RANK_RELEARNING:
                plan.relearning += 1
            elif candidate.rank == RANK_NEW:
                plan.new += 1
            else:
                plan.review += 1

        logger.debug(
            "Planned session: %d of %d due (%d relearning, %d new, %d review)",
            plan.total,
            plan.total_due,
            plan.relearning,
            plan.new,
            plan.review,
        )
        return plan
