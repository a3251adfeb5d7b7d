"""Storage contract for review states, plus an in-memory implementation.

The core never talks to a database directly. Whatever persists review
states must provide at-most-one-writer-wins semantics through
``save_review_state``: a write succeeds only if the stored version still
matches the version the writer read, and bumps it by one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from flashcards.srs.errors import StaleState
from flashcards.srs.planner import DueCandidate
from flashcards.srs.state import Grade, ReviewState


class ReviewStore(Protocol):
    """What the recorder and the review service need from storage."""

    async def card_exists(self, card_id: int) -> bool: ...

    async def load_review_state(self, card_id: int, user_id: str) -> ReviewState | None: ...

    async def list_due_candidates(self, user_id: str, now: datetime) -> list[DueCandidate]:
        """Cards owned by ``user_id`` whose state is absent or due at ``now``."""
        ...

    async def save_review_state(
        self,
        card_id: int,
        user_id: str,
        state: ReviewState,
        expected_version: int,
    ) -> ReviewState:
        """Write ``state`` if the stored version equals ``expected_version``.

        An absent state has version 0.

        Returns:
            The stored state, with its new version.

        Raises:
            StaleState: If another writer got there first.
        """
        ...

    async def record_review(
        self,
        card_id: int,
        user_id: str,
        grade: Grade,
        before: ReviewState,
        after: ReviewState,
        expected_version: int,
    ) -> ReviewState:
        """Write ``after`` as ``save_review_state`` does and log the review with it.

        Both writes land together or not at all.
        """
        ...


@dataclass
class StoredCard:
    card_id: int
    deck_id: int
    user_id: str
    created_at: datetime


@dataclass(frozen=True)
class LoggedReview:
    card_id: int
    user_id: str
    grade: Grade
    before: ReviewState
    after: ReviewState


class InMemoryReviewStore:
    """Dict-backed ReviewStore.

    No method awaits internally, so each call runs to completion on the event
    loop and the version check plus write in ``save_review_state`` is atomic.
    """

    def __init__(self) -> None:
        self.cards: dict[int, StoredCard] = {}
        self.states: dict[tuple[int, str], ReviewState] = {}
        self.logs: list[LoggedReview] = []

    def add_card(self, card_id: int, deck_id: int, user_id: str, created_at: datetime) -> None:
        self.cards[card_id] = StoredCard(card_id, deck_id, user_id, created_at)

    def remove_card(self, card_id: int) -> None:
        """Delete a card together with every state recorded for it."""
        self.cards.pop(card_id, None)
        for key in [key for key in self.states if key[0] == card_id]:
            del self.states[key]

    async def card_exists(self, card_id: int) -> bool:
        return card_id in self.cards

    async def load_review_state(self, card_id: int, user_id: str) -> ReviewState | None:
        return self.states.get((card_id, user_id))

    async def list_due_candidates(self, user_id: str, now: datetime) -> list[DueCandidate]:
        candidates = []
        for card in self.cards.values():
            if card.user_id != user_id:
                continue
            state = self.states.get((card.card_id, user_id))
            if state is None or state.due_at <= now:
                candidates.append(
                    DueCandidate(
                        card_id=card.card_id,
                        deck_id=card.deck_id,
                        created_at=card.created_at,
                        state=state,
                    )
                )
        return candidates

    async def save_review_state(
        self,
        card_id: int,
        user_id: str,
        state: ReviewState,
        expected_version: int,
    ) -> ReviewState:
        key = (card_id, user_id)
        current = self.states.get(key)
        current_version = current.version if current is not None else 0
        if current_version != expected_version:
            raise StaleState(card_id, user_id, expected_version, current_version)
        stored = state.with_version(current_version + 1)
        self.states[key] = stored
        return stored

    async def record_review(
        self,
        card_id: int,
        user_id: str,
        grade: Grade,
        before: ReviewState,
        after: ReviewState,
        expected_version: int,
    ) -> ReviewState:
        stored = await self.save_review_state(card_id, user_id, after, expected_version)
        self.logs.append(LoggedReview(card_id, user_id, grade, before, stored))
        return stored
