"""Tests for the outcome recorder and review service over the in-memory store."""

import asyncio
from datetime import datetime, timedelta

import pytest

from flashcards.srs.errors import CardNotFound, InvalidGrade, InvalidState, StaleState
from flashcards.srs.planner import SessionPlanner
from flashcards.srs.recorder import OutcomeRecorder
from flashcards.srs.scheduler import Scheduler
from flashcards.srs.service import ReviewService
from flashcards.srs.state import Grade, Phase, ReviewState
from flashcards.srs.store import InMemoryReviewStore

T0 = datetime(2026, 3, 2, 9, 0, 0)
USER = "user_a"


def _store() -> InMemoryReviewStore:
    store = InMemoryReviewStore()
    store.add_card(1, deck_id=1, user_id=USER, created_at=T0 - timedelta(days=3))
    store.add_card(2, deck_id=1, user_id=USER, created_at=T0 - timedelta(days=2))
    store.add_card(3, deck_id=2, user_id="user_b", created_at=T0 - timedelta(days=1))
    return store


# --- Outcome recorder ---


class TestOutcomeRecorder:
    def setup_method(self) -> None:
        self.store = _store()
        self.recorder = OutcomeRecorder(self.store, Scheduler())

    @pytest.mark.asyncio
    async def test_new_card_good(self) -> None:
        state = await self.recorder.record(1, USER, Grade.GOOD, T0)
        assert state.phase is Phase.LEARNING
        assert state.repetitions == 1
        assert state.lapses == 0
        assert state.version == 0

    @pytest.mark.asyncio
    async def test_does_not_persist(self) -> None:
        await self.recorder.record(1, USER, Grade.GOOD, T0)
        assert self.store.states == {}
        assert self.store.logs == []

    @pytest.mark.asyncio
    async def test_accepts_grade_names_and_values(self) -> None:
        by_name = await self.recorder.record(1, USER, "easy", T0)
        by_value = await self.recorder.record(1, USER, 4, T0)
        assert by_name == by_value

    @pytest.mark.asyncio
    async def test_card_not_found(self) -> None:
        with pytest.raises(CardNotFound):
            await self.recorder.record(999, USER, Grade.GOOD, T0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("grade", [0, 5, "meh", None, 2.5])
    async def test_invalid_grade(self, grade: object) -> None:
        with pytest.raises(InvalidGrade):
            await self.recorder.record(1, USER, grade, T0)  # type: ignore[arg-type]
        assert self.store.states == {}

    @pytest.mark.asyncio
    async def test_invalid_grade_checked_before_lookup(self) -> None:
        with pytest.raises(InvalidGrade):
            await self.recorder.record(999, USER, "meh", T0)

    @pytest.mark.asyncio
    async def test_stale_expected_version(self) -> None:
        await self.store.save_review_state(1, USER, Scheduler().new_state(T0), 0)
        with pytest.raises(StaleState) as exc_info:
            await self.recorder.record(1, USER, Grade.GOOD, T0, expected_version=0)
        assert exc_info.value.actual == 1

    @pytest.mark.asyncio
    async def test_invalid_stored_state_propagates(self) -> None:
        corrupt = ReviewState(
            stability=-1.0,
            difficulty=5.0,
            repetitions=1,
            lapses=0,
            due_at=T0,
            last_reviewed_at=T0 - timedelta(days=1),
            phase=Phase.REVIEW,
            version=3,
        )
        self.store.states[(1, USER)] = corrupt
        with pytest.raises(InvalidState):
            await self.recorder.record(1, USER, Grade.GOOD, T0)
        assert self.store.states[(1, USER)] is corrupt


# --- Review service ---


class TestReviewService:
    def setup_method(self) -> None:
        self.store = _store()
        self.service = ReviewService(self.store, Scheduler(), SessionPlanner(default_limit=10))

    @pytest.mark.asyncio
    async def test_submit_persists_and_bumps_version(self) -> None:
        first = await self.service.submit_review(1, USER, Grade.GOOD, T0, expected_version=0)
        assert first.version == 1
        assert await self.service.load_review_state(1, USER) == first

        second = await self.service.submit_review(
            1, USER, Grade.GOOD, first.due_at, expected_version=1
        )
        assert second.version == 2
        assert second.phase is Phase.REVIEW
        assert len(self.store.logs) == 2
        assert self.store.logs[0].before.phase is Phase.NEW
        assert self.store.logs[1].after == second

    @pytest.mark.asyncio
    async def test_concurrent_submissions_one_wins(self) -> None:
        results = await asyncio.gather(
            self.service.submit_review(1, USER, Grade.GOOD, T0, expected_version=0),
            self.service.submit_review(1, USER, Grade.EASY, T0, expected_version=0),
            return_exceptions=True,
        )
        succeeded = [r for r in results if isinstance(r, ReviewState)]
        stale = [r for r in results if isinstance(r, StaleState)]
        assert len(succeeded) == 1
        assert len(stale) == 1
        assert self.store.states[(1, USER)].version == 1
        assert len(self.store.logs) == 1

    @pytest.mark.asyncio
    async def test_retry_after_stale_succeeds(self) -> None:
        await self.service.submit_review(1, USER, Grade.GOOD, T0, expected_version=0)
        with pytest.raises(StaleState):
            await self.service.submit_review(1, USER, Grade.HARD, T0, expected_version=0)
        current = await self.service.load_review_state(1, USER)
        retried = await self.service.submit_review(
            1, USER, Grade.HARD, T0, expected_version=current.version
        )
        assert retried.version == 2

    @pytest.mark.asyncio
    async def test_invalid_grade_leaves_no_trace(self) -> None:
        with pytest.raises(InvalidGrade):
            await self.service.submit_review(1, USER, 9, T0, expected_version=0)
        assert self.store.states == {}
        assert self.store.logs == []

    @pytest.mark.asyncio
    async def test_list_due_cards_scoped_to_user(self) -> None:
        assert await self.service.list_due_cards(USER, T0) == [1, 2]
        assert await self.service.list_due_cards("user_b", T0) == [3]
        assert await self.service.list_due_cards("nobody", T0) == []

    @pytest.mark.asyncio
    async def test_reviewed_card_leaves_due_list(self) -> None:
        state = await self.service.submit_review(1, USER, Grade.GOOD, T0, expected_version=0)
        assert await self.service.list_due_cards(USER, T0) == [2]
        assert await self.service.list_due_cards(USER, state.due_at) == [2, 1]

    @pytest.mark.asyncio
    async def test_lapsed_card_comes_first(self) -> None:
        now = T0
        state = await self.service.submit_review(1, USER, Grade.GOOD, now, expected_version=0)
        state = await self.service.submit_review(
            1, USER, Grade.GOOD, state.due_at, expected_version=state.version
        )
        assert state.phase is Phase.REVIEW
        state = await self.service.submit_review(
            1, USER, Grade.AGAIN, state.due_at, expected_version=state.version
        )
        assert state.phase is Phase.RELEARNING
        assert await self.service.list_due_cards(USER, state.due_at) == [1, 2]

    @pytest.mark.asyncio
    async def test_list_due_cards_limit(self) -> None:
        assert await self.service.list_due_cards(USER, T0, limit=1) == [1]
        assert await self.service.list_due_cards(USER, T0, limit=0) == []

    @pytest.mark.asyncio
    async def test_removed_card_not_found(self) -> None:
        await self.service.submit_review(1, USER, Grade.GOOD, T0, expected_version=0)
        self.store.remove_card(1)
        assert await self.service.load_review_state(1, USER) is None
        with pytest.raises(CardNotFound):
            await self.service.submit_review(1, USER, Grade.GOOD, T0, expected_version=1)
