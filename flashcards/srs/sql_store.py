"""SQLAlchemy-backed ReviewStore.

Compare-and-swap is done in the database: updates carry a
``WHERE version = :expected`` guard, and the first write for a (card, user)
pair relies on the unique constraint so two racing inserts cannot both win.
"""

import logging
from datetime import datetime

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from flashcards.config import utcnow
from flashcards.models.card import Card
from flashcards.models.deck import Deck
from flashcards.models.review_log import ReviewLog
from flashcards.models.review_record import ReviewRecord
from flashcards.srs.errors import InvalidState, StaleState
from flashcards.srs.planner import DueCandidate
from flashcards.srs.state import Grade, Phase, ReviewState

logger = logging.getLogger(__name__)


def record_to_state(record: ReviewRecord) -> ReviewState:
    """Convert a stored row into a ReviewState.

    Raises:
        InvalidState: If the stored phase is not a known phase.
    """
    try:
        phase = Phase(record.phase)
    except ValueError:
        raise InvalidState(f"Unknown stored phase: {record.phase!r}") from None
    return ReviewState(
        stability=record.stability,
        difficulty=record.difficulty,
        repetitions=record.repetitions,
        lapses=record.lapses,
        due_at=record.due_at,
        last_reviewed_at=record.last_reviewed_at,
        phase=phase,
        version=record.version,
    )


def _state_columns(state: ReviewState) -> dict:
    return {
        "phase": state.phase.value,
        "stability": state.stability,
        "difficulty": state.difficulty,
        "repetitions": state.repetitions,
        "lapses": state.lapses,
        "due_at": state.due_at,
        "last_reviewed_at": state.last_reviewed_at,
    }


class SqlAlchemyReviewStore:
    """ReviewStore over an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def card_exists(self, card_id: int) -> bool:
        result = await self.session.execute(select(Card.id).where(Card.id == card_id))
        return result.scalar_one_or_none() is not None

    async def load_review_state(self, card_id: int, user_id: str) -> ReviewState | None:
        record = await self._load_record(card_id, user_id)
        return record_to_state(record) if record is not None else None

    async def list_due_candidates(self, user_id: str, now: datetime) -> list[DueCandidate]:
        stmt = (
            select(Card, ReviewRecord)
            .join(Deck, Card.deck_id == Deck.id)
            .outerjoin(
                ReviewRecord,
                and_(ReviewRecord.card_id == Card.id, ReviewRecord.user_id == user_id),
            )
            .where(
                and_(
                    Deck.user_id == user_id,
                    or_(ReviewRecord.id.is_(None), ReviewRecord.due_at <= now),
                )
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return [
            DueCandidate(
                card_id=card.id,
                deck_id=card.deck_id,
                created_at=card.created_at,
                state=record_to_state(record) if record is not None else None,
            )
            for card, record in result.all()
        ]

    async def save_review_state(
        self,
        card_id: int,
        user_id: str,
        state: ReviewState,
        expected_version: int,
    ) -> ReviewState:
        new_version = await self._write_state(card_id, user_id, state, expected_version)
        await self.session.commit()
        return state.with_version(new_version)

    async def record_review(
        self,
        card_id: int,
        user_id: str,
        grade: Grade,
        before: ReviewState,
        after: ReviewState,
        expected_version: int,
    ) -> ReviewState:
        new_version = await self._write_state(card_id, user_id, after, expected_version)
        self.session.add(
            ReviewLog(
                card_id=card_id,
                user_id=user_id,
                grade=int(grade),
                phase_before=before.phase.value,
                phase_after=after.phase.value,
                stability_before=before.stability,
                stability_after=after.stability,
                difficulty_before=before.difficulty,
                difficulty_after=after.difficulty,
                reviewed_at=after.last_reviewed_at or utcnow(),
            )
        )
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return after.with_version(new_version)

    async def _write_state(
        self,
        card_id: int,
        user_id: str,
        state: ReviewState,
        expected_version: int,
    ) -> int:
        """Stage the compare-and-swap write and return the new version; the caller commits."""
        if expected_version == 0:
            await self._insert(card_id, user_id, state)
            return 1

        stmt = (
            update(ReviewRecord)
            .where(
                and_(
                    ReviewRecord.card_id == card_id,
                    ReviewRecord.user_id == user_id,
                    ReviewRecord.version == expected_version,
                )
            )
            .values(
                **_state_columns(state),
                version=ReviewRecord.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount == 0:
            await self.session.rollback()
            raise StaleState(
                card_id, user_id, expected_version, await self._current_version(card_id, user_id)
            )
        return expected_version + 1

    async def _insert(self, card_id: int, user_id: str, state: ReviewState) -> None:
        self.session.add(
            ReviewRecord(card_id=card_id, user_id=user_id, version=1, **_state_columns(state))
        )
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            actual = await self._current_version(card_id, user_id)
            logger.warning(
                "Lost insert race for card %d / user %s (now at version %d)",
                card_id,
                user_id,
                actual,
            )
            raise StaleState(card_id, user_id, 0, actual) from None

    async def _load_record(self, card_id: int, user_id: str) -> ReviewRecord | None:
        stmt = (
            select(ReviewRecord)
            .where(and_(ReviewRecord.card_id == card_id, ReviewRecord.user_id == user_id))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _current_version(self, card_id: int, user_id: str) -> int:
        stmt = select(ReviewRecord.version).where(
            and_(ReviewRecord.card_id == card_id, ReviewRecord.user_id == user_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() or 0
