"""API routes for user statistics and dashboard data."""

import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import and_, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from flashcards.api.deps import current_user_id
from flashcards.api.schemas import UserStatsResponse
from flashcards.config import utcnow
from flashcards.database import get_session
from flashcards.models.card import Card
from flashcards.models.deck import Deck
from flashcards.models.review_log import ReviewLog
from flashcards.models.review_record import ReviewRecord
from flashcards.srs.state import Grade, Phase

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> UserStatsResponse:
    """Get overall statistics for the current user."""
    now = utcnow()

    # Total cards across the user's decks
    total_stmt = (
        select(func.count(Card.id)).join(Deck, Card.deck_id == Deck.id).where(Deck.user_id == user_id)
    )
    total_cards = (await db.execute(total_stmt)).scalar() or 0

    # Cards per phase (cards without a state are new)
    phase_stmt = (
        select(ReviewRecord.phase, func.count(ReviewRecord.id))
        .where(ReviewRecord.user_id == user_id)
        .group_by(ReviewRecord.phase)
    )
    by_phase = {phase: count for phase, count in (await db.execute(phase_stmt)).all()}
    reviewed = sum(by_phase.values())

    # Due: scheduled reviews that have come round, plus every unreviewed card
    due_stmt = select(func.count(ReviewRecord.id)).where(
        and_(ReviewRecord.user_id == user_id, ReviewRecord.due_at <= now)
    )
    scheduled_due = (await db.execute(due_stmt)).scalar() or 0
    never_reviewed = total_cards - reviewed
    cards_new = never_reviewed + by_phase.get(Phase.NEW.value, 0)

    # Total reviews
    reviews_stmt = select(func.count(ReviewLog.id)).where(ReviewLog.user_id == user_id)
    total_reviews = (await db.execute(reviews_stmt)).scalar() or 0

    # Average retention (from recent reviews: % graded Good or Easy)
    recent_cutoff = now - timedelta(days=30)
    retention_total_stmt = select(func.count(ReviewLog.id)).where(
        and_(ReviewLog.user_id == user_id, ReviewLog.reviewed_at >= recent_cutoff)
    )
    retention_pass_stmt = select(func.count(ReviewLog.id)).where(
        and_(
            ReviewLog.user_id == user_id,
            ReviewLog.reviewed_at >= recent_cutoff,
            ReviewLog.grade >= int(Grade.GOOD),
        )
    )
    retention_total = (await db.execute(retention_total_stmt)).scalar() or 0
    retention_pass = (await db.execute(retention_pass_stmt)).scalar() or 0
    average_retention = retention_pass / retention_total if retention_total > 0 else None

    streak_days = await _calculate_streak(db, user_id, now)

    return UserStatsResponse(
        total_cards=total_cards,
        cards_due=scheduled_due + never_reviewed,
        cards_new=cards_new,
        cards_learning=by_phase.get(Phase.LEARNING.value, 0),
        cards_review=by_phase.get(Phase.REVIEW.value, 0),
        cards_relearning=by_phase.get(Phase.RELEARNING.value, 0),
        average_retention=round(average_retention, 3) if average_retention is not None else None,
        streak_days=streak_days,
        total_reviews=total_reviews,
    )


async def _calculate_streak(
    db: AsyncSession,
    user_id: str,
    now: datetime,
) -> int:
    """Calculate the number of consecutive days, ending today, with a review."""
    stmt = (
        select(distinct(func.date(ReviewLog.reviewed_at)))
        .where(ReviewLog.user_id == user_id)
        .order_by(func.date(ReviewLog.reviewed_at).desc())
    )
    result = await db.execute(stmt)
    dates = [row[0] for row in result.all()]

    if not dates:
        return 0

    today = now.date()
    streak = 0

    for i, review_date in enumerate(dates):
        expected = today - timedelta(days=i)
        if str(review_date) == str(expected):
            streak += 1
        else:
            break

    return streak
