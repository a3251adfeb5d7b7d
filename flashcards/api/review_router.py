"""API routes for study sessions: due cards, previews and graded reviews."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flashcards.api.deps import current_user_id, get_owned_card, get_review_service
from flashcards.api.schemas import (
    DueCardResponse,
    DueCardsResponse,
    GradePreview,
    ReviewPreviewResponse,
    ReviewRequest,
    ReviewStateResponse,
)
from flashcards.config import utcnow
from flashcards.database import get_session
from flashcards.models.card import Card
from flashcards.srs.service import ReviewService
from flashcards.srs.state import ReviewState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/review", tags=["review"])


def _state_response(state: ReviewState) -> ReviewStateResponse:
    return ReviewStateResponse(
        phase=state.phase.value,
        stability=state.stability,
        difficulty=state.difficulty,
        repetitions=state.repetitions,
        lapses=state.lapses,
        due_at=state.due_at,
        last_reviewed_at=state.last_reviewed_at,
        version=state.version,
    )


@router.get("/due", response_model=DueCardsResponse)
async def due_cards(
    limit: int | None = Query(default=None, ge=0, le=500),
    user_id: str = Depends(current_user_id),
    service: ReviewService = Depends(get_review_service),
    db: AsyncSession = Depends(get_session),
) -> DueCardsResponse:
    """List the cards to study now, in review order."""
    plan = await service.plan_session(user_id, utcnow(), limit)

    cards_by_id: dict[int, Card] = {}
    if plan.card_ids:
        stmt = select(Card).where(Card.id.in_(plan.card_ids))
        cards_by_id = {card.id: card for card in (await db.execute(stmt)).scalars().all()}

    cards = []
    for card_id in plan.card_ids:
        card = cards_by_id.get(card_id)
        if card is None:
            # Deleted since the plan was built
            continue
        state = plan.states.get(card_id)
        cards.append(
            DueCardResponse(
                card_id=card.id,
                deck_id=card.deck_id,
                front=card.front,
                back=card.back,
                state=_state_response(state) if state is not None else None,
            )
        )

    return DueCardsResponse(
        cards=cards,
        total_due=plan.total_due,
        relearning=plan.relearning,
        new=plan.new,
        review=plan.review,
    )


@router.get("/{card_id}/preview", response_model=ReviewPreviewResponse)
async def preview_review(
    card_id: int,
    user_id: str = Depends(current_user_id),
    service: ReviewService = Depends(get_review_service),
    db: AsyncSession = Depends(get_session),
) -> ReviewPreviewResponse:
    """Show where each grade would schedule the card next."""
    await get_owned_card(db, card_id, user_id)
    now = utcnow()
    state = await service.recorder.load_current(card_id, user_id, now)
    outcomes = service.scheduler.preview(state, now)

    return ReviewPreviewResponse(
        card_id=card_id,
        retrievability=round(service.scheduler.retrievability(state, now), 4),
        options=[
            GradePreview(
                grade=grade.name.lower(),
                phase=result.state.phase.value,
                due_at=result.state.due_at,
                interval_days=round(result.interval.total_seconds() / 86400, 3),
            )
            for grade, result in outcomes.items()
        ],
    )


@router.post("/{card_id}", response_model=ReviewStateResponse)
async def submit_review(
    card_id: int,
    request: ReviewRequest,
    user_id: str = Depends(current_user_id),
    service: ReviewService = Depends(get_review_service),
    db: AsyncSession = Depends(get_session),
) -> ReviewStateResponse:
    """Grade a card.

    ``expected_version`` must be the version last read for this card;
    a concurrent write makes this return 409 and the client should reload.
    """
    await get_owned_card(db, card_id, user_id)
    state = await service.submit_review(
        card_id=card_id,
        user_id=user_id,
        grade=request.grade,
        now=utcnow(),
        expected_version=request.expected_version,
    )
    return _state_response(state)
