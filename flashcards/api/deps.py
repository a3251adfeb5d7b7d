"""Shared FastAPI dependencies."""

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flashcards.database import get_session
from flashcards.models.card import Card
from flashcards.models.deck import Deck
from flashcards.srs.service import ReviewService
from flashcards.srs.sql_store import SqlAlchemyReviewStore


async def current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Return the caller's user id.

    The identity provider's middleware authenticates the request upstream
    and forwards the user id in the ``X-User-Id`` header.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user identity")
    return x_user_id


async def get_review_service(db: AsyncSession = Depends(get_session)) -> ReviewService:
    return ReviewService(SqlAlchemyReviewStore(db))


async def get_owned_deck(db: AsyncSession, deck_id: int, user_id: str) -> Deck:
    """Fetch a deck owned by the user, or 404."""
    deck = await db.get(Deck, deck_id)
    if deck is None or deck.user_id != user_id:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


async def get_owned_card(db: AsyncSession, card_id: int, user_id: str) -> Card:
    """Fetch a card in one of the user's decks, or 404."""
    stmt = (
        select(Card)
        .join(Deck, Card.deck_id == Deck.id)
        .where(Card.id == card_id, Deck.user_id == user_id)
    )
    card = (await db.execute(stmt)).scalar_one_or_none()
    if card is None:
        raise HTTPException(status_code=404, detail="Card not found")
    return card
