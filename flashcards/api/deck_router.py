"""API routes for managing decks and their cards."""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flashcards.api.deps import current_user_id, get_owned_card, get_owned_deck
from flashcards.api.schemas import (
    CardCreate,
    CardResponse,
    CardUpdate,
    DeckCreate,
    DeckResponse,
    DeckUpdate,
)
from flashcards.database import get_session
from flashcards.models.card import Card
from flashcards.models.deck import Deck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["decks"])


@router.post("/decks", response_model=DeckResponse, status_code=201)
async def create_deck(
    request: DeckCreate,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> Deck:
    deck = Deck(user_id=user_id, title=request.title, description=request.description)
    db.add(deck)
    await db.commit()
    logger.info("Created deck %d for user %s", deck.id, user_id)
    return deck


@router.get("/decks", response_model=list[DeckResponse])
async def list_decks(
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> list[Deck]:
    stmt = select(Deck).where(Deck.user_id == user_id).order_by(Deck.created_at, Deck.id)
    return list((await db.execute(stmt)).scalars().all())


@router.get("/decks/{deck_id}", response_model=DeckResponse)
async def get_deck(
    deck_id: int,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> Deck:
    return await get_owned_deck(db, deck_id, user_id)


@router.patch("/decks/{deck_id}", response_model=DeckResponse)
async def update_deck(
    deck_id: int,
    request: DeckUpdate,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> Deck:
    deck = await get_owned_deck(db, deck_id, user_id)
    for key, value in request.model_dump(exclude_unset=True).items():
        setattr(deck, key, value)
    await db.commit()
    await db.refresh(deck)
    return deck


@router.delete("/decks/{deck_id}", status_code=204)
async def delete_deck(
    deck_id: int,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Delete a deck; its cards and their review history go with it."""
    deck = await get_owned_deck(db, deck_id, user_id)
    await db.delete(deck)
    await db.commit()
    logger.info("Deleted deck %d for user %s", deck_id, user_id)
    return Response(status_code=204)


@router.post("/decks/{deck_id}/cards", response_model=CardResponse, status_code=201)
async def create_card(
    deck_id: int,
    request: CardCreate,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> Card:
    await get_owned_deck(db, deck_id, user_id)
    card = Card(deck_id=deck_id, front=request.front, back=request.back)
    db.add(card)
    await db.commit()
    return card


@router.get("/decks/{deck_id}/cards", response_model=list[CardResponse])
async def list_cards(
    deck_id: int,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> list[Card]:
    await get_owned_deck(db, deck_id, user_id)
    stmt = select(Card).where(Card.deck_id == deck_id).order_by(Card.created_at, Card.id)
    return list((await db.execute(stmt)).scalars().all())


@router.patch("/cards/{card_id}", response_model=CardResponse)
async def update_card(
    card_id: int,
    request: CardUpdate,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> Card:
    card = await get_owned_card(db, card_id, user_id)
    for key, value in request.model_dump(exclude_unset=True).items():
        setattr(card, key, value)
    await db.commit()
    await db.refresh(card)
    return card


@router.delete("/cards/{card_id}", status_code=204)
async def delete_card(
    card_id: int,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_session),
) -> Response:
    card = await get_owned_card(db, card_id, user_id)
    await db.delete(card)
    await db.commit()
    return Response(status_code=204)
