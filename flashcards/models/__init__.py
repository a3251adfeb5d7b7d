"""SQLAlchemy ORM models for the flashcards database."""

from flashcards.models.base import Base
from flashcards.models.card import Card
from flashcards.models.deck import Deck
from flashcards.models.review_log import ReviewLog
from flashcards.models.review_record import ReviewRecord

__all__ = ["Base", "Card", "Deck", "ReviewLog", "ReviewRecord"]
