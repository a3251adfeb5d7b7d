"""Flashcard model: one question/answer pair inside a deck."""

from sqlalchemy import ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flashcards.models.base import Base, TimestampMixin


class Card(Base, TimestampMixin):
    """A question/answer card owned by exactly one deck."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    deck_id: Mapped[int] = mapped_column(
        ForeignKey("decks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    front: Mapped[str] = mapped_column(Text, nullable=False)  # Question / prompt
    back: Mapped[str] = mapped_column(Text, nullable=False)  # Answer

    deck: Mapped["Deck"] = relationship(back_populates="cards")  # type: ignore[name-defined] # noqa: F821
    review_states: Mapped[list["ReviewRecord"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="card", cascade="all, delete-orphan", passive_deletes=True
    )
    review_logs: Mapped[list["ReviewLog"]] = relationship(  # type: ignore[name-defined] # noqa: F821
        back_populates="card", cascade="all, delete-orphan", passive_deletes=True
    )
