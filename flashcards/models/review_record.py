"""Persisted scheduling state for a (card, user) pair."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flashcards.models.base import Base, TimestampMixin


class ReviewRecord(Base, TimestampMixin):
    """Row form of ``flashcards.srs.state.ReviewState``.

    ``version`` is the compare-and-swap token: every successful write bumps it
    by one, and writers must present the version they read.
    """

    __tablename__ = "review_states"
    __table_args__ = (UniqueConstraint("card_id", "user_id", name="uq_review_state_card_user"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(
        ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phase: Mapped[str] = mapped_column(String(20), nullable=False)  # new, learning, review, relearning
    stability: Mapped[float] = mapped_column(Float, nullable=False)
    difficulty: Mapped[float] = mapped_column(Float, nullable=False)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    card: Mapped["Card"] = relationship(back_populates="review_states")  # type: ignore[name-defined] # noqa: F821
