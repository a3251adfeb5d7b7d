"""Pydantic schemas for API request/response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

# --- Decks & cards ---


class DeckCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None


class DeckUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None


class DeckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    created_at: datetime
    updated_at: datetime


class CardCreate(BaseModel):
    front: str = Field(min_length=1)
    back: str = Field(min_length=1)


class CardUpdate(BaseModel):
    front: str | None = Field(default=None, min_length=1)
    back: str | None = Field(default=None, min_length=1)


class CardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    deck_id: int
    front: str
    back: str
    created_at: datetime
    updated_at: datetime


# --- Review ---


class ReviewStateResponse(BaseModel):
    """Scheduling state of a card for the current user."""

    phase: str  # new, learning, review, relearning
    stability: float
    difficulty: float
    repetitions: int
    lapses: int
    due_at: datetime
    last_reviewed_at: datetime | None
    version: int


class DueCardResponse(BaseModel):
    card_id: int
    deck_id: int
    front: str
    back: str
    state: ReviewStateResponse | None  # None until the first review


class DueCardsResponse(BaseModel):
    """Ordered cards for a study session."""

    cards: list[DueCardResponse]
    total_due: int
    relearning: int
    new: int
    review: int


class ReviewRequest(BaseModel):
    """A graded review. ``grade`` is 1-4 or again/hard/good/easy."""

    grade: StrictInt | StrictStr  # true or 3.0 must not pass as a grade
    expected_version: int = Field(default=0, ge=0)  # 0 for a card never reviewed


class GradePreview(BaseModel):
    grade: str
    phase: str
    due_at: datetime
    interval_days: float


class ReviewPreviewResponse(BaseModel):
    card_id: int
    retrievability: float
    options: list[GradePreview]


# --- Stats ---


class UserStatsResponse(BaseModel):
    """Overall statistics for a user."""

    total_cards: int
    cards_due: int
    cards_new: int  # never reviewed
    cards_learning: int
    cards_review: int
    cards_relearning: int
    average_retention: float | None
    streak_days: int
    total_reviews: int
