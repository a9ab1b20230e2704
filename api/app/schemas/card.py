"""
Card and card set schemas.
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime
from app.models.card import Card
from app.models.enums import CardSource
from app.models.schedule import ScheduleState


class ScheduleStateResponse(BaseModel):
    """Scheduling state of a card."""
    repetition_count: int
    ease_factor: float
    interval_days: int
    due_at: datetime
    last_reviewed_at: Optional[datetime] = None

    @classmethod
    def from_state(cls, state: ScheduleState) -> "ScheduleStateResponse":
        return cls(**state.model_dump())


class CardResponse(BaseModel):
    """Card response schema."""
    id: int
    user_id: str
    set_id: Optional[int] = None
    front: str
    back: str
    source: CardSource
    created_at: datetime
    schedule: ScheduleStateResponse

    @classmethod
    def from_card(cls, card: Card) -> "CardResponse":
        return cls(
            id=card.id,
            user_id=card.user_id,
            set_id=card.set_id,
            front=card.front,
            back=card.back,
            source=CardSource(card.source),
            created_at=card.created_at,
            schedule=ScheduleStateResponse.from_state(card.schedule_state()),
        )


class CreateCardRequest(BaseModel):
    """Request schema for creating a card."""
    user_id: str = Field(..., description="Owner of the card (identity provider subject)")
    front: str = Field(..., min_length=1, max_length=2000, description="Prompt text")
    back: str = Field(..., min_length=1, max_length=2000, description="Expected answer text")
    set_id: Optional[int] = Field(None, description="Optional card set ID")
    source: CardSource = Field(CardSource.MANUAL, description="'ai' or 'manual'")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "3f1c2b9e-user",
                "front": "What is the capital of Portugal?",
                "back": "Lisbon",
                "set_id": None,
                "source": "manual"
            }
        }


class CardContent(BaseModel):
    front: str = Field(..., min_length=1, max_length=2000)
    back: str = Field(..., min_length=1, max_length=2000)


class CreateCardsRequest(BaseModel):
    """Request schema for creating a batch of cards (e.g. accepted AI suggestions)."""
    user_id: str = Field(..., description="Owner of the cards")
    cards: List[CardContent] = Field(..., min_length=1, description="Card contents")
    set_id: Optional[int] = Field(None, description="Optional card set ID")
    source: CardSource = Field(CardSource.AI, description="'ai' or 'manual'")


class CardsResponse(BaseModel):
    """Response schema for a list of cards."""
    cards: List[CardResponse]


class IntervalPreview(BaseModel):
    interval_days: int
    label: str


class CardPreviewResponse(BaseModel):
    """Interval each rating would produce for a card, keyed by rating value."""
    card_id: int
    intervals: Dict[str, IntervalPreview]


class CardSetResponse(BaseModel):
    """Card set response schema."""
    id: int
    user_id: str
    name: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreateCardSetRequest(BaseModel):
    """Request schema for creating a card set."""
    user_id: str
    name: str = Field(..., min_length=1, max_length=200)


class CardSetsResponse(BaseModel):
    """Response schema for card sets list."""
    sets: List[CardSetResponse]
