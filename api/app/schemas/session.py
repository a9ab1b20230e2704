"""
Review session schemas.
"""
from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime
from app.models.enums import SessionStatus
from app.schemas.card import CardResponse, ScheduleStateResponse
from app.services.session_service import ReviewSession


class StartSessionRequest(BaseModel):
    """Request to start a review session over the user's due cards."""
    user_id: str = Field(..., description="Owner of the cards")
    set_id: Optional[int] = Field(None, description="Only review cards of this set")
    limit: Optional[int] = Field(None, ge=1, description="Maximum number of cards in the session")


class SessionResponse(BaseModel):
    """Review session state."""
    id: str
    user_id: str
    set_id: Optional[int] = None
    status: SessionStatus
    card_ids: List[int]
    cursor: int
    current_card_id: Optional[int] = None
    started_at: datetime
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_session(cls, review_session: ReviewSession) -> "SessionResponse":
        return cls(
            id=review_session.id,
            user_id=review_session.user_id,
            set_id=review_session.set_id,
            status=review_session.status,
            card_ids=review_session.card_ids,
            cursor=review_session.cursor,
            current_card_id=review_session.current_card_id,
            started_at=review_session.started_at,
            paused_at=review_session.paused_at,
            completed_at=review_session.completed_at,
        )


class CurrentCardResponse(BaseModel):
    """Card awaiting a rating; card is None once the session is exhausted."""
    session_id: str
    status: SessionStatus
    card: Optional[CardResponse] = None


class SubmitRatingRequest(BaseModel):
    """Rating for the current card of a session."""
    user_id: str = Field(..., description="Owner of the session")
    card_id: int = Field(..., description="Card being rated")
    rating: Any = Field(..., description="'again', 'hard', 'good', 'easy' ('medium' = good) or 1-4")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "3f1c2b9e-user",
                "card_id": 42,
                "rating": "good"
            }
        }


class SkipCardRequest(BaseModel):
    """Move past the current card without rating it."""
    user_id: str
    card_id: int


class SubmitRatingResponse(BaseModel):
    session_id: str
    card_id: int
    rating: str
    schedule: ScheduleStateResponse
    next_review_human: str
    session_status: SessionStatus
    next_card_id: Optional[int] = None


class SessionStatsResponse(BaseModel):
    session_id: str
    status: SessionStatus
    reviewed_count: int
    skipped_count: int
    remaining_count: int
    total_count: int
    started_at: datetime
