"""
Review model.
"""
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy import Column, String as SAString, UniqueConstraint
from app.models.enums import Rating

if TYPE_CHECKING:
    from app.models.card import Card


class Review(SQLModel, table=True):
    """Review table - one row per rating applied to a card."""
    __tablename__ = "review"
    __table_args__ = (
        UniqueConstraint("session_id", "card_id", name="uq_review_session_card"),
    )  # At most one rating per card per session

    id: Optional[int] = Field(default=None, primary_key=True)
    card_id: int = Field(foreign_key="card.id", ondelete="CASCADE", index=True)
    session_id: Optional[str] = Field(default=None, index=True)
    rating: Rating = Field(sa_column=Column(SAString, nullable=False))
    reviewed_at: datetime
    interval_days: int  # Interval that resulted from this rating
    ease_factor: float  # Ease factor that resulted from this rating

    # Relationships
    card: "Card" = Relationship(back_populates="reviews")
