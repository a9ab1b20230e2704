"""
CardSet model.
"""
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime
from app.utils.time_utils import utcnow

if TYPE_CHECKING:
    from app.models.card import Card


class CardSet(SQLModel, table=True):
    """CardSet table for grouping a user's flashcards."""
    __tablename__ = "card_set"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    name: str
    created_at: datetime = Field(default_factory=utcnow)

    # Relationships
    cards: List["Card"] = Relationship(back_populates="card_set")
