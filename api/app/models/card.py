"""
Card model.
"""
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime
from sqlalchemy import Column, String as SAString
from app.models.enums import CardSource
from app.models.schedule import ScheduleState
from app.utils.time_utils import utcnow, ensure_utc

if TYPE_CHECKING:
    from app.models.card_set import CardSet
    from app.models.review import Review


class Card(SQLModel, table=True):
    """Card table - a flashcard and its scheduling state.

    The scheduling columns mirror ScheduleState; they live on the card row so
    that saving a schedule is a single-row write and deleting the card
    deletes its schedule.
    """
    __tablename__ = "card"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)  # Subject id issued by the identity provider
    set_id: Optional[int] = Field(default=None, foreign_key="card_set.id", index=True)
    front: str  # Prompt (opaque to the scheduler)
    back: str  # Expected response (opaque to the scheduler)
    source: CardSource = Field(
        default=CardSource.MANUAL,
        sa_column=Column(SAString, default=CardSource.MANUAL.value)
    )  # 'ai' or 'manual' - stored as string, converted to enum
    created_at: datetime = Field(default_factory=utcnow)

    # Scheduling state
    repetition_count: int = Field(default=0)
    ease_factor: float = Field(default=2.5)
    interval_days: int = Field(default=0)
    due_at: datetime = Field(default_factory=utcnow, index=True)
    last_reviewed_at: Optional[datetime] = None

    # Relationships
    card_set: Optional["CardSet"] = Relationship(back_populates="cards")
    reviews: List["Review"] = Relationship(back_populates="card", cascade_delete=True)

    def schedule_state(self) -> ScheduleState:
        """Snapshot of the card's scheduling columns as a ScheduleState."""
        return ScheduleState(
            repetition_count=self.repetition_count,
            ease_factor=self.ease_factor,
            interval_days=self.interval_days,
            due_at=ensure_utc(self.due_at),
            last_reviewed_at=ensure_utc(self.last_reviewed_at),
        )

    def apply_schedule_state(self, state: ScheduleState) -> None:
        """Copy every field of a ScheduleState onto the card."""
        self.repetition_count = state.repetition_count
        self.ease_factor = state.ease_factor
        self.interval_days = state.interval_days
        self.due_at = ensure_utc(state.due_at)
        self.last_reviewed_at = ensure_utc(state.last_reviewed_at)
