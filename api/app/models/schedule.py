"""
ScheduleState model.
"""
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class ScheduleState(SQLModel):
    """Scheduling state attached 1:1 to a card (value object, not a table)."""

    repetition_count: int = Field(default=0, ge=0)  # Consecutive successful reviews
    ease_factor: float = Field(gt=0)  # Interval growth multiplier, floored by the scheduler
    interval_days: int = Field(default=0, ge=0)  # 0 only for a never-reviewed card
    due_at: datetime  # Card is due when due_at <= now
    last_reviewed_at: Optional[datetime] = None  # None = never reviewed

    def is_due(self, now: datetime) -> bool:
        return self.due_at <= now
