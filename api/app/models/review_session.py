"""
ReviewSessionRecord model.
"""
from sqlmodel import SQLModel, Field
from typing import Any, Dict
from datetime import datetime
from sqlalchemy import Column, JSON, String as SAString
from app.models.enums import SessionStatus
from app.utils.time_utils import utcnow


class ReviewSessionRecord(SQLModel, table=True):
    """ReviewSessionRecord table - checkpoint of an in-progress review session."""
    __tablename__ = "review_session"

    id: str = Field(primary_key=True)  # Session id (uuid4 hex)
    user_id: str = Field(index=True)
    status: SessionStatus = Field(sa_column=Column(SAString, nullable=False))
    state: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))  # Serialized ReviewSession
    updated_at: datetime = Field(default_factory=utcnow)
