"""
Models package - imports all models so they register with SQLModel.
"""
# Import enums first
from app.models.enums import Rating, SessionStatus, CardSource

# Value objects
from app.models.schedule import ScheduleState

# Import all tables
from app.models.card_set import CardSet
from app.models.card import Card
from app.models.review import Review
from app.models.review_session import ReviewSessionRecord

__all__ = [
    'Rating',
    'SessionStatus',
    'CardSource',
    'ScheduleState',
    'CardSet',
    'Card',
    'Review',
    'ReviewSessionRecord',
]
