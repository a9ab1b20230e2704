"""
Helper dependencies wiring the review engine to the request's database session.
"""
from fastapi import Depends
from sqlmodel import Session

from app.core.config import settings
from app.core.database import get_session
from app.services.card_store import SqlCardStore
from app.services.scheduler_service import SchedulerParameters
from app.services.session_service import SessionManager, SqlSessionStore


def get_scheduler_parameters() -> SchedulerParameters:
    """Scheduler constants from application settings."""
    return SchedulerParameters.from_settings(settings)


def get_session_manager(
    session: Session = Depends(get_session),
    params: SchedulerParameters = Depends(get_scheduler_parameters)
) -> SessionManager:
    """A SessionManager bound to this request's database session."""
    return SessionManager(
        card_store=SqlCardStore(session),
        session_store=SqlSessionStore(session),
        params=params,
        max_cards=settings.session_max_cards,
    )
