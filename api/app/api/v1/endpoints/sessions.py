"""
Review session endpoints.
"""
# pyright: reportAttributeAccessIssue=false
# pyright: reportCallIssue=false
# pyright: reportArgumentType=false
from fastapi import APIRouter, Depends, status
import logging

from app.core.exceptions import CardNotFound
from app.models.enums import Rating
from app.schemas.card import CardResponse, ScheduleStateResponse
from app.schemas.session import (
    CurrentCardResponse,
    SessionResponse,
    SessionStatsResponse,
    SkipCardRequest,
    StartSessionRequest,
    SubmitRatingRequest,
    SubmitRatingResponse,
)
from app.services.scheduler_service import format_interval
from app.services.session_service import SelectionCriteria, SessionManager
from app.api.v1.endpoints.session_helpers import get_session_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: StartSessionRequest,
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Start a review session over the user's due cards.

    Cards are queued most overdue first; never-reviewed cards come before
    previously reviewed ones with the same due time. When nothing is due the
    session is returned already completed.
    """
    review_session = manager.start_session(
        request.user_id,
        SelectionCriteria(set_id=request.set_id, limit=request.limit),
    )
    return SessionResponse.from_session(review_session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session_state(
    session_id: str,
    user_id: str,
    manager: SessionManager = Depends(get_session_manager)
):
    """Get the state of a review session."""
    return SessionResponse.from_session(manager.get_session(session_id, user_id=user_id))


@router.get("/{session_id}/current", response_model=CurrentCardResponse)
async def get_current_card(
    session_id: str,
    user_id: str,
    manager: SessionManager = Depends(get_session_manager)
):
    """Get the card awaiting a rating."""
    review_session = manager.get_session(session_id, user_id=user_id)
    card_id = manager.current_card(review_session)
    card_response = None
    if card_id is not None:
        try:
            card, _ = manager.card_store.get(card_id)
            card_response = CardResponse.from_card(card)
        except CardNotFound:
            # Deleted after the session started; the client can skip it
            logger.warning(f"Current card {card_id} of review session {session_id} no longer exists")
    return CurrentCardResponse(
        session_id=review_session.id,
        status=review_session.status,
        card=card_response,
    )


@router.post("/{session_id}/ratings", response_model=SubmitRatingResponse)
async def submit_rating(
    session_id: str,
    request: SubmitRatingRequest,
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Rate the current card of a session.

    Accepted ratings: 'again', 'hard', 'good', 'easy' (also 'medium' for good,
    'fail' for again, or the numbers 1-4). A retry after a failed save is safe:
    the rating is applied exactly once.
    """
    rating = Rating.parse(request.rating)
    review_session = manager.get_session(session_id, user_id=request.user_id)
    new_state = manager.submit_rating(review_session, request.card_id, rating)
    return SubmitRatingResponse(
        session_id=review_session.id,
        card_id=request.card_id,
        rating=rating.value,
        schedule=ScheduleStateResponse.from_state(new_state),
        next_review_human=format_interval(new_state.interval_days),
        session_status=review_session.status,
        next_card_id=manager.current_card(review_session),
    )


@router.post("/{session_id}/skip", response_model=SessionResponse)
async def skip_card(
    session_id: str,
    request: SkipCardRequest,
    manager: SessionManager = Depends(get_session_manager)
):
    """Move past the current card without rating it."""
    review_session = manager.get_session(session_id, user_id=request.user_id)
    manager.skip_card(review_session, request.card_id)
    return SessionResponse.from_session(review_session)


@router.post("/{session_id}/pause", response_model=SessionResponse)
async def pause_session(
    session_id: str,
    user_id: str,
    manager: SessionManager = Depends(get_session_manager)
):
    """Pause a review session; it can be resumed later by id."""
    review_session = manager.get_session(session_id, user_id=user_id)
    return SessionResponse.from_session(manager.pause_session(review_session))


@router.post("/{session_id}/resume", response_model=SessionResponse)
async def resume_session(
    session_id: str,
    user_id: str,
    manager: SessionManager = Depends(get_session_manager)
):
    """Resume a paused review session."""
    return SessionResponse.from_session(manager.resume_session(session_id, user_id=user_id))


@router.get("/{session_id}/stats", response_model=SessionStatsResponse)
async def get_session_stats(
    session_id: str,
    user_id: str,
    manager: SessionManager = Depends(get_session_manager)
):
    """Progress of a review session."""
    stats = manager.session_stats(manager.get_session(session_id, user_id=user_id))
    return SessionStatsResponse(**stats.model_dump())
