"""
Card endpoints.
"""
# pyright: reportAttributeAccessIssue=false
# pyright: reportCallIssue=false
# pyright: reportArgumentType=false
from fastapi import APIRouter, Depends, Query, Response, status
from sqlmodel import Session
from typing import Optional
import logging

from app.core.database import get_session
from app.schemas.card import (
    CardResponse,
    CardsResponse,
    CreateCardRequest,
    CreateCardsRequest,
    CardPreviewResponse,
    IntervalPreview,
)
from app.services import card_service
from app.services.card_store import DueCardFilter, SqlCardStore
from app.services.scheduler_service import SchedulerParameters, preview_intervals, format_interval
from app.api.v1.endpoints.session_helpers import get_scheduler_parameters
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cards", tags=["cards"])


@router.post("", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
async def create_card(
    request: CreateCardRequest,
    session: Session = Depends(get_session),
    params: SchedulerParameters = Depends(get_scheduler_parameters)
):
    """Create a flashcard. New cards are due immediately."""
    card = card_service.create_card(
        session,
        user_id=request.user_id,
        front=request.front,
        back=request.back,
        set_id=request.set_id,
        source=request.source,
        params=params,
    )
    return CardResponse.from_card(card)


@router.post("/bulk", response_model=CardsResponse, status_code=status.HTTP_201_CREATED)
async def create_cards(
    request: CreateCardsRequest,
    session: Session = Depends(get_session),
    params: SchedulerParameters = Depends(get_scheduler_parameters)
):
    """Create a batch of flashcards in one transaction."""
    cards = card_service.create_cards(
        session,
        user_id=request.user_id,
        items=[item.model_dump() for item in request.cards],
        set_id=request.set_id,
        source=request.source,
        params=params,
    )
    return CardsResponse(cards=[CardResponse.from_card(card) for card in cards])


@router.get("", response_model=CardsResponse)
async def get_cards(
    user_id: str,
    set_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    session: Session = Depends(get_session)
):
    """Get a user's cards, most recently created first."""
    cards = card_service.list_cards(session, user_id, set_id=set_id, limit=limit, offset=skip)
    return CardsResponse(cards=[CardResponse.from_card(card) for card in cards])


@router.get("/due", response_model=CardsResponse)
async def get_due_cards(
    user_id: str,
    set_id: Optional[int] = None,
    limit: int = Query(100, ge=1),
    session: Session = Depends(get_session)
):
    """
    Get a user's cards that are due now, in review order: most overdue first,
    never-reviewed before least recently reviewed, then by id.
    """
    due = SqlCardStore(session).find_due(user_id, DueCardFilter(set_id=set_id, limit=limit), utcnow())
    return CardsResponse(cards=[CardResponse.from_card(card) for card, _ in due])


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(
    card_id: int,
    user_id: str,
    session: Session = Depends(get_session)
):
    """Get a card with its scheduling state."""
    return CardResponse.from_card(card_service.get_card(session, card_id, user_id))


@router.get("/{card_id}/preview", response_model=CardPreviewResponse)
async def preview_card_intervals(
    card_id: int,
    user_id: str,
    session: Session = Depends(get_session),
    params: SchedulerParameters = Depends(get_scheduler_parameters)
):
    """Interval each rating would give the card, for labelling rating buttons."""
    card = card_service.get_card(session, card_id, user_id)
    intervals = preview_intervals(card.schedule_state(), params)
    return CardPreviewResponse(
        card_id=card_id,
        intervals={
            rating.value: IntervalPreview(interval_days=days, label=format_interval(days))
            for rating, days in intervals.items()
        },
    )


@router.post("/{card_id}/reset", response_model=CardResponse)
async def reset_card(
    card_id: int,
    user_id: str,
    session: Session = Depends(get_session),
    params: SchedulerParameters = Depends(get_scheduler_parameters)
):
    """Forget a card's progress; it becomes new and due immediately."""
    card = card_service.reset_card_schedule(session, card_id, user_id, params=params)
    return CardResponse.from_card(card)


@router.delete("/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_card(
    card_id: int,
    user_id: str,
    session: Session = Depends(get_session)
):
    """Delete a card together with its scheduling state and review log."""
    card_service.delete_card(session, card_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
