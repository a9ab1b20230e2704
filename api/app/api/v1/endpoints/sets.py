"""
Card set endpoints.
"""
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.database import get_session
from app.schemas.card import CardSetResponse, CardSetsResponse, CreateCardSetRequest
from app.services import card_service

router = APIRouter(prefix="/sets", tags=["sets"])


@router.get("", response_model=CardSetsResponse)
async def get_card_sets(
    user_id: str,
    session: Session = Depends(get_session)
):
    """Get a user's card sets, most recent first."""
    card_sets = card_service.list_card_sets(session, user_id)
    return CardSetsResponse(
        sets=[CardSetResponse.model_validate(card_set) for card_set in card_sets]
    )


@router.post("", response_model=CardSetResponse, status_code=status.HTTP_201_CREATED)
async def create_card_set(
    request: CreateCardSetRequest,
    session: Session = Depends(get_session)
):
    """Create a card set or return the existing one with the same name."""
    card_set = card_service.create_card_set(session, request.user_id, request.name)
    return CardSetResponse.model_validate(card_set)
