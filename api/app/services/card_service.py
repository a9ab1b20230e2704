"""
Card service for business logic related to flashcards and card sets.

Cards are always created together with a fresh scheduling state, so a new
card is due immediately.
"""
# pyright: reportAttributeAccessIssue=false
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlmodel import Session, select

from app.core.exceptions import AuthorizationError, CardNotFound, CardSetNotFound, ValidationError
from app.models.card import Card
from app.models.card_set import CardSet
from app.models.enums import CardSource
from app.services.scheduler_service import (
    DEFAULT_PARAMETERS,
    SchedulerParameters,
    new_schedule_state,
)
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def _clean_text(value: str, field_name: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"Card {field_name} must not be empty")
    return cleaned


def get_card_set(session: Session, set_id: int, user_id: Optional[str] = None) -> CardSet:
    """
    Get a card set, optionally checking that it belongs to user_id.

    Raises:
        CardSetNotFound: If the set does not exist
        AuthorizationError: If the set belongs to another user
    """
    card_set = session.get(CardSet, set_id)
    if not card_set:
        raise CardSetNotFound(set_id)
    if user_id is not None and card_set.user_id != user_id:
        raise AuthorizationError(f"Card set {set_id} belongs to another user")
    return card_set


def build_card(
    user_id: str,
    front: str,
    back: str,
    set_id: Optional[int] = None,
    source: CardSource = CardSource.MANUAL,
    now: Optional[datetime] = None,
    params: SchedulerParameters = DEFAULT_PARAMETERS
) -> Card:
    """Build an unsaved Card with a fresh scheduling state."""
    now = now or utcnow()
    card = Card(
        user_id=user_id,
        set_id=set_id,
        front=_clean_text(front, "front"),
        back=_clean_text(back, "back"),
        source=CardSource(source).value,
        created_at=now,
    )
    card.apply_schedule_state(new_schedule_state(now, params))
    return card


def create_card(
    session: Session,
    user_id: str,
    front: str,
    back: str,
    set_id: Optional[int] = None,
    source: CardSource = CardSource.MANUAL,
    now: Optional[datetime] = None,
    params: SchedulerParameters = DEFAULT_PARAMETERS
) -> Card:
    """
    Create a flashcard with a fresh scheduling state.

    Args:
        session: Database session
        user_id: Owner of the card
        front: Prompt text
        back: Expected answer text
        set_id: Optional card set (must belong to the same user)
        source: 'ai' for generated cards, 'manual' otherwise
        now: Creation time (defaults to the current time)
        params: Scheduler constants for the initial ease factor

    Returns:
        The saved Card
    """
    if set_id is not None:
        get_card_set(session, set_id, user_id)

    card = build_card(user_id, front, back, set_id=set_id, source=source, now=now, params=params)
    session.add(card)
    session.commit()
    session.refresh(card)

    logger.info(f"Created card {card.id} for user {user_id} (source={card.source}, set_id={set_id})")
    return card


def create_cards(
    session: Session,
    user_id: str,
    items: Iterable[dict],
    set_id: Optional[int] = None,
    source: CardSource = CardSource.AI,
    now: Optional[datetime] = None,
    params: SchedulerParameters = DEFAULT_PARAMETERS
) -> List[Card]:
    """
    Create a batch of flashcards in one transaction (e.g. accepted AI suggestions).

    Args:
        items: Dicts with 'front' and 'back' keys

    Returns:
        The saved Cards, in input order
    """
    if set_id is not None:
        get_card_set(session, set_id, user_id)

    now = now or utcnow()
    cards = [
        build_card(user_id, item.get("front", ""), item.get("back", ""),
                   set_id=set_id, source=source, now=now, params=params)
        for item in items
    ]
    if not cards:
        raise ValidationError("At least one card is required")

    session.add_all(cards)
    session.commit()
    for card in cards:
        session.refresh(card)

    logger.info(f"Created {len(cards)} card(s) for user {user_id} (source={CardSource(source).value}, set_id={set_id})")
    return cards


def get_card(session: Session, card_id: int, user_id: Optional[str] = None) -> Card:
    """
    Get a card, optionally checking that it belongs to user_id.

    Raises:
        CardNotFound: If the card does not exist
        AuthorizationError: If the card belongs to another user
    """
    card = session.get(Card, card_id)
    if not card:
        raise CardNotFound(card_id)
    if user_id is not None and card.user_id != user_id:
        raise AuthorizationError(f"Card {card_id} belongs to another user")
    return card


def list_cards(
    session: Session,
    user_id: str,
    set_id: Optional[int] = None,
    due_before: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0
) -> List[Card]:
    """List a user's cards, most recently created first."""
    query = select(Card).where(Card.user_id == user_id)
    if set_id is not None:
        query = query.where(Card.set_id == set_id)
    if due_before is not None:
        query = query.where(Card.due_at <= due_before)
    query = query.order_by(Card.created_at.desc(), Card.id.desc()).offset(offset).limit(limit)  # type: ignore
    return list(session.exec(query).all())


def reset_card_schedule(
    session: Session,
    card_id: int,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
    params: SchedulerParameters = DEFAULT_PARAMETERS
) -> Card:
    """Forget a card's review history: it becomes new and due immediately."""
    card = get_card(session, card_id, user_id)
    card.apply_schedule_state(new_schedule_state(now or utcnow(), params))
    session.add(card)
    session.commit()
    session.refresh(card)
    logger.info(f"Reset schedule of card {card_id}")
    return card


def delete_card(session: Session, card_id: int, user_id: Optional[str] = None) -> None:
    """Delete a card; its scheduling state and review log go with it."""
    card = get_card(session, card_id, user_id)
    session.delete(card)
    session.commit()
    logger.info(f"Deleted card {card_id}")


def create_card_set(session: Session, user_id: str, name: str) -> CardSet:
    """Create a card set, or return the user's existing set with the same name."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Card set name must not be empty")

    existing = session.exec(
        select(CardSet).where(
            CardSet.user_id == user_id,
            CardSet.name == cleaned
        )
    ).first()
    if existing:
        return existing

    card_set = CardSet(user_id=user_id, name=cleaned)
    session.add(card_set)
    session.commit()
    session.refresh(card_set)
    logger.info(f"Created card set {card_set.id} ('{cleaned}') for user {user_id}")
    return card_set


def list_card_sets(session: Session, user_id: str) -> List[CardSet]:
    query = select(CardSet).where(CardSet.user_id == user_id).order_by(CardSet.created_at.desc())  # type: ignore
    return list(session.exec(query).all())
