"""
Card store: the persistence boundary of the review engine.

The session manager needs four things from persistence:
- find_due: cards of a user that are due at a given time
- save_schedule_state: atomically replace a card's scheduling state
- get: a card and its scheduling state by id
- find_review: the review a session already logged for a card, so a
  rating retried after a lost checkpoint is not applied twice

InMemoryCardStore is the reference implementation used by tests and
scripts; SqlCardStore backs the HTTP API with SQLModel.
"""
# pyright: reportAttributeAccessIssue=false
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.exceptions import CardNotFound, StoreUnavailable
from app.models.card import Card
from app.models.review import Review
from app.models.schedule import ScheduleState
from app.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)

CardWithState = Tuple[Card, ScheduleState]


class DueCardFilter(BaseModel):
    """Narrows find_due to a card set and/or a maximum number of cards."""
    set_id: Optional[int] = None
    limit: Optional[int] = Field(default=None, ge=1)


def _utc_state(state: ScheduleState) -> ScheduleState:
    return state.model_copy(update={
        "due_at": ensure_utc(state.due_at),
        "last_reviewed_at": ensure_utc(state.last_reviewed_at),
    })


def due_order_key(item: CardWithState):
    """
    Sort key for due cards: most overdue first, then least recently reviewed
    (never-reviewed cards first), then card id so the order is total.
    """
    card, state = item
    last_reviewed = state.last_reviewed_at
    return (
        ensure_utc(state.due_at),
        last_reviewed is not None,
        ensure_utc(last_reviewed) if last_reviewed is not None else datetime.min,
        card.id if card.id is not None else 0,
    )


class CardStore(ABC):
    """Persistence collaborator consumed by the session manager."""

    @abstractmethod
    def find_due(
        self,
        user_id: str,
        card_filter: Optional[DueCardFilter],
        now: datetime
    ) -> List[CardWithState]:
        """Cards of user_id with due_at <= now, ordered by due_order_key."""

    @abstractmethod
    def save_schedule_state(
        self,
        card_id: int,
        state: ScheduleState,
        review: Optional[Review] = None
    ) -> None:
        """
        Replace the scheduling state of a card, all or nothing.

        When a review entry is given it is written in the same unit of work.

        Raises:
            CardNotFound: If the card does not exist
            StoreUnavailable: If the write failed; nothing was written
        """

    @abstractmethod
    def get(self, card_id: int) -> CardWithState:
        """
        Raises:
            CardNotFound: If the card does not exist
        """

    @abstractmethod
    def find_review(self, card_id: int, session_id: str) -> Optional[Review]:
        """Review log entry written for card_id by session_id, or None."""


class InMemoryCardStore(CardStore):
    """Dict-backed card store. States are copied in and out so callers never share them."""

    def __init__(self):
        self._cards: Dict[int, Card] = {}
        self._states: Dict[int, ScheduleState] = {}
        self.reviews: List[Review] = []
        self._next_id = 1

    def add(self, card: Card, state: ScheduleState) -> Card:
        """Register a card with its initial state, assigning an id if it has none."""
        if card.id is None:
            card.id = self._next_id
        self._next_id = max(self._next_id, card.id + 1)
        self._cards[card.id] = card
        state = _utc_state(state)
        self._states[card.id] = state
        card.apply_schedule_state(state)
        return card

    def delete(self, card_id: int) -> None:
        if card_id not in self._cards:
            raise CardNotFound(card_id)
        del self._cards[card_id]
        del self._states[card_id]
        self.reviews = [review for review in self.reviews if review.card_id != card_id]

    def find_due(self, user_id, card_filter, now):
        card_filter = card_filter or DueCardFilter()
        now = ensure_utc(now)
        due = [
            (card, self._states[card_id].model_copy())
            for card_id, card in self._cards.items()
            if card.user_id == user_id
            and (card_filter.set_id is None or card.set_id == card_filter.set_id)
            and self._states[card_id].is_due(now)
        ]
        due.sort(key=due_order_key)
        if card_filter.limit is not None:
            due = due[:card_filter.limit]
        return due

    def save_schedule_state(self, card_id, state, review=None):
        card = self._cards.get(card_id)
        if card is None:
            raise CardNotFound(card_id)
        self._states[card_id] = _utc_state(state)
        card.apply_schedule_state(state)
        if review is not None:
            self.reviews.append(review)

    def get(self, card_id):
        card = self._cards.get(card_id)
        if card is None:
            raise CardNotFound(card_id)
        return card, self._states[card_id].model_copy()

    def find_review(self, card_id, session_id):
        for review in self.reviews:
            if review.card_id == card_id and review.session_id == session_id:
                return review
        return None


class SqlCardStore(CardStore):
    """Card store backed by a SQLModel session; every save is its own transaction."""

    def __init__(self, session: Session):
        self.session = session

    def find_due(self, user_id, card_filter, now):
        card_filter = card_filter or DueCardFilter()
        query = select(Card).where(
            Card.user_id == user_id,
            Card.due_at <= ensure_utc(now)
        )
        if card_filter.set_id is not None:
            query = query.where(Card.set_id == card_filter.set_id)
        query = query.order_by(
            Card.due_at.asc(),  # type: ignore
            Card.last_reviewed_at.asc().nulls_first(),  # type: ignore
            Card.id.asc()  # type: ignore
        )
        if card_filter.limit is not None:
            query = query.limit(card_filter.limit)

        try:
            cards = self.session.exec(query).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to query due cards for user {user_id}: {e}", exc_info=True)
            raise StoreUnavailable(f"Failed to query due cards: {e}") from e

        return [(card, card.schedule_state()) for card in cards]

    def save_schedule_state(self, card_id, state, review=None):
        try:
            card = self.session.get(Card, card_id)
            if card is None:
                raise CardNotFound(card_id)
            card.apply_schedule_state(state)
            self.session.add(card)
            if review is not None:
                self.session.add(review)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to save schedule state of card {card_id}: {e}", exc_info=True)
            raise StoreUnavailable(f"Failed to save schedule state: {e}", card_id=card_id) from e

    def get(self, card_id):
        try:
            card = self.session.get(Card, card_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load card {card_id}: {e}", exc_info=True)
            raise StoreUnavailable(f"Failed to load card: {e}", card_id=card_id) from e
        if card is None:
            raise CardNotFound(card_id)
        return card, card.schedule_state()

    def find_review(self, card_id, session_id):
        query = select(Review).where(
            Review.card_id == card_id,
            Review.session_id == session_id
        )
        try:
            return self.session.exec(query).first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up review of card {card_id} in session {session_id}: {e}", exc_info=True)
            raise StoreUnavailable(f"Failed to load review log: {e}", card_id=card_id, session_id=session_id) from e
