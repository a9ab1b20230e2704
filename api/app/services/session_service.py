"""
Review session service.

A review session is a bounded, ordered queue of due card ids selected when
the session starts. Ratings are applied strictly in queue order: each rating
is run through the scheduler, persisted through the card store, and only then
does the session cursor advance. A failed save leaves the session exactly as
it was, so the caller can retry the same rating.

Session lifecycle:
    CREATED -> ACTIVE -> {PAUSED <-> ACTIVE} -> COMPLETED

A session whose queue is empty at start is COMPLETED immediately. COMPLETED
is terminal.

Sessions are checkpointed through a SessionStore after every change so that
a paused session can be resumed by id from another process.
"""
# pyright: reportAttributeAccessIssue=false
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.exceptions import (
    AuthorizationError,
    CardNotInSession,
    CardOutOfOrder,
    InvalidRating,
    SessionClosed,
    SessionNotFound,
    SessionPaused,
    StoreUnavailable,
)
from app.models.enums import Rating, SessionStatus
from app.models.review import Review
from app.models.review_session import ReviewSessionRecord
from app.models.schedule import ScheduleState
from app.services.card_store import CardStore, DueCardFilter, due_order_key
from app.services.scheduler_service import SchedulerParameters, schedule_review
from app.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


DEFAULT_MAX_CARDS = 50


class SelectionCriteria(BaseModel):
    """Which due cards a new session picks up."""
    set_id: Optional[int] = None
    limit: Optional[int] = Field(default=None, ge=1)


class AppliedRating(BaseModel):
    card_id: int
    rating: Rating
    reviewed_at: datetime


class ReviewSession(BaseModel):
    """In-memory state of one review session; serializable as plain JSON."""
    id: str
    user_id: str
    set_id: Optional[int] = None
    card_ids: List[int] = Field(default_factory=list)
    cursor: int = 0
    status: SessionStatus = SessionStatus.CREATED
    applied: List[AppliedRating] = Field(default_factory=list)
    skipped: List[int] = Field(default_factory=list)
    started_at: datetime
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def current_card_id(self) -> Optional[int]:
        if self.cursor < len(self.card_ids):
            return self.card_ids[self.cursor]
        return None

    @property
    def remaining_card_ids(self) -> List[int]:
        return self.card_ids[self.cursor:]

    def is_applied(self, card_id: int) -> bool:
        return any(entry.card_id == card_id for entry in self.applied)

    def to_checkpoint(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_checkpoint(cls, data: Dict[str, Any]) -> "ReviewSession":
        return cls.model_validate(data)


class SessionStats(BaseModel):
    """Read-only progress snapshot of a session."""
    session_id: str
    status: SessionStatus
    reviewed_count: int
    skipped_count: int
    remaining_count: int
    total_count: int
    started_at: datetime


class SessionStore(ABC):
    """Checkpoint storage for review sessions."""

    @abstractmethod
    def save(self, session: ReviewSession) -> None:
        """
        Raises:
            StoreUnavailable: If the checkpoint could not be written
        """

    @abstractmethod
    def load(self, session_id: str) -> Optional[ReviewSession]:
        """Return the last checkpoint of a session, or None if there is none."""


class InMemorySessionStore(SessionStore):
    """Keeps checkpoints as JSON-compatible dicts, never as live objects."""

    def __init__(self):
        self._checkpoints: Dict[str, Dict[str, Any]] = {}

    def save(self, session):
        self._checkpoints[session.id] = session.to_checkpoint()

    def load(self, session_id):
        data = self._checkpoints.get(session_id)
        if data is None:
            return None
        return ReviewSession.from_checkpoint(data)


class SqlSessionStore(SessionStore):
    """Session checkpoints in the review_session table."""

    def __init__(self, session: Session):
        self.session = session

    def save(self, review_session):
        try:
            record = self.session.get(ReviewSessionRecord, review_session.id)
            if record is None:
                record = ReviewSessionRecord(
                    id=review_session.id,
                    user_id=review_session.user_id,
                    status=review_session.status.value,
                )
            record.status = review_session.status.value
            record.state = review_session.to_checkpoint()
            record.updated_at = utcnow()
            self.session.add(record)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to checkpoint review session {review_session.id}: {e}", exc_info=True)
            raise StoreUnavailable(
                f"Failed to checkpoint review session: {e}",
                session_id=review_session.id
            ) from e

    def load(self, session_id):
        try:
            record = self.session.get(ReviewSessionRecord, session_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load review session {session_id}: {e}", exc_info=True)
            raise StoreUnavailable(f"Failed to load review session: {e}", session_id=session_id) from e
        if record is None:
            return None
        return ReviewSession.from_checkpoint(record.state)


class SessionManager:
    """
    Orchestrates review sessions over a card store.

    The manager holds no process-wide state: every dependency is passed to
    the constructor, and all session state lives in the ReviewSession objects
    and their checkpoints. Concurrent ratings against the same session are
    not synchronized here; callers must serialize them.
    """

    def __init__(
        self,
        card_store: CardStore,
        session_store: Optional[SessionStore] = None,
        params: Optional[SchedulerParameters] = None,
        max_cards: int = DEFAULT_MAX_CARDS
    ):
        self.card_store = card_store
        self.session_store = session_store if session_store is not None else InMemorySessionStore()
        self.params = params or SchedulerParameters()
        self.max_cards = max_cards

    def start_session(
        self,
        user_id: str,
        criteria: Optional[SelectionCriteria] = None,
        now: Optional[datetime] = None
    ) -> ReviewSession:
        """
        Select the user's due cards and open a session over them.

        Cards are ordered most overdue first, then never-reviewed before
        least recently reviewed, then by id. An empty selection yields a
        session that is already COMPLETED.

        Args:
            user_id: Owner of the cards
            criteria: Optional set filter and size limit
            now: Selection time (defaults to the current time)

        Returns:
            The new ReviewSession

        Raises:
            StoreUnavailable: If the card store or the checkpoint failed
        """
        now = ensure_utc(now) if now is not None else utcnow()
        criteria = criteria or SelectionCriteria()
        limit = min(criteria.limit or self.max_cards, self.max_cards)

        due = self.card_store.find_due(user_id, DueCardFilter(set_id=criteria.set_id, limit=limit), now)
        due = sorted(due, key=due_order_key)[:limit]

        review_session = ReviewSession(
            id=uuid.uuid4().hex,
            user_id=user_id,
            set_id=criteria.set_id,
            card_ids=[card.id for card, _ in due],
            started_at=now,
        )
        if not review_session.card_ids:
            review_session.status = SessionStatus.COMPLETED
            review_session.completed_at = now

        self.session_store.save(review_session)
        logger.info(
            f"Started review session {review_session.id} for user {user_id}: "
            f"{len(review_session.card_ids)} due card(s), status={review_session.status.value}"
        )
        return review_session

    def get_session(self, session_id: str, user_id: Optional[str] = None) -> ReviewSession:
        """
        Load a session from its last checkpoint.

        Raises:
            SessionNotFound: If no checkpoint exists
            AuthorizationError: If user_id is given and does not own the session
        """
        review_session = self.session_store.load(session_id)
        if review_session is None:
            raise SessionNotFound(session_id)
        if user_id is not None and review_session.user_id != user_id:
            logger.warning(f"User {user_id} tried to access review session {session_id}")
            raise AuthorizationError(f"Review session {session_id} belongs to another user")
        return review_session

    def current_card(self, review_session: ReviewSession) -> Optional[int]:
        """Id of the card awaiting a rating, or None once the queue is exhausted."""
        return review_session.current_card_id

    def submit_rating(
        self,
        review_session: ReviewSession,
        card_id: int,
        rating: Rating,
        now: Optional[datetime] = None
    ) -> ScheduleState:
        """
        Apply a rating to the card at the front of the session queue.

        Re-submitting a card whose rating was already applied in this session
        returns its current state without applying the rating again. This
        also holds after a failed checkpoint: the review log of the session
        shows the card was saved, and the session is advanced from there.

        Args:
            review_session: Session the card belongs to
            card_id: Card being rated (must be the current card)
            rating: Grade given by the user
            now: Review time (defaults to the current time)

        Returns:
            The card's new ScheduleState

        Raises:
            InvalidRating: If rating is not a Rating member
            SessionNotFound: If review_session is None
            SessionClosed: If the session is COMPLETED
            SessionPaused: If the session is PAUSED
            CardNotInSession: If the card is not queued in this session
            CardOutOfOrder: If the card is queued but not current
            StoreUnavailable: If persisting failed; the session is unchanged
        """
        if not isinstance(rating, Rating):
            raise InvalidRating(rating)
        if review_session is None:
            raise SessionNotFound("<none>")
        self._ensure_accepting(review_session)

        if card_id not in review_session.card_ids:
            logger.warning(f"Rejected rating for card {card_id}: not in review session {review_session.id}")
            raise CardNotInSession(review_session.id, card_id)

        if review_session.is_applied(card_id):
            logger.info(f"Rating for card {card_id} already applied in review session {review_session.id}")
            _, state = self.card_store.get(card_id)
            return state

        expected = review_session.current_card_id
        if card_id != expected:
            logger.warning(
                f"Rejected rating for card {card_id} in review session {review_session.id}: "
                f"current card is {expected}"
            )
            raise CardOutOfOrder(review_session.id, card_id, expected)

        now = ensure_utc(now) if now is not None else utcnow()

        # The card was already saved by an earlier attempt whose checkpoint failed
        logged = self.card_store.find_review(card_id, review_session.id)
        if logged is not None:
            logger.info(
                f"Recovered rating {logged.rating} of card {card_id} from the review log "
                f"of review session {review_session.id}"
            )
            applied = AppliedRating(
                card_id=card_id,
                rating=Rating(logged.rating),
                reviewed_at=ensure_utc(logged.reviewed_at),
            )
            self._record_and_checkpoint(review_session, now, applied=applied)
            _, state = self.card_store.get(card_id)
            return state

        _, state = self.card_store.get(card_id)
        new_state = schedule_review(state, rating, now, self.params)
        review = Review(
            card_id=card_id,
            session_id=review_session.id,
            rating=rating.value,
            reviewed_at=now,
            interval_days=new_state.interval_days,
            ease_factor=new_state.ease_factor,
        )

        # The cursor only moves once the new state is committed
        self.card_store.save_schedule_state(card_id, new_state, review=review)
        self._record_and_checkpoint(
            review_session,
            now,
            applied=AppliedRating(card_id=card_id, rating=rating, reviewed_at=now),
        )

        logger.info(
            f"Applied rating {rating.value} to card {card_id} in review session {review_session.id}: "
            f"interval={new_state.interval_days}d, ease={new_state.ease_factor:.2f}, "
            f"due_at={new_state.due_at.isoformat()}"
        )
        return new_state

    def skip_card(
        self,
        review_session: ReviewSession,
        card_id: int,
        now: Optional[datetime] = None
    ) -> ReviewSession:
        """
        Move past the current card without rating it (e.g. it was deleted).

        The card's schedule is untouched, so it stays due for the next session.

        Raises:
            SessionClosed / SessionPaused / CardNotInSession / CardOutOfOrder:
                as for submit_rating
        """
        self._ensure_accepting(review_session)
        if card_id not in review_session.card_ids:
            raise CardNotInSession(review_session.id, card_id)
        expected = review_session.current_card_id
        if card_id != expected:
            raise CardOutOfOrder(review_session.id, card_id, expected)

        now = ensure_utc(now) if now is not None else utcnow()
        self._record_and_checkpoint(review_session, now, skipped=card_id)
        logger.info(f"Skipped card {card_id} in review session {review_session.id}")
        return review_session

    def pause_session(self, review_session: ReviewSession, now: Optional[datetime] = None) -> ReviewSession:
        """
        Pause a session and checkpoint it. Pausing a paused session is a no-op.

        Raises:
            SessionClosed: If the session is COMPLETED
        """
        if review_session.status == SessionStatus.COMPLETED:
            raise SessionClosed(review_session.id)
        if review_session.status == SessionStatus.PAUSED:
            return review_session

        review_session.status = SessionStatus.PAUSED
        review_session.paused_at = ensure_utc(now) if now is not None else utcnow()
        self.session_store.save(review_session)
        logger.info(
            f"Paused review session {review_session.id} at card "
            f"{review_session.cursor + 1}/{len(review_session.card_ids)}"
        )
        return review_session

    def resume_session(self, session_id: str, user_id: Optional[str] = None) -> ReviewSession:
        """
        Restore a session from its checkpoint and make it ACTIVE again.

        Resuming a session that is not paused returns it unchanged.

        Raises:
            SessionNotFound: If no checkpoint exists
            SessionClosed: If the session is COMPLETED
        """
        review_session = self.get_session(session_id, user_id=user_id)
        if review_session.status == SessionStatus.COMPLETED:
            raise SessionClosed(session_id)
        if review_session.status != SessionStatus.PAUSED:
            return review_session

        review_session.status = SessionStatus.ACTIVE
        review_session.paused_at = None
        self.session_store.save(review_session)
        logger.info(f"Resumed review session {session_id}")
        return review_session

    def session_stats(self, review_session: ReviewSession) -> SessionStats:
        return SessionStats(
            session_id=review_session.id,
            status=review_session.status,
            reviewed_count=len(review_session.applied),
            skipped_count=len(review_session.skipped),
            remaining_count=len(review_session.remaining_card_ids),
            total_count=len(review_session.card_ids),
            started_at=review_session.started_at,
        )

    def _ensure_accepting(self, review_session: ReviewSession) -> None:
        if review_session.status == SessionStatus.COMPLETED:
            logger.warning(f"Rejected operation on completed review session {review_session.id}")
            raise SessionClosed(review_session.id)
        if review_session.status == SessionStatus.PAUSED:
            raise SessionPaused(review_session.id)

    def _record_and_checkpoint(
        self,
        review_session: ReviewSession,
        now: datetime,
        applied: Optional[AppliedRating] = None,
        skipped: Optional[int] = None
    ) -> None:
        """
        Record the outcome for the current card, advance and checkpoint.

        If the checkpoint fails the session is restored to where it was, so
        it keeps matching the stored checkpoint and the caller can retry.
        """
        snapshot = review_session.model_copy(deep=True)
        if applied is not None:
            review_session.applied.append(applied)
        if skipped is not None:
            review_session.skipped.append(skipped)
        self._advance(review_session, now)
        try:
            self.session_store.save(review_session)
        except StoreUnavailable:
            for name in ReviewSession.model_fields:
                setattr(review_session, name, getattr(snapshot, name))
            raise

    def _advance(self, review_session: ReviewSession, now: datetime) -> None:
        review_session.cursor += 1
        if review_session.cursor >= len(review_session.card_ids):
            review_session.status = SessionStatus.COMPLETED
            review_session.completed_at = now
            logger.info(
                f"Completed review session {review_session.id}: "
                f"{len(review_session.applied)} reviewed, {len(review_session.skipped)} skipped"
            )
        else:
            review_session.status = SessionStatus.ACTIVE
