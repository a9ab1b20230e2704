"""
Tests for the review session manager over the in-memory stores.
"""
import json
from datetime import timedelta

import pytest

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
from app.models.card import Card
from app.models.enums import Rating, SessionStatus
from app.services.card_store import InMemoryCardStore
from app.services.scheduler_service import new_schedule_state
from app.services.session_service import (
    InMemorySessionStore,
    ReviewSession,
    SelectionCriteria,
    SessionManager,
    SessionStore,
)

from conftest import USER_ID


class FlakyCardStore(InMemoryCardStore):
    """Fails the next N saves with StoreUnavailable."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures
        self.save_attempts = 0

    def save_schedule_state(self, card_id, state, review=None):
        self.save_attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise StoreUnavailable("database is down", card_id=card_id)
        super().save_schedule_state(card_id, state, review=review)


class FlakySessionStore(InMemorySessionStore):
    """Fails the next N checkpoints with StoreUnavailable."""

    def __init__(self):
        super().__init__()
        self.failures = 0

    def save(self, session):
        if self.failures > 0:
            self.failures -= 1
            raise StoreUnavailable("checkpoint storage is down", session_id=session.id)
        super().save(session)


class BrokenSessionStore(SessionStore):
    def save(self, session):
        raise StoreUnavailable("checkpoint storage is down", session_id=session.id)

    def load(self, session_id):
        return None


class TestStartSession:
    def test_orders_most_overdue_first(self, manager, add_card, now):
        card_b = add_card(due_at=now - timedelta(hours=1))
        card_a = add_card(due_at=now - timedelta(days=2))

        session = manager.start_session(USER_ID, now=now)

        assert session.card_ids == [card_a.id, card_b.id]
        assert session.status == SessionStatus.CREATED
        assert manager.current_card(session) == card_a.id

    def test_never_reviewed_cards_come_first_on_equal_due_time(self, manager, add_card, now):
        due = now - timedelta(days=1)
        reviewed_recently = add_card(due_at=due, last_reviewed_at=now - timedelta(days=2))
        reviewed_long_ago = add_card(due_at=due, last_reviewed_at=now - timedelta(days=9))
        never_reviewed = add_card(due_at=due)

        session = manager.start_session(USER_ID, now=now)

        assert session.card_ids == [never_reviewed.id, reviewed_long_ago.id, reviewed_recently.id]

    def test_ordering_is_reproducible(self, manager, add_card, now):
        for offset in [3, 1, 1, 2, 0]:
            add_card(due_at=now - timedelta(hours=offset))

        orders = {tuple(manager.start_session(USER_ID, now=now).card_ids) for _ in range(5)}

        assert len(orders) == 1

    def test_skips_cards_not_yet_due_and_other_users(self, manager, add_card, now):
        due = add_card(due_at=now)
        add_card(due_at=now + timedelta(minutes=1))
        add_card(due_at=now - timedelta(days=1), user_id="someone-else")

        session = manager.start_session(USER_ID, now=now)

        assert session.card_ids == [due.id]

    def test_empty_selection_gives_completed_session(self, manager, now):
        session = manager.start_session(USER_ID, now=now)

        assert session.card_ids == []
        assert session.status == SessionStatus.COMPLETED
        assert manager.current_card(session) is None
        stats = manager.session_stats(session)
        assert stats.reviewed_count == 0
        assert stats.remaining_count == 0

    def test_filters_by_set_and_limit(self, manager, add_card, now):
        in_set = [add_card(due_at=now - timedelta(hours=h), set_id=7) for h in (3, 2, 1)]
        add_card(due_at=now - timedelta(days=5), set_id=8)

        session = manager.start_session(USER_ID, SelectionCriteria(set_id=7, limit=2), now=now)

        assert session.card_ids == [in_set[0].id, in_set[1].id]
        assert session.set_id == 7

    def test_session_size_is_bounded_by_manager(self, card_store, session_store, add_card, now):
        for hours in range(5):
            add_card(due_at=now - timedelta(hours=hours))
        manager = SessionManager(card_store, session_store, max_cards=3)

        session = manager.start_session(USER_ID, SelectionCriteria(limit=10), now=now)

        assert len(session.card_ids) == 3

    def test_session_is_checkpointed(self, manager, session_store, add_card, now):
        add_card()
        session = manager.start_session(USER_ID, now=now)

        assert session_store.load(session.id) == session


class TestSubmitRating:
    def test_rating_updates_card_and_advances(self, manager, card_store, add_card, now):
        card_a = add_card(due_at=now - timedelta(days=1))
        card_b = add_card(due_at=now)
        session = manager.start_session(USER_ID, now=now)

        new_state = manager.submit_rating(session, card_a.id, Rating.GOOD, now=now)

        assert new_state.interval_days == 1
        assert new_state.repetition_count == 1
        assert card_store.get(card_a.id)[1] == new_state
        assert session.status == SessionStatus.ACTIVE
        assert manager.current_card(session) == card_b.id
        stats = manager.session_stats(session)
        assert stats.reviewed_count == 1
        assert stats.remaining_count == 1
        assert stats.started_at == now

    def test_review_is_logged(self, manager, card_store, add_card, now):
        card = add_card()
        session = manager.start_session(USER_ID, now=now)

        manager.submit_rating(session, card.id, Rating.EASY, now=now)

        assert len(card_store.reviews) == 1
        review = card_store.reviews[0]
        assert review.card_id == card.id
        assert review.session_id == session.id
        assert review.rating == "easy"
        assert review.interval_days == 1

    def test_last_rating_completes_session(self, manager, add_card, now):
        card = add_card()
        session = manager.start_session(USER_ID, now=now)

        manager.submit_rating(session, card.id, Rating.HARD, now=now)

        assert session.status == SessionStatus.COMPLETED
        assert session.completed_at == now
        assert manager.current_card(session) is None

    def test_completed_session_rejects_ratings_without_mutation(self, manager, card_store, add_card, now):
        card = add_card()
        session = manager.start_session(USER_ID, now=now)
        manager.submit_rating(session, card.id, Rating.GOOD, now=now)
        state_after = card_store.get(card.id)[1]

        with pytest.raises(SessionClosed) as exc_info:
            manager.submit_rating(session, card.id, Rating.AGAIN, now=now + timedelta(days=1))

        assert exc_info.value.session_id == session.id
        assert card_store.get(card.id)[1] == state_after
        assert len(card_store.reviews) == 1

    def test_empty_session_rejects_ratings(self, manager, add_card, now):
        card = add_card(due_at=now + timedelta(days=3))
        session = manager.start_session(USER_ID, now=now)

        with pytest.raises(SessionClosed):
            manager.submit_rating(session, card.id, Rating.GOOD, now=now)

    def test_card_outside_session_is_rejected(self, manager, add_card, now):
        add_card()
        outsider = add_card(due_at=now + timedelta(days=1))
        session = manager.start_session(USER_ID, now=now)

        with pytest.raises(CardNotInSession) as exc_info:
            manager.submit_rating(session, outsider.id, Rating.GOOD, now=now)

        assert exc_info.value.card_id == outsider.id
        assert session.cursor == 0

    def test_cards_must_be_rated_in_order(self, manager, card_store, add_card, now):
        first = add_card(due_at=now - timedelta(days=1))
        second = add_card(due_at=now)
        session = manager.start_session(USER_ID, now=now)

        with pytest.raises(CardOutOfOrder) as exc_info:
            manager.submit_rating(session, second.id, Rating.GOOD, now=now)

        assert exc_info.value.expected_card_id == first.id
        assert card_store.get(second.id)[1].repetition_count == 0
        assert session.cursor == 0

    def test_untyped_rating_is_rejected(self, manager, card_store, add_card, now):
        card = add_card()
        session = manager.start_session(USER_ID, now=now)

        with pytest.raises(InvalidRating):
            manager.submit_rating(session, card.id, "good", now=now)

        assert session.cursor == 0
        assert card_store.get(card.id)[1].last_reviewed_at is None

    def test_missing_session_is_rejected(self, manager, add_card, now):
        card = add_card()
        with pytest.raises(SessionNotFound):
            manager.submit_rating(None, card.id, Rating.GOOD, now=now)

    def test_resubmitting_applied_card_does_not_reapply(self, manager, card_store, add_card, now):
        card = add_card()
        add_card(due_at=now + timedelta(seconds=1))
        session = manager.start_session(USER_ID, now=now + timedelta(seconds=1))
        first = manager.submit_rating(session, card.id, Rating.GOOD, now=now)

        again = manager.submit_rating(session, card.id, Rating.GOOD, now=now + timedelta(minutes=1))

        assert again == first
        assert session.cursor == 1
        assert len(card_store.reviews) == 1


class TestStoreFailure:
    def test_failed_save_leaves_cursor_and_retry_applies_once(self, session_store, now):
        card_store = FlakyCardStore(failures=1)
        manager = SessionManager(card_store, session_store)
        card = card_store.add(Card(user_id=USER_ID, front="Q", back="A"), new_schedule_state(now))
        other = card_store.add(Card(user_id=USER_ID, front="Q2", back="A2"), new_schedule_state(now))
        session = manager.start_session(USER_ID, now=now)

        with pytest.raises(StoreUnavailable):
            manager.submit_rating(session, card.id, Rating.GOOD, now=now)

        assert session.cursor == 0
        assert session.applied == []
        assert manager.current_card(session) == card.id
        assert card_store.get(card.id)[1].repetition_count == 0
        assert session_store.load(session.id).cursor == 0

        state = manager.submit_rating(session, card.id, Rating.GOOD, now=now)

        assert state.repetition_count == 1
        assert session.cursor == 1
        assert manager.current_card(session) == other.id
        assert manager.session_stats(session).reviewed_count == 1
        assert len(card_store.reviews) == 1
        assert card_store.save_attempts == 2

    def test_retry_after_failed_checkpoint_applies_rating_once(self, card_store, add_card, now):
        card = add_card()
        other = add_card(due_at=now + timedelta(seconds=1))
        session_store = FlakySessionStore()
        manager = SessionManager(card_store, session_store)
        session = manager.start_session(USER_ID, now=now + timedelta(seconds=1))

        session_store.failures = 1
        with pytest.raises(StoreUnavailable):
            manager.submit_rating(session, card.id, Rating.GOOD, now=now)

        # Card saved, checkpoint lost: the live session matches the checkpoint
        assert card_store.get(card.id)[1].repetition_count == 1
        assert session.cursor == 0
        assert session.applied == []

        reloaded = manager.get_session(session.id)
        state = manager.submit_rating(reloaded, card.id, Rating.GOOD, now=now + timedelta(minutes=1))

        assert state.repetition_count == 1
        assert state.interval_days == 1
        assert len(card_store.reviews) == 1
        assert reloaded.cursor == 1
        assert manager.current_card(reloaded) == other.id
        assert reloaded.applied[0].reviewed_at == now
        assert session_store.load(session.id).cursor == 1

    def test_retry_on_same_session_object_after_failed_checkpoint(self, card_store, add_card, now):
        card = add_card()
        session_store = FlakySessionStore()
        manager = SessionManager(card_store, session_store)
        session = manager.start_session(USER_ID, now=now)

        session_store.failures = 1
        with pytest.raises(StoreUnavailable):
            manager.submit_rating(session, card.id, Rating.EASY, now=now)

        state = manager.submit_rating(session, card.id, Rating.EASY, now=now)

        assert state.repetition_count == 1
        assert len(card_store.reviews) == 1
        assert session.status == SessionStatus.COMPLETED
        assert manager.session_stats(session).reviewed_count == 1

    def test_checkpoint_failure_is_reported(self, card_store, add_card, now):
        add_card()
        manager = SessionManager(card_store, BrokenSessionStore())

        with pytest.raises(StoreUnavailable):
            manager.start_session(USER_ID, now=now)


class TestPauseResume:
    def test_paused_session_rejects_ratings(self, manager, add_card, now):
        card = add_card()
        session = manager.start_session(USER_ID, now=now)

        manager.pause_session(session, now=now)

        assert session.status == SessionStatus.PAUSED
        assert session.paused_at == now
        with pytest.raises(SessionPaused):
            manager.submit_rating(session, card.id, Rating.GOOD, now=now)

    def test_resume_restores_from_checkpoint(self, manager, card_store, session_store, add_card, now):
        first = add_card(due_at=now - timedelta(days=1))
        second = add_card(due_at=now)
        session = manager.start_session(USER_ID, now=now)
        manager.submit_rating(session, first.id, Rating.GOOD, now=now)
        manager.pause_session(session, now=now)

        # A different manager instance, as in another process sharing the stores
        other_manager = SessionManager(card_store, session_store)
        resumed = other_manager.resume_session(session.id)

        assert resumed is not session
        assert resumed.status == SessionStatus.ACTIVE
        assert resumed.paused_at is None
        assert resumed.cursor == 1
        assert other_manager.current_card(resumed) == second.id
        assert resumed.is_applied(first.id)

        other_manager.submit_rating(resumed, second.id, Rating.EASY, now=now)
        assert resumed.status == SessionStatus.COMPLETED

    def test_pause_twice_is_noop(self, manager, add_card, now):
        add_card()
        session = manager.start_session(USER_ID, now=now)
        manager.pause_session(session, now=now)

        manager.pause_session(session, now=now + timedelta(hours=1))

        assert session.paused_at == now

    def test_resume_active_session_returns_it_unchanged(self, manager, add_card, now):
        add_card()
        session = manager.start_session(USER_ID, now=now)

        resumed = manager.resume_session(session.id)

        assert resumed.status == SessionStatus.CREATED

    def test_completed_session_cannot_be_paused_or_resumed(self, manager, now):
        session = manager.start_session(USER_ID, now=now)

        with pytest.raises(SessionClosed):
            manager.pause_session(session, now=now)
        with pytest.raises(SessionClosed):
            manager.resume_session(session.id)

    def test_unknown_session(self, manager):
        with pytest.raises(SessionNotFound) as exc_info:
            manager.resume_session("does-not-exist")
        assert exc_info.value.session_id == "does-not-exist"

    def test_session_of_other_user_is_forbidden(self, manager, add_card, now):
        add_card()
        session = manager.start_session(USER_ID, now=now)

        with pytest.raises(AuthorizationError):
            manager.get_session(session.id, user_id="intruder")

    def test_checkpoint_is_plain_json(self, manager, add_card, now):
        card = add_card()
        session = manager.start_session(USER_ID, now=now)
        manager.submit_rating(session, card.id, Rating.GOOD, now=now)

        data = json.loads(json.dumps(session.to_checkpoint()))

        assert data["card_ids"] == [card.id]
        assert data["cursor"] == 1
        assert data["applied"][0]["rating"] == "good"
        assert ReviewSession.from_checkpoint(data) == session


class TestSkipCard:
    def test_skip_advances_without_touching_schedule(self, manager, card_store, add_card, now):
        card = add_card()
        session = manager.start_session(USER_ID, now=now)

        manager.skip_card(session, card.id, now=now)

        assert session.status == SessionStatus.COMPLETED
        assert card_store.get(card.id)[1].repetition_count == 0
        stats = manager.session_stats(session)
        assert stats.reviewed_count == 0
        assert stats.skipped_count == 1
        assert stats.remaining_count == 0


class TestEndToEnd:
    def test_three_good_reviews_across_sessions(self, manager, card_store, add_card, now):
        card = add_card()
        intervals = []
        review_time = now
        for _ in range(3):
            session = manager.start_session(USER_ID, now=review_time)
            assert session.card_ids == [card.id]
            state = manager.submit_rating(session, card.id, Rating.GOOD, now=review_time)
            intervals.append(state.interval_days)
            review_time = state.due_at

        assert intervals == [1, 6, 15]

    def test_card_rated_good_is_not_due_again_today(self, manager, add_card, now):
        card = add_card()
        session = manager.start_session(USER_ID, now=now)
        manager.submit_rating(session, card.id, Rating.GOOD, now=now)

        later = manager.start_session(USER_ID, now=now + timedelta(hours=12))

        assert later.card_ids == []
