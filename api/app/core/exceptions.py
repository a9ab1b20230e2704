"""
Custom exceptions for the application.

Every exception raised by the review engine carries the identifier it is
about (card, session or rating) so the caller can act on it.
"""
from typing import Any, Optional


class FlashcardException(Exception):
    """Base exception for all flashcard application exceptions."""
    pass


class ValidationError(FlashcardException):
    """Raised when validation fails."""
    pass


class NotFoundError(FlashcardException):
    """Raised when a requested resource is not found."""
    pass


class ConflictError(FlashcardException):
    """Raised when a request conflicts with the current state of a resource."""
    pass


class AuthorizationError(FlashcardException):
    """Raised when a user acts on a resource they do not own."""
    pass


class StoreUnavailable(FlashcardException):
    """Raised when the persistence layer fails; the operation left no state behind."""

    def __init__(self, message: str, card_id: Optional[int] = None, session_id: Optional[str] = None):
        super().__init__(message)
        self.card_id = card_id
        self.session_id = session_id


class InvalidRating(ValidationError):
    """Raised when a rating is outside the closed set of grades."""

    def __init__(self, rating: Any):
        super().__init__(f"Invalid rating: {rating!r}")
        self.rating = rating


class CardNotFound(NotFoundError):
    def __init__(self, card_id: int):
        super().__init__(f"Card with id {card_id} not found")
        self.card_id = card_id


class CardSetNotFound(NotFoundError):
    def __init__(self, set_id: int):
        super().__init__(f"Card set with id {set_id} not found")
        self.set_id = set_id


class SessionNotFound(NotFoundError):
    def __init__(self, session_id: str):
        super().__init__(f"Review session {session_id} not found")
        self.session_id = session_id


class SessionClosed(ConflictError):
    """Raised when an operation targets a completed session."""

    def __init__(self, session_id: str):
        super().__init__(f"Review session {session_id} is completed")
        self.session_id = session_id


class SessionPaused(ConflictError):
    """Raised when a rating is submitted to a paused session."""

    def __init__(self, session_id: str):
        super().__init__(f"Review session {session_id} is paused; resume it first")
        self.session_id = session_id


class CardNotInSession(ConflictError):
    def __init__(self, session_id: str, card_id: int, message: Optional[str] = None):
        super().__init__(message or f"Card {card_id} is not part of review session {session_id}")
        self.session_id = session_id
        self.card_id = card_id


class CardOutOfOrder(CardNotInSession):
    """Raised when a card of the session is rated before the card at the front of the queue."""

    def __init__(self, session_id: str, card_id: int, expected_card_id: Optional[int]):
        super().__init__(
            session_id,
            card_id,
            f"Card {card_id} is not the current card of review session {session_id} "
            f"(expected {expected_card_id})",
        )
        self.expected_card_id = expected_card_id
