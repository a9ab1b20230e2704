"""
Model enums.
"""
from enum import Enum
from typing import Any

from app.core.exceptions import InvalidRating


class Rating(str, Enum):
    """Self-assessed recall grade for a single review.

    Four grades; only AGAIN is a failure. The product UI's three-level
    scale (hard / medium / easy) is accepted at the boundary by `parse`.
    """
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @property
    def is_failure(self) -> bool:
        return self is Rating.AGAIN

    @classmethod
    def parse(cls, value: Any) -> "Rating":
        """
        Convert untyped boundary input into a Rating.

        Accepts Rating members, names or values in any case, the aliases
        'medium' (GOOD) and 'fail' (AGAIN), and the button numbers 1-4
        (1 = AGAIN ... 4 = EASY).

        Raises:
            InvalidRating: If the value does not denote a grade.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidRating(value)
        if isinstance(value, int):
            if 1 <= value <= len(_BUTTON_ORDER):
                return _BUTTON_ORDER[value - 1]
            raise InvalidRating(value)
        if isinstance(value, str):
            key = value.strip().lower()
            if key.isdigit():
                return cls.parse(int(key))
            if key in _ALIASES:
                return _ALIASES[key]
            try:
                return cls(key)
            except ValueError:
                raise InvalidRating(value) from None
        raise InvalidRating(value)


_BUTTON_ORDER = (Rating.AGAIN, Rating.HARD, Rating.GOOD, Rating.EASY)

_ALIASES = {
    "medium": Rating.GOOD,
    "fail": Rating.AGAIN,
}


class SessionStatus(str, Enum):
    """Lifecycle of a review session."""
    CREATED = "created"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class CardSource(str, Enum):
    """How a flashcard came into existence."""
    AI = "ai"
    MANUAL = "manual"
