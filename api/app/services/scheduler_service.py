"""
Scheduler service implementing a minimal SM-2 style spaced repetition algorithm.

All functions here are pure: they take a ScheduleState, a Rating and the
review time, and return a new ScheduleState. Nothing is read from globals and
nothing is mutated, so they are safe to call concurrently.

Grades:
    AGAIN - failed recall; the card starts over
    HARD  - recalled with difficulty; ease decreases
    GOOD  - recalled; ease unchanged
    EASY  - recalled effortlessly; ease increases

Intervals after consecutive successes are 1 day, 6 days, then the previous
interval multiplied by the ease factor. Due dates are `now + interval_days`
days of elapsed time, so a card reviewed at 09:00 and one reviewed at 21:00
on the same day with the same interval fall due 12 hours apart.
"""
import math
from datetime import datetime, timedelta
from typing import Dict, Optional

from pydantic import BaseModel, Field

from app.core.exceptions import InvalidRating
from app.models.enums import Rating
from app.models.schedule import ScheduleState
from app.utils.time_utils import ensure_utc


FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
FAILURE_INTERVAL_DAYS = 1


class SchedulerParameters(BaseModel):
    """Tunable constants of the scheduler."""
    min_ease: float = Field(default=1.3, gt=0)
    initial_ease: float = Field(default=2.5, gt=0)
    again_penalty: float = Field(default=0.2, ge=0)
    hard_delta: float = Field(default=-0.15, le=0)
    easy_delta: float = Field(default=0.15, ge=0)
    max_interval_days: int = Field(default=36500, ge=SECOND_INTERVAL_DAYS)

    def ease_delta(self, rating: Rating) -> float:
        if rating is Rating.AGAIN:
            return -self.again_penalty
        if rating is Rating.HARD:
            return self.hard_delta
        if rating is Rating.EASY:
            return self.easy_delta
        return 0.0

    @classmethod
    def from_settings(cls, settings) -> "SchedulerParameters":
        return cls(
            min_ease=settings.srs_min_ease,
            initial_ease=settings.srs_initial_ease,
            again_penalty=settings.srs_again_penalty,
            hard_delta=settings.srs_hard_delta,
            easy_delta=settings.srs_easy_delta,
            max_interval_days=settings.srs_max_interval_days,
        )


DEFAULT_PARAMETERS = SchedulerParameters()


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (6 * 1.75 -> 11, not 10)."""
    return int(math.floor(value + 0.5))


def clamp_ease(ease_factor: float, params: SchedulerParameters = DEFAULT_PARAMETERS) -> float:
    """Saturate an ease factor at the configured floor."""
    if math.isnan(ease_factor):
        return params.min_ease
    return max(params.min_ease, ease_factor)


def new_schedule_state(now: datetime, params: SchedulerParameters = DEFAULT_PARAMETERS) -> ScheduleState:
    """
    Scheduling state for a freshly created card.

    The card has never been reviewed and is due immediately.
    """
    return ScheduleState(
        repetition_count=0,
        ease_factor=params.initial_ease,
        interval_days=0,
        due_at=ensure_utc(now),
        last_reviewed_at=None,
    )


def next_interval_days(
    state: ScheduleState,
    rating: Rating,
    params: SchedulerParameters = DEFAULT_PARAMETERS
) -> int:
    """
    Interval in days that a rating would produce.

    Uses the ease factor held before the rating is applied.

    Args:
        state: Current scheduling state
        rating: Grade for this review
        params: Scheduler constants

    Returns:
        Interval in days (always >= 1)
    """
    if rating.is_failure:
        return FAILURE_INTERVAL_DAYS

    if state.repetition_count == 0:
        interval = FIRST_INTERVAL_DAYS
    elif state.repetition_count == 1:
        interval = SECOND_INTERVAL_DAYS
    else:
        previous = max(state.interval_days, FIRST_INTERVAL_DAYS)
        interval = round_half_up(previous * clamp_ease(state.ease_factor, params))

    return max(FIRST_INTERVAL_DAYS, min(params.max_interval_days, interval))


def schedule_review(
    state: ScheduleState,
    rating: Rating,
    now: datetime,
    params: Optional[SchedulerParameters] = None
) -> ScheduleState:
    """
    Compute the scheduling state that follows a review.

    Args:
        state: Current scheduling state of the card
        rating: Grade the user gave (must be a Rating member)
        now: Instant the rating was submitted (naive values are taken as UTC)
        params: Scheduler constants (defaults when None)

    Returns:
        A new ScheduleState; the input state is never modified

    Raises:
        InvalidRating: If rating is not a Rating member
        ValueError: If state or now is missing
    """
    if not isinstance(rating, Rating):
        raise InvalidRating(rating)
    if state is None:
        raise ValueError("schedule state is required")
    if now is None:
        raise ValueError("review time is required")

    params = params or DEFAULT_PARAMETERS
    now = ensure_utc(now)
    interval = next_interval_days(state, rating, params)
    ease_factor = clamp_ease(clamp_ease(state.ease_factor, params) + params.ease_delta(rating), params)

    if rating.is_failure:
        return ScheduleState(
            repetition_count=0,
            ease_factor=ease_factor,
            interval_days=interval,
            due_at=now + timedelta(days=interval),
            last_reviewed_at=now,
        )

    # A successful review never moves the due date backwards
    due_at = max(now + timedelta(days=interval), ensure_utc(state.due_at))

    return ScheduleState(
        repetition_count=state.repetition_count + 1,
        ease_factor=ease_factor,
        interval_days=interval,
        due_at=due_at,
        last_reviewed_at=now,
    )


def preview_intervals(
    state: ScheduleState,
    params: Optional[SchedulerParameters] = None
) -> Dict[Rating, int]:
    """Interval in days each rating would produce, for labelling rating buttons."""
    params = params or DEFAULT_PARAMETERS
    return {rating: next_interval_days(state, rating, params) for rating in Rating}


def format_interval(days: int) -> str:
    """Format interval as human-readable string."""
    if days <= 0:
        return "now"
    elif days == 1:
        return "1 day"
    elif days < 7:
        return f"{days} days"
    elif days < 30:
        weeks = days // 7
        return f"{weeks} week{'s' if weeks > 1 else ''}"
    elif days < 365:
        months = days // 30
        return f"{months} month{'s' if months > 1 else ''}"
    else:
        years = days // 365
        return f"{years} year{'s' if years > 1 else ''}"
