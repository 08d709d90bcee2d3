"""
Scheduling Engine

Decides, after every graded review, when a card is shown next. Memory state
(stability, difficulty, retrievability) and review intervals come from the
``fsrs`` package; this module adds the card state machine around it, the
Hard/Easy interval factors and the input checks.

The engine is a pure function of (card, rating, now, weights): it never
reads the clock, fuzzing is disabled and it never touches the store, so the
same inputs always produce the same card and log entry.

Key Concepts:
- Stability (S): Days until recall probability decays to 90%
- Difficulty (D): Intrinsic hardness of the card, kept within [1, 10]
- Retrievability (R): Current recall probability based on elapsed time

State Machine:
    NEW → LEARNING → REVIEW ↔ RELEARNING
    NEW → REVIEW (Easy on first sight)

Note: fsrs v6 has no New state. A never-reviewed card is State.Learning with
no stability and no last_review.

Usage:
    from flashdeck.services.scheduling import schedule
    from flashdeck.config import load_scheduling_weights

    weights = load_scheduling_weights()
    updated, log = schedule(card, Rating.GOOD, now, weights)

    # Or with a bound weight set
    scheduler = create_scheduler()
    updated, log = scheduler.review(card, Rating.GOOD)
"""

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Union

from fsrs import Card as FSRSCard, Rating as FSRSRating, Scheduler as FSRSScheduler, State

from flashdeck.config.scheduling import DEFAULT_WEIGHTS, SchedulingWeights
from flashdeck.enums.learning import CardState, Rating
from flashdeck.middleware.error_handling import InvalidRating, InvalidState
from flashdeck.models.domain import Card, ReviewLogEntry

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0

_FSRS_STATE = {
    CardState.NEW: State.Learning,
    CardState.LEARNING: State.Learning,
    CardState.REVIEW: State.Review,
    CardState.RELEARNING: State.Relearning,
}

# Any UTC instant works for reviews whose outcome ignores elapsed time.
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ===========================================
# fsrs Bridge
# ===========================================


@lru_cache(maxsize=32)
def _fsrs_scheduler(weights: SchedulingWeights) -> FSRSScheduler:
    return FSRSScheduler(
        parameters=weights.w,
        desired_retention=weights.desired_retention,
        learning_steps=tuple(timedelta(minutes=m) for m in weights.learning_steps),
        relearning_steps=tuple(timedelta(minutes=m) for m in weights.relearning_steps),
        maximum_interval=weights.maximum_interval,
        enable_fuzzing=False,
    )


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # fsrs only accepts datetimes whose tzinfo is exactly timezone.utc
    return value.astimezone(timezone.utc) if value is not None else None


def _to_fsrs_card(
    card: Card, state: CardState, stability: float, weights: SchedulingWeights
) -> FSRSCard:
    """
    Build the fsrs card for a validated snapshot.

    (Re)learning cards are placed on their last step so that Good graduates
    them; every other rating is re-stepped by schedule() anyway.
    """
    if state == CardState.NEW:
        return FSRSCard(card_id=0, state=State.Learning, step=0)

    step = None
    if state == CardState.LEARNING:
        step = len(weights.learning_steps) - 1
    elif state == CardState.RELEARNING:
        step = len(weights.relearning_steps) - 1

    return FSRSCard(
        card_id=0,
        state=_FSRS_STATE[state],
        step=step,
        stability=stability,
        difficulty=card.difficulty,
        due=_utc(card.due),
        last_review=_utc(card.last_review),
    )


# ===========================================
# Input Validation
# ===========================================


def coerce_rating(rating: Union[Rating, int]) -> Rating:
    """
    Convert ``rating`` to a Rating.

    Raises:
        InvalidRating: If the value is not 1-4 (booleans are rejected too)
    """
    if isinstance(rating, bool):
        raise InvalidRating(f"Invalid rating: {rating!r}")
    try:
        return Rating(rating)
    except (ValueError, TypeError):
        raise InvalidRating(
            f"Invalid rating: {rating!r}",
            details={"allowed": [r.value for r in Rating]},
        )


def _check_state(card: Card, now: datetime) -> CardState:
    if now.tzinfo is None:
        raise InvalidState("Review time must be timezone-aware")

    try:
        state = CardState(card.state)
    except ValueError:
        raise InvalidState(f"Card {card.id} has unknown state {card.state!r}")

    if card.reps < 0 or card.lapses < 0 or card.scheduled_days < 0:
        raise InvalidState(f"Card {card.id} has negative counters")
    if math.isnan(card.stability) or math.isinf(card.stability) or card.stability < 0:
        raise InvalidState(f"Card {card.id} has invalid stability {card.stability!r}")

    if state == CardState.NEW:
        if card.reps != 0 or card.last_review is not None:
            raise InvalidState(
                f"Card {card.id} is NEW but has reps={card.reps}, "
                f"last_review={card.last_review}"
            )
        return state

    if card.last_review is None:
        raise InvalidState(f"Card {card.id} is {state.value} but was never reviewed")
    if card.last_review.tzinfo is None:
        raise InvalidState(f"Card {card.id} has a naive last_review")
    if now < card.last_review:
        raise InvalidState(
            f"Review time {now.isoformat()} precedes last review "
            f"{card.last_review.isoformat()} of card {card.id}"
        )
    if math.isnan(card.difficulty) or not MIN_DIFFICULTY <= card.difficulty <= MAX_DIFFICULTY:
        raise InvalidState(f"Card {card.id} has difficulty {card.difficulty!r} outside [1, 10]")
    return state


def _effective_stability(card: Card, weights: SchedulingWeights) -> float:
    # Imported cards carry no memory state; estimate it from their interval.
    if card.stability == 0:
        estimated = max(weights.stability_floor, float(card.scheduled_days))
        logger.warning(
            f"Card {card.id} is {card.state.value} with stability=0; "
            f"estimating stability={estimated} from scheduled_days"
        )
        return estimated
    return card.stability


# ===========================================
# Scheduling
# ===========================================


def _review_interval_days(
    fsrs_card: FSRSCard, review_time: datetime, rating: Rating, weights: SchedulingWeights
) -> int:
    days = float(max(0, (fsrs_card.due - review_time).days))
    if rating == Rating.HARD:
        days *= weights.hard_interval_factor
    elif rating == Rating.EASY:
        days *= weights.easy_interval_factor
    return min(max(int(round(days)), 1), weights.maximum_interval)


def _lapse_stability(card: Card, lapsed: float, weights: SchedulingWeights) -> float:
    """
    Cap the stability fsrs gives after a lapse.

    A lapse never leaves a card more stable than it was. A card whose
    stability is 0 (unknown) gets at most S0(Again), what a first failed
    sighting would get.
    """
    if card.stability > 0:
        return min(lapsed, card.stability)
    return min(lapsed, weights.w[0])


def schedule(
    card: Card,
    rating: Union[Rating, int],
    now: datetime,
    weights: Optional[SchedulingWeights] = None,
) -> tuple[Card, ReviewLogEntry]:
    """
    Apply one graded review to a card.

    State Transitions:
        - New → Review on Easy; New → Learning otherwise
        - Learning/Relearning → first step again on Again/Hard
        - Learning/Relearning → Review on Good/Easy
        - Review → Relearning on Again (lapse)
        - Review → Review on Hard/Good/Easy with grown stability

    Args:
        card: Current card snapshot.
        rating: Again (1), Hard (2), Good (3) or Easy (4).
        now: Review time (timezone-aware, not before card.last_review).
        weights: fsrs parameters, steps and interval factors;
            DEFAULT_WEIGHTS when omitted.

    Returns:
        Tuple of the updated card and the review log entry describing the
        transition. The input card is left untouched.

    Raises:
        InvalidRating: If rating is outside the enumeration
        InvalidState: If the card or clock violates the scheduling invariants
    """
    weights = weights or DEFAULT_WEIGHTS
    grade = coerce_rating(rating)
    state = _check_state(card, now)

    elapsed_days = 0.0
    stability = 0.0
    if state != CardState.NEW:
        elapsed_days = max(0.0, (now - card.last_review).total_seconds() / SECONDS_PER_DAY)
        stability = _effective_stability(card, weights)

    review_time = _utc(now)
    fsrs_card, _ = _fsrs_scheduler(weights).review_card(
        _to_fsrs_card(card, state, stability, weights), FSRSRating(grade.value), review_time
    )
    stability = fsrs_card.stability
    difficulty = fsrs_card.difficulty

    lapses = card.lapses
    step_minutes: Optional[float] = None

    if state == CardState.NEW:
        if grade == Rating.EASY:
            new_state = CardState.REVIEW
        else:
            new_state = CardState.LEARNING
            step_minutes = weights.learning_steps[0]

    elif state in (CardState.LEARNING, CardState.RELEARNING):
        if grade in (Rating.AGAIN, Rating.HARD):
            new_state = state
            steps = weights.learning_steps if state == CardState.LEARNING else weights.relearning_steps
            step_minutes = steps[0]
        else:
            new_state = CardState.REVIEW

    elif grade == Rating.AGAIN:
        lapses += 1
        new_state = CardState.RELEARNING
        stability = _lapse_stability(card, stability, weights)
        step_minutes = weights.relearning_steps[0]

    else:
        new_state = CardState.REVIEW

    if step_minutes is not None:
        scheduled_days = 0
        due = now + timedelta(minutes=step_minutes)
    else:
        scheduled_days = _review_interval_days(fsrs_card, review_time, grade, weights)
        due = now + timedelta(days=scheduled_days)

    updated = replace(
        card,
        state=new_state,
        stability=stability,
        difficulty=difficulty,
        due=due,
        elapsed_days=int(elapsed_days),
        scheduled_days=scheduled_days,
        reps=card.reps + 1,
        lapses=lapses,
        last_review=now,
    )

    log = ReviewLogEntry(
        card_id=card.id,
        rating=grade,
        review_time=now,
        state_before=state,
        state_after=new_state,
        stability_before=card.stability,
        stability_after=stability,
        difficulty_before=card.difficulty,
        difficulty_after=difficulty,
        due_before=card.due,
        due_after=due,
        scheduled_days=scheduled_days,
        elapsed_days=elapsed_days,
        reps_before=card.reps,
        lapses_before=card.lapses,
        last_review_before=card.last_review,
    )

    return updated, log


def retrievability(
    card: Card, now: datetime, weights: Optional[SchedulingWeights] = None
) -> float:
    """
    Current recall probability for a card.

    Uses the fsrs package's forgetting curve, which counts whole elapsed days.

    Returns:
        Probability of recall (0.0 to 1.0). New cards return 1.0.
    """
    weights = weights or DEFAULT_WEIGHTS
    state = _check_state(card, now)
    if state == CardState.NEW:
        return 1.0
    fsrs_card = _to_fsrs_card(card, state, _effective_stability(card, weights), weights)
    return _fsrs_scheduler(weights).get_card_retrievability(fsrs_card, _utc(now))


def preview(
    card: Card, now: datetime, weights: Optional[SchedulingWeights] = None
) -> dict[Rating, timedelta]:
    """
    Time until the card would be due again for each possible rating.

    Used by the UI to label the rating buttons before the user answers.
    """
    return {
        grade: schedule(card, grade, now, weights)[0].due - now for grade in Rating
    }


def new_card_defaults(weights: Optional[SchedulingWeights] = None) -> dict[str, float]:
    """
    Memory state given to cards that have never been reviewed.

    Stability stays 0 until the first review; difficulty starts at the
    difficulty fsrs assigns to a first Good answer, so the value is
    in-domain from creation.
    """
    weights = weights or DEFAULT_WEIGHTS
    first, _ = _fsrs_scheduler(weights).review_card(
        FSRSCard(card_id=0, state=State.Learning, step=0), FSRSRating.Good, _EPOCH
    )
    return {
        "stability": 0.0,
        "difficulty": first.difficulty,
    }


class Scheduler:
    """
    Scheduler bound to one weight set.

    Provides a convenience interface over schedule() for callers that use
    the same weights for many reviews.

    Attributes:
        weights: fsrs parameters, steps and factors used for every review
    """

    def __init__(self, weights: Optional[SchedulingWeights] = None):
        self.weights = weights or DEFAULT_WEIGHTS

    @property
    def desired_retention(self) -> float:
        return self.weights.desired_retention

    @property
    def maximum_interval(self) -> int:
        return self.weights.maximum_interval

    def review(
        self,
        card: Card,
        rating: Union[Rating, int],
        review_time: Optional[datetime] = None,
    ) -> tuple[Card, ReviewLogEntry]:
        """
        Process a review.

        Args:
            card: Current card snapshot
            rating: User's self-assessment of recall quality
            review_time: Timestamp of the review. Defaults to current UTC time.
                Pass explicit time for batch processing or testing.

        Returns:
            Tuple of updated card and review log entry
        """
        review_time = review_time or datetime.now(timezone.utc)
        return schedule(card, rating, review_time, self.weights)

    def get_retrievability(self, card: Card, now: Optional[datetime] = None) -> float:
        """Get current recall probability for a card."""
        return retrievability(card, now or datetime.now(timezone.utc), self.weights)

    def preview(self, card: Card, now: Optional[datetime] = None) -> dict[Rating, timedelta]:
        """Get the next interval for every rating."""
        return preview(card, now or datetime.now(timezone.utc), self.weights)


def create_scheduler(weights: Optional[SchedulingWeights] = None) -> Scheduler:
    """
    Create a configured scheduler.

    Args:
        weights: Weight set (default: loaded from config/default.yaml)

    Returns:
        Configured Scheduler instance
    """
    if weights is None:
        from flashdeck.config.scheduling import load_scheduling_weights

        weights = load_scheduling_weights()
    return Scheduler(weights)
