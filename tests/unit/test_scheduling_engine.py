"""
Unit tests for the scheduling engine.

Tests state transitions, interval calculation on top of the fsrs package
and input validation. All tests pass an explicit clock; the engine never
reads the system time.
"""

import logging
import math
from dataclasses import replace
from datetime import timedelta

import pytest

from flashdeck.config.scheduling import SchedulingWeights
from flashdeck.enums.learning import CardState, Rating
from flashdeck.middleware.error_handling import InvalidRating, InvalidState
from flashdeck.services.scheduling.engine import (
    Scheduler,
    new_card_defaults,
    preview,
    retrievability,
    schedule,
)


class TestRetrievability:
    """Tests for the forgetting curve as seen through retrievability()."""

    def test_ninety_percent_at_stability(self, review_card, now):
        """R(S, S) is 0.9: the card was reviewed S=10 days ago."""
        assert retrievability(review_card, now) == pytest.approx(0.9)

    def test_recall_decreases_with_time(self, review_card, now):
        values = [
            retrievability(review_card, now + timedelta(days=days)) for days in (0, 5, 30, 100)
        ]
        assert values == sorted(values, reverse=True)
        assert len(set(values)) == 4

    def test_recall_increases_with_stability(self, review_card, now):
        values = [
            retrievability(replace(review_card, stability=s), now) for s in (1.0, 5.0, 30.0, 100.0)
        ]
        assert values == sorted(values)

    def test_no_elapsed_time_means_certain_recall(self, review_card):
        assert retrievability(review_card, review_card.last_review) == pytest.approx(1.0)

    def test_lower_retention_gives_longer_interval(self, review_card, now):
        strict, _ = schedule(review_card, Rating.GOOD, now)
        relaxed, _ = schedule(
            review_card, Rating.GOOD, now, SchedulingWeights(desired_retention=0.8)
        )

        assert relaxed.scheduled_days > strict.scheduled_days


class TestNewCard:
    """Tests for the first review of a card."""

    def test_easy_graduates_immediately(self, make_card, now, weights):
        """Easy on a new card goes straight to Review."""
        card, _ = schedule(make_card(), Rating.EASY, now, weights)

        assert card.state == CardState.REVIEW
        assert card.stability == pytest.approx(weights.w[3])
        assert card.scheduled_days >= 1
        assert card.due == now + timedelta(days=card.scheduled_days)

    @pytest.mark.parametrize("rating", [Rating.AGAIN, Rating.HARD, Rating.GOOD])
    def test_other_ratings_enter_learning(self, make_card, now, weights, rating):
        card, _ = schedule(make_card(), rating, now, weights)

        assert card.state == CardState.LEARNING
        assert card.due == now + timedelta(minutes=1)
        assert card.scheduled_days == 0
        assert card.stability == pytest.approx(weights.w[rating.value - 1])

    def test_initial_difficulty_by_rating(self, make_card, now, weights):
        again, _ = schedule(make_card(), Rating.AGAIN, now, weights)
        good, _ = schedule(make_card(), Rating.GOOD, now, weights)
        easy, _ = schedule(make_card(), Rating.EASY, now, weights)

        assert again.difficulty > good.difficulty > easy.difficulty
        for card in (again, good, easy):
            assert 1.0 <= card.difficulty <= 10.0

    def test_custom_initial_stability(self, make_card, now):
        w = list(SchedulingWeights().w)
        w[3] = 30.0
        weights = SchedulingWeights(w=tuple(w))

        card, _ = schedule(make_card(), Rating.EASY, now, weights)

        assert card.stability == pytest.approx(30.0)

    def test_first_review_sets_counters(self, make_card, now):
        card, _ = schedule(make_card(), Rating.GOOD, now)

        assert card.reps == 1
        assert card.lapses == 0
        assert card.last_review == now
        assert card.elapsed_days == 0


class TestLearningCard:
    """Tests for cards in (re)learning steps."""

    @pytest.mark.parametrize("rating", [Rating.AGAIN, Rating.HARD])
    def test_again_and_hard_restart_steps(self, learning_card, now, rating):
        card, _ = schedule(learning_card, rating, now)

        assert card.state == CardState.LEARNING
        assert card.due == now + timedelta(minutes=1)
        assert card.scheduled_days == 0

    def test_good_graduates(self, learning_card, now):
        card, _ = schedule(learning_card, Rating.GOOD, now)

        assert card.state == CardState.REVIEW
        assert card.scheduled_days >= 1
        assert card.due == now + timedelta(days=card.scheduled_days)

    def test_easy_graduates_further_than_good(self, learning_card, now):
        good, _ = schedule(learning_card, Rating.GOOD, now)
        easy, _ = schedule(learning_card, Rating.EASY, now)

        assert easy.state == CardState.REVIEW
        assert easy.stability > good.stability
        assert easy.scheduled_days >= good.scheduled_days

    def test_relearning_uses_relearning_steps(self, learning_card, now):
        relearning = replace(learning_card, state=CardState.RELEARNING, lapses=1)

        card, _ = schedule(relearning, Rating.HARD, now)

        assert card.state == CardState.RELEARNING
        assert card.due == now + timedelta(minutes=10)
        assert card.lapses == 1

    def test_relearning_good_returns_to_review(self, learning_card, now):
        relearning = replace(learning_card, state=CardState.RELEARNING, lapses=1)

        card, _ = schedule(relearning, Rating.GOOD, now)

        assert card.state == CardState.REVIEW
        assert card.lapses == 1

    def test_custom_steps(self, make_card, now):
        weights = SchedulingWeights(learning_steps=(5.0, 30.0))

        card, _ = schedule(make_card(), Rating.GOOD, now, weights)

        assert card.due == now + timedelta(minutes=5)


class TestReviewCard:
    """Tests for cards in Review (S=10, D=5, reviewed 10 days ago)."""

    def test_again_lapses(self, review_card, now):
        card, _ = schedule(review_card, Rating.AGAIN, now)

        assert card.state == CardState.RELEARNING
        assert card.lapses == review_card.lapses + 1
        assert card.stability <= review_card.stability
        assert card.due == now + timedelta(minutes=10)

    def test_stability_ordered_by_rating(self, review_card, now):
        """Again < Hard < Good < Easy for the resulting stability."""
        stabilities = [schedule(review_card, rating, now)[0].stability for rating in Rating]

        assert stabilities == sorted(stabilities)
        assert len(set(stabilities)) == 4

    def test_intervals_ordered_by_rating(self, review_card, now):
        days = [schedule(review_card, rating, now)[0].scheduled_days for rating in Rating][1:]

        assert days[0] < days[1] < days[2]

    def test_good_interval_matches_stability_at_default_retention(self, review_card, now):
        card, _ = schedule(review_card, Rating.GOOD, now)

        assert card.scheduled_days == round(card.stability)

    def test_intervals_use_factors(self, review_card, now):
        plain = SchedulingWeights(hard_interval_factor=1.0, easy_interval_factor=1.0)
        hard = schedule(review_card, Rating.HARD, now, plain)[0].scheduled_days
        good = schedule(review_card, Rating.GOOD, now, plain)[0].scheduled_days
        easy = schedule(review_card, Rating.EASY, now, plain)[0].scheduled_days

        assert schedule(review_card, Rating.HARD, now)[0].scheduled_days == max(1, round(hard * 0.8))
        assert schedule(review_card, Rating.GOOD, now)[0].scheduled_days == good
        assert schedule(review_card, Rating.EASY, now)[0].scheduled_days == round(easy * 1.3)

    def test_difficulty_moves_with_rating(self, review_card, now):
        again, _ = schedule(review_card, Rating.AGAIN, now)
        good, _ = schedule(review_card, Rating.GOOD, now)
        easy, _ = schedule(review_card, Rating.EASY, now)

        assert again.difficulty > good.difficulty > easy.difficulty

    def test_difficulty_stays_in_range(self, review_card, now):
        card = replace(review_card, difficulty=10.0)
        for _ in range(20):
            card, _ = schedule(card, Rating.AGAIN, card.last_review + timedelta(days=1))
            assert 1.0 <= card.difficulty <= 10.0

        card = replace(review_card, difficulty=1.0)
        for _ in range(20):
            card, _ = schedule(card, Rating.EASY, card.last_review + timedelta(days=1))
            assert 1.0 <= card.difficulty <= 10.0

    def test_maximum_interval_is_respected(self, review_card, now):
        weights = SchedulingWeights(maximum_interval=30)

        card, _ = schedule(review_card, Rating.EASY, now, weights)

        assert card.scheduled_days == 30

    def test_elapsed_days_recorded(self, review_card, now):
        card, log = schedule(review_card, Rating.GOOD, now)

        assert card.elapsed_days == 10
        assert log.elapsed_days == pytest.approx(10.0)

    def test_zero_stability_is_estimated(self, review_card, now, caplog):
        """Imported review cards start with stability 0."""
        imported = replace(review_card, stability=0.0, scheduled_days=7)

        with caplog.at_level(logging.WARNING):
            card, _ = schedule(imported, Rating.GOOD, now)

        assert card.stability > 7.0
        assert "stability=0" in caplog.text


class TestLapseStability:
    """A lapse never leaves a card more stable than it was."""

    @pytest.mark.parametrize("stability", [0.005, 0.05, 0.5, 10.0, 400.0])
    @pytest.mark.parametrize("elapsed", [timedelta(hours=2), timedelta(days=3), timedelta(days=60)])
    def test_again_never_raises_stability(self, review_card, now, stability, elapsed):
        card = replace(review_card, stability=stability, last_review=now - elapsed)

        lapsed, log = schedule(card, Rating.AGAIN, now)

        assert 0 < lapsed.stability <= stability
        assert log.stability_after == lapsed.stability

    def test_tiny_stability_is_not_floored_upwards(self, review_card, now):
        card = replace(review_card, stability=0.005)

        lapsed, _ = schedule(card, Rating.AGAIN, now)

        assert lapsed.stability <= 0.005

    def test_unknown_stability_lapses_to_first_failure(self, review_card, now, weights):
        """An imported card (stability 0) never lapses above S0(Again)."""
        imported = replace(review_card, stability=0.0, scheduled_days=20)

        lapsed, _ = schedule(imported, Rating.AGAIN, now, weights)

        assert lapsed.state == CardState.RELEARNING
        assert 0 < lapsed.stability <= weights.w[0]


class TestScheduleInvariants:
    """Properties that hold for every card and rating."""

    @pytest.fixture(params=["new", "learning", "relearning", "review"])
    def any_card(self, request, make_card, learning_card, review_card):
        return {
            "new": make_card(),
            "learning": learning_card,
            "relearning": replace(learning_card, state=CardState.RELEARNING, lapses=2),
            "review": review_card,
        }[request.param]

    @pytest.mark.parametrize("rating", list(Rating))
    def test_due_not_before_now_and_reps_increment(self, any_card, now, rating):
        card, _ = schedule(any_card, rating, now)

        assert card.due >= now
        assert card.reps == any_card.reps + 1
        assert card.last_review == now
        assert card.stability > 0

    @pytest.mark.parametrize("rating", list(Rating))
    def test_deterministic(self, any_card, now, rating):
        assert schedule(any_card, rating, now) == schedule(any_card, rating, now)

    @pytest.mark.parametrize("rating", list(Rating))
    def test_log_entry_describes_transition(self, any_card, now, rating):
        card, log = schedule(any_card, rating, now)

        assert log.card_id == any_card.id
        assert log.rating == rating
        assert log.review_time == now
        assert log.state_before == any_card.state
        assert log.state_after == card.state
        assert log.stability_before == any_card.stability
        assert log.stability_after == card.stability
        assert log.due_before == any_card.due
        assert log.due_after == card.due
        assert log.reps_before == any_card.reps
        assert log.id is None

    def test_accepts_integer_rating(self, make_card, now):
        by_int, _ = schedule(make_card(), 3, now)
        by_enum, _ = schedule(make_card(), Rating.GOOD, now)
        assert by_int == by_enum


class TestValidation:
    """Tests for rejected input."""

    @pytest.mark.parametrize("rating", [0, 5, -1, True, "3", None, 2.5])
    def test_invalid_rating(self, make_card, now, rating):
        with pytest.raises(InvalidRating):
            schedule(make_card(), rating, now)

    def test_new_card_with_reps(self, make_card, now):
        with pytest.raises(InvalidState):
            schedule(make_card(reps=2), Rating.GOOD, now)

    def test_new_card_with_last_review(self, make_card, now):
        with pytest.raises(InvalidState):
            schedule(make_card(last_review=now), Rating.GOOD, now)

    def test_review_card_without_last_review(self, review_card, now):
        with pytest.raises(InvalidState):
            schedule(replace(review_card, last_review=None), Rating.GOOD, now)

    def test_clock_before_last_review(self, review_card, now):
        with pytest.raises(InvalidState):
            schedule(review_card, Rating.GOOD, review_card.last_review - timedelta(seconds=1))

    def test_naive_clock(self, make_card, now):
        with pytest.raises(InvalidState):
            schedule(make_card(), Rating.GOOD, now.replace(tzinfo=None))

    @pytest.mark.parametrize("difficulty", [0.5, 10.5, math.nan])
    def test_difficulty_out_of_range(self, review_card, now, difficulty):
        with pytest.raises(InvalidState):
            schedule(replace(review_card, difficulty=difficulty), Rating.GOOD, now)

    @pytest.mark.parametrize("stability", [-1.0, math.nan, math.inf])
    def test_bad_stability(self, review_card, now, stability):
        with pytest.raises(InvalidState):
            schedule(replace(review_card, stability=stability), Rating.GOOD, now)

    def test_negative_counters(self, review_card, now):
        with pytest.raises(InvalidState):
            schedule(replace(review_card, lapses=-1), Rating.GOOD, now)

    def test_unknown_state(self, review_card, now):
        with pytest.raises(InvalidState):
            schedule(replace(review_card, state="suspended"), Rating.GOOD, now)


class TestHelpers:
    """Tests for retrievability, preview and defaults."""

    def test_retrievability_of_new_card(self, make_card, now):
        assert retrievability(make_card(), now) == 1.0

    def test_preview_covers_every_rating(self, review_card, now):
        intervals = preview(review_card, now)

        assert list(intervals) == list(Rating)
        assert intervals[Rating.AGAIN] == timedelta(minutes=10)
        good, _ = schedule(review_card, Rating.GOOD, now)
        assert intervals[Rating.GOOD] == timedelta(days=good.scheduled_days)
        ordered = [intervals[r] for r in Rating]
        assert ordered == sorted(ordered)

    def test_new_card_defaults(self, make_card, now, weights):
        defaults = new_card_defaults(weights)
        first_good, _ = schedule(make_card(), Rating.GOOD, now, weights)

        assert defaults["stability"] == 0.0
        assert defaults["difficulty"] == pytest.approx(first_good.difficulty)
        assert 1.0 <= defaults["difficulty"] <= 10.0


class TestScheduler:
    """Tests for the weight-bound Scheduler wrapper."""

    def test_exposes_weight_settings(self):
        scheduler = Scheduler(SchedulingWeights(desired_retention=0.85, maximum_interval=365))

        assert scheduler.desired_retention == 0.85
        assert scheduler.maximum_interval == 365

    def test_review_matches_schedule(self, review_card, now, weights):
        scheduler = Scheduler(weights)

        assert scheduler.review(review_card, Rating.GOOD, now) == schedule(
            review_card, Rating.GOOD, now, weights
        )

    def test_review_defaults_to_current_time(self, make_card):
        card, _ = Scheduler().review(make_card(), Rating.GOOD)

        assert card.last_review.tzinfo is not None
        assert card.due > card.last_review
