"""Tests for tracker.py: outcome recording, derived metrics, exploration schedule."""

from __future__ import annotations

import math
import random
from datetime import datetime, timedelta, timezone

import pytest

from finance_coach.models import DOMAINS, RECENT_WINDOW, BanditState, DomainStats
from finance_coach.tracker import (
    apply_outcome,
    average_score,
    category_performance,
    current_streak,
    decayed_score,
    domain_priority,
    hours_since_last_attempt,
    initial_state,
    needs_attention,
    next_exploration_rate,
    record_outcome,
    sanitize_score,
    sanitize_time_spent,
    success_rate,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _stats_after(outcomes: list[tuple[float, bool]], domain="debt") -> DomainStats:
    stats = DomainStats(domain=domain)
    for score, passed in outcomes:
        stats = apply_outcome(stats, score, passed, now=NOW)
    return stats


class TestSanitize:
    @pytest.mark.parametrize(
        "raw,expected",
        [(0.5, 0.5), (1.7, 1.0), (-0.2, 0.0), (float("nan"), 0.0), ("0.25", 0.25), ("abc", 0.0), (None, 0.0)],
    )
    def test_score(self, raw, expected):
        assert sanitize_score(raw) == expected

    @pytest.mark.parametrize("raw", [None, 0, -5, float("nan"), float("inf"), "soon", True])
    def test_time_spent_dropped(self, raw):
        assert sanitize_time_spent(raw) is None

    def test_time_spent_kept(self):
        assert sanitize_time_spent(42) == 42.0


class TestApplyOutcome:
    def test_pass_updates_counters(self):
        stats = apply_outcome(DomainStats(domain="saving"), 0.9, True, 30, now=NOW)
        assert stats.attempts == 1
        assert stats.successes == 1
        assert stats.total_score == pytest.approx(0.9)
        assert stats.last_score == pytest.approx(0.9)
        assert stats.last_attempt_at == "2026-03-01T12:00:00+00:00"
        assert stats.recent_scores == [0.9]
        assert stats.streak_correct == 1
        assert stats.streak_incorrect == 0
        assert stats.total_time_seconds == 30.0

    def test_fail_resets_correct_streak(self):
        stats = _stats_after([(1.0, True), (1.0, True), (0.1, False)])
        assert stats.streak_correct == 0
        assert stats.streak_incorrect == 1
        assert stats.successes == 2

    def test_input_not_mutated(self):
        original = DomainStats(domain="credit")
        apply_outcome(original, 0.5, True, now=NOW)
        assert original.attempts == 0
        assert original.recent_scores == []

    def test_nan_score_recorded_as_zero(self):
        stats = apply_outcome(DomainStats(domain="debt"), float("nan"), False, now=NOW)
        assert stats.last_score == 0.0
        assert stats.total_score == 0.0

    def test_invalid_time_spent_ignored(self):
        stats = apply_outcome(DomainStats(domain="debt"), 0.5, True, -10, now=NOW)
        assert stats.total_time_seconds == 0.0

    def test_recent_window_drops_oldest(self):
        stats = _stats_after([(i / 20, True) for i in range(15)])
        assert len(stats.recent_scores) == RECENT_WINDOW
        assert stats.recent_scores[0] == pytest.approx(5 / 20)
        assert stats.recent_scores[-1] == pytest.approx(14 / 20)

    def test_invariants_hold_over_random_sequences(self):
        rng = random.Random(17)
        stats = DomainStats(domain="investing")
        for _ in range(200):
            stats = apply_outcome(stats, rng.uniform(-0.5, 1.5), rng.random() < 0.5, now=NOW)
            assert stats.successes <= stats.attempts
            assert len(stats.recent_scores) <= RECENT_WINDOW
            assert (stats.streak_correct == 0) != (stats.streak_incorrect == 0)
            assert all(0.0 <= s <= 1.0 for s in stats.recent_scores)


class TestDecayedScore:
    def test_empty_is_neutral(self):
        assert decayed_score([]) == 0.5

    @pytest.mark.parametrize("score", [0.0, 0.2, 0.73, 1.0])
    def test_single_element_is_exact(self, score):
        assert decayed_score([score]) == score

    def test_newest_weighted_highest(self):
        # weights 0.8, 1.0
        assert decayed_score([0.0, 1.0]) == pytest.approx(1.0 / 1.8)
        assert decayed_score([1.0, 0.0]) == pytest.approx(0.8 / 1.8)

    def test_custom_decay(self):
        assert decayed_score([0.0, 1.0], decay=0.5) == pytest.approx(1.0 / 1.5)


class TestDerivedMetrics:
    def test_never_attempted_is_infinitely_idle(self):
        assert hours_since_last_attempt(DomainStats(domain="debt"), NOW) == math.inf

    def test_hours_since_last_attempt(self):
        stats = apply_outcome(DomainStats(domain="debt"), 1.0, True, now=NOW)
        later = NOW + timedelta(hours=30)
        assert hours_since_last_attempt(stats, later) == pytest.approx(30.0)

    def test_rates_zero_without_attempts(self):
        stats = DomainStats(domain="debt")
        assert success_rate(stats) == 0.0
        assert average_score(stats) == 0.0

    def test_rates(self):
        stats = _stats_after([(1.0, True), (0.5, False), (0.9, True), (0.2, False)])
        assert success_rate(stats) == pytest.approx(0.5)
        assert average_score(stats) == pytest.approx(2.6 / 4)

    def test_current_streak_sign(self):
        assert current_streak(_stats_after([(1.0, True)] * 3)) == 3
        assert current_streak(_stats_after([(0.0, False)] * 2)) == -2
        assert current_streak(DomainStats(domain="debt")) == 0

    def test_needs_attention_on_losing_streak(self):
        assert needs_attention(_stats_after([(0.9, False), (0.9, False)]))

    def test_needs_attention_on_low_scores(self):
        stats = _stats_after([(0.2, True), (0.3, True), (0.1, True)])
        assert stats.streak_incorrect == 0
        assert needs_attention(stats)

    def test_low_scores_need_three_attempts(self):
        assert not needs_attention(_stats_after([(0.2, True), (0.1, True)]))

    def test_fresh_domain_is_fine(self):
        assert not needs_attention(DomainStats(domain="debt"))

    def test_category_performance(self):
        perf = category_performance(_stats_after([(0.2, False)] * 3))
        assert perf.domain == "debt"
        assert perf.total_attempts == 3
        assert perf.success_rate == 0.0
        assert perf.average_score == pytest.approx(0.2)
        assert perf.recent_trend == pytest.approx(0.2)
        assert perf.current_streak == -3
        assert perf.needs_attention is True


class TestDomainPriority:
    def test_struggling_is_high(self):
        level, reason = domain_priority(_stats_after([(0.9, False)] * 2))
        assert level == "high"
        assert "struggles" in reason

    def test_low_scoring_is_high(self):
        level, reason = domain_priority(_stats_after([(0.1, True)] * 3))
        assert level == "high"
        assert "foundational" in reason

    def test_new_topic_is_medium(self):
        assert domain_priority(DomainStats(domain="debt"))[0] == "medium"

    def test_on_a_roll_is_low(self):
        assert domain_priority(_stats_after([(1.0, True)] * 4))[0] == "low"

    def test_steady_is_medium(self):
        level, reason = domain_priority(_stats_after([(0.9, True), (0.9, True), (0.8, False), (0.9, True)]))
        assert level == "medium"
        assert reason == "Continuing steady progress"


class TestExplorationSchedule:
    @pytest.mark.parametrize(
        "interactions,rate",
        [(0, 0.4), (9, 0.4), (10, 0.25), (29, 0.25), (30, 0.24), (50, 0.2), (100, 0.1), (500, 0.1)],
    )
    def test_schedule(self, interactions, rate):
        assert next_exploration_rate(interactions) == pytest.approx(rate)

    def test_mature_rate_never_increases(self):
        rates = [next_exploration_rate(n) for n in range(30, 300)]
        assert all(a >= b for a, b in zip(rates, rates[1:]))


class TestRecordOutcome:
    def test_initial_state_has_every_domain(self):
        state = initial_state(NOW)
        assert set(state.domain_stats) == set(DOMAINS)
        assert state.exploration_rate == 0.3
        assert state.total_interactions == 0
        assert state.last_updated == "2026-03-01T12:00:00+00:00"

    def test_record_uses_pre_update_count(self):
        state = initial_state(NOW)
        state = record_outcome(state, "debt", 0.5, True, now=NOW)
        assert state.exploration_rate == 0.4
        assert state.total_interactions == 1

        state = BanditState(
            domain_stats=state.domain_stats,
            last_updated=state.last_updated,
            exploration_rate=0.4,
            total_interactions=10,
        )
        state = record_outcome(state, "debt", 0.5, True, now=NOW)
        assert state.exploration_rate == 0.25
        assert state.total_interactions == 11

    def test_record_leaves_previous_snapshot_alone(self):
        before = initial_state(NOW)
        after = record_outcome(before, "saving", 1.0, True, now=NOW + timedelta(minutes=5))
        assert before.domain_stats["saving"].attempts == 0
        assert after.domain_stats["saving"].attempts == 1
        assert after.domain_stats["debt"] is before.domain_stats["debt"]
        assert after.last_updated == "2026-03-01T12:05:00+00:00"
