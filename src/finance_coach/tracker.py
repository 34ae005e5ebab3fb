"""Per-domain performance tracking: outcome recording and derived metrics."""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from .db import now_iso, parse_iso
from .models import (
    DOMAINS,
    MIN_EXPLORATION_RATE,
    RECENT_WINDOW,
    BanditState,
    Domain,
    DomainPerformance,
    DomainStats,
    PriorityLevel,
)

DECAY_FACTOR = 0.8
NEUTRAL_PRIOR = 0.5

STRUGGLE_STREAK = 2
LOW_SCORE_THRESHOLD = 0.5
LOW_SCORE_MIN_ATTEMPTS = 3
NEW_TOPIC_ATTEMPTS = 3
ON_A_ROLL_STREAK = 3

# Exploration schedule breakpoints (on interactions seen before the update)
EARLY_INTERACTIONS = 10
EARLY_EXPLORATION_RATE = 0.4
WARMUP_INTERACTIONS = 30
WARMUP_EXPLORATION_RATE = 0.25
MATURE_BASE_RATE = 0.3
MATURE_DECAY_PER_INTERACTION = 0.002


def sanitize_score(score: Any) -> float:
    """Clamp a raw score into [0, 1]; NaN and non-numbers become 0."""
    try:
        value = float(score)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def sanitize_time_spent(seconds: Any) -> float | None:
    """Return a positive finite duration or ``None``."""
    if seconds is None or isinstance(seconds, bool):
        return None
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def new_domain_stats(domain: Domain) -> DomainStats:
    return DomainStats(domain=domain)


def initial_state(now: datetime | None = None) -> BanditState:
    """Zeroed stats for every domain with the default exploration rate."""
    return BanditState(
        domain_stats={domain: new_domain_stats(domain) for domain in DOMAINS},
        last_updated=now_iso(now),
    )


def apply_outcome(
    stats: DomainStats,
    score: Any,
    passed: bool,
    time_spent_seconds: Any = None,
    *,
    now: datetime | None = None,
) -> DomainStats:
    """Return a new ``DomainStats`` with one outcome folded in."""
    valid_score = sanitize_score(score)
    valid_time = sanitize_time_spent(time_spent_seconds)
    passed = bool(passed)

    recent = [*stats.recent_scores, valid_score][-RECENT_WINDOW:]
    if passed:
        streak_correct, streak_incorrect = stats.streak_correct + 1, 0
    else:
        streak_correct, streak_incorrect = 0, stats.streak_incorrect + 1

    return replace(
        stats,
        attempts=stats.attempts + 1,
        successes=stats.successes + (1 if passed else 0),
        total_score=stats.total_score + valid_score,
        last_score=valid_score,
        last_attempt_at=now_iso(now),
        recent_scores=recent,
        streak_correct=streak_correct,
        streak_incorrect=streak_incorrect,
        total_time_seconds=stats.total_time_seconds + (valid_time or 0.0),
    )


def next_exploration_rate(total_interactions: int) -> float:
    """Exploration rate to use after an update, from the pre-update count."""
    if total_interactions < EARLY_INTERACTIONS:
        return EARLY_EXPLORATION_RATE
    if total_interactions < WARMUP_INTERACTIONS:
        return WARMUP_EXPLORATION_RATE
    return max(
        MIN_EXPLORATION_RATE,
        MATURE_BASE_RATE - total_interactions * MATURE_DECAY_PER_INTERACTION,
    )


def record_outcome(
    state: BanditState,
    domain: Domain,
    score: Any,
    passed: bool,
    time_spent_seconds: Any = None,
    *,
    now: datetime | None = None,
) -> BanditState:
    """Fold an outcome into ``state`` and return the next snapshot.

    The input state is left untouched.
    """
    moment = now or datetime.now(timezone.utc)
    domain_stats = dict(state.domain_stats)
    domain_stats[domain] = apply_outcome(
        state.domain_stats[domain], score, passed, time_spent_seconds, now=moment
    )
    return BanditState(
        domain_stats=domain_stats,
        last_updated=now_iso(moment),
        exploration_rate=next_exploration_rate(state.total_interactions),
        total_interactions=state.total_interactions + 1,
    )


# ── Derived metrics ───────────────────────────────────────────────────────────


def decayed_score(recent_scores: list[float], decay: float = DECAY_FACTOR) -> float:
    """Exponentially weighted mean, newest score weighted highest.

    Weight of entry ``i`` is ``decay ** (n - 1 - i)``. Empty input gives the
    neutral prior 0.5.
    """
    n = len(recent_scores)
    if n == 0:
        return NEUTRAL_PRIOR
    weighted_sum = 0.0
    weight_sum = 0.0
    for i, score in enumerate(recent_scores):
        weight = decay ** (n - 1 - i)
        weighted_sum += score * weight
        weight_sum += weight
    return weighted_sum / weight_sum


def hours_since_last_attempt(stats: DomainStats, now: datetime | None = None) -> float:
    """Wall-clock hours since the last attempt; ``inf`` if never attempted."""
    last = parse_iso(stats.last_attempt_at)
    if last is None:
        return math.inf
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return max(0.0, (moment - last).total_seconds() / 3600.0)


def success_rate(stats: DomainStats) -> float:
    return stats.successes / stats.attempts if stats.attempts > 0 else 0.0


def average_score(stats: DomainStats) -> float:
    return stats.total_score / stats.attempts if stats.attempts > 0 else 0.0


def current_streak(stats: DomainStats) -> int:
    """Positive for a run of passes, negative for a run of failures."""
    if stats.streak_correct > 0:
        return stats.streak_correct
    return -stats.streak_incorrect


def is_low_scoring(stats: DomainStats) -> bool:
    return (
        decayed_score(stats.recent_scores) < LOW_SCORE_THRESHOLD
        and stats.attempts >= LOW_SCORE_MIN_ATTEMPTS
    )


def needs_attention(stats: DomainStats) -> bool:
    return stats.streak_incorrect >= STRUGGLE_STREAK or is_low_scoring(stats)


def category_performance(stats: DomainStats) -> DomainPerformance:
    return DomainPerformance(
        domain=stats.domain,
        success_rate=success_rate(stats),
        average_score=average_score(stats),
        recent_trend=decayed_score(stats.recent_scores),
        total_attempts=stats.attempts,
        current_streak=current_streak(stats),
        needs_attention=needs_attention(stats),
    )


def domain_priority(stats: DomainStats) -> tuple[PriorityLevel, str]:
    """Coarse urgency bucket for a domain, with a short explanation."""
    if stats.streak_incorrect >= STRUGGLE_STREAK:
        return "high", "Needs focused practice after recent struggles"
    if is_low_scoring(stats):
        return "high", "Building foundational understanding"
    if stats.attempts < NEW_TOPIC_ATTEMPTS:
        return "medium", "New topic to explore"
    if stats.streak_correct >= ON_A_ROLL_STREAK:
        return "low", "Already performing well"
    return "medium", "Continuing steady progress"


__all__ = [
    "DECAY_FACTOR",
    "NEUTRAL_PRIOR",
    "apply_outcome",
    "average_score",
    "category_performance",
    "current_streak",
    "decayed_score",
    "domain_priority",
    "hours_since_last_attempt",
    "initial_state",
    "is_low_scoring",
    "needs_attention",
    "new_domain_stats",
    "next_exploration_rate",
    "record_outcome",
    "sanitize_score",
    "sanitize_time_spent",
    "success_rate",
]
