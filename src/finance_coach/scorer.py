"""Thompson-sampling domain scorer.

Every call draws a fresh Beta-Bernoulli sample per domain, adds heuristic
bonuses for neglected, struggling and under-sampled domains, penalises
mastered ones, and ranks the result. State is only read, never written.
"""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Callable, Iterable

from .models import DOMAINS, BanditRecommendation, BanditState, Domain, DomainStats
from .sampling import beta_sample
from .tracker import (
    LOW_SCORE_MIN_ATTEMPTS,
    LOW_SCORE_THRESHOLD,
    NEW_TOPIC_ATTEMPTS,
    ON_A_ROLL_STREAK,
    STRUGGLE_STREAK,
    decayed_score,
    hours_since_last_attempt,
)

DEFAULT_COUNT = 3

LONG_IDLE_HOURS = 72
LONG_IDLE_BONUS = 0.15
IDLE_HOURS = 24
IDLE_BONUS = 0.08
REFRESH_HOURS = 48

STRUGGLE_BASE_BONUS = 0.25
STRUGGLE_PER_MISS_BONUS = 0.05
LOW_SCORE_BONUS = 0.15

UNCERTAINTY_ATTEMPTS = 5
UNCERTAINTY_MAX_BONUS = 0.2

MASTERY_STREAK = 5
MASTERY_PENALTY = 0.1

EXPLORATION_NOISE = 0.3

COLD_CONFIDENCE = 0.1
BASE_CONFIDENCE = 0.3
CONFIDENCE_PER_ATTEMPT = 0.1
MAX_CONFIDENCE = 0.95

Sampler = Callable[[float, float, random.Random], float]

_default_rng = random.Random()


def time_bonus(hours_idle: float) -> float:
    if hours_idle > LONG_IDLE_HOURS:
        return LONG_IDLE_BONUS
    if hours_idle > IDLE_HOURS:
        return IDLE_BONUS
    return 0.0


def struggle_bonus(stats: DomainStats, decayed: float) -> float:
    if stats.streak_incorrect >= STRUGGLE_STREAK:
        return STRUGGLE_BASE_BONUS + STRUGGLE_PER_MISS_BONUS * stats.streak_incorrect
    if decayed < LOW_SCORE_THRESHOLD and stats.attempts >= LOW_SCORE_MIN_ATTEMPTS:
        return LOW_SCORE_BONUS
    return 0.0


def uncertainty_bonus(attempts: int) -> float:
    if attempts < UNCERTAINTY_ATTEMPTS:
        return UNCERTAINTY_MAX_BONUS * (1 - attempts / UNCERTAINTY_ATTEMPTS)
    return 0.0


def mastery_penalty(streak_correct: int) -> float:
    return MASTERY_PENALTY if streak_correct >= MASTERY_STREAK else 0.0


def confidence(attempts: int) -> float:
    if attempts == 0:
        return COLD_CONFIDENCE
    return min(MAX_CONFIDENCE, BASE_CONFIDENCE + attempts * CONFIDENCE_PER_ATTEMPT)


def select_reason(stats: DomainStats, decayed: float, hours_idle: float) -> str:
    """Pick the learner-facing explanation; first matching rule wins."""
    domain = stats.domain
    if stats.streak_incorrect >= STRUGGLE_STREAK:
        return f"Practice makes perfect - let's strengthen your {domain} skills"
    if decayed < LOW_SCORE_THRESHOLD and stats.attempts >= LOW_SCORE_MIN_ATTEMPTS:
        return f"Keep building your {domain} foundation"
    if hours_idle > REFRESH_HOURS:
        return f"Time to refresh your {domain} knowledge"
    if stats.attempts < NEW_TOPIC_ATTEMPTS:
        return f"Discover {domain} concepts"
    if stats.streak_correct >= ON_A_ROLL_STREAK:
        return f"You're on a roll with {domain}!"
    return f"Continue learning {domain}"


def _thompson_sample(stats: DomainStats, sample: Sampler, rng: random.Random) -> float:
    alpha = stats.successes + 1
    beta_param = (stats.attempts - stats.successes) + 1
    return sample(alpha, beta_param, rng)


def score_domain(
    stats: DomainStats,
    exploration_rate: float,
    *,
    rng: random.Random,
    now: datetime,
    sample: Sampler = beta_sample,
) -> BanditRecommendation:
    decayed = decayed_score(stats.recent_scores)
    hours_idle = hours_since_last_attempt(stats, now)

    final_score = (
        _thompson_sample(stats, sample, rng)
        + time_bonus(hours_idle)
        + struggle_bonus(stats, decayed)
        + uncertainty_bonus(stats.attempts)
        - mastery_penalty(stats.streak_correct)
    )

    is_exploration = rng.random() < exploration_rate
    if is_exploration:
        final_score += rng.uniform(0.0, EXPLORATION_NOISE)

    return BanditRecommendation(
        domain=stats.domain,
        score=final_score,
        reason=select_reason(stats, decayed, hours_idle),
        is_exploration=is_exploration,
        confidence=confidence(stats.attempts),
    )


def score_domains(
    state: BanditState,
    count: int = DEFAULT_COUNT,
    exclude_domains: Iterable[Domain] = (),
    *,
    rng: random.Random | None = None,
    now: datetime | None = None,
    sample: Sampler = beta_sample,
) -> list[BanditRecommendation]:
    """Rank domains by sampled score, highest first, truncated to ``count``."""
    if count <= 0:
        return []
    rng = rng or _default_rng
    moment = now or datetime.now(timezone.utc)
    excluded = set(exclude_domains)

    ranked = [
        score_domain(state.domain_stats[domain], state.exploration_rate, rng=rng, now=moment, sample=sample)
        for domain in DOMAINS
        if domain not in excluded
    ]
    ranked.sort(key=lambda rec: rec.score, reverse=True)
    return ranked[:count]


__all__ = [
    "DEFAULT_COUNT",
    "Sampler",
    "confidence",
    "mastery_penalty",
    "score_domain",
    "score_domains",
    "select_reason",
    "struggle_bonus",
    "time_bonus",
    "uncertainty_bonus",
]
