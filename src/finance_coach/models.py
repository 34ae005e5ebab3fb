from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, cast

Domain = Literal["budgeting", "saving", "debt", "investing", "credit"]
UnitKind = Literal["lesson", "quiz"]
RecommendationKind = Literal["lesson", "quiz", "challenge", "review"]
PriorityLevel = Literal["high", "medium", "low"]

DOMAINS: tuple[Domain, ...] = ("budgeting", "saving", "debt", "investing", "credit")
UNIT_KINDS: tuple[UnitKind, ...] = ("lesson", "quiz")
RECOMMENDATION_KINDS: tuple[RecommendationKind, ...] = ("lesson", "quiz", "challenge", "review")

RECENT_WINDOW = 10
DEFAULT_EXPLORATION_RATE = 0.3
MIN_EXPLORATION_RATE = 0.1
MAX_EXPLORATION_RATE = 0.4


def coerce_domain(value: str) -> Domain:
    """Return ``value`` as a known domain or raise ``ValueError``."""
    normalized = (value or "").strip().lower()
    if normalized not in DOMAINS:
        raise ValueError(f"Unknown domain: {value!r}")
    return cast(Domain, normalized)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return max(0, number)


def _as_unit_float(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return max(0.0, min(1.0, number))


def _as_non_negative_float(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return max(0.0, number)


@dataclass(slots=True)
class DomainStats:
    """Running statistics for one domain."""

    domain: Domain
    attempts: int = 0
    successes: int = 0
    total_score: float = 0.0
    last_score: float = 0.0
    last_attempt_at: str | None = None
    recent_scores: list[float] = field(default_factory=list)
    streak_correct: int = 0
    streak_incorrect: int = 0
    total_time_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "attempts": self.attempts,
            "successes": self.successes,
            "total_score": self.total_score,
            "last_score": self.last_score,
            "last_attempt_at": self.last_attempt_at,
            "recent_scores": list(self.recent_scores),
            "streak_correct": self.streak_correct,
            "streak_incorrect": self.streak_incorrect,
            "total_time_seconds": self.total_time_seconds,
        }

    @classmethod
    def from_dict(cls, domain: Domain, data: Mapping[str, Any]) -> DomainStats:
        """Build stats from a persisted mapping, repairing anything out of range."""
        attempts = _as_int(data.get("attempts"))
        successes = min(_as_int(data.get("successes")), attempts)
        raw_recent = data.get("recent_scores")
        recent: list[float] = []
        if isinstance(raw_recent, (list, tuple)):
            recent = [_as_unit_float(score) for score in raw_recent][-RECENT_WINDOW:]
        last_attempt = data.get("last_attempt_at")
        streak_correct = _as_int(data.get("streak_correct"))
        streak_incorrect = _as_int(data.get("streak_incorrect"))
        if streak_correct and streak_incorrect:
            streak_incorrect = 0
        return cls(
            domain=domain,
            attempts=attempts,
            successes=successes,
            total_score=_as_non_negative_float(data.get("total_score")),
            last_score=_as_unit_float(data.get("last_score")),
            last_attempt_at=last_attempt if isinstance(last_attempt, str) and last_attempt else None,
            recent_scores=recent,
            streak_correct=streak_correct,
            streak_incorrect=streak_incorrect,
            total_time_seconds=_as_non_negative_float(data.get("total_time_seconds")),
        )


@dataclass(slots=True)
class BanditState:
    """Per-learner bandit state. This is the unit of persistence."""

    domain_stats: dict[Domain, DomainStats]
    last_updated: str
    exploration_rate: float = DEFAULT_EXPLORATION_RATE
    total_interactions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain_stats": {domain: self.domain_stats[domain].to_dict() for domain in DOMAINS},
            "exploration_rate": self.exploration_rate,
            "total_interactions": self.total_interactions,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Any, *, default_timestamp: str) -> BanditState:
        """Merge a persisted blob over defaults so every domain key is present."""
        payload: Mapping[str, Any] = data if isinstance(data, Mapping) else {}
        raw_stats = payload.get("domain_stats")
        raw_stats = raw_stats if isinstance(raw_stats, Mapping) else {}

        domain_stats: dict[Domain, DomainStats] = {}
        for domain in DOMAINS:
            entry = raw_stats.get(domain)
            if isinstance(entry, Mapping):
                domain_stats[domain] = DomainStats.from_dict(domain, entry)
            else:
                domain_stats[domain] = DomainStats(domain=domain)

        try:
            rate = float(payload.get("exploration_rate", DEFAULT_EXPLORATION_RATE))
        except (TypeError, ValueError):
            rate = DEFAULT_EXPLORATION_RATE
        if math.isnan(rate):
            rate = DEFAULT_EXPLORATION_RATE
        rate = max(MIN_EXPLORATION_RATE, min(MAX_EXPLORATION_RATE, rate))

        last_updated = payload.get("last_updated")
        return cls(
            domain_stats=domain_stats,
            last_updated=last_updated if isinstance(last_updated, str) and last_updated else default_timestamp,
            exploration_rate=rate,
            total_interactions=_as_int(payload.get("total_interactions")),
        )


@dataclass(slots=True)
class BanditRecommendation:
    domain: Domain
    score: float
    reason: str
    is_exploration: bool
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "score": self.score,
            "reason": self.reason,
            "is_exploration": self.is_exploration,
            "confidence": self.confidence,
        }


@dataclass(slots=True)
class DomainPerformance:
    domain: Domain
    success_rate: float
    average_score: float
    recent_trend: float
    total_attempts: int
    current_streak: int
    needs_attention: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "success_rate": self.success_rate,
            "average_score": self.average_score,
            "recent_trend": self.recent_trend,
            "total_attempts": self.total_attempts,
            "current_streak": self.current_streak,
            "needs_attention": self.needs_attention,
        }


@dataclass(slots=True)
class CatalogUnit:
    id: str
    title: str
    kind: UnitKind
    estimated_minutes: int
    domain: Domain
    module_id: str
    module_title: str


@dataclass(slots=True)
class CatalogModule:
    id: str
    title: str
    domain: Domain
    units: list[CatalogUnit] = field(default_factory=list)


@dataclass(slots=True)
class AdaptiveRecommendation:
    id: str
    kind: RecommendationKind
    title: str
    subtitle: str
    module_id: str
    unit_id: str
    domain: Domain
    priority: float
    reason: str
    is_exploration: bool
    estimated_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "title": self.title,
            "subtitle": self.subtitle,
            "module_id": self.module_id,
            "unit_id": self.unit_id,
            "domain": self.domain,
            "priority": self.priority,
            "reason": self.reason,
            "is_exploration": self.is_exploration,
            "estimated_minutes": self.estimated_minutes,
        }


__all__ = [
    "AdaptiveRecommendation",
    "BanditRecommendation",
    "BanditState",
    "CatalogModule",
    "CatalogUnit",
    "DEFAULT_EXPLORATION_RATE",
    "DOMAINS",
    "Domain",
    "DomainPerformance",
    "DomainStats",
    "MAX_EXPLORATION_RATE",
    "MIN_EXPLORATION_RATE",
    "PriorityLevel",
    "RECENT_WINDOW",
    "RECOMMENDATION_KINDS",
    "RecommendationKind",
    "UNIT_KINDS",
    "UnitKind",
    "coerce_domain",
]
