"""Turn ranked domains into concrete lessons, quizzes and reviews."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Protocol, Sequence

from .models import (
    AdaptiveRecommendation,
    BanditRecommendation,
    CatalogModule,
    CatalogUnit,
    Domain,
    DomainPerformance,
    RecommendationKind,
)
from .catalog import iter_units

SCORER_CANDIDATES = 5
DEFAULT_GENERATE_COUNT = 5
DEFAULT_FAILURE_COUNT = 2
ATTENTION_BOOST = 0.2
REVIEW_TREND_THRESHOLD = 0.6
REVIEW_MIN_ATTEMPTS = 2
REVIEW_PRIORITY = 0.7
REVIEW_DURATION_FACTOR = 0.5
REINFORCE_STEP = 0.1
ALTERNATE_SCORE_FACTOR = 0.8
PATH_DOMAINS = 3
PATH_UNITS_PER_DOMAIN = 2
PATH_STEP = 0.05


class PerformanceSource(Protocol):
    """What the assembler needs from the bandit state manager."""

    def get_recommendations(
        self, count: int = ..., exclude_domains: Iterable[Domain] = ...
    ) -> list[BanditRecommendation]: ...

    def get_category_performance(self, domain: Domain) -> DomainPerformance: ...

    def get_all_performance_stats(self) -> list[DomainPerformance]: ...


@dataclass(slots=True)
class _Candidate:
    unit: CatalogUnit
    completed: bool


def _display_kind(unit: CatalogUnit) -> RecommendationKind:
    return "quiz" if unit.kind == "quiz" else "lesson"


class RecommendationAssembler:
    """Merges bandit rankings with the catalog and the completion ledger.

    ``ledger`` maps unit ids to completion; missing ids count as not
    completed. A ``None`` ledger means completion data is unavailable and
    every entry point returns an empty list.
    """

    def __init__(
        self,
        source: PerformanceSource,
        catalog: Sequence[CatalogModule],
        ledger: Mapping[str, bool] | None,
    ) -> None:
        self.source = source
        self.catalog = catalog
        self.ledger = ledger

    def _candidates(self) -> list[_Candidate]:
        if self.ledger is None:
            return []
        return [
            _Candidate(unit=unit, completed=bool(self.ledger.get(unit.id, False)))
            for unit in iter_units(self.catalog)
        ]

    # ── Main feed ─────────────────────────────────────────────────────────────

    def generate(self, count: int = DEFAULT_GENERATE_COUNT) -> list[AdaptiveRecommendation]:
        """Bandit-ranked picks plus review entries for weak domains."""
        candidates = self._candidates()
        if count <= 0 or not candidates:
            return []

        recommendations: list[AdaptiveRecommendation] = []
        used: set[str] = set()

        for rec in self.source.get_recommendations(SCORER_CANDIDATES):
            open_units = [
                c.unit for c in candidates
                if c.unit.domain == rec.domain and not c.completed and c.unit.id not in used
            ]
            if not open_units:
                continue

            performance = self.source.get_category_performance(rec.domain)
            if performance.needs_attention:
                lesson = next((u for u in open_units if u.kind == "lesson"), None)
                if lesson is not None:
                    used.add(lesson.id)
                    recommendations.append(
                        AdaptiveRecommendation(
                            id=f"rec-{lesson.id}",
                            kind="lesson",
                            title=lesson.title,
                            subtitle=f"Strengthen your {rec.domain} skills",
                            module_id=lesson.module_id,
                            unit_id=lesson.id,
                            domain=rec.domain,
                            priority=rec.score + ATTENTION_BOOST,
                            reason=rec.reason,
                            is_exploration=False,
                            estimated_minutes=lesson.estimated_minutes,
                        )
                    )
                    continue

            unit = open_units[0]
            used.add(unit.id)
            recommendations.append(
                AdaptiveRecommendation(
                    id=f"rec-{unit.id}",
                    kind=_display_kind(unit),
                    title=unit.title,
                    subtitle=unit.module_title,
                    module_id=unit.module_id,
                    unit_id=unit.id,
                    domain=rec.domain,
                    priority=rec.score,
                    reason=rec.reason,
                    is_exploration=rec.is_exploration,
                    estimated_minutes=unit.estimated_minutes,
                )
            )

        recommendations.extend(self._review_entries(candidates, used))
        recommendations.sort(key=lambda r: r.priority, reverse=True)
        return recommendations[:count]

    def _review_entries(
        self, candidates: list[_Candidate], used: set[str]
    ) -> list[AdaptiveRecommendation]:
        reviews: list[AdaptiveRecommendation] = []
        for performance in self.source.get_all_performance_stats():
            weak = performance.needs_attention or (
                performance.recent_trend < REVIEW_TREND_THRESHOLD
                and performance.total_attempts >= REVIEW_MIN_ATTEMPTS
            )
            if not weak:
                continue
            domain = performance.domain
            unit = next(
                (
                    c.unit for c in candidates
                    if c.completed and c.unit.domain == domain and c.unit.id not in used
                ),
                None,
            )
            if unit is None:
                continue
            used.add(unit.id)
            reviews.append(
                AdaptiveRecommendation(
                    id=f"review-{unit.id}",
                    kind="review",
                    title=f"Review: {unit.title}",
                    subtitle="Refresh your understanding",
                    module_id=unit.module_id,
                    unit_id=unit.id,
                    domain=domain,
                    priority=REVIEW_PRIORITY,
                    reason=f"Recent scores in {domain} suggest a review would help",
                    is_exploration=False,
                    estimated_minutes=math.ceil(unit.estimated_minutes * REVIEW_DURATION_FACTOR),
                )
            )
        return reviews

    # ── After a failed activity ───────────────────────────────────────────────

    def get_next_after_failure(
        self,
        failed_domain: Domain,
        current_unit_id: str,
        count: int = DEFAULT_FAILURE_COUNT,
    ) -> list[AdaptiveRecommendation]:
        """Reinforcement lessons in the failed domain, then alternatives elsewhere."""
        candidates = self._candidates()
        if count <= 0 or not candidates:
            return []

        same_domain = [
            c.unit for c in candidates
            if c.unit.domain == failed_domain
            and not c.completed
            and c.unit.id != current_unit_id
            and c.unit.kind == "lesson"
        ]
        recommendations = [
            AdaptiveRecommendation(
                id=f"reinforce-{unit.id}",
                kind="lesson",
                title=unit.title,
                subtitle=f"Build your {failed_domain} foundation",
                module_id=unit.module_id,
                unit_id=unit.id,
                domain=failed_domain,
                priority=1.0 - i * REINFORCE_STEP,
                reason="Reinforcement for recent challenge",
                is_exploration=False,
                estimated_minutes=unit.estimated_minutes,
            )
            for i, unit in enumerate(same_domain[:count])
        ]

        if len(recommendations) < count:
            remaining = count - len(recommendations)
            for rec in self.source.get_recommendations(remaining, [failed_domain]):
                unit = next(
                    (c.unit for c in candidates if c.unit.domain == rec.domain and not c.completed),
                    None,
                )
                if unit is None:
                    continue
                recommendations.append(
                    AdaptiveRecommendation(
                        id=f"alt-{unit.id}",
                        kind=_display_kind(unit),
                        title=unit.title,
                        subtitle=unit.module_title,
                        module_id=unit.module_id,
                        unit_id=unit.id,
                        domain=rec.domain,
                        priority=rec.score * ALTERNATE_SCORE_FACTOR,
                        reason="Try something different while building confidence",
                        is_exploration=True,
                        estimated_minutes=unit.estimated_minutes,
                    )
                )

        return recommendations[:count]

    # ── Learning path ─────────────────────────────────────────────────────────

    def get_learning_path(self, target_domain: Domain | None = None) -> list[AdaptiveRecommendation]:
        """Up to two open units per domain, lessons before quizzes.

        Without a target, the three domains with the weakest recent trend
        are used.
        """
        candidates = self._candidates()
        if not candidates:
            return []

        if target_domain is not None:
            domains: list[Domain] = [target_domain]
        else:
            stats = sorted(self.source.get_all_performance_stats(), key=lambda s: s.recent_trend)
            domains = [s.domain for s in stats[:PATH_DOMAINS]]

        path: list[AdaptiveRecommendation] = []
        for domain in domains:
            open_units = sorted(
                (c.unit for c in candidates if c.unit.domain == domain and not c.completed),
                key=lambda u: 0 if u.kind == "lesson" else 1,
            )
            for unit in open_units[:PATH_UNITS_PER_DOMAIN]:
                path.append(
                    AdaptiveRecommendation(
                        id=f"path-{unit.id}",
                        kind=_display_kind(unit),
                        title=unit.title,
                        subtitle=unit.module_title,
                        module_id=unit.module_id,
                        unit_id=unit.id,
                        domain=domain,
                        priority=1.0 - len(path) * PATH_STEP,
                        reason=f"Recommended for {domain} mastery",
                        is_exploration=False,
                        estimated_minutes=unit.estimated_minutes,
                    )
                )
        return path


__all__ = [
    "DEFAULT_GENERATE_COUNT",
    "PerformanceSource",
    "RecommendationAssembler",
]
