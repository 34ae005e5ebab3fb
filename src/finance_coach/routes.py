"""JSON routes exposing the recommendation core to the app."""

from __future__ import annotations

import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from .bandit import BanditStateManager
from .catalog import find_unit, load_catalog
from .db import clear_unit_completion, get_completion_ledger, mark_unit_completed
from .models import Domain, coerce_domain
from .recommendations import RecommendationAssembler
from .store import SqliteStateStore

router = APIRouter()

DEFAULT_LEARNER = "default"
MAX_CACHED_MANAGERS = 256

# One writer thread for every learner; FIFO keeps each learner's saves in order.
_writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bandit-persist")
_managers: OrderedDict[str, BanditStateManager] = OrderedDict()
_managers_lock = threading.Lock()


def get_manager(learner_id: str = DEFAULT_LEARNER) -> BanditStateManager:
    """Return the learner's manager, loading stored state on first use.

    At most ``MAX_CACHED_MANAGERS`` stay cached; the least recently used one
    is flushed and dropped, and reloads from storage on its next request.
    """
    with _managers_lock:
        manager = _managers.get(learner_id)
        if manager is not None:
            _managers.move_to_end(learner_id)
            return manager
        manager = BanditStateManager(SqliteStateStore(learner_id), executor=_writer)
        manager.load()
        _managers[learner_id] = manager
        while len(_managers) > MAX_CACHED_MANAGERS:
            _managers.popitem(last=False)[1].close()
        return manager


def close_managers() -> None:
    """Flush pending writes and drop every cached manager."""
    with _managers_lock:
        managers = list(_managers.values())
        _managers.clear()
    for manager in managers:
        manager.close()


def _domain_or_404(value: str) -> Domain:
    try:
        return coerce_domain(value)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _assembler(learner_id: str) -> RecommendationAssembler:
    return RecommendationAssembler(
        get_manager(learner_id),
        load_catalog(),
        get_completion_ledger(learner_id),
    )


class OutcomeIn(BaseModel):
    domain: str
    score: Any = 0.0
    passed: bool
    time_spent_seconds: Any = None


# ── Bandit ────────────────────────────────────────────────────────────────────


@router.post("/outcomes")
async def post_outcome(payload: OutcomeIn, learner_id: str = DEFAULT_LEARNER) -> dict[str, Any]:
    domain = _domain_or_404(payload.domain)
    manager = get_manager(learner_id)
    state = manager.record_outcome(domain, payload.score, payload.passed, payload.time_spent_seconds)
    return {
        "performance": manager.get_category_performance(domain).to_dict(),
        "exploration_rate": state.exploration_rate,
        "total_interactions": state.total_interactions,
    }


@router.get("/bandit/recommendations")
async def bandit_recommendations(
    count: int = 3,
    exclude: list[str] = Query(default=[]),
    learner_id: str = DEFAULT_LEARNER,
) -> list[dict[str, Any]]:
    excluded = [_domain_or_404(name) for name in exclude]
    recs = get_manager(learner_id).get_recommendations(count, excluded)
    return [rec.to_dict() for rec in recs]


@router.get("/performance")
async def all_performance(learner_id: str = DEFAULT_LEARNER) -> list[dict[str, Any]]:
    return [perf.to_dict() for perf in get_manager(learner_id).get_all_performance_stats()]


@router.get("/performance/{domain}")
async def domain_performance(domain: str, learner_id: str = DEFAULT_LEARNER) -> dict[str, Any]:
    return get_manager(learner_id).get_category_performance(_domain_or_404(domain)).to_dict()


@router.get("/priority/{domain}")
async def domain_priority(domain: str, learner_id: str = DEFAULT_LEARNER) -> dict[str, str]:
    name = _domain_or_404(domain)
    level, reason = get_manager(learner_id).get_domain_priority(name)
    return {"domain": name, "priority": level, "reason": reason}


@router.post("/reset")
async def reset(learner_id: str = DEFAULT_LEARNER) -> list[dict[str, Any]]:
    manager = get_manager(learner_id)
    manager.reset()
    return [perf.to_dict() for perf in manager.get_all_performance_stats()]


# ── Recommendations ───────────────────────────────────────────────────────────


@router.get("/recommendations")
async def recommendations(count: int = 5, learner_id: str = DEFAULT_LEARNER) -> list[dict[str, Any]]:
    return [rec.to_dict() for rec in _assembler(learner_id).generate(count)]


@router.get("/recommendations/after-failure")
async def after_failure(
    domain: str,
    unit_id: str,
    count: int = 2,
    learner_id: str = DEFAULT_LEARNER,
) -> list[dict[str, Any]]:
    failed = _domain_or_404(domain)
    recs = _assembler(learner_id).get_next_after_failure(failed, unit_id, count)
    return [rec.to_dict() for rec in recs]


@router.get("/learning-path")
async def learning_path(domain: str | None = None, learner_id: str = DEFAULT_LEARNER) -> list[dict[str, Any]]:
    target = _domain_or_404(domain) if domain else None
    return [rec.to_dict() for rec in _assembler(learner_id).get_learning_path(target)]


# ── Completion ledger ─────────────────────────────────────────────────────────


@router.post("/completions/{unit_id}")
async def complete_unit(unit_id: str, learner_id: str = DEFAULT_LEARNER) -> dict[str, Any]:
    if find_unit(load_catalog(), unit_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown unit: {unit_id!r}")
    mark_unit_completed(learner_id, unit_id)
    return {"unit_id": unit_id, "completed": True}


@router.delete("/completions/{unit_id}")
async def uncomplete_unit(unit_id: str, learner_id: str = DEFAULT_LEARNER) -> dict[str, Any]:
    removed = clear_unit_completion(learner_id, unit_id)
    return {"unit_id": unit_id, "completed": False, "removed": removed}


__all__ = ["close_managers", "get_manager", "router"]
