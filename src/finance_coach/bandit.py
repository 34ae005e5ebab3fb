"""Stateful wrapper around the bandit: load, record, score, persist."""

from __future__ import annotations

import logging
import random
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from .db import now_iso
from .models import (
    DOMAINS,
    BanditRecommendation,
    BanditState,
    Domain,
    DomainPerformance,
    PriorityLevel,
    coerce_domain,
)
from .scorer import DEFAULT_COUNT, Sampler, score_domains
from .sampling import beta_sample
from .store import MemoryStateStore, StateStore
from .tracker import (
    category_performance,
    domain_priority,
    initial_state,
    record_outcome,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BanditStateManager:
    """Owns one learner's ``BanditState``.

    The in-memory snapshot is the source of truth. Mutations are serialized
    under a lock, and every new snapshot is handed to a single writer thread,
    so durable writes land in mutation order without blocking the caller.
    A failed write is logged and otherwise ignored.

    Pass ``executor`` to share one writer thread across managers; it must
    have a single worker, and the caller owns its shutdown.
    """

    def __init__(
        self,
        store: StateStore | None = None,
        *,
        rng: random.Random | None = None,
        clock: Clock | None = None,
        sample: Sampler = beta_sample,
        background_writes: bool = True,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self._store: StateStore = store if store is not None else MemoryStateStore()
        self._rng = rng or random.Random()
        self._clock = clock or _utc_now
        self._sample = sample
        self._lock = threading.Lock()
        self._state = initial_state(self._clock())
        self._loaded = False
        self._executor: ThreadPoolExecutor | None = executor
        self._owns_executor = False
        if executor is None and background_writes:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bandit-persist")
            self._owns_executor = True
        self._pending: list[Future[None]] = []

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    @property
    def state(self) -> BanditState:
        """Latest committed snapshot. Snapshots are never mutated in place."""
        with self._lock:
            return self._state

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(self) -> BanditState:
        """Replace the in-memory state with the stored one, merged over defaults."""
        stored = self._store.load()
        with self._lock:
            if stored is None:
                logger.info("No stored bandit state; starting from defaults")
                self._state = initial_state(self._clock())
            else:
                self._state = BanditState.from_dict(stored, default_timestamp=now_iso(self._clock()))
            self._loaded = True
            return self._state

    def reset(self) -> BanditState:
        """Reinitialize every domain to zero stats and persist."""
        with self._lock:
            self._state = initial_state(self._clock())
            payload = self._state.to_dict()
            self._schedule_save(payload)
            logger.info("Bandit state reset")
            return self._state

    def flush(self, timeout: float | None = None) -> None:
        """Block until every scheduled write has finished."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        """Drain pending writes, then save inline from here on.

        A shared executor is left running.
        """
        with self._lock:
            executor, self._executor = self._executor, None
            pending, self._pending = self._pending, []
            # Writers never take self._lock, so waiting here cannot deadlock.
            wait(pending)
        if executor is not None and self._owns_executor:
            executor.shutdown(wait=True)

    # ── Mutation ──────────────────────────────────────────────────────────────

    def record_outcome(
        self,
        domain: str,
        score: Any,
        passed: bool,
        time_spent_seconds: Any = None,
    ) -> BanditState:
        """Record one finished activity and persist the new state.

        Unknown domains are logged and ignored; bad numbers are sanitized.
        """
        with self._lock:
            if domain not in DOMAINS:
                logger.warning("Ignoring outcome for unknown domain %r", domain)
                return self._state
            self._state = record_outcome(
                self._state,
                domain,  # type: ignore[arg-type]
                score,
                passed,
                time_spent_seconds,
                now=self._clock(),
            )
            self._schedule_save(self._state.to_dict())
            return self._state

    def _schedule_save(self, payload: dict[str, Any]) -> None:
        # Caller holds self._lock, so submission order matches mutation order.
        if self._executor is None:
            self._persist(payload)
            return
        self._pending = [future for future in self._pending if not future.done()]
        self._pending.append(self._executor.submit(self._persist, payload))

    def _persist(self, payload: dict[str, Any]) -> None:
        try:
            saved = self._store.save(payload)
        except Exception:
            logger.exception("Bandit state write raised; in-memory state kept")
            return
        if not saved:
            logger.warning("Bandit state write failed; in-memory state kept")

    # ── Queries ───────────────────────────────────────────────────────────────

    def get_recommendations(
        self,
        count: int = DEFAULT_COUNT,
        exclude_domains: Iterable[Domain] = (),
    ) -> list[BanditRecommendation]:
        state = self.state
        return score_domains(
            state,
            count,
            exclude_domains,
            rng=self._rng,
            now=self._clock(),
            sample=self._sample,
        )

    def get_category_performance(self, domain: Domain) -> DomainPerformance:
        return category_performance(self.state.domain_stats[coerce_domain(domain)])

    def get_all_performance_stats(self) -> list[DomainPerformance]:
        state = self.state
        return [category_performance(state.domain_stats[domain]) for domain in DOMAINS]

    def get_domain_priority(self, domain: Domain) -> tuple[PriorityLevel, str]:
        return domain_priority(self.state.domain_stats[coerce_domain(domain)])

    @property
    def exploration_rate(self) -> float:
        return self.state.exploration_rate

    @property
    def total_interactions(self) -> int:
        return self.state.total_interactions


__all__ = ["BanditStateManager", "Clock"]
