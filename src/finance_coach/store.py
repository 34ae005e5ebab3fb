"""Durable storage for bandit state blobs.

Stores deal in plain JSON-compatible dicts. Merging against defaults is the
state manager's job; a store only reports what it has, or ``None``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from typing import Any, Protocol

from . import db

logger = logging.getLogger(__name__)

STATE_KEY_PREFIX = "bandit_state"


class StateStore(Protocol):
    def load(self) -> dict[str, Any] | None: ...

    def save(self, payload: dict[str, Any]) -> bool: ...


def _decode(raw: str | None, source: str) -> dict[str, Any] | None:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding undecodable bandit state from %s", source)
        return None
    if not isinstance(data, dict):
        logger.warning("Discarding bandit state from %s: expected an object, got %s", source, type(data).__name__)
        return None
    return data


class SqliteStateStore:
    """Keeps one learner's state as a JSON value in the ``progress`` table."""

    def __init__(self, learner_id: str = "default") -> None:
        self.learner_id = learner_id
        self.key = f"{STATE_KEY_PREFIX}:{learner_id}"

    def load(self) -> dict[str, Any] | None:
        try:
            raw = db.get_progress(self.key)
        except sqlite3.Error:
            logger.exception("Failed to load bandit state for learner %s", self.learner_id)
            return None
        return _decode(raw, f"learner {self.learner_id}")

    def save(self, payload: dict[str, Any]) -> bool:
        try:
            db.set_progress(self.key, json.dumps(payload, sort_keys=True))
        except (sqlite3.Error, OSError, TypeError, ValueError):
            logger.exception("Failed to save bandit state for learner %s", self.learner_id)
            return False
        return True


class MemoryStateStore:
    """In-process store; serializes through JSON like the real one."""

    def __init__(self, raw: str | None = None, *, fail_saves: bool = False) -> None:
        self.raw = raw
        self.fail_saves = fail_saves
        self.save_count = 0
        self._lock = threading.Lock()

    def load(self) -> dict[str, Any] | None:
        with self._lock:
            raw = self.raw
        return _decode(raw, "memory")

    def save(self, payload: dict[str, Any]) -> bool:
        if self.fail_saves:
            logger.warning("Memory store configured to reject saves")
            return False
        try:
            encoded = json.dumps(payload, sort_keys=True)
        except (TypeError, ValueError):
            logger.exception("Failed to encode bandit state")
            return False
        with self._lock:
            self.raw = encoded
            self.save_count += 1
        return True


__all__ = [
    "MemoryStateStore",
    "STATE_KEY_PREFIX",
    "SqliteStateStore",
    "StateStore",
]
