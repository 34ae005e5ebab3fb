"""Adaptive topic recommendation for a personal-finance learning app."""

from .bandit import BanditStateManager
from .catalog import load_catalog
from .models import (
    DOMAINS,
    AdaptiveRecommendation,
    BanditRecommendation,
    BanditState,
    Domain,
    DomainPerformance,
    DomainStats,
)
from .recommendations import RecommendationAssembler
from .store import MemoryStateStore, SqliteStateStore

__all__ = [
    "AdaptiveRecommendation",
    "BanditRecommendation",
    "BanditState",
    "BanditStateManager",
    "DOMAINS",
    "Domain",
    "DomainPerformance",
    "DomainStats",
    "MemoryStateStore",
    "RecommendationAssembler",
    "SqliteStateStore",
    "load_catalog",
]
