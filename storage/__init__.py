"""Storage package providing persistence utilities for trade history and statistics."""

from .sqlite_repository import SQLiteRepository
from .stats_store import StatsStore

__all__ = ["SQLiteRepository", "StatsStore"]
