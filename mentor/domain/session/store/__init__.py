from .base import BaselineStore
from .memory_store import InMemoryBaselineStore
from .sqlite_store import SqliteBaselineStore

from mentor.infrastructure.config.settings import Settings


def create_baseline_store(settings: Settings) -> BaselineStore:
    """Build the store selected by settings.store_backend"""
    if settings.store_backend == "sqlite":
        return SqliteBaselineStore(settings.sqlite_path)
    return InMemoryBaselineStore()


__all__ = [
    "BaselineStore",
    "InMemoryBaselineStore",
    "SqliteBaselineStore",
    "create_baseline_store",
]
