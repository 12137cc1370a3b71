# ============================================================================
# APPARATUS CHECKOUT - Issue Stores
# ============================================================================

from ..config import get_config
from .base import (
    IssueRecord,
    IssueStore,
    STATE_ALL,
    STATE_CLOSED,
    STATE_OPEN,
    MAX_PAGE_SIZE,
)
from .github import GitHubIssueStore
from .memory import InMemoryIssueStore

_store = None


def get_store() -> IssueStore:
    """Get or create the process-wide issue store selected by ``store_backend``."""
    global _store
    if _store is None:
        backend = get_config("store_backend")
        if backend == "memory":
            _store = InMemoryIssueStore()
        else:
            _store = GitHubIssueStore()
    return _store


def set_store(store: IssueStore) -> None:
    global _store
    _store = store


__all__ = [
    "IssueRecord",
    "IssueStore",
    "STATE_ALL",
    "STATE_CLOSED",
    "STATE_OPEN",
    "MAX_PAGE_SIZE",
    "GitHubIssueStore",
    "InMemoryIssueStore",
    "get_store",
    "set_store",
]
