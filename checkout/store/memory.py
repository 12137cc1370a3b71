# ============================================================================
# APPARATUS CHECKOUT - In-Memory Issue Store
# ============================================================================
# Process-local issue store with the same semantics as the GitHub store.
# Used by the test suite and for offline/local runs (store_backend=memory).
# ============================================================================

import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ..errors import StoreError
from .base import (
    MAX_PAGE_SIZE,
    STATE_ALL,
    STATE_CLOSED,
    STATE_OPEN,
    IssueRecord,
    IssueStore,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryIssueStore(IssueStore):
    """
    State:
        _issues:   {id -> IssueRecord}
        _comments: {id -> [comment body, ...]}
        _lock:     protects both dicts and the id counter

    Fault injection: ``fail_on_write(n)`` makes the n-th write call from now
    (1-based, counting creates, comments and updates) raise a StoreError.
    """

    name = "memory"

    def __init__(self, start_id: int = 1, clock: Callable[[], datetime] = None):
        self._lock = threading.Lock()
        self._issues: Dict[int, IssueRecord] = {}
        self._comments: Dict[int, List[str]] = {}
        self.next_id = start_id
        self.clock = clock or _utcnow
        self.write_count = 0
        self._fail_at: Optional[int] = None
        self._fail_error: Optional[StoreError] = None

    # -------- Test helpers --------

    def fail_on_write(self, n: int, error: StoreError = None) -> None:
        with self._lock:
            self._fail_at = self.write_count + n
            self._fail_error = error or StoreError("Network error: connection reset", retryable=True)

    def clear_failure(self) -> None:
        with self._lock:
            self._fail_at = None
            self._fail_error = None

    def comments(self, issue_id: int) -> List[str]:
        with self._lock:
            return list(self._comments.get(issue_id, []))

    def all_issues(self) -> List[IssueRecord]:
        with self._lock:
            return [self._copy(i) for i in self._issues.values()]

    def seed(
        self,
        title: str,
        body: str = "",
        labels: List[str] = None,
        state: str = STATE_OPEN,
        created_at: datetime = None,
        author: str = "checkout-bot",
    ) -> int:
        """Insert an issue directly, bypassing fault injection."""
        with self._lock:
            issue_id = self._allocate_id()
            ts = created_at or self.clock()
            self._issues[issue_id] = IssueRecord(
                id=issue_id, title=title, body=body, labels=list(labels or []),
                state=state, created_at=ts, updated_at=ts, author=author,
            )
            self._comments[issue_id] = []
            return issue_id

    # -------- Internals (call with _lock held) --------

    def _allocate_id(self) -> int:
        issue_id = self.next_id
        self.next_id += 1
        return issue_id

    def _count_write(self) -> None:
        self.write_count += 1
        if self._fail_at is not None and self.write_count == self._fail_at:
            error = self._fail_error
            self._fail_at = None
            self._fail_error = None
            raise error

    def _require(self, issue_id: int) -> IssueRecord:
        issue = self._issues.get(issue_id)
        if issue is None:
            raise StoreError(f"Issue #{issue_id} not found", status=404)
        return issue

    @staticmethod
    def _copy(issue: IssueRecord) -> IssueRecord:
        return IssueRecord(
            id=issue.id, title=issue.title, body=issue.body, labels=list(issue.labels),
            state=issue.state, created_at=issue.created_at, updated_at=issue.updated_at,
            author=issue.author,
        )

    # -------- IssueStore --------

    def list_issues(
        self,
        state: str = STATE_OPEN,
        labels: Optional[List[str]] = None,
        since: Optional[datetime] = None,
        per_page: int = MAX_PAGE_SIZE,
    ) -> List[IssueRecord]:
        wanted = set(labels or [])
        with self._lock:
            matches = []
            for issue in self._issues.values():
                if state != STATE_ALL and issue.state != state:
                    continue
                if not wanted.issubset(issue.labels):
                    continue
                if since is not None and issue.updated_at and issue.updated_at < since:
                    continue
                matches.append(self._copy(issue))

        # Newest first, like GitHub's default sort
        matches.sort(key=lambda i: (i.created_at or datetime.min.replace(tzinfo=timezone.utc), i.id),
                     reverse=True)
        return matches[:min(per_page, MAX_PAGE_SIZE)]

    def get_issue(self, issue_id: int) -> IssueRecord:
        with self._lock:
            return self._copy(self._require(issue_id))

    def create_issue(self, title: str, body: str, labels: List[str]) -> int:
        with self._lock:
            self._count_write()
            issue_id = self._allocate_id()
            ts = self.clock()
            self._issues[issue_id] = IssueRecord(
                id=issue_id, title=title, body=body, labels=list(labels),
                state=STATE_OPEN, created_at=ts, updated_at=ts, author="checkout-bot",
            )
            self._comments[issue_id] = []
            return issue_id

    def create_comment(self, issue_id: int, body: str) -> None:
        with self._lock:
            self._count_write()
            issue = self._require(issue_id)
            self._comments[issue_id].append(body)
            issue.updated_at = self.clock()

    def update_issue(
        self,
        issue_id: int,
        state: Optional[str] = None,
        labels: Optional[List[str]] = None,
    ) -> None:
        with self._lock:
            self._count_write()
            issue = self._require(issue_id)
            if state is not None:
                if state not in (STATE_OPEN, STATE_CLOSED):
                    raise StoreError(f"Invalid state: {state}", status=422)
                issue.state = state
            if labels is not None:
                issue.labels = list(labels)
            issue.updated_at = self.clock()
