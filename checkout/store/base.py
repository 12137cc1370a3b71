# ============================================================================
# APPARATUS CHECKOUT - Issue Store Interface
# ============================================================================

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

STATE_OPEN = "open"
STATE_CLOSED = "closed"
STATE_ALL = "all"

MAX_PAGE_SIZE = 100


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class IssueRecord:
    """One issue as returned by the backing tracker."""
    id: int
    title: str
    body: str = ""
    labels: List[str] = field(default_factory=list)
    state: str = STATE_OPEN
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    author: str = ""

    @property
    def is_open(self) -> bool:
        return self.state == STATE_OPEN

    def has_label(self, label: str) -> bool:
        return label in self.labels

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "labels": list(self.labels),
            "state": self.state,
            "created_at": format_timestamp(self.created_at) if self.created_at else None,
            "updated_at": format_timestamp(self.updated_at) if self.updated_at else None,
            "author": self.author,
        }


class IssueStore(ABC):
    """
    Thin adapter over an issue tracker.

    Implementations translate failures into ``StoreError`` and never retry;
    retry is a caller decision.
    """

    name: str = "base"

    @abstractmethod
    def list_issues(
        self,
        state: str = STATE_OPEN,
        labels: Optional[List[str]] = None,
        since: Optional[datetime] = None,
        per_page: int = MAX_PAGE_SIZE,
    ) -> List[IssueRecord]:
        """
        List issues carrying *all* of ``labels``.

        Returns a single page of at most ``per_page`` (capped at 100) issues.
        ``since`` filters on last update time, as the GitHub API does.
        """
        pass

    @abstractmethod
    def get_issue(self, issue_id: int) -> IssueRecord:
        pass

    @abstractmethod
    def create_issue(self, title: str, body: str, labels: List[str]) -> int:
        """Create an open issue and return its id."""
        pass

    @abstractmethod
    def create_comment(self, issue_id: int, body: str) -> None:
        pass

    @abstractmethod
    def update_issue(
        self,
        issue_id: int,
        state: Optional[str] = None,
        labels: Optional[List[str]] = None,
    ) -> None:
        pass

    def list_open(self, labels: List[str]) -> List[IssueRecord]:
        return self.list_issues(state=STATE_OPEN, labels=labels)

    def close(self, issue_id: int, labels: Optional[List[str]] = None) -> None:
        self.update_issue(issue_id, state=STATE_CLOSED, labels=labels)

    def is_configured(self) -> bool:
        return True

    def __repr__(self):
        configured = "configured" if self.is_configured() else "not configured"
        return f"<{self.__class__.__name__} ({self.name}) [{configured}]>"
