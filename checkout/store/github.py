# ============================================================================
# APPARATUS CHECKOUT - GitHub Issues Store
# ============================================================================
# GitHub REST v3 issues endpoint, used as the system of record.
#
# Environment Variables:
# - GITHUB_TOKEN / CHECKOUT_GITHUB_TOKEN: token with issues read/write
# - CHECKOUT_GITHUB_OWNER, CHECKOUT_GITHUB_REPO: repository holding records
# - CHECKOUT_GITHUB_API_BASE: API root (GitHub Enterprise or a proxy)
# - CHECKOUT_REQUEST_TIMEOUT_SECONDS: per-call timeout
# ============================================================================

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config import get_config
from ..errors import StoreError
from .base import (
    MAX_PAGE_SIZE,
    STATE_OPEN,
    IssueRecord,
    IssueStore,
    format_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class GitHubIssueStore(IssueStore):
    """Issue store backed by a GitHub repository's issues."""

    name = "github"

    def __init__(
        self,
        owner: str = None,
        repo: str = None,
        token: str = None,
        api_base: str = None,
        timeout: int = None,
    ):
        self.owner = owner or get_config("github_owner")
        self.repo = repo or get_config("github_repo")
        self.token = token if token is not None else get_config("github_token")
        self.api_base = (api_base or get_config("github_api_base")).rstrip("/")
        self.timeout = timeout or get_config("request_timeout_seconds")

    def is_configured(self) -> bool:
        return bool(self.token and self.owner and self.repo)

    @property
    def issues_url(self) -> str:
        return f"{self.api_base}/repos/{self.owner}/{self.repo}/issues"

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "Content-Type": "application/json",
            "User-Agent": "apparatus-checkout",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, url: str, payload: Optional[Dict] = None) -> Any:
        """Perform one API call. Any failure is raised as StoreError."""
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(url, data=data, headers=self._headers(), method=method)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            error_body = ""
            try:
                error_body = e.read().decode("utf-8", "replace") if e.fp else ""
            except OSError:
                pass
            logger.error(f"[Store] {method} {url} -> HTTP {e.code}: {error_body[:200]}")
            raise StoreError.from_status(e.code, f"GitHub returned HTTP {e.code} for {method}") from e
        except OSError as e:
            # URLError, connection resets and timeouts all land here
            logger.error(f"[Store] {method} {url} failed: {e}")
            raise StoreError(f"Network error: {e}", retryable=True) from e

        if not raw:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise StoreError(f"Invalid JSON from GitHub for {method}", retryable=True) from e

    @staticmethod
    def _to_record(data: Dict) -> IssueRecord:
        labels = []
        for label in data.get("labels") or []:
            labels.append(label.get("name", "") if isinstance(label, dict) else str(label))
        return IssueRecord(
            id=int(data["number"]),
            title=data.get("title") or "",
            body=data.get("body") or "",
            labels=labels,
            state=data.get("state") or STATE_OPEN,
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            author=(data.get("user") or {}).get("login", ""),
        )

    # -------- IssueStore --------

    def list_issues(
        self,
        state: str = STATE_OPEN,
        labels: Optional[List[str]] = None,
        since: Optional[datetime] = None,
        per_page: int = MAX_PAGE_SIZE,
    ) -> List[IssueRecord]:
        params = {
            "state": state,
            "per_page": str(min(per_page, MAX_PAGE_SIZE)),
        }
        if labels:
            params["labels"] = ",".join(labels)
        if since is not None:
            params["since"] = format_timestamp(since)

        data = self._request("GET", f"{self.issues_url}?{urllib.parse.urlencode(params)}")
        if not isinstance(data, list):
            logger.warning(f"[Store] Unexpected issues payload type: {type(data).__name__}")
            return []

        # The issues endpoint also returns pull requests
        return [self._to_record(d) for d in data if "pull_request" not in d]

    def get_issue(self, issue_id: int) -> IssueRecord:
        return self._to_record(self._request("GET", f"{self.issues_url}/{int(issue_id)}"))

    def create_issue(self, title: str, body: str, labels: List[str]) -> int:
        data = self._request("POST", self.issues_url, {
            "title": title,
            "body": body,
            "labels": list(labels),
        })
        issue_id = int(data["number"])
        logger.info(f"[Store] Created issue #{issue_id}: {title}")
        return issue_id

    def create_comment(self, issue_id: int, body: str) -> None:
        self._request("POST", f"{self.issues_url}/{int(issue_id)}/comments", {"body": body})

    def update_issue(
        self,
        issue_id: int,
        state: Optional[str] = None,
        labels: Optional[List[str]] = None,
    ) -> None:
        payload: Dict[str, Any] = {}
        if state is not None:
            payload["state"] = state
        if labels is not None:
            payload["labels"] = list(labels)
        if not payload:
            return
        self._request("PATCH", f"{self.issues_url}/{int(issue_id)}", payload)
