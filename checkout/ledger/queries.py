"""
Apparatus Checkout — Dashboard Queries

The operations the admin dashboard and the inspection wizard call. Every
read fetches fresh records from the issue store and aggregates them on the
spot.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Union

from ..config import get_config, get_roster, get_timezone
from ..store import get_store
from ..store.base import STATE_ALL, STATE_CLOSED, IssueStore
from . import analytics, codec
from .engine import DefectLedger
from .models import (
    LABEL_DEFECT,
    LABEL_LOG,
    DailySubmissionsSnapshot,
    DefectRecord,
    InspectionLogRecord,
    InspectionSubmission,
    LowStockCandidate,
    ReconciliationResult,
)
from .retry import retry_call

logger = logging.getLogger(__name__)


class DashboardQueries:
    def __init__(
        self,
        store: IssueStore,
        ledger: DefectLedger = None,
        roster: List[str] = None,
        clock: Callable[[], datetime] = None,
    ):
        self.store = store
        self.roster = roster if roster is not None else get_roster()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.ledger = ledger or DefectLedger(store, roster=self.roster, clock=self.clock)

    @property
    def window_days(self) -> int:
        return get_config("analytics_window_days")

    # ---- defects ----

    def get_all_defects(self) -> List[DefectRecord]:
        """All open defects across the fleet."""
        return self.ledger.get_open_defects()

    def get_fleet_status(self, defects: List[DefectRecord] = None) -> Dict[str, int]:
        if defects is None:
            defects = self.get_all_defects()
        return analytics.compute_fleet_status(defects, self.roster)

    def get_defect_history(self, days: int = None) -> List[DefectRecord]:
        """Open and closed defects touched within the last ``days`` days."""
        days = days or self.window_days
        since = self.clock() - timedelta(days=days)
        records = []
        for issue in self.store.list_issues(state=STATE_ALL, labels=[LABEL_DEFECT], since=since):
            record = codec.decode_defect_record(issue)
            if record is not None:
                records.append(record)
        return records

    def resolve_defect(self, issue_id: int, resolution_note: str, resolved_by: str) -> DefectRecord:
        return self.ledger.resolve_defect(issue_id, resolution_note, resolved_by)

    # ---- inspection logs ----

    def get_inspection_logs(self, days: int = 7) -> List[InspectionLogRecord]:
        since = self.clock() - timedelta(days=days)
        logs = []
        for issue in self.store.list_issues(state=STATE_CLOSED, labels=[LABEL_LOG], since=since):
            log = codec.decode_log_record(issue)
            if log is None:
                logger.warning(f"[Checkout] Skipping issue #{issue.id}: not an inspection log")
                continue
            logs.append(log)
        return logs

    def get_daily_submissions(self) -> DailySubmissionsSnapshot:
        window = self.window_days
        return analytics.compute_daily_submissions(
            self.get_inspection_logs(window),
            self.roster,
            window_days=window,
            now=self.clock(),
            tz=get_timezone(),
        )

    def analyze_low_stock_items(self) -> List[LowStockCandidate]:
        window = self.window_days
        return analytics.compute_low_stock(
            self.get_defect_history(window),
            window_days=window,
            now=self.clock(),
            threshold=get_config("low_stock_threshold"),
        )

    # ---- submissions ----

    def submit_checklist(
        self,
        submission: Union[InspectionSubmission, dict],
        max_retries: int = None,
        sleep: Callable[[float], None] = None,
    ) -> ReconciliationResult:
        """Parse and reconcile a checklist, retrying transient store failures."""
        if isinstance(submission, dict):
            submission = InspectionSubmission.from_dict(submission)
        if max_retries is None:
            max_retries = get_config("submit_max_retries")

        kwargs = {"max_retries": max_retries}
        if sleep is not None:
            kwargs["sleep"] = sleep
        return retry_call(lambda: self.ledger.reconcile_apparatus_defects(submission), **kwargs)


_dashboard = None


def get_dashboard() -> DashboardQueries:
    """Get or create the singleton query service over the configured store."""
    global _dashboard
    if _dashboard is None:
        _dashboard = DashboardQueries(get_store())
    return _dashboard


def set_dashboard(dashboard: DashboardQueries) -> None:
    global _dashboard
    _dashboard = dashboard
