"""
Apparatus Checkout — Fleet Analytics

Stateless aggregations over decoded records. Callers fetch a fresh record
list per request; nothing here caches.
"""
from collections import OrderedDict
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional

from .models import (
    STATUS_MISSING,
    DailySubmissionsSnapshot,
    DefectRecord,
    InspectionLogRecord,
    LowStockCandidate,
)

DEFAULT_WINDOW_DAYS = 30
LOW_STOCK_THRESHOLD = 3


def _us_date(dt: datetime) -> str:
    # M/D/YYYY, as the dashboard has always shown it
    return f"{dt.month}/{dt.day}/{dt.year}"


def _window_start(now: datetime, window_days: int) -> datetime:
    return now - timedelta(days=window_days)


def compute_fleet_status(open_defects: Iterable[DefectRecord], roster: List[str]) -> Dict[str, int]:
    """
    Open-defect count per apparatus.

    Every roster apparatus is present, with 0 when it has no open defects.
    Apparatus outside the roster are still counted.
    """
    status: Dict[str, int] = OrderedDict((apparatus, 0) for apparatus in roster)
    for defect in open_defects:
        if defect.resolved:
            continue
        status[defect.apparatus] = status.get(defect.apparatus, 0) + 1
    return status


def compute_daily_submissions(
    logs: Iterable[InspectionLogRecord],
    roster: List[str],
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> DailySubmissionsSnapshot:
    """
    Submission compliance over the window.

    ``today`` compares each log's creation date, in ``tz``, to the local date
    of ``now``. ``last_submission`` holds the newest log date per apparatus.
    """
    tz = tz or timezone.utc
    now = (now or datetime.now(timezone.utc)).astimezone(tz)
    since = _window_start(now, window_days)
    today = now.date()

    snapshot = DailySubmissionsSnapshot(totals=OrderedDict((a, 0) for a in roster))
    newest: Dict[str, datetime] = {}

    for log in logs:
        if log.created_at is None:
            continue
        created = log.created_at.astimezone(tz)
        if created < since:
            continue

        apparatus = log.apparatus
        snapshot.totals[apparatus] = snapshot.totals.get(apparatus, 0) + 1

        if apparatus not in newest or created > newest[apparatus]:
            newest[apparatus] = created

        if created.date() == today and apparatus not in snapshot.today:
            snapshot.today.append(apparatus)

    snapshot.last_submission = {a: _us_date(dt) for a, dt in newest.items()}
    return snapshot


def compute_low_stock(
    defects: Iterable[DefectRecord],
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: Optional[datetime] = None,
    threshold: int = LOW_STOCK_THRESHOLD,
) -> List[LowStockCandidate]:
    """
    Items reported missing on at least ``threshold`` distinct apparatus.

    Repeats on one apparatus are a local problem and count once; the signal
    is the same item going missing across the fleet.
    """
    now = now or datetime.now(timezone.utc)
    since = _window_start(now, window_days)

    groups: Dict[tuple, LowStockCandidate] = {}
    for defect in defects:
        if defect.status != STATUS_MISSING:
            continue
        if defect.reported_at is None or defect.reported_at < since:
            continue
        key = (defect.compartment, defect.item)
        candidate = groups.get(key)
        if candidate is None:
            candidate = groups[key] = LowStockCandidate(compartment=defect.compartment, item=defect.item)
        candidate.apparatus.add(defect.apparatus)

    flagged = [c for c in groups.values() if c.occurrences >= threshold]
    flagged.sort(key=lambda c: (-c.occurrences, c.compartment, c.item))
    return flagged
