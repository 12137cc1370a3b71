"""
Apparatus Checkout — Test Infrastructure (conftest.py)
=======================================================
Provides:
  - Controllable clock
  - In-memory issue store, ledger and dashboard fixtures
  - FastAPI TestClient wired to the in-memory store
  - Submission / record builders
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Ensure project root is on path
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT_DIR)

os.environ.setdefault("CHECKOUT_STORE_BACKEND", "memory")

from checkout.config import reset_config, set_config  # noqa: E402
from checkout.ledger.engine import DefectLedger  # noqa: E402
from checkout.ledger.locks import ApparatusLocks  # noqa: E402
from checkout.ledger.models import (  # noqa: E402
    ChecklistItem,
    ChecklistUser,
    DefectRecord,
    Finding,
    InspectionLogRecord,
    InspectionSubmission,
)
from checkout.ledger.queries import DashboardQueries, set_dashboard  # noqa: E402
from checkout.store.memory import InMemoryIssueStore  # noqa: E402

ADMIN_PASSWORD = "station-house"

ROSTER = ["Engine 1", "Engine 2", "Ladder 1", "Rescue 1", "Rescue 2"]

DAY_1 = datetime(2026, 10, 1, 14, 0, tzinfo=timezone.utc)


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Callable clock the store, ledger and analytics all share."""

    def __init__(self, start: datetime = DAY_1):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self.now = self.now + timedelta(days=days, hours=hours)
        return self.now

    def set(self, dt: datetime) -> datetime:
        self.now = dt
        return self.now


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def clean_config():
    """Each test starts from default config with a known roster."""
    reset_config()
    set_config("apparatus_roster", list(ROSTER))
    set_config("timezone", "America/New_York")
    yield
    reset_config()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryIssueStore(start_id=101, clock=clock)


@pytest.fixture
def ledger(store, clock):
    return DefectLedger(store, locks=ApparatusLocks(), roster=list(ROSTER), clock=clock)


@pytest.fixture
def dashboard(store, ledger, clock):
    return DashboardQueries(store, ledger=ledger, roster=list(ROSTER), clock=clock)


@pytest.fixture
def client(dashboard):
    """TestClient over the real app, backed by the in-memory dashboard."""
    from starlette.testclient import TestClient
    import main

    set_config("admin_password", ADMIN_PASSWORD)
    set_dashboard(dashboard)
    with TestClient(main.app, raise_server_exceptions=False) as c:
        yield c
    set_dashboard(None)


@pytest.fixture
def admin_headers():
    return {"X-Admin-Password": ADMIN_PASSWORD, "X-User": "Chief Ortiz"}


# ============================================================================
# Builders
# ============================================================================

def make_finding(item, status="missing", compartment="Cab", notes=""):
    return Finding(compartment=compartment, item=item, status=status, notes=notes)


def make_submission(apparatus="Engine 1", findings=None, date="10/01/2026",
                    inspector="FF Rivera", rank="Firefighter", extra_items=3):
    findings = list(findings or [])
    items = [ChecklistItem(name=f.item, status=f.status, notes=f.notes) for f in findings]
    items += [ChecklistItem(name=f"Item {n}") for n in range(extra_items)]
    return InspectionSubmission(
        user=ChecklistUser(name=inspector, rank=rank),
        apparatus=apparatus,
        date=date,
        items=items,
        defects=findings,
        shift="A",
        unit_number="E1-231",
    )


def submission_payload(apparatus="Engine 1", defects=None, date="10/01/2026"):
    """JSON body as the inspection wizard posts it."""
    defects = list(defects or [])
    return {
        "user": {"name": "Lt. Chen", "rank": "Lieutenant"},
        "apparatus": apparatus,
        "date": date,
        "items": [{"name": d["item"], "status": d["status"]} for d in defects] + ["SCBA", "Radio"],
        "defects": defects,
        "shift": "B",
        "unitNumber": "231",
    }


def make_defect(apparatus, item, status="missing", compartment="Cab",
                reported_at=DAY_1, resolved=False, external_id=None):
    return DefectRecord(
        apparatus=apparatus,
        compartment=compartment,
        item=item,
        status=status,
        reported_by="FF Rivera",
        reported_at=reported_at,
        updated_at=reported_at,
        resolved=resolved,
        external_id=external_id,
    )


def make_log(apparatus, created_at, date=""):
    return InspectionLogRecord(
        apparatus=apparatus,
        conducted_by="FF Rivera",
        rank="Firefighter",
        date=date,
        created_at=created_at,
    )


def open_defect_titles(store):
    return sorted(i.title for i in store.all_issues() if i.is_open and "Defect" in i.labels)


def log_issues(store):
    return [i for i in store.all_issues() if "Log" in i.labels]
