"""
Apparatus Checkout — Ledger Data Models

Plain dataclasses for checklist submissions, defect records, inspection logs
and the derived analytics snapshots. Nothing here touches the issue store.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from ..errors import EncodingError
from ..store.base import format_timestamp

STATUS_PRESENT = "present"
STATUS_MISSING = "missing"
STATUS_DAMAGED = "damaged"

ITEM_STATUSES = (STATUS_PRESENT, STATUS_MISSING, STATUS_DAMAGED)
DEFECT_STATUSES = (STATUS_MISSING, STATUS_DAMAGED)

RANKS = ("Firefighter", "DE", "Lieutenant", "Captain", "Chief")
SHIFTS = ("A", "B", "C")

LABEL_DEFECT = "Defect"
LABEL_LOG = "Log"
LABEL_DAMAGED = "Damaged"
LABEL_RESOLVED = "Resolved"


def _ts(dt: Optional[datetime]) -> Optional[str]:
    return format_timestamp(dt) if dt else None


def _get(data: dict, *keys, default=None):
    """First present key wins; lets the boundary accept camelCase or snake_case."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class ChecklistUser:
    name: str
    rank: str = ""
    apparatus: str = ""
    shift: str = ""
    unit_number: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ChecklistUser":
        if not isinstance(data, dict):
            raise EncodingError("user must be an object with name and rank")
        name = str(_get(data, "name", default="")).strip()
        if not name:
            raise EncodingError("user.name is required")
        return cls(
            name=name,
            rank=str(_get(data, "rank", default="")).strip(),
            apparatus=str(_get(data, "apparatus", default="")).strip(),
            shift=str(_get(data, "shift", default="")).strip(),
            unit_number=str(_get(data, "unitNumber", "unit_number", default="")).strip(),
        )


@dataclass
class ChecklistItem:
    name: str
    status: str = STATUS_PRESENT
    notes: str = ""
    photo_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data) -> "ChecklistItem":
        # The wizard sometimes sends bare item names
        if isinstance(data, str):
            return cls(name=data)
        if not isinstance(data, dict):
            raise EncodingError("items entries must be names or objects")
        status = str(_get(data, "status", default=STATUS_PRESENT)).lower()
        if status not in ITEM_STATUSES:
            raise EncodingError(f"Unknown item status: {status}")
        return cls(
            name=str(_get(data, "name", default="")),
            status=status,
            notes=str(_get(data, "notes", default="")),
            photo_url=_get(data, "photoUrl", "photo_url"),
        )


@dataclass
class Finding:
    """One checklist result for a compartment item (the unit of reconciliation)."""
    compartment: str
    item: str
    status: str
    notes: str = ""
    photo_url: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return self.compartment, self.item

    @property
    def is_defect(self) -> bool:
        return self.status in DEFECT_STATUSES

    @classmethod
    def from_dict(cls, data: dict) -> "Finding":
        if not isinstance(data, dict):
            raise EncodingError("defect entries must be objects")
        status = str(_get(data, "status", default="")).lower()
        if status not in ITEM_STATUSES:
            raise EncodingError(f"Unknown defect status: {status!r}")
        return cls(
            compartment=str(_get(data, "compartment", default="")),
            item=str(_get(data, "item", default="")),
            status=status,
            notes=str(_get(data, "notes", default="")),
            photo_url=_get(data, "photoUrl", "photo_url"),
        )

    def to_dict(self) -> Dict:
        return {
            "compartment": self.compartment,
            "item": self.item,
            "status": self.status,
            "notes": self.notes,
        }


@dataclass
class InspectionSubmission:
    """A completed checklist as posted by the inspection wizard."""
    user: ChecklistUser
    apparatus: str
    date: str
    items: List[ChecklistItem] = field(default_factory=list)
    defects: List[Finding] = field(default_factory=list)
    shift: str = ""
    unit_number: str = ""

    @property
    def findings(self) -> List[Finding]:
        """Defect findings only; 'present' entries never touch the ledger."""
        return [f for f in self.defects if f.is_defect]

    @classmethod
    def from_dict(cls, data: dict) -> "InspectionSubmission":
        if not isinstance(data, dict):
            raise EncodingError("submission must be a JSON object")
        apparatus = str(_get(data, "apparatus", default="")).strip()
        if not apparatus:
            raise EncodingError("apparatus is required")
        date = str(_get(data, "date", default="")).strip()
        if not date:
            raise EncodingError("date is required")
        shift = str(_get(data, "shift", default="")).strip()
        if shift and shift not in SHIFTS:
            raise EncodingError(f"Unknown shift: {shift}")
        items = _get(data, "items", default=[])
        defects = _get(data, "defects", default=[])
        if not isinstance(items, list) or not isinstance(defects, list):
            raise EncodingError("items and defects must be lists")
        return cls(
            user=ChecklistUser.from_dict(_get(data, "user", default={})),
            apparatus=apparatus,
            date=date,
            items=[ChecklistItem.from_dict(i) for i in items],
            defects=[Finding.from_dict(d) for d in defects],
            shift=shift,
            unit_number=str(_get(data, "unitNumber", "unit_number", default="")),
        )


@dataclass
class DefectRecord:
    """One physical equipment problem, decoded from a Defect issue."""
    apparatus: str
    compartment: str
    item: str
    status: str
    notes: str = ""
    reported_by: str = "Unknown"
    reported_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved: bool = False
    external_id: Optional[int] = None

    @property
    def key(self) -> Tuple[str, str]:
        return self.compartment, self.item

    def to_dict(self) -> Dict:
        return {
            "id": self.external_id,
            "apparatus": self.apparatus,
            "compartment": self.compartment,
            "item": self.item,
            "status": self.status,
            "notes": self.notes,
            "reported_by": self.reported_by,
            "reported_at": _ts(self.reported_at),
            "updated_at": _ts(self.updated_at),
            "resolved": self.resolved,
        }


@dataclass
class InspectionLogRecord:
    """One completed checklist submission; closed and immutable once written."""
    apparatus: str
    conducted_by: str
    rank: str
    date: str
    total_items_checked: int = 0
    issues_found_count: int = 0
    defect_summary: List[tuple] = field(default_factory=list)
    created_at: Optional[datetime] = None
    external_id: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "id": self.external_id,
            "apparatus": self.apparatus,
            "conducted_by": self.conducted_by,
            "rank": self.rank,
            "date": self.date,
            "total_items_checked": self.total_items_checked,
            "issues_found": self.issues_found_count,
            "defects": [
                {"compartment": c, "item": i, "status": s}
                for c, i, s in self.defect_summary
            ],
            "created_at": _ts(self.created_at),
        }


@dataclass
class ReconciliationResult:
    apparatus: str
    created: List[int] = field(default_factory=list)
    commented: List[int] = field(default_factory=list)
    log_id: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "apparatus": self.apparatus,
            "created": list(self.created),
            "commented": list(self.commented),
            "log_id": self.log_id,
        }


@dataclass
class DailySubmissionsSnapshot:
    today: List[str] = field(default_factory=list)
    totals: Dict[str, int] = field(default_factory=dict)
    last_submission: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "today": list(self.today),
            "totals": dict(self.totals),
            "last_submission": dict(self.last_submission),
        }


@dataclass
class LowStockCandidate:
    compartment: str
    item: str
    apparatus: Set[str] = field(default_factory=set)

    @property
    def occurrences(self) -> int:
        return len(self.apparatus)

    def to_dict(self) -> Dict:
        return {
            "compartment": self.compartment,
            "item": self.item,
            "apparatus": sorted(self.apparatus),
            "occurrences": self.occurrences,
        }
