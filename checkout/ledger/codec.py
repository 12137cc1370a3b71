"""
Apparatus Checkout — Record Codec

The issue tracker is the only database, so the text layout of issue titles,
bodies and comments below *is* the schema. Every pattern used to read records
back lives in this module.

Titles:
    Defect: ``[<apparatus>] <compartment>: <item> - <Missing|Damaged>``
    Log:    ``[<apparatus>] Daily Inspection - <date>``

Bodies are Markdown with ``**Label:** value`` lines. Decoding treats every
field as optional and substitutes a default, since older records may predate
a field. Titles that do not match are foreign records and decode to None.
"""
import re
from typing import Dict, List, Optional, Tuple

from ..errors import EncodingError
from ..store.base import STATE_CLOSED, IssueRecord
from .models import (
    DEFECT_STATUSES,
    STATUS_DAMAGED,
    STATUS_MISSING,
    DefectRecord,
    Finding,
    InspectionLogRecord,
)

SYSTEM_NAME = "Apparatus Checkout System"

UNKNOWN_INSPECTOR = "Unknown"

# Sequences that would make a title ambiguous to parse
TITLE_DELIMITERS = ("[", "]", " - ", ": ")

# Delimiters are matched literally so any other whitespace stays part of a name
DEFECT_TITLE_RE = re.compile(r"^\[(.+)\] (.+): (.+?) - (Missing|Damaged)$")
LOG_TITLE_RE = re.compile(r"^\[(.+?)\]\s+Daily Inspection(?:\s+-\s+(.*?))?\s*$")

_STATUS_LABELS = {
    STATUS_MISSING: ("Missing", "❌"),
    STATUS_DAMAGED: ("Damaged", "⚠️"),
}

_FOOTER_RE = re.compile(r"\n\n---\n\*[^\n]*\*\s*\Z")
_NOTES_RE = re.compile(r"^### Notes\n(.*)", re.MULTILINE | re.DOTALL)
_PERSON_RE = re.compile(r"^(.*?)(?:\s*\(([^()]*)\))?$")
_SUMMARY_LINE_RE = re.compile(r"^- (.+?): (.+?) - (?:[^\w\s]+\s+)?(Missing|Damaged)\s*$")
_ISSUES_SECTION_RE = re.compile(r"^### Issues Reported\n(.*?)(?:\n\n|\n---|\Z)", re.MULTILINE | re.DOTALL)


def _field_re(label: str) -> re.Pattern:
    return re.compile(rf"^\*\*{re.escape(label)}:\*\*[ \t]*(.*?)[ \t]*$", re.MULTILINE)


_FIELD_APPARATUS = _field_re("Apparatus")
_FIELD_COMPARTMENT = _field_re("Compartment")
_FIELD_ITEM = _field_re("Item")
_FIELD_STATUS = _field_re("Status")
_FIELD_REPORTED_BY = _field_re("Reported By")
_FIELD_CONDUCTED_BY = _field_re("Conducted By")
_FIELD_DATE = _field_re("Date")
_FIELD_TOTAL = re.compile(r"\*\*Total Items Checked:\*\*[ \t]*(\d+)")
_FIELD_ISSUES = re.compile(r"\*\*Issues Found:\*\*[ \t]*(\d+)")


# ================================================================
# VALIDATION
# ================================================================

def _check_text(name: str, value: str, delimiters=TITLE_DELIMITERS) -> None:
    if not isinstance(value, str) or not value:
        raise EncodingError(f"{name} must be a non-empty string")
    if value != value.strip():
        raise EncodingError(f"{name} must not start or end with whitespace: {value!r}")
    if "\n" in value or "\r" in value:
        raise EncodingError(f"{name} must be a single line: {value!r}")
    for delim in delimiters:
        if delim in value:
            raise EncodingError(f"{name} must not contain {delim!r}: {value!r}")


def _check_status(status: str) -> str:
    if status not in DEFECT_STATUSES:
        raise EncodingError(f"Defect status must be one of {DEFECT_STATUSES}, got {status!r}")
    return status


def validate_finding(apparatus: str, finding: Finding) -> None:
    """Raise EncodingError if the finding cannot be stored and read back intact."""
    encode_defect_title(apparatus, finding.compartment, finding.item, finding.status)


def _person(name: str, rank: str) -> str:
    return f"{name} ({rank})" if rank else name


def _split_person(text: str) -> Tuple[str, str]:
    m = _PERSON_RE.match(text.strip())
    if not m:
        return text.strip(), ""
    return m.group(1).strip(), (m.group(2) or "").strip()


def _first(pattern: re.Pattern, text: str) -> Optional[str]:
    m = pattern.search(text or "")
    return m.group(1) if m else None


# ================================================================
# DEFECT RECORDS
# ================================================================

def encode_defect_title(apparatus: str, compartment: str, item: str, status: str) -> str:
    _check_text("apparatus", apparatus, delimiters=("[", "]"))
    _check_text("compartment", compartment)
    _check_text("item", item)
    label, _ = _STATUS_LABELS[_check_status(status)]
    return f"[{apparatus}] {compartment}: {item} - {label}"


def decode_defect_title(title: str) -> Optional[Tuple[str, str, str, str]]:
    """(apparatus, compartment, item, status) or None for a foreign title."""
    m = DEFECT_TITLE_RE.match((title or "").strip())
    if not m:
        return None
    apparatus, compartment, item, label = m.groups()
    return apparatus, compartment, item, label.lower()


def encode_defect_body(
    apparatus: str,
    compartment: str,
    item: str,
    status: str,
    notes: str,
    reported_by: str,
    rank: str,
    date: str,
) -> str:
    label, icon = _STATUS_LABELS[_check_status(status)]
    return "\n".join([
        "## Defect Report",
        "",
        f"**Apparatus:** {apparatus}",
        f"**Compartment:** {compartment}",
        f"**Item:** {item}",
        f"**Status:** {icon} {label}",
        f"**Reported By:** {_person(reported_by, rank)}",
        f"**Date:** {date}",
        "",
        "### Notes",
        notes or "",
        "",
        "---",
        f"*This issue was automatically created by the {SYSTEM_NAME}.*",
    ])


def decode_defect_body(body: str) -> Dict[str, str]:
    """
    Parse a defect body. Every key is always present:
    apparatus, compartment, item, status, reported_by, rank, date, notes.
    """
    body = (body or "").replace("\r\n", "\n")

    status = ""
    status_text = _first(_FIELD_STATUS, body) or ""
    for value, (label, _) in _STATUS_LABELS.items():
        if label in status_text:
            status = value
            break

    reported_by, rank = UNKNOWN_INSPECTOR, ""
    person = _first(_FIELD_REPORTED_BY, body)
    if person:
        name, rank = _split_person(person)
        reported_by = name or UNKNOWN_INSPECTOR

    notes = ""
    m = _NOTES_RE.search(body)
    if m:
        section = m.group(1)
        footer = _FOOTER_RE.search(section)
        notes = section[:footer.start()] if footer else section.rstrip()

    return {
        "apparatus": _first(_FIELD_APPARATUS, body) or "",
        "compartment": _first(_FIELD_COMPARTMENT, body) or "",
        "item": _first(_FIELD_ITEM, body) or "",
        "status": status,
        "reported_by": reported_by,
        "rank": rank,
        "date": _first(_FIELD_DATE, body) or "",
        "notes": notes,
    }


def encode_defect_labels(apparatus: str, status: str, defect_label: str, damaged_label: str) -> List[str]:
    labels = [defect_label, apparatus]
    if status == STATUS_DAMAGED:
        labels.append(damaged_label)
    return labels


def decode_defect_record(issue: IssueRecord) -> Optional[DefectRecord]:
    """Build a DefectRecord from an issue, or None if it is not a defect."""
    parsed = decode_defect_title(issue.title)
    if parsed is None:
        return None
    apparatus, compartment, item, status = parsed
    fields = decode_defect_body(issue.body)

    reported_by = fields["reported_by"]
    if reported_by == UNKNOWN_INSPECTOR and issue.author:
        reported_by = issue.author

    return DefectRecord(
        apparatus=apparatus,
        compartment=compartment,
        item=item,
        status=status,
        notes=fields["notes"],
        reported_by=reported_by,
        reported_at=issue.created_at,
        updated_at=issue.updated_at,
        resolved=issue.state == STATE_CLOSED,
        external_id=issue.id,
    )


# ================================================================
# COMMENTS
# ================================================================

def encode_verification_comment(verified_by: str, rank: str, date: str, notes: str = "") -> str:
    lines = [
        "### Verification Update",
        "",
        f"**Verified still present by:** {_person(verified_by, rank)}",
        f"**Date:** {date}",
    ]
    if notes:
        lines += ["", f"**Additional Notes:** {notes}"]
    lines += ["", "---", f"*This comment was automatically added by the {SYSTEM_NAME}.*"]
    return "\n".join(lines)


def encode_resolution_comment(resolved_by: str, resolved_at: str, resolution_note: str) -> str:
    return "\n".join([
        "## ✅ Defect Resolved",
        "",
        f"**Resolved By:** {resolved_by}",
        f"**Date:** {resolved_at}",
        "",
        "### Resolution",
        resolution_note or "",
        "",
        "---",
        f"*This defect was marked as resolved via the {SYSTEM_NAME} admin dashboard.*",
    ])


# ================================================================
# INSPECTION LOGS
# ================================================================

def encode_log_title(apparatus: str, date: str) -> str:
    _check_text("apparatus", apparatus, delimiters=("[", "]"))
    return f"[{apparatus}] Daily Inspection - {date}"


def decode_log_title(title: str) -> Optional[Tuple[str, str]]:
    """(apparatus, date) or None for a foreign title."""
    m = LOG_TITLE_RE.match((title or "").strip())
    if not m:
        return None
    return m.group(1), (m.group(2) or "")


def encode_log_body(
    apparatus: str,
    conducted_by: str,
    rank: str,
    date: str,
    total_items: int,
    defects: List[Finding],
) -> str:
    lines = [
        "## Daily Inspection Log",
        "",
        f"**Apparatus:** {apparatus}",
        f"**Conducted By:** {_person(conducted_by, rank)}",
        f"**Date:** {date}",
        "",
        "### Summary",
        f"- **Total Items Checked:** {total_items}",
        f"- **Issues Found:** {len(defects)}",
        "",
    ]
    if defects:
        lines.append("### Issues Reported")
        for d in defects:
            label, icon = _STATUS_LABELS[_check_status(d.status)]
            lines.append(f"- {d.compartment}: {d.item} - {icon} {label}")
    else:
        lines.append("✅ All items present and working")
    lines += ["", "---", f"*This inspection log was automatically created by the {SYSTEM_NAME}.*"]
    return "\n".join(lines)


def decode_log_body(body: str) -> Dict:
    """
    Parse a log body. Keys: conducted_by, rank, date, total_items_checked,
    issues_found_count, defect_summary (list of (compartment, item, status)).
    """
    body = (body or "").replace("\r\n", "\n")

    conducted_by, rank = UNKNOWN_INSPECTOR, ""
    person = _first(_FIELD_CONDUCTED_BY, body)
    if person:
        name, rank = _split_person(person)
        conducted_by = name or UNKNOWN_INSPECTOR

    summary = []
    m = _ISSUES_SECTION_RE.search(body)
    if m:
        for line in m.group(1).split("\n"):
            line = line.strip()
            if not line.startswith("-"):
                continue
            entry = _SUMMARY_LINE_RE.match(line)
            if entry:
                compartment, item, label = entry.groups()
                summary.append((compartment, item, label.lower()))

    total = _first(_FIELD_TOTAL, body)
    issues = _first(_FIELD_ISSUES, body)
    return {
        "apparatus": _first(_FIELD_APPARATUS, body) or "",
        "conducted_by": conducted_by,
        "rank": rank,
        "date": _first(_FIELD_DATE, body) or "",
        "total_items_checked": int(total) if total else 0,
        "issues_found_count": int(issues) if issues else 0,
        "defect_summary": summary,
    }


def decode_log_record(issue: IssueRecord) -> Optional[InspectionLogRecord]:
    parsed = decode_log_title(issue.title)
    if parsed is None:
        return None
    apparatus, title_date = parsed
    fields = decode_log_body(issue.body)
    return InspectionLogRecord(
        apparatus=apparatus,
        conducted_by=fields["conducted_by"],
        rank=fields["rank"],
        date=fields["date"] or title_date,
        total_items_checked=fields["total_items_checked"],
        issues_found_count=fields["issues_found_count"],
        defect_summary=fields["defect_summary"],
        created_at=issue.created_at,
        external_id=issue.id,
    )
