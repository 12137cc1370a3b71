"""
Apparatus Checkout — Defect Ledger

Turns a checklist submission into issue-store writes:

1. snapshot the open defects of the apparatus (keyed ``(compartment, item)``),
2. per defect finding, comment on the open record or create a new one,
3. write the inspection log and close it straight away.

Writes are sequential and fail fast. There is no rollback: when a write fails
after earlier writes landed, PartialReconciliationError says which findings
are already recorded. Retrying the whole submission is safe because the
dedup key is the semantic (apparatus, compartment, item) triple.
"""
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from ..config import get_roster
from ..errors import DefectStateError, EncodingError, PartialReconciliationError, StoreError
from ..store.base import IssueStore, format_timestamp
from . import codec
from .locks import ApparatusLocks
from .models import (
    LABEL_DAMAGED,
    LABEL_DEFECT,
    LABEL_LOG,
    LABEL_RESOLVED,
    DefectRecord,
    Finding,
    InspectionSubmission,
    ReconciliationResult,
)

logger = logging.getLogger(__name__)


def _merge_notes(findings: List[Finding]) -> str:
    notes = []
    for f in findings:
        text = (f.notes or "").strip()
        if text and text not in notes:
            notes.append(text)
    return "\n".join(notes)


class DefectLedger:
    """Idempotent create-or-comment writer for defect and inspection log issues."""

    def __init__(
        self,
        store: IssueStore,
        locks: ApparatusLocks = None,
        roster: List[str] = None,
        clock: Callable[[], datetime] = None,
    ):
        self.store = store
        self.locks = locks or ApparatusLocks()
        self.roster = roster if roster is not None else get_roster()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ================================================================
    # READS
    # ================================================================

    def get_open_defects(self, apparatus: str = None) -> List[DefectRecord]:
        """Open defect records, optionally for one apparatus. Foreign issues are skipped."""
        labels = [LABEL_DEFECT]
        if apparatus:
            labels.append(apparatus)

        records = []
        for issue in self.store.list_open(labels):
            record = codec.decode_defect_record(issue)
            if record is None:
                logger.warning(f"[Ledger] Skipping issue #{issue.id}: title is not a defect record")
                continue
            if apparatus and record.apparatus != apparatus:
                continue
            records.append(record)
        return records

    def _open_defects_by_key(self, apparatus: str) -> Dict[Tuple[str, str], int]:
        lookup: Dict[Tuple[str, str], int] = {}
        for record in self.get_open_defects(apparatus):
            # Oldest wins if the store already holds duplicates
            existing = lookup.get(record.key)
            if existing is None or record.external_id < existing:
                lookup[record.key] = record.external_id
        return lookup

    # ================================================================
    # SUBMISSION
    # ================================================================

    def reconcile_apparatus_defects(self, submission: InspectionSubmission) -> ReconciliationResult:
        """
        Record one checklist submission.

        Raises:
            EncodingError: unknown apparatus or unencodable finding (nothing is written).
            StoreError: the first store call failed (nothing is written).
            PartialReconciliationError: some writes landed before a failure.
        """
        apparatus = submission.apparatus
        findings = submission.findings

        # Validate everything before the first write
        if apparatus not in self.roster:
            raise EncodingError(f"Unknown apparatus: {apparatus!r}")
        codec.encode_log_title(apparatus, submission.date)
        for finding in findings:
            codec.validate_finding(apparatus, finding)

        groups: "OrderedDict[Tuple[str, str], List[Finding]]" = OrderedDict()
        for finding in findings:
            groups.setdefault(finding.key, []).append(finding)

        result = ReconciliationResult(apparatus=apparatus)

        with self.locks.hold(apparatus):
            open_by_key = self._open_defects_by_key(apparatus)
            writes = 0
            succeeded: List[Finding] = []
            group_list = list(groups.values())

            for index, group in enumerate(group_list):
                primary = group[0]
                if len(group) > 1:
                    logger.warning(f"[Ledger] {apparatus}: {len(group)} entries for "
                                   f"{primary.compartment}: {primary.item}; "
                                   f"merging into one write")
                try:
                    issue_id = open_by_key.get(primary.key)
                    if issue_id is not None:
                        self._comment_verification(issue_id, submission, _merge_notes(group))
                        result.commented.append(issue_id)
                    else:
                        issue_id = self._create_defect(submission, primary, _merge_notes(group))
                        open_by_key[primary.key] = issue_id
                        result.created.append(issue_id)
                except StoreError as e:
                    logger.error(f"[Ledger] {apparatus}: write failed for "
                                 f"{primary.compartment}: {primary.item}: {e}")
                    if writes == 0:
                        raise
                    raise PartialReconciliationError(
                        apparatus=apparatus,
                        succeeded=succeeded,
                        failed=group,
                        not_attempted=[f for g in group_list[index + 1:] for f in g],
                        cause=e,
                    ) from e
                writes += 1
                succeeded.extend(group)

            result.log_id = self._write_log(submission, succeeded, writes)

        logger.info(f"[Ledger] {apparatus}: {len(result.created)} created, "
                    f"{len(result.commented)} verified, log #{result.log_id}")
        return result

    def _create_defect(self, submission: InspectionSubmission, finding: Finding, notes: str) -> int:
        apparatus = submission.apparatus
        title = codec.encode_defect_title(apparatus, finding.compartment, finding.item, finding.status)
        body = codec.encode_defect_body(
            apparatus, finding.compartment, finding.item, finding.status, notes,
            submission.user.name, submission.user.rank, submission.date,
        )
        labels = codec.encode_defect_labels(apparatus, finding.status, LABEL_DEFECT, LABEL_DAMAGED)
        issue_id = self.store.create_issue(title, body, labels)
        logger.info(f"[Ledger] Created defect #{issue_id}: {title}")
        return issue_id

    def _comment_verification(self, issue_id: int, submission: InspectionSubmission, notes: str) -> None:
        body = codec.encode_verification_comment(
            submission.user.name, submission.user.rank, submission.date, notes,
        )
        self.store.create_comment(issue_id, body)
        logger.info(f"[Ledger] Verified defect #{issue_id} still present ({submission.apparatus})")

    def _write_log(self, submission: InspectionSubmission, succeeded: List[Finding], writes: int) -> int:
        apparatus = submission.apparatus
        title = codec.encode_log_title(apparatus, submission.date)
        body = codec.encode_log_body(
            apparatus, submission.user.name, submission.user.rank, submission.date,
            len(submission.items), submission.findings,
        )

        try:
            log_id = self._find_unclosed_log(apparatus, title, body)
            if log_id is None:
                log_id = self.store.create_issue(title, body, [LABEL_LOG, apparatus])
            else:
                logger.warning(f"[Ledger] {apparatus}: closing inspection log #{log_id} "
                               f"left open by an earlier attempt")
        except StoreError as e:
            logger.error(f"[Ledger] {apparatus}: inspection log create failed: {e}")
            if writes == 0:
                raise
            raise PartialReconciliationError(apparatus, succeeded, [], [], cause=e) from e

        try:
            self.store.close(log_id)
        except StoreError as e:
            logger.error(f"[Ledger] {apparatus}: inspection log #{log_id} close failed: {e}")
            raise PartialReconciliationError(apparatus, succeeded, [], [], cause=e, log_created=True) from e

        return log_id

    def _find_unclosed_log(self, apparatus: str, title: str, body: str) -> Optional[int]:
        """An open log with identical content is a retry of this submission whose close failed."""
        for issue in self.store.list_open([LABEL_LOG, apparatus]):
            if issue.title == title and issue.body == body:
                return issue.id
        return None

    # ================================================================
    # RESOLUTION
    # ================================================================

    def resolve_defect(self, issue_id: int, resolution_note: str, resolved_by: str) -> DefectRecord:
        """
        Close an open defect with a resolution comment.

        Keeps the apparatus and Damaged labels so history stays queryable by
        apparatus. A closed record is terminal; a new report of the same item
        creates a fresh record.
        """
        record = codec.decode_defect_record(self.store.get_issue(issue_id))
        if record is None:
            raise DefectStateError(f"Issue #{issue_id} is not a defect record")

        with self.locks.hold(record.apparatus):
            # Re-read under the lock; a concurrent resolve may have closed it
            issue = self.store.get_issue(issue_id)
            if not issue.is_open:
                raise DefectStateError(f"Defect #{issue_id} is already resolved")

            labels = [LABEL_DEFECT, LABEL_RESOLVED]
            for label in issue.labels:
                if label in labels:
                    continue
                if label == LABEL_DAMAGED or label == record.apparatus or label in self.roster:
                    labels.append(label)

            self.store.create_comment(issue_id, codec.encode_resolution_comment(
                resolved_by, format_timestamp(self.clock()), resolution_note,
            ))
            self.store.close(issue_id, labels)

        logger.info(f"[Ledger] Defect #{issue_id} resolved by {resolved_by}")
        record.resolved = True
        return record
