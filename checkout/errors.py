# ============================================================================
# APPARATUS CHECKOUT - Error Taxonomy
# ============================================================================

from typing import List, Optional


class CheckoutError(Exception):
    """Base class for checkout errors."""


class EncodingError(CheckoutError):
    """Input cannot be encoded into an issue record without breaking decoding.

    Fatal: the caller must fix the data before retrying.
    """


class StoreError(CheckoutError):
    """The issue store rejected or failed a call.

    ``retryable`` is True for network errors, timeouts, 408/429 and 5xx.
    ``auth_failed`` is True for 401/403, which call for re-authentication
    rather than a retry.
    """

    def __init__(
        self,
        cause: str,
        status: Optional[int] = None,
        retryable: bool = False,
        auth_failed: bool = False,
    ):
        super().__init__(cause)
        self.cause = cause
        self.status = status
        self.retryable = retryable
        self.auth_failed = auth_failed

    @classmethod
    def from_status(cls, status: int, cause: str) -> "StoreError":
        if status in (401, 403):
            return cls(cause, status=status, retryable=False, auth_failed=True)
        if status in (408, 429) or status >= 500:
            return cls(cause, status=status, retryable=True)
        return cls(cause, status=status, retryable=False)

    def to_dict(self) -> dict:
        return {
            "error": self.cause,
            "status": self.status,
            "retryable": self.retryable,
            "reauthenticate": self.auth_failed,
        }


class PartialReconciliationError(CheckoutError):
    """Some writes of a submission persisted, others did not.

    Nothing is rolled back: ``succeeded`` findings are live in the store.
    ``failed`` holds the finding whose write raised, ``not_attempted`` the
    findings after it. The inspection log is only written once every finding
    succeeded; ``log_created`` is True when it was created but not closed.
    """

    def __init__(
        self,
        apparatus: str,
        succeeded: List,
        failed: List,
        not_attempted: List,
        cause: StoreError,
        log_created: bool = False,
    ):
        self.apparatus = apparatus
        self.succeeded = list(succeeded)
        self.failed = list(failed)
        self.not_attempted = list(not_attempted)
        self.cause = cause
        self.log_created = log_created
        unwritten = len(self.failed) + len(self.not_attempted)
        if unwritten:
            msg = (f"Failed to submit {unwritten} defect(s) for {apparatus} "
                   f"({len(self.succeeded)} already recorded): {cause}")
        elif log_created:
            msg = (f"All defects for {apparatus} were recorded but the "
                   f"inspection log could not be closed: {cause}")
        else:
            msg = (f"All defects for {apparatus} were recorded but the "
                   f"inspection log could not be written: {cause}")
        super().__init__(msg)

    @property
    def unwritten(self) -> List:
        return self.failed + self.not_attempted

    @property
    def retryable(self) -> bool:
        return bool(getattr(self.cause, "retryable", False))

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "apparatus": self.apparatus,
            "succeeded": [f.to_dict() for f in self.succeeded],
            "failed": [f.to_dict() for f in self.failed],
            "not_attempted": [f.to_dict() for f in self.not_attempted],
            "log_created": self.log_created,
            "retryable": self.retryable,
        }


class DefectStateError(CheckoutError):
    """Operation targets a record that is not an open defect."""
