"""
Apparatus Checkout — Submission Retry Policy

Caller-side retry with capped exponential backoff. The store client never
retries on its own; the HTTP submission route wraps the ledger call here.
Only retryable store failures are retried: encoding errors and auth
failures are returned to the caller immediately.
"""
import logging
import time
from typing import Callable, TypeVar

from ..errors import PartialReconciliationError, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 0.1
DEFAULT_MAX_DELAY = 5.0


def backoff_delay(attempt: int, initial_delay: float = DEFAULT_INITIAL_DELAY,
                  max_delay: float = DEFAULT_MAX_DELAY) -> float:
    return min(initial_delay * (2 ** attempt), max_delay)


def retry_call(
    fn: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``fn``, re-running it after retryable store failures.

    Re-running a whole reconciliation after a partial failure is safe: the
    records created on the first attempt are found by their dedup key and
    get a verification comment instead of a duplicate.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except (StoreError, PartialReconciliationError) as e:
            if not e.retryable or attempt >= max_retries:
                raise
            delay = backoff_delay(attempt, initial_delay, max_delay)
            logger.warning(f"[Retry] Attempt {attempt + 1}/{max_retries} failed ({e}); "
                           f"retrying in {delay:.2f}s")
            sleep(delay)
            attempt += 1
