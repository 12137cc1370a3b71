"""
Apparatus Checkout — Scheduler Jobs

Daily compliance check on its own APScheduler BackgroundScheduler. Reads the
issue store fresh each run and logs apparatus with no inspection today.
"""
import logging
from typing import List, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from ..config import get_config, get_timezone
from ..errors import StoreError
from .queries import get_dashboard

logger = logging.getLogger(__name__)

_scheduler = None


def get_checkout_scheduler() -> BackgroundScheduler:
    """Get or create the singleton checkout scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(
            timezone=get_timezone(),
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 300},
        )
    return _scheduler


def check_missing_inspections() -> Optional[List[str]]:
    """Return (and log) roster apparatus that have not submitted today."""
    dashboard = get_dashboard()
    try:
        snapshot = dashboard.get_daily_submissions()
    except StoreError as e:
        logger.error(f"[Checkout] Compliance check failed: {e}")
        return None

    missing = [a for a in dashboard.roster if a not in snapshot.today]
    if missing:
        logger.warning(f"[Checkout] No inspection today for {len(missing)} apparatus: {', '.join(missing)}")
    else:
        logger.info("[Checkout] All apparatus submitted today's inspection")
    return missing


def init_checkout_scheduler() -> bool:
    """Register and start the compliance job when enabled in config."""
    if not get_config("reminder_enabled"):
        return False

    scheduler = get_checkout_scheduler()
    if scheduler.running:
        return True

    scheduler.add_job(
        check_missing_inspections,
        "cron",
        hour=get_config("reminder_hour"),
        minute=0,
        id="checkout_missing_inspections",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"[Checkout] Scheduler started; compliance check at {get_config('reminder_hour'):02d}:00")
    return True


def shutdown_checkout_scheduler() -> None:
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
