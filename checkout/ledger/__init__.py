"""
Apparatus Checkout Defect Ledger
Encodes inspections and defects as issue records, keeps one open record per
apparatus/compartment/item, and derives fleet analytics from the issue history.
"""
from .engine import DefectLedger
from .queries import DashboardQueries, get_dashboard, set_dashboard
from .routes import register_ledger_routes
from .scheduler_jobs import init_checkout_scheduler, shutdown_checkout_scheduler

__all__ = [
    "DefectLedger",
    "DashboardQueries",
    "get_dashboard",
    "set_dashboard",
    "register_ledger_routes",
    "init_checkout_scheduler",
    "shutdown_checkout_scheduler",
]
