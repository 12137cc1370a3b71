# ============================================================================
# APPARATUS CHECKOUT - Ledger API Routes
# ============================================================================
# Two routers:
#   - inspection_router: /api/inspections/*  (wizard submissions + logs)
#   - defect_router:     /api/defects/*, /api/analytics/*  (admin dashboard)
#
# Admin endpoints require the X-Admin-Password header.
# Registration via register_ledger_routes(app).
# ============================================================================

import hmac
import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..config import get_config
from ..errors import (
    DefectStateError,
    EncodingError,
    PartialReconciliationError,
    StoreError,
)
from .queries import get_dashboard

logger = logging.getLogger(__name__)

inspection_router = APIRouter(prefix="/api/inspections", tags=["inspections"])
defect_router = APIRouter(tags=["defects"])


# ============================================================================
# Helper utilities
# ============================================================================

def _require_admin(request: Request) -> None:
    expected = get_config("admin_password")
    if not expected:
        raise HTTPException(status_code=503, detail="Admin password not configured")
    supplied = request.headers.get("X-Admin-Password", "")
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Unauthorized. Invalid admin password.")


def _get_user(request: Request) -> str:
    return request.headers.get("X-User", "admin")


def _store_error_response(e: StoreError) -> JSONResponse:
    if e.auth_failed:
        status = 502
    elif e.retryable:
        status = 503
    else:
        status = 502
    return JSONResponse({"ok": False, **e.to_dict()}, status_code=status)


async def _run(fn, *args):
    """Run a blocking ledger call off the event loop and map domain errors."""
    try:
        return await run_in_threadpool(fn, *args)
    except EncodingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DefectStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


# ============================================================================
# Inspections
# ============================================================================

@inspection_router.post("/submit")
async def api_submit_inspection(request: Request):
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Body must be JSON")

    dashboard = get_dashboard()
    try:
        result = await _run(dashboard.submit_checklist, data)
    except PartialReconciliationError as e:
        logger.error(f"[Checkout] Partial submission for {e.apparatus}: {e}")
        return JSONResponse({"ok": False, "partial": True, **e.to_dict()}, status_code=207)
    except StoreError as e:
        return _store_error_response(e)

    return {"ok": True, "result": result.to_dict()}


@inspection_router.get("/daily")
async def api_daily_submissions(request: Request):
    _require_admin(request)
    try:
        snapshot = await _run(get_dashboard().get_daily_submissions)
    except StoreError as e:
        return _store_error_response(e)
    return {"ok": True, **snapshot.to_dict()}


@inspection_router.get("/logs")
async def api_inspection_logs(request: Request, days: int = Query(7, ge=1, le=365)):
    _require_admin(request)
    try:
        logs = await _run(get_dashboard().get_inspection_logs, days)
    except StoreError as e:
        return _store_error_response(e)
    return {"ok": True, "logs": [log.to_dict() for log in logs]}


# ============================================================================
# Defects / analytics
# ============================================================================

@defect_router.get("/api/defects")
async def api_all_defects(request: Request):
    _require_admin(request)
    try:
        defects = await _run(get_dashboard().get_all_defects)
    except StoreError as e:
        return _store_error_response(e)
    return {"ok": True, "defects": [d.to_dict() for d in defects]}


@defect_router.get("/api/defects/fleet-status")
async def api_fleet_status(request: Request):
    _require_admin(request)
    try:
        status = await _run(get_dashboard().get_fleet_status)
    except StoreError as e:
        return _store_error_response(e)
    return {"ok": True, "fleet_status": status}


@defect_router.post("/api/defects/{issue_id}/resolve")
async def api_resolve_defect(issue_id: int, request: Request):
    _require_admin(request)
    try:
        data = await request.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    note = (data.get("resolution_note") or data.get("note") or "").strip()
    if not note:
        raise HTTPException(status_code=400, detail="resolution_note is required")
    resolved_by = data.get("resolved_by") or _get_user(request)

    try:
        record = await _run(get_dashboard().resolve_defect, issue_id, note, resolved_by)
    except StoreError as e:
        if e.status == 404:
            raise HTTPException(status_code=404, detail=f"Defect #{issue_id} not found")
        return _store_error_response(e)
    return {"ok": True, "defect": record.to_dict()}


@defect_router.get("/api/analytics/low-stock")
async def api_low_stock(request: Request):
    _require_admin(request)
    try:
        items = await _run(get_dashboard().analyze_low_stock_items)
    except StoreError as e:
        return _store_error_response(e)
    return {"ok": True, "items": [c.to_dict() for c in items]}


@defect_router.get("/api/health")
async def api_health(request: Request):
    store = get_dashboard().store
    return {
        "ok": True,
        "store": store.name,
        "store_configured": store.is_configured(),
        "admin_password_configured": bool(get_config("admin_password")),
    }


def register_ledger_routes(app):
    """Include the inspection and defect routers on the FastAPI app."""
    app.include_router(inspection_router)
    app.include_router(defect_router)
