# ================================================================
# APPARATUS CHECKOUT — Backend
# Daily inspections + defect ledger over GitHub Issues
# ================================================================

import logging

from fastapi import FastAPI

from checkout.config import get_config
from checkout.ledger import (
    init_checkout_scheduler,
    register_ledger_routes,
    shutdown_checkout_scheduler,
)

# ================================================================
# LOGGING
# ================================================================

logging.basicConfig(
    level=getattr(logging, str(get_config("log_level")).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("checkout")

# ================================================================
# FASTAPI APP
# ================================================================

checkout_app = FastAPI(title="Apparatus Checkout")
app = checkout_app

register_ledger_routes(app)


@app.on_event("startup")
async def _checkout_startup():
    started = init_checkout_scheduler()
    logger.info(f"[Checkout] Backend startup (store={get_config('store_backend')}, "
                f"compliance job={'on' if started else 'off'})")


@app.on_event("shutdown")
async def _checkout_shutdown():
    shutdown_checkout_scheduler()
