"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from freight_ledger.app.api.v1.endpoints import balance, orders, top_up, admin_ops

router = APIRouter()

# Customer-facing ledger and order endpoints
router.include_router(balance.router)
router.include_router(orders.router)
router.include_router(top_up.router)

# Admin endpoints
router.include_router(top_up.admin_router)
router.include_router(admin_ops.router)
