"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from inventory_backend.app.api.v1.endpoints import ledger, transfers, admin_ledger, locations

router = APIRouter()

# Ledger movements, checkpoints, stock counts, receipts
router.include_router(ledger.router)

# Inter-branch transfers
router.include_router(transfers.router)

# Maintenance
router.include_router(admin_ledger.router)

# Location resolver
router.include_router(locations.router)
