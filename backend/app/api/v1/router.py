"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import accounts, transactions, invoices, payments, channels, audit

router = APIRouter()

# Ledger
router.include_router(accounts.router)
router.include_router(transactions.router)

# Billing and reconciliation
router.include_router(invoices.router)
router.include_router(invoices.parcel_router)
router.include_router(payments.router)
router.include_router(payments.client_router)

# Conversational channels
router.include_router(channels.router)

# Audit trail
router.include_router(audit.router)
