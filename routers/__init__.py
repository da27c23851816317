# routers/__init__.py

from fastapi import APIRouter

from .approvals import router as approvals_router
from .notifications import router as notifications_router
from .parent_accounts import router as parent_accounts_router
from .bank_accounts import router as bank_accounts_router
from .stripe_account_approvals import router as stripe_account_approvals_router
from .parent_approvals import router as parent_approvals_router
from .neighbor_applications import router as neighbor_applications_router
from .health import router as health_router


# Master router, mounted by main.create_app()
api_router = APIRouter()

# Parent approval (teen signup)
api_router.include_router(approvals_router)
api_router.include_router(notifications_router)

# Accounts
api_router.include_router(parent_accounts_router)
api_router.include_router(bank_accounts_router)

# Dashboard approvals
api_router.include_router(stripe_account_approvals_router)
api_router.include_router(parent_approvals_router)
api_router.include_router(neighbor_applications_router)

# Health
api_router.include_router(health_router)

__all__ = ["api_router"]
