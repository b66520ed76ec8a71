"""
V1 API router aggregation.

Mounted by ``main.py`` under ``/api/v1``.
"""

from fastapi import APIRouter

from investment_engine.api.v1.endpoints import accounts, admin, investments, payouts, withdrawals

api_router = APIRouter()

api_router.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
api_router.include_router(investments.router, prefix="/investments", tags=["Investments"])
api_router.include_router(withdrawals.router, prefix="/withdrawals", tags=["Withdrawals"])
api_router.include_router(payouts.router, prefix="/payouts", tags=["Payouts"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
