"""
V1 API router aggregation.

All versioned endpoint routers are mounted here under a common prefix.
The top-level ``main.py`` mounts this router at ``/api/v1``.
"""

from fastapi import APIRouter

from investtrack.api.v1.endpoints import interest, investments, reports, returns, transactions

api_router = APIRouter()

api_router.include_router(investments.router, prefix="/investments", tags=["Investments"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])
api_router.include_router(interest.router, prefix="/interest", tags=["Interest"])
api_router.include_router(returns.router, prefix="/returns", tags=["Returns"])
api_router.include_router(reports.router, prefix="/reports", tags=["Reports"])
