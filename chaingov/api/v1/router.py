"""API v1 router aggregation"""
from fastapi import APIRouter

from chaingov.api.v1 import governance, ledger, events, chain

api_router = APIRouter()

api_router.include_router(governance.router, prefix="/governance", tags=["Governance"])
api_router.include_router(ledger.router, prefix="/ledger", tags=["Ledger"])
api_router.include_router(events.router, prefix="/events", tags=["Events"])
api_router.include_router(chain.router, prefix="/chain", tags=["Chain"])
