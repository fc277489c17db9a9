"""Block height API endpoints"""
from fastapi import APIRouter, Depends, HTTPException

from chaingov.config import get_settings
from chaingov.schemas.event import AdvanceRequest, HeightResponse
from chaingov.services.block_clock import ManualBlockClock
from chaingov.services.governance_service import GovernanceService, get_governance_service

router = APIRouter()
settings = get_settings()


@router.get("/height", response_model=HeightResponse)
async def get_height(service: GovernanceService = Depends(get_governance_service)):
    """Get the current block height"""
    return HeightResponse(height=service.current_height(), clock_mode=settings.clock_mode)


@router.post("/advance", response_model=HeightResponse)
async def advance_height(
    request: AdvanceRequest,
    service: GovernanceService = Depends(get_governance_service),
):
    """Advance a manual block clock (development hosts only)"""
    if not isinstance(service.clock, ManualBlockClock):
        raise HTTPException(status_code=400, detail="Block height is not manually controlled")
    height = service.clock.advance(request.blocks)
    return HeightResponse(height=height, clock_mode=settings.clock_mode)
