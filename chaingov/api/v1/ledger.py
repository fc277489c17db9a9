"""Balance ledger API endpoints"""
from fastapi import APIRouter, Depends, HTTPException, Path

from chaingov.api.errors import to_http_exception
from chaingov.schemas.ledger import (
    MintRequest,
    MintResponse,
    BalanceResponse,
    VotingPowerResponse,
)
from chaingov.services.errors import GovernanceError
from chaingov.services.governance_service import GovernanceService, get_governance_service

router = APIRouter()


@router.get("/balances/{account}", response_model=BalanceResponse)
async def get_balance(
    account: str = Path(...),
    service: GovernanceService = Depends(get_governance_service),
):
    """Get the voting-weight balance of an account"""
    return BalanceResponse(account=account, balance=service.get_balance(account))


@router.get("/voting-power/{address}", response_model=VotingPowerResponse)
async def get_voting_power(
    address: str = Path(...),
    service: GovernanceService = Depends(get_governance_service),
):
    """Get voting power for an address based on its balance"""
    balance = service.get_balance(address)

    # Voting power equals balance (1:1); delegation is not implemented
    return VotingPowerResponse(
        address=address,
        balance=balance,
        voting_power=balance,
        can_propose=balance >= service.params.min_proposal_weight,
        delegated_to=None,
    )


@router.post("/mint", response_model=MintResponse)
async def mint(
    request: MintRequest,
    service: GovernanceService = Depends(get_governance_service),
):
    """Mint voting weight to an account (minting authority only)"""
    try:
        balance = await service.mint(request.amount, request.recipient, request.caller)
    except GovernanceError as e:
        raise to_http_exception(e)
    except OverflowError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return MintResponse(
        message=f"Minted {request.amount} to {request.recipient}",
        recipient=request.recipient,
        amount=request.amount,
        balance=balance,
        total_supply=service.ledger.total_supply,
    )
