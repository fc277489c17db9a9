"""Balance ledger schemas"""
from pydantic import BaseModel, Field
from typing import Optional

from chaingov.services.balance_ledger import MAX_TOTAL_SUPPLY


class MintRequest(BaseModel):
    amount: int = Field(..., ge=0, le=MAX_TOTAL_SUPPLY)
    recipient: str = Field(..., min_length=1, max_length=64)
    caller: str = Field(..., min_length=1, max_length=64)


class MintResponse(BaseModel):
    success: bool = True
    message: str
    recipient: str
    amount: int
    balance: int
    total_supply: int


class BalanceResponse(BaseModel):
    account: str
    balance: int


class VotingPowerResponse(BaseModel):
    address: str
    balance: int
    voting_power: int
    can_propose: bool
    delegated_to: Optional[str] = None
