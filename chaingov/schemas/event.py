"""Event log and chain schemas"""
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class EventResponse(BaseModel):
    """Governance event response model."""
    id: int
    height: int
    event_type: str
    account: Optional[str] = None
    amount: Optional[int] = None
    reference_id: Optional[int] = None
    data: Optional[Dict[str, Any]] = None
    triggered_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class ProposalTallyResponse(BaseModel):
    proposal_id: int
    proposer: str
    created_at: int
    votes_for: int
    votes_against: int
    voter_count: int
    status: str
    finalized_at: Optional[int] = None


class SnapshotResponse(BaseModel):
    height: int
    total_supply: int
    balances: Dict[str, int]
    proposals: List[ProposalTallyResponse]


class HeightResponse(BaseModel):
    height: int
    clock_mode: str


class AdvanceRequest(BaseModel):
    blocks: int = Field(default=1, ge=0)
