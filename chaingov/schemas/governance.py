"""Governance schemas"""
import base64
import binascii
from pydantic import BaseModel, Field, field_validator
from typing import Optional

from chaingov.services.governance_engine import (
    MAX_DESCRIPTION_LENGTH,
    MAX_PAYLOAD_BYTES,
    MAX_TITLE_LENGTH,
    ProposalStatus,
)


class ProposalResponse(BaseModel):
    id: int
    title: str
    description: str
    proposer: str
    created_at_height: int
    voting_ends_height: int
    votes_for: int
    votes_against: int
    total_votes: int
    status: ProposalStatus
    action_payload: Optional[str] = None  # base64
    execution_delay: int
    finalized_at_height: Optional[int] = None
    quorum_reached: bool = False
    approval_ratio: int = 0  # thousandths
    approval_reached: bool = False


class CreateProposalRequest(BaseModel):
    title: str = Field(..., max_length=MAX_TITLE_LENGTH)
    description: str = Field(..., max_length=MAX_DESCRIPTION_LENGTH)
    action_payload: Optional[str] = None  # base64-encoded opaque bytes
    execution_delay: int = Field(default=0, ge=0)
    proposer: str = Field(..., min_length=1, max_length=64)

    @field_validator("action_payload")
    @classmethod
    def payload_within_bounds(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            decoded = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("action_payload must be valid base64")
        if len(decoded) > MAX_PAYLOAD_BYTES:
            raise ValueError(f"action_payload exceeds {MAX_PAYLOAD_BYTES} bytes")
        return value

    def payload_bytes(self) -> Optional[bytes]:
        if self.action_payload is None:
            return None
        return base64.b64decode(self.action_payload)


class CreateProposalResponse(BaseModel):
    success: bool = True
    message: str
    proposal_id: int
    created_at_height: int
    voting_ends_height: int


class VoteRequest(BaseModel):
    support: bool
    voter: str = Field(..., min_length=1, max_length=64)


class VoteResponse(BaseModel):
    success: bool = True
    message: str
    proposal_id: int
    voter: str
    support: bool
    weight: int
    cast_at_height: int
    votes_for: int
    votes_against: int


class VoteRecordResponse(BaseModel):
    proposal_id: int
    voter: str
    support: bool
    weight: int
    cast_at_height: int


class FinalizeResponse(BaseModel):
    success: bool = True
    message: str
    proposal_id: int
    status: ProposalStatus
    finalized_at_height: int
    votes_for: int
    votes_against: int
    approval_ratio: int


class GovernanceParametersResponse(BaseModel):
    voting_period_blocks: int
    quorum_threshold: int
    approval_threshold: int
    min_proposal_weight: int
    current_height: int
    proposal_count: int
