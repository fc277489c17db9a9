"""Governance API endpoints"""
import base64
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from typing import List, Optional

from chaingov.api.errors import to_http_exception
from chaingov.schemas.governance import (
    ProposalResponse,
    CreateProposalRequest,
    CreateProposalResponse,
    VoteRequest,
    VoteResponse,
    VoteRecordResponse,
    FinalizeResponse,
    GovernanceParametersResponse,
)
from chaingov.services.errors import GovernanceError
from chaingov.services.governance_engine import ProposalState, ProposalStatus, VoteState, approval_ratio
from chaingov.services.governance_service import GovernanceService, get_governance_service

router = APIRouter()


def _proposal_to_response(p: ProposalState, service: GovernanceService) -> ProposalResponse:
    """Convert proposal state to response schema"""
    params = service.params
    ratio = approval_ratio(p.votes_for, p.total_votes)

    return ProposalResponse(
        id=p.id,
        title=p.title,
        description=p.description,
        proposer=p.proposer,
        created_at_height=p.created_at,
        voting_ends_height=service.engine.voting_ends(p),
        votes_for=p.votes_for,
        votes_against=p.votes_against,
        total_votes=p.total_votes,
        status=p.status,
        action_payload=base64.b64encode(p.action_payload).decode() if p.action_payload is not None else None,
        execution_delay=p.execution_delay,
        finalized_at_height=p.finalized_at,
        quorum_reached=p.total_votes >= params.quorum_threshold,
        approval_ratio=ratio,
        approval_reached=p.total_votes > 0 and ratio >= params.approval_threshold,
    )


def _vote_to_response(v: VoteState) -> VoteRecordResponse:
    return VoteRecordResponse(
        proposal_id=v.proposal_id,
        voter=v.voter,
        support=v.support,
        weight=v.weight,
        cast_at_height=v.cast_at,
    )


@router.get("/parameters", response_model=GovernanceParametersResponse)
async def get_parameters(service: GovernanceService = Depends(get_governance_service)):
    """Get the fixed governance parameters and the current height"""
    params = service.params
    return GovernanceParametersResponse(
        voting_period_blocks=params.voting_period_blocks,
        quorum_threshold=params.quorum_threshold,
        approval_threshold=params.approval_threshold,
        min_proposal_weight=params.min_proposal_weight,
        current_height=service.current_height(),
        proposal_count=service.engine.proposal_count,
    )


@router.get("/proposals", response_model=List[ProposalResponse])
async def list_proposals(
    status: Optional[ProposalStatus] = Query(None),
    service: GovernanceService = Depends(get_governance_service),
):
    """List governance proposals, newest first, optionally filtered by status"""
    return [_proposal_to_response(p, service) for p in service.list_proposals(status)]


@router.get("/proposals/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: int = Path(..., ge=0),
    service: GovernanceService = Depends(get_governance_service),
):
    """Get a specific proposal"""
    try:
        proposal = service.get_proposal(proposal_id)
    except GovernanceError as e:
        raise to_http_exception(e)
    return _proposal_to_response(proposal, service)


@router.post("/proposals", response_model=CreateProposalResponse)
async def create_proposal(
    request: CreateProposalRequest,
    service: GovernanceService = Depends(get_governance_service),
):
    """Create a new proposal at the current block height"""
    try:
        proposal = await service.create_proposal(
            title=request.title,
            description=request.description,
            proposer=request.proposer,
            action_payload=request.payload_bytes(),
            execution_delay=request.execution_delay,
        )
    except GovernanceError as e:
        raise to_http_exception(e)

    return CreateProposalResponse(
        message="Proposal created successfully",
        proposal_id=proposal.id,
        created_at_height=proposal.created_at,
        voting_ends_height=service.engine.voting_ends(proposal),
    )


@router.post("/proposals/{proposal_id}/vote", response_model=VoteResponse)
async def vote_on_proposal(
    request: VoteRequest,
    proposal_id: int = Path(..., ge=0),
    service: GovernanceService = Depends(get_governance_service),
):
    """Vote on a proposal with the voter's current balance"""
    try:
        vote = await service.vote(proposal_id, request.support, request.voter)
    except GovernanceError as e:
        raise to_http_exception(e)

    proposal = service.get_proposal(proposal_id)
    return VoteResponse(
        message=f"Vote recorded: {'for' if vote.support else 'against'}",
        proposal_id=proposal_id,
        voter=vote.voter,
        support=vote.support,
        weight=vote.weight,
        cast_at_height=vote.cast_at,
        votes_for=proposal.votes_for,
        votes_against=proposal.votes_against,
    )


@router.post("/proposals/{proposal_id}/finalize", response_model=FinalizeResponse)
async def finalize_proposal(
    proposal_id: int = Path(..., ge=0),
    service: GovernanceService = Depends(get_governance_service),
):
    """Finalize a proposal whose voting window has elapsed"""
    try:
        proposal = await service.finalize_proposal(proposal_id)
    except GovernanceError as e:
        raise to_http_exception(e)

    return FinalizeResponse(
        message=f"Proposal {proposal.status.value}",
        proposal_id=proposal_id,
        status=proposal.status,
        finalized_at_height=proposal.finalized_at,
        votes_for=proposal.votes_for,
        votes_against=proposal.votes_against,
        approval_ratio=approval_ratio(proposal.votes_for, proposal.total_votes),
    )


@router.get("/proposals/{proposal_id}/votes", response_model=List[VoteRecordResponse])
async def list_votes(
    proposal_id: int = Path(..., ge=0),
    service: GovernanceService = Depends(get_governance_service),
):
    """List all votes cast on a proposal"""
    try:
        votes = service.votes_for_proposal(proposal_id)
    except GovernanceError as e:
        raise to_http_exception(e)
    return [_vote_to_response(v) for v in sorted(votes, key=lambda v: (v.cast_at, v.voter))]


@router.get("/proposals/{proposal_id}/votes/{voter}", response_model=VoteRecordResponse)
async def get_vote(
    proposal_id: int = Path(..., ge=0),
    voter: str = Path(...),
    service: GovernanceService = Depends(get_governance_service),
):
    """Get one account's vote on a proposal"""
    try:
        vote = service.get_vote(proposal_id, voter)
    except GovernanceError as e:
        raise to_http_exception(e)
    if vote is None:
        raise HTTPException(status_code=404, detail="Vote not found")
    return _vote_to_response(vote)
