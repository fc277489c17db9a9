"""
Governance Engine

Proposal lifecycle and vote tallying:
1. Accounts holding at least ``min_proposal_weight`` may create proposals
2. Each account votes at most once per proposal, weighted by its balance at
   the moment of voting
3. Once the voting window has elapsed, a proposal meeting quorum is
   finalized as approved or rejected by its approval ratio

The engine never reads a clock: every operation receives the current block
height from its caller. All preconditions are checked before any state is
touched, so a raised error always leaves the engine unchanged.
"""
import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from chaingov.services.balance_ledger import BalanceLedger
from chaingov.services.errors import (
    AlreadyVoted,
    InsufficientWeight,
    ProposalAlreadyFinalized,
    ProposalNotFound,
    QuorumNotReached,
    VotingClosed,
)

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_PAYLOAD_BYTES = 1024
APPROVAL_SCALE = 1000


class ProposalStatus(str, Enum):
    ACTIVE = "active"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class GovernanceParameters:
    """Process-wide governance configuration."""
    voting_period_blocks: int = 144
    quorum_threshold: int = 500
    approval_threshold: int = 667  # thousandths
    min_proposal_weight: int = 100

    def __post_init__(self):
        for name in ("voting_period_blocks", "quorum_threshold", "min_proposal_weight"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if not 0 <= self.approval_threshold <= APPROVAL_SCALE:
            raise ValueError("approval_threshold must be between 0 and 1000")


@dataclass
class ProposalState:
    """State of a single proposal."""
    id: int
    title: str
    description: str
    proposer: str
    created_at: int  # block height
    execution_delay: int = 0
    action_payload: Optional[bytes] = None
    votes_for: int = 0
    votes_against: int = 0
    status: ProposalStatus = ProposalStatus.ACTIVE
    finalized_at: Optional[int] = None

    @property
    def total_votes(self) -> int:
        return self.votes_for + self.votes_against

    @property
    def is_active(self) -> bool:
        return self.status == ProposalStatus.ACTIVE


@dataclass(frozen=True)
class VoteState:
    """Write-once vote of one account on one proposal."""
    proposal_id: int
    voter: str
    support: bool
    weight: int
    cast_at: int  # block height


@dataclass(frozen=True)
class EngineSnapshot:
    """Point-in-time copy of the engine tables, taken with ``GovernanceEngine.snapshot``."""
    proposals: Dict[int, ProposalState]
    votes: Dict[Tuple[int, str], VoteState]
    next_id: int


def approval_ratio(votes_for: int, total_votes: int) -> int:
    """Share of for-votes in thousandths, truncated; 0 when nobody voted."""
    if total_votes <= 0:
        return 0
    return votes_for * APPROVAL_SCALE // total_votes


def decide_outcome(votes_for: int, votes_against: int, approval_threshold: int) -> ProposalStatus:
    """Approved iff the truncated ratio reaches the threshold (ties pass)."""
    ratio = approval_ratio(votes_for, votes_for + votes_against)
    if ratio >= approval_threshold:
        return ProposalStatus.APPROVED
    return ProposalStatus.REJECTED


def _require_uint(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer")


class GovernanceEngine:
    """Owns the proposal table, the vote table and the proposal counter."""

    def __init__(self, ledger: BalanceLedger, params: Optional[GovernanceParameters] = None):
        self.ledger = ledger
        self.params = params or GovernanceParameters()
        self._proposals: Dict[int, ProposalState] = {}
        self._votes: Dict[Tuple[int, str], VoteState] = {}
        self._next_id = 0

    @classmethod
    def restore(
        cls,
        ledger: BalanceLedger,
        params: Optional[GovernanceParameters],
        proposals: Iterable[ProposalState],
        votes: Iterable[VoteState],
    ) -> "GovernanceEngine":
        """
        Rebuild an engine from stored proposals and votes.

        Ids must be dense from 0 and every vote must reference a stored
        proposal; tallies are taken as stored.
        """
        engine = cls(ledger, params)
        for proposal in sorted(proposals, key=lambda p: p.id):
            if proposal.id != engine._next_id:
                raise ValueError(f"proposal ids are not dense: expected {engine._next_id}, got {proposal.id}")
            engine._proposals[proposal.id] = dataclasses.replace(proposal)
            engine._next_id += 1
        for vote in votes:
            if vote.proposal_id not in engine._proposals:
                raise ValueError(f"vote references unknown proposal {vote.proposal_id}")
            key = (vote.proposal_id, vote.voter)
            if key in engine._votes:
                raise ValueError(f"duplicate vote for {key}")
            engine._votes[key] = vote
        return engine

    @property
    def proposal_count(self) -> int:
        return self._next_id

    def voting_ends(self, proposal: ProposalState) -> int:
        """Last block height at which votes are accepted (inclusive)."""
        return proposal.created_at + self.params.voting_period_blocks

    def _get(self, proposal_id: int) -> ProposalState:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFound(proposal_id)
        return proposal

    def create_proposal(
        self,
        title: str,
        description: str,
        proposer: str,
        current_height: int,
        action_payload: Optional[bytes] = None,
        execution_delay: int = 0,
    ) -> int:
        """
        Create an active proposal and return its id.

        Raises:
            InsufficientWeight: proposer holds less than ``min_proposal_weight``
            ValueError: a field exceeds its bounded size or is negative
        """
        if len(title) > MAX_TITLE_LENGTH:
            raise ValueError(f"title exceeds {MAX_TITLE_LENGTH} characters")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f"description exceeds {MAX_DESCRIPTION_LENGTH} characters")
        if action_payload is not None and len(action_payload) > MAX_PAYLOAD_BYTES:
            raise ValueError(f"action payload exceeds {MAX_PAYLOAD_BYTES} bytes")
        _require_uint("execution_delay", execution_delay)
        _require_uint("current_height", current_height)

        balance = self.ledger.get(proposer)
        if balance < self.params.min_proposal_weight:
            raise InsufficientWeight(
                f"{proposer} holds {balance}, needs {self.params.min_proposal_weight} to propose"
            )

        proposal_id = self._next_id
        self._proposals[proposal_id] = ProposalState(
            id=proposal_id,
            title=title,
            description=description,
            proposer=proposer,
            created_at=current_height,
            execution_delay=execution_delay,
            action_payload=bytes(action_payload) if action_payload is not None else None,
        )
        self._next_id += 1
        return proposal_id

    def vote(self, proposal_id: int, support: bool, voter: str, current_height: int) -> VoteState:
        """
        Cast ``voter``'s full current balance for or against a proposal.

        Checks run in a fixed order and the first failure wins: existence,
        voting window, double vote, then weight.
        """
        _require_uint("current_height", current_height)
        proposal = self._get(proposal_id)

        if not proposal.is_active or current_height > self.voting_ends(proposal):
            raise VotingClosed(f"Voting on proposal {proposal_id} closed at height {self.voting_ends(proposal)}")

        key = (proposal_id, voter)
        if key in self._votes:
            raise AlreadyVoted(proposal_id, voter)

        weight = self.ledger.get(voter)
        if weight <= 0:
            raise InsufficientWeight(f"{voter} has no voting weight")

        vote = VoteState(
            proposal_id=proposal_id,
            voter=voter,
            support=bool(support),
            weight=weight,
            cast_at=current_height,
        )
        self._votes[key] = vote
        if vote.support:
            proposal.votes_for += weight
        else:
            proposal.votes_against += weight
        return vote

    def finalize_proposal(self, proposal_id: int, current_height: int) -> ProposalStatus:
        """
        Settle an active proposal once its voting window has strictly elapsed.

        Raises:
            ProposalNotFound: unknown id
            ProposalAlreadyFinalized: status is already approved or rejected
            VotingClosed: the window has not elapsed yet
            QuorumNotReached: for + against is below the quorum threshold
        """
        _require_uint("current_height", current_height)
        proposal = self._get(proposal_id)

        if not proposal.is_active:
            raise ProposalAlreadyFinalized(proposal_id, proposal.status.value)
        if current_height <= self.voting_ends(proposal):
            raise VotingClosed(
                f"Voting on proposal {proposal_id} is open until height {self.voting_ends(proposal)}"
            )
        if proposal.total_votes < self.params.quorum_threshold:
            raise QuorumNotReached(
                f"Proposal {proposal_id} has {proposal.total_votes} votes, "
                f"quorum is {self.params.quorum_threshold}"
            )

        proposal.status = decide_outcome(
            proposal.votes_for, proposal.votes_against, self.params.approval_threshold
        )
        proposal.finalized_at = current_height
        return proposal.status

    def get_proposal(self, proposal_id: int) -> ProposalState:
        """Return a copy of the proposal; mutating it does not affect the engine."""
        return dataclasses.replace(self._get(proposal_id))

    def list_proposals(self, status: Optional[ProposalStatus] = None) -> List[ProposalState]:
        return [
            dataclasses.replace(p)
            for p in self._proposals.values()
            if status is None or p.status == status
        ]

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteState]:
        return self._votes.get((proposal_id, voter))

    def votes_for_proposal(self, proposal_id: int) -> List[VoteState]:
        self._get(proposal_id)
        return [v for (pid, _), v in self._votes.items() if pid == proposal_id]

    def get_balance(self, account: str) -> int:
        return self.ledger.get(account)

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            proposals={pid: dataclasses.replace(p) for pid, p in self._proposals.items()},
            votes=dict(self._votes),
            next_id=self._next_id,
        )

    def rollback(self, snapshot: EngineSnapshot) -> None:
        """Put the tables and counter back exactly as they were at ``snapshot``."""
        self._proposals = {pid: dataclasses.replace(p) for pid, p in snapshot.proposals.items()}
        self._votes = dict(snapshot.votes)
        self._next_id = snapshot.next_id
