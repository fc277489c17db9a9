"""ChainGov services"""
from .errors import (
    GovernanceError,
    NotAuthorized,
    ProposalNotFound,
    AlreadyVoted,
    VotingClosed,
    InsufficientWeight,
    QuorumNotReached,
    ProposalAlreadyFinalized,
)
from .balance_ledger import BalanceLedger, OwnedBalanceLedger
from .governance_engine import (
    GovernanceEngine,
    GovernanceParameters,
    ProposalState,
    ProposalStatus,
    VoteState,
)
from .block_clock import BlockClock, ManualBlockClock, IntervalBlockClock

__all__ = [
    # Errors
    "GovernanceError",
    "NotAuthorized",
    "ProposalNotFound",
    "AlreadyVoted",
    "VotingClosed",
    "InsufficientWeight",
    "QuorumNotReached",
    "ProposalAlreadyFinalized",
    # Core
    "BalanceLedger",
    "OwnedBalanceLedger",
    "GovernanceEngine",
    "GovernanceParameters",
    "ProposalState",
    "ProposalStatus",
    "VoteState",
    # Clock
    "BlockClock",
    "ManualBlockClock",
    "IntervalBlockClock",
]
