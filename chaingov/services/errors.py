"""Governance error taxonomy.

Every error here is an expected, caller-recoverable condition. Raising one
guarantees that the failed operation left no state behind.
"""


class GovernanceError(Exception):
    """Base class for all governance errors."""

    code = "GovernanceError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class NotAuthorized(GovernanceError):
    """Caller is not the configured minting authority."""

    code = "NotAuthorized"


class ProposalNotFound(GovernanceError):
    code = "ProposalNotFound"

    def __init__(self, proposal_id: int):
        super().__init__(f"Proposal {proposal_id} not found")
        self.proposal_id = proposal_id


class AlreadyVoted(GovernanceError):
    code = "AlreadyVoted"

    def __init__(self, proposal_id: int, voter: str):
        super().__init__(f"{voter} has already voted on proposal {proposal_id}")
        self.proposal_id = proposal_id
        self.voter = voter


class VotingClosed(GovernanceError):
    """Voting window is closed, or (for finalization) not yet elapsed."""

    code = "VotingClosed"


class InsufficientWeight(GovernanceError):
    code = "InsufficientWeight"


class QuorumNotReached(GovernanceError):
    code = "QuorumNotReached"


class ProposalAlreadyFinalized(GovernanceError):
    """Proposal has already left the active state."""

    code = "ProposalAlreadyFinalized"

    def __init__(self, proposal_id: int, status: str):
        super().__init__(f"Proposal {proposal_id} is already {status}")
        self.proposal_id = proposal_id
        self.status = status
