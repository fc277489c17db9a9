"""Unit tests for the governance engine: proposal lifecycle and vote tallying."""
import pytest

from chaingov.services.balance_ledger import OwnedBalanceLedger
from chaingov.services.errors import (
    AlreadyVoted,
    InsufficientWeight,
    ProposalAlreadyFinalized,
    ProposalNotFound,
    QuorumNotReached,
    VotingClosed,
)
from chaingov.services.governance_engine import (
    GovernanceEngine,
    GovernanceParameters,
    ProposalState,
    ProposalStatus,
    VoteState,
    approval_ratio,
    decide_outcome,
)

OWNER = "owner"


def fund(ledger: OwnedBalanceLedger, **balances: int) -> None:
    for account, amount in balances.items():
        ledger.mint(amount, account, OWNER)


def propose(engine: GovernanceEngine, proposer: str = "alice", height: int = 5) -> int:
    return engine.create_proposal(
        title="Test proposal",
        description="A test proposal for unit testing",
        proposer=proposer,
        current_height=height,
    )


class TestApprovalArithmetic:
    """Tests for the approval ratio and decision rule"""

    def test_ratio_truncates(self):
        assert approval_ratio(2, 3) == 666
        assert approval_ratio(750, 1000) == 750

    def test_ratio_zero_votes(self):
        assert approval_ratio(0, 0) == 0

    def test_exact_threshold_passes(self):
        assert decide_outcome(667, 333, 667) == ProposalStatus.APPROVED

    def test_one_below_threshold_fails(self):
        assert decide_outcome(666, 334, 667) == ProposalStatus.REJECTED

    def test_unanimous_against(self):
        assert decide_outcome(0, 900, 667) == ProposalStatus.REJECTED


class TestGovernanceParameters:
    """Tests for parameter validation"""

    def test_defaults(self):
        params = GovernanceParameters()
        assert params.voting_period_blocks == 144
        assert params.quorum_threshold == 500
        assert params.approval_threshold == 667
        assert params.min_proposal_weight == 100

    def test_threshold_above_scale_rejected(self):
        with pytest.raises(ValueError):
            GovernanceParameters(approval_threshold=1001)

    def test_negative_period_rejected(self):
        with pytest.raises(ValueError):
            GovernanceParameters(voting_period_blocks=-1)


class TestCreateProposal:
    """Tests for proposal creation"""

    def test_first_proposal_gets_id_zero(self, engine, ledger):
        fund(ledger, alice=150)
        proposal_id = propose(engine)

        assert proposal_id == 0
        proposal = engine.get_proposal(0)
        assert proposal.status == ProposalStatus.ACTIVE
        assert proposal.created_at == 5
        assert proposal.votes_for == 0
        assert proposal.votes_against == 0
        assert proposal.proposer == "alice"

    def test_ids_are_dense(self, engine, ledger):
        fund(ledger, alice=150)
        ids = [propose(engine) for _ in range(3)]
        assert ids == [0, 1, 2]
        assert engine.proposal_count == 3

    def test_minimum_weight_is_inclusive(self, engine, ledger):
        fund(ledger, alice=100)
        assert propose(engine) == 0

    def test_insufficient_weight(self, engine, ledger):
        fund(ledger, alice=99)
        with pytest.raises(InsufficientWeight):
            propose(engine)
        assert engine.proposal_count == 0

    def test_unknown_proposer_has_no_weight(self, engine):
        with pytest.raises(InsufficientWeight):
            propose(engine, proposer="nobody")

    def test_payload_and_delay_are_stored_opaque(self, engine, ledger):
        fund(ledger, alice=150)
        proposal_id = engine.create_proposal(
            title="Upgrade",
            description="Opaque payload",
            proposer="alice",
            current_height=1,
            action_payload=b"\x00\x01\x02",
            execution_delay=72,
        )
        proposal = engine.get_proposal(proposal_id)
        assert proposal.action_payload == b"\x00\x01\x02"
        assert proposal.execution_delay == 72

    @pytest.mark.parametrize("field, value", [
        ("title", "t" * 101),
        ("description", "d" * 501),
        ("action_payload", b"x" * 1025),
        ("execution_delay", -1),
    ])
    def test_oversized_or_negative_fields_rejected(self, engine, ledger, field, value):
        fund(ledger, alice=150)
        kwargs = dict(
            title="ok",
            description="ok",
            proposer="alice",
            current_height=1,
        )
        kwargs[field] = value
        with pytest.raises(ValueError):
            engine.create_proposal(**kwargs)
        assert engine.proposal_count == 0

    def test_bounded_sizes_accepted_at_limit(self, engine, ledger):
        fund(ledger, alice=150)
        engine.create_proposal(
            title="t" * 100,
            description="d" * 500,
            proposer="alice",
            current_height=1,
            action_payload=b"x" * 1024,
        )
        assert engine.proposal_count == 1

    def test_creation_does_not_touch_ledger(self, engine, ledger):
        fund(ledger, alice=150)
        propose(engine)
        assert ledger.get("alice") == 150
        assert ledger.total_supply == 150


class TestVote:
    """Tests for vote acceptance rules"""

    def test_vote_for_adds_weight(self, engine, ledger):
        fund(ledger, alice=150, bob=400)
        propose(engine)

        vote = engine.vote(0, True, "bob", 10)

        assert vote == VoteState(proposal_id=0, voter="bob", support=True, weight=400, cast_at=10)
        assert engine.get_proposal(0).votes_for == 400
        assert engine.get_proposal(0).votes_against == 0

    def test_vote_against_adds_weight(self, engine, ledger):
        fund(ledger, alice=150, bob=400)
        propose(engine)
        engine.vote(0, False, "bob", 10)
        assert engine.get_proposal(0).votes_against == 400

    def test_double_vote_rejected(self, engine, ledger):
        fund(ledger, alice=150, bob=400)
        propose(engine)
        engine.vote(0, True, "bob", 10)

        with pytest.raises(AlreadyVoted):
            engine.vote(0, False, "bob", 11)
        assert engine.get_proposal(0).votes_for == 400
        assert engine.get_proposal(0).votes_against == 0

    def test_same_voter_on_two_proposals(self, engine, ledger):
        fund(ledger, alice=150, bob=400)
        propose(engine)
        propose(engine)
        engine.vote(0, True, "bob", 10)
        engine.vote(1, False, "bob", 10)
        assert engine.get_vote(0, "bob").support is True
        assert engine.get_vote(1, "bob").support is False

    def test_unknown_proposal(self, engine, ledger):
        fund(ledger, bob=400)
        with pytest.raises(ProposalNotFound):
            engine.vote(7, True, "bob", 10)

    def test_window_boundary_is_inclusive(self, engine, ledger):
        fund(ledger, alice=150, bob=400, carol=50)
        propose(engine, height=5)

        engine.vote(0, True, "bob", 149)
        with pytest.raises(VotingClosed):
            engine.vote(0, True, "carol", 150)

    def test_zero_balance_rejected(self, engine, ledger):
        fund(ledger, alice=150)
        propose(engine)
        with pytest.raises(InsufficientWeight):
            engine.vote(0, True, "nobody", 10)
        assert engine.get_vote(0, "nobody") is None

    def test_closed_window_reported_before_double_vote(self, engine, ledger):
        fund(ledger, alice=150, bob=400)
        propose(engine, height=5)
        engine.vote(0, True, "bob", 10)

        with pytest.raises(VotingClosed):
            engine.vote(0, True, "bob", 500)

    def test_double_vote_reported_before_weight(self, engine, ledger):
        fund(ledger, alice=150, bob=400)
        propose(engine)
        engine.vote(0, True, "bob", 10)
        with pytest.raises(AlreadyVoted):
            engine.vote(0, True, "bob", 11)

    def test_weight_is_snapshot(self, engine, ledger):
        fund(ledger, alice=150, bob=400)
        propose(engine)
        engine.vote(0, True, "bob", 10)

        ledger.mint(1000, "bob", OWNER)

        assert engine.get_vote(0, "bob").weight == 400
        assert engine.get_proposal(0).votes_for == 400

    def test_vote_on_finalized_proposal_closed(self, ledger):
        engine = GovernanceEngine(ledger, GovernanceParameters(voting_period_blocks=10, quorum_threshold=0))
        fund(ledger, alice=150, bob=400)
        propose(engine, height=5)
        engine.finalize_proposal(0, 16)

        # Even with a height inside the original window, a settled proposal takes no votes
        with pytest.raises(VotingClosed):
            engine.vote(0, True, "bob", 6)

    def test_tallies_equal_sum_of_vote_weights(self, engine, ledger):
        fund(ledger, alice=150, bob=400, carol=250, dave=75)
        propose(engine)
        engine.vote(0, True, "bob", 10)
        engine.vote(0, False, "carol", 11)
        engine.vote(0, True, "dave", 12)

        votes = engine.votes_for_proposal(0)
        proposal = engine.get_proposal(0)
        assert proposal.votes_for == sum(v.weight for v in votes if v.support)
        assert proposal.votes_against == sum(v.weight for v in votes if not v.support)
        assert proposal.total_votes == 725


class TestFinalizeProposal:
    """Tests for finalization"""

    def test_scenario_quorum_not_reached(self, engine, ledger):
        fund(ledger, alice=150, bob=400)
        assert propose(engine, height=5) == 0
        engine.vote(0, True, "bob", 10)
        with pytest.raises(AlreadyVoted):
            engine.vote(0, True, "bob", 10)

        with pytest.raises(QuorumNotReached):
            engine.finalize_proposal(0, 200)
        assert engine.get_proposal(0).status == ProposalStatus.ACTIVE

    def test_scenario_supermajority_approved(self, engine, ledger):
        fund(ledger, alice=150, bob=600, carol=200)
        propose(engine, height=5)
        engine.vote(0, True, "bob", 10)
        engine.vote(0, False, "carol", 10)

        status = engine.finalize_proposal(0, 200)

        assert status == ProposalStatus.APPROVED
        proposal = engine.get_proposal(0)
        assert proposal.status == ProposalStatus.APPROVED
        assert proposal.finalized_at == 200

    def test_exact_threshold_approved(self, engine, ledger):
        fund(ledger, alice=150, bob=667, carol=333)
        propose(engine, height=5)
        engine.vote(0, True, "bob", 10)
        engine.vote(0, False, "carol", 10)
        assert engine.finalize_proposal(0, 150) == ProposalStatus.APPROVED

    def test_below_threshold_rejected(self, engine, ledger):
        fund(ledger, alice=150, bob=666, carol=334)
        propose(engine, height=5)
        engine.vote(0, True, "bob", 10)
        engine.vote(0, False, "carol", 10)
        assert engine.finalize_proposal(0, 150) == ProposalStatus.REJECTED

    def test_window_must_strictly_elapse(self, engine, ledger):
        fund(ledger, alice=150, bob=600)
        propose(engine, height=5)
        engine.vote(0, True, "bob", 10)

        with pytest.raises(VotingClosed):
            engine.finalize_proposal(0, 149)
        assert engine.finalize_proposal(0, 150) == ProposalStatus.APPROVED

    def test_unknown_proposal(self, engine):
        with pytest.raises(ProposalNotFound):
            engine.finalize_proposal(0, 200)

    def test_refinalization_rejected(self, engine, ledger):
        fund(ledger, alice=150, bob=600, carol=200)
        propose(engine, height=5)
        engine.vote(0, True, "bob", 10)
        engine.vote(0, False, "carol", 10)
        engine.finalize_proposal(0, 200)

        with pytest.raises(ProposalAlreadyFinalized) as exc_info:
            engine.finalize_proposal(0, 300)
        assert exc_info.value.status == "approved"
        proposal = engine.get_proposal(0)
        assert proposal.status == ProposalStatus.APPROVED
        assert proposal.finalized_at == 200

    def test_rejected_is_absorbing(self, engine, ledger):
        fund(ledger, alice=150, bob=100, carol=500)
        propose(engine, height=5)
        engine.vote(0, True, "bob", 10)
        engine.vote(0, False, "carol", 10)
        assert engine.finalize_proposal(0, 150) == ProposalStatus.REJECTED

        with pytest.raises(ProposalAlreadyFinalized):
            engine.finalize_proposal(0, 151)
        assert engine.get_proposal(0).status == ProposalStatus.REJECTED

    def test_zero_quorum_with_no_votes_rejects(self, ledger):
        engine = GovernanceEngine(ledger, GovernanceParameters(quorum_threshold=0))
        fund(ledger, alice=150)
        propose(engine, height=5)
        assert engine.finalize_proposal(0, 150) == ProposalStatus.REJECTED


class TestReads:
    """Tests for read-only access"""

    def test_get_proposal_returns_copy(self, engine, ledger):
        fund(ledger, alice=150)
        propose(engine)
        copy = engine.get_proposal(0)
        copy.votes_for = 10**6
        copy.status = ProposalStatus.APPROVED

        assert engine.get_proposal(0).votes_for == 0
        assert engine.get_proposal(0).status == ProposalStatus.ACTIVE

    def test_list_proposals_by_status(self, ledger):
        engine = GovernanceEngine(ledger, GovernanceParameters(voting_period_blocks=1, quorum_threshold=0))
        fund(ledger, alice=150)
        propose(engine, height=0)
        propose(engine, height=0)
        engine.finalize_proposal(0, 2)

        assert [p.id for p in engine.list_proposals(ProposalStatus.ACTIVE)] == [1]
        assert [p.id for p in engine.list_proposals(ProposalStatus.REJECTED)] == [0]
        assert len(engine.list_proposals()) == 2

    def test_votes_for_unknown_proposal(self, engine):
        with pytest.raises(ProposalNotFound):
            engine.votes_for_proposal(3)

    def test_get_balance_reads_ledger(self, engine, ledger):
        fund(ledger, bob=42)
        assert engine.get_balance("bob") == 42
        assert engine.get_balance("nobody") == 0


class TestRestore:
    """Tests for rebuilding an engine from stored state"""

    def test_restore_continues_counter(self, ledger, params):
        fund(ledger, alice=150, bob=400)
        proposals = [
            ProposalState(id=0, title="a", description="", proposer="alice", created_at=1, votes_for=400),
            ProposalState(id=1, title="b", description="", proposer="alice", created_at=2),
        ]
        votes = [VoteState(proposal_id=0, voter="bob", support=True, weight=400, cast_at=3)]

        engine = GovernanceEngine.restore(ledger, params, proposals, votes)

        assert engine.proposal_count == 2
        assert propose(engine) == 2
        with pytest.raises(AlreadyVoted):
            engine.vote(0, True, "bob", 4)

    def test_restore_rejects_gaps(self, ledger, params):
        proposals = [ProposalState(id=1, title="b", description="", proposer="alice", created_at=2)]
        with pytest.raises(ValueError):
            GovernanceEngine.restore(ledger, params, proposals, [])

    def test_restore_rejects_orphan_votes(self, ledger, params):
        votes = [VoteState(proposal_id=0, voter="bob", support=True, weight=1, cast_at=3)]
        with pytest.raises(ValueError):
            GovernanceEngine.restore(ledger, params, [], votes)


class TestSnapshotRollback:
    """Tests for in-memory snapshots of the engine tables"""

    def test_rollback_undoes_create_vote_and_finalize(self, engine, ledger):
        fund(ledger, alice=150, bob=600)
        propose(engine, height=5)
        snapshot = engine.snapshot()

        propose(engine, height=6)
        engine.vote(0, True, "bob", 10)
        engine.finalize_proposal(0, 150)

        engine.rollback(snapshot)

        assert engine.proposal_count == 1
        assert engine.get_vote(0, "bob") is None
        proposal = engine.get_proposal(0)
        assert proposal.status == ProposalStatus.ACTIVE
        assert proposal.votes_for == 0
        assert proposal.finalized_at is None
        assert engine.vote(0, True, "bob", 10).weight == 600

    def test_snapshot_is_isolated_from_later_changes(self, engine, ledger):
        fund(ledger, alice=150, bob=600)
        propose(engine)
        snapshot = engine.snapshot()

        engine.vote(0, False, "bob", 10)

        assert snapshot.proposals[0].votes_against == 0
        assert snapshot.votes == {}
