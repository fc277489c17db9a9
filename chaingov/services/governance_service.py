"""Governance service: serializes, persists and logs every state transition."""
import asyncio
from typing import Awaitable, Callable, List, Optional, TypeVar

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chaingov.config import Settings, get_settings
from chaingov.models.balance import AccountBalance
from chaingov.models.database import async_session_factory
from chaingov.models.event import EventType, GovernanceEvent
from chaingov.models.governance import Proposal, VoteRecord
from chaingov.services.balance_ledger import OwnedBalanceLedger
from chaingov.services.block_clock import BlockClock, build_block_clock
from chaingov.services.errors import GovernanceError
from chaingov.services.event_log import EventLog
from chaingov.services.governance_engine import (
    GovernanceEngine,
    GovernanceParameters,
    ProposalState,
    ProposalStatus,
    VoteState,
    approval_ratio,
)

logger = structlog.get_logger()

T = TypeVar("T")


def parameters_from_settings(settings: Settings) -> GovernanceParameters:
    return GovernanceParameters(
        voting_period_blocks=settings.voting_period_blocks,
        quorum_threshold=settings.quorum_threshold,
        approval_threshold=settings.approval_threshold,
        min_proposal_weight=settings.min_proposal_weight,
    )


class GovernanceService:
    """
    Host for the governance engine.

    State-changing calls are serialized by a single lock. Each call reads the
    block height once, runs the engine operation, then persists the result
    and its audit event in one database transaction. Engine and ledger are
    snapshotted in memory before every call; if persisting fails or the call
    is cancelled, the snapshot is put back so memory never runs ahead of
    storage.

    Reads do not take the lock. While a call is persisting, a read may see
    its result before the commit; if the commit fails the result is reverted.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: BlockClock,
        params: GovernanceParameters,
        mint_owner: str,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.params = params
        self.ledger = OwnedBalanceLedger(mint_owner)
        self.engine = GovernanceEngine(self.ledger, params)
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        """Rebuild engine and ledger from the database."""
        async with self._lock:
            await self._load_state()

    async def _load_state(self) -> None:
        async with self.session_factory() as db:
            balances = (await db.execute(select(AccountBalance))).scalars().all()
            proposals = (await db.execute(select(Proposal).order_by(Proposal.id))).scalars().all()
            votes = (await db.execute(select(VoteRecord))).scalars().all()
            stored_height = await self._highest_stored_height(db)

        self.ledger.restore((b.account, b.balance) for b in balances)
        self.engine = GovernanceEngine.restore(
            self.ledger,
            self.params,
            [p.to_state() for p in proposals],
            [v.to_state() for v in votes],
        )

        # Heights must not go backwards across a restart
        if stored_height > self.clock.current_height():
            logger.warning(
                "Block clock behind stored state, raising it",
                clock_height=self.clock.current_height(),
                stored_height=stored_height,
            )
        self.clock.ensure_at_least(stored_height)

        logger.info(
            "Governance state loaded",
            accounts=len(balances),
            proposals=len(proposals),
            votes=len(votes),
            height=self.clock.current_height(),
        )

    @staticmethod
    async def _highest_stored_height(db: AsyncSession) -> int:
        columns = (
            Proposal.created_at_height,
            Proposal.finalized_at_height,
            VoteRecord.cast_at_height,
            AccountBalance.last_updated_height,
            GovernanceEvent.height,
        )
        heights = [(await db.execute(select(func.max(column)))).scalar() for column in columns]
        return max((h for h in heights if h is not None), default=0)

    async def _transition(
        self,
        operation: str,
        apply: Callable[[int], T],
        persist: Callable[[AsyncSession, T, int], Awaitable[None]],
    ) -> T:
        async with self._lock:
            height = self.clock.current_height()
            engine_snapshot = self.engine.snapshot()
            ledger_snapshot = self.ledger.snapshot()
            try:
                result = apply(height)
            except GovernanceError as e:
                logger.info("Governance call rejected", operation=operation, error=e.code, height=height)
                raise

            committed = False
            try:
                async with self.session_factory() as db:
                    await persist(db, result, height)
                    await db.commit()
                    committed = True
            except BaseException as e:
                # Closing the session rolls back anything uncommitted
                if not committed:
                    self.engine.rollback(engine_snapshot)
                    self.ledger.rollback(ledger_snapshot)
                logger.error(
                    "Failed to persist transition",
                    operation=operation,
                    height=height,
                    committed=committed,
                    error=repr(e),
                )
                raise

            return result

    def current_height(self) -> int:
        return self.clock.current_height()

    async def create_proposal(
        self,
        title: str,
        description: str,
        proposer: str,
        action_payload: Optional[bytes] = None,
        execution_delay: int = 0,
    ) -> ProposalState:
        def apply(height: int) -> ProposalState:
            proposal_id = self.engine.create_proposal(
                title=title,
                description=description,
                proposer=proposer,
                current_height=height,
                action_payload=action_payload,
                execution_delay=execution_delay,
            )
            return self.engine.get_proposal(proposal_id)

        async def persist(db: AsyncSession, proposal: ProposalState, height: int) -> None:
            db.add(Proposal.from_state(proposal))
            await db.flush()
            await EventLog(db).record(
                event_type=EventType.PROPOSAL_CREATE,
                height=height,
                account=proposer,
                reference_id=proposal.id,
                data={
                    "title": title,
                    "execution_delay": execution_delay,
                    "payload_size": len(action_payload) if action_payload is not None else None,
                    "voting_ends": self.engine.voting_ends(proposal),
                },
                triggered_by=proposer,
                notes=f"Proposal #{proposal.id}: {title}",
            )

        proposal = await self._transition("create_proposal", apply, persist)
        logger.info("Proposal created", proposal_id=proposal.id, proposer=proposer, height=proposal.created_at)
        return proposal

    async def vote(self, proposal_id: int, support: bool, voter: str) -> VoteState:
        def apply(height: int) -> VoteState:
            return self.engine.vote(proposal_id, support, voter, height)

        async def persist(db: AsyncSession, vote: VoteState, height: int) -> None:
            proposal = self.engine.get_proposal(proposal_id)
            row = await db.get(Proposal, proposal_id)
            row.votes_for = proposal.votes_for
            row.votes_against = proposal.votes_against
            db.add(VoteRecord.from_state(vote))
            await db.flush()
            await EventLog(db).record(
                event_type=EventType.VOTE,
                height=height,
                account=voter,
                amount=vote.weight,
                reference_id=proposal_id,
                data={"support": vote.support, "weight": vote.weight},
                triggered_by=voter,
                notes=f"Vote {'for' if vote.support else 'against'} proposal #{proposal_id}",
            )

        vote = await self._transition("vote", apply, persist)
        logger.info(
            "Vote recorded",
            proposal_id=proposal_id,
            voter=voter,
            support=vote.support,
            weight=vote.weight,
        )
        return vote

    async def finalize_proposal(self, proposal_id: int) -> ProposalState:
        def apply(height: int) -> ProposalState:
            self.engine.finalize_proposal(proposal_id, height)
            return self.engine.get_proposal(proposal_id)

        async def persist(db: AsyncSession, proposal: ProposalState, height: int) -> None:
            row = await db.get(Proposal, proposal_id)
            row.status = proposal.status.value
            row.finalized_at_height = proposal.finalized_at
            await EventLog(db).record(
                event_type=EventType.PROPOSAL_FINALIZE,
                height=height,
                reference_id=proposal_id,
                data={
                    "status": proposal.status.value,
                    "votes_for": proposal.votes_for,
                    "votes_against": proposal.votes_against,
                    "approval_ratio": approval_ratio(proposal.votes_for, proposal.total_votes),
                },
                notes=f"Proposal #{proposal_id} {proposal.status.value}",
            )

        proposal = await self._transition("finalize_proposal", apply, persist)
        logger.info(
            "Proposal finalized",
            proposal_id=proposal_id,
            status=proposal.status.value,
            votes_for=proposal.votes_for,
            votes_against=proposal.votes_against,
        )
        return proposal

    async def mint(self, amount: int, recipient: str, caller: str) -> int:
        def apply(height: int) -> int:
            return self.ledger.mint(amount, recipient, caller)

        async def persist(db: AsyncSession, balance: int, height: int) -> None:
            result = await db.execute(
                select(AccountBalance).where(AccountBalance.account == recipient)
            )
            row = result.scalar_one_or_none()
            if row is None:
                db.add(AccountBalance(account=recipient, balance=balance, last_updated_height=height))
            else:
                row.balance = balance
                row.last_updated_height = height
            await EventLog(db).record(
                event_type=EventType.MINT,
                height=height,
                account=recipient,
                amount=amount,
                triggered_by=caller,
                notes=f"Minted {amount} to {recipient}",
            )

        balance = await self._transition("mint", apply, persist)
        logger.info("Minted voting weight", recipient=recipient, amount=amount, balance=balance)
        return balance

    def get_proposal(self, proposal_id: int) -> ProposalState:
        return self.engine.get_proposal(proposal_id)

    def list_proposals(self, status: Optional[ProposalStatus] = None) -> List[ProposalState]:
        return sorted(self.engine.list_proposals(status), key=lambda p: p.id, reverse=True)

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteState]:
        self.engine.get_proposal(proposal_id)
        return self.engine.get_vote(proposal_id, voter)

    def votes_for_proposal(self, proposal_id: int) -> List[VoteState]:
        return self.engine.votes_for_proposal(proposal_id)

    def get_balance(self, account: str) -> int:
        return self.engine.get_balance(account)


# Singleton instance
_governance_service: Optional[GovernanceService] = None


async def get_governance_service() -> GovernanceService:
    """Get or create the governance service singleton"""
    global _governance_service
    if _governance_service is None:
        settings = get_settings()
        service = GovernanceService(
            session_factory=async_session_factory,
            clock=build_block_clock(settings),
            params=parameters_from_settings(settings),
            mint_owner=settings.mint_owner,
        )
        await service.load()
        _governance_service = service
    return _governance_service


async def close_governance_service() -> None:
    """Drop the governance service singleton"""
    global _governance_service
    _governance_service = None
