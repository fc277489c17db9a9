"""Event log service for recording and replaying governance state transitions."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chaingov.models.event import GovernanceEvent, EventType

logger = structlog.get_logger()


@dataclass
class ProposalTally:
    """State of a proposal at a point in time."""
    proposal_id: int
    proposer: str
    created_at: int
    votes_for: int = 0
    votes_against: int = 0
    voters: List[str] = field(default_factory=list)
    status: str = "active"
    finalized_at: Optional[int] = None


@dataclass
class GovernanceSnapshot:
    """Complete governance state at a point in time."""
    height: int
    balances: Dict[str, int] = field(default_factory=dict)  # account -> weight
    total_supply: int = 0
    proposals: Dict[int, ProposalTally] = field(default_factory=dict)  # proposal_id -> tally

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response"""
        return {
            "height": self.height,
            "total_supply": self.total_supply,
            "balances": dict(self.balances),
            "proposals": [
                {
                    "proposal_id": t.proposal_id,
                    "proposer": t.proposer,
                    "created_at": t.created_at,
                    "votes_for": t.votes_for,
                    "votes_against": t.votes_against,
                    "voter_count": len(t.voters),
                    "status": t.status,
                    "finalized_at": t.finalized_at,
                }
                for t in sorted(self.proposals.values(), key=lambda t: t.proposal_id)
            ],
        }


class EventLog:
    """Service for recording and reconstructing state from governance events."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        event_type: EventType,
        height: int,
        account: Optional[str] = None,
        amount: Optional[int] = None,
        reference_id: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
        triggered_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> GovernanceEvent:
        """
        Append an event to the governance log.

        Args:
            event_type: The kind of transition (from EventType enum)
            height: Block height at which the transition was applied
            account: Primary account involved
            amount: Minted amount or vote weight
            reference_id: Proposal id, where applicable
            data: Additional type-specific data as JSON
            triggered_by: Identity that invoked the operation
            notes: Human-readable notes

        Returns:
            The created GovernanceEvent record
        """
        event = GovernanceEvent(
            height=height,
            event_type=event_type,
            account=account,
            amount=amount,
            reference_id=reference_id,
            data=data,
            triggered_by=triggered_by,
            notes=notes,
        )

        self.db.add(event)
        await self.db.flush()

        logger.info(
            "Recorded event",
            event_id=event.id,
            event_type=event_type.value,
            height=height,
            account=account,
        )

        return event

    async def reconstruct_at_height(self, target_height: int) -> GovernanceSnapshot:
        """
        Reconstruct balances and proposal tallies at any height by replaying events.

        Args:
            target_height: The height to reconstruct state at (inclusive)

        Returns:
            GovernanceSnapshot containing the state at that height
        """
        result = await self.db.execute(
            select(GovernanceEvent)
            .where(GovernanceEvent.height <= target_height)
            .order_by(GovernanceEvent.height, GovernanceEvent.id)
        )
        events = result.scalars().all()

        state = GovernanceSnapshot(height=target_height)
        for event in events:
            self._apply_event(state, event)

        logger.info(
            "Reconstructed state",
            target_height=target_height,
            event_count=len(events),
            proposal_count=len(state.proposals),
        )

        return state

    def _apply_event(self, state: GovernanceSnapshot, event: GovernanceEvent) -> None:
        """Apply a single event to the snapshot."""
        data = event.data or {}
        match event.event_type:
            case EventType.MINT:
                if event.account and event.amount:
                    state.balances[event.account] = state.balances.get(event.account, 0) + event.amount
                    state.total_supply += event.amount

            case EventType.PROPOSAL_CREATE:
                if event.reference_id is not None:
                    state.proposals[event.reference_id] = ProposalTally(
                        proposal_id=event.reference_id,
                        proposer=event.account or "",
                        created_at=event.height,
                    )

            case EventType.VOTE:
                tally = state.proposals.get(event.reference_id)
                if tally is not None and event.account and event.amount:
                    if data.get("support"):
                        tally.votes_for += event.amount
                    else:
                        tally.votes_against += event.amount
                    tally.voters.append(event.account)

            case EventType.PROPOSAL_FINALIZE:
                tally = state.proposals.get(event.reference_id)
                if tally is not None:
                    tally.status = data.get("status", tally.status)
                    tally.finalized_at = event.height

    async def get_activity(
        self,
        limit: int = 50,
        offset: int = 0,
        event_types: Optional[List[EventType]] = None,
    ) -> List[GovernanceEvent]:
        """
        Get recent governance activity.

        Args:
            limit: Maximum records to return
            offset: Records to skip
            event_types: Optional filter for specific event types

        Returns:
            List of events ordered by height descending
        """
        query = select(GovernanceEvent)

        if event_types:
            query = query.where(GovernanceEvent.event_type.in_(event_types))

        query = query.order_by(
            GovernanceEvent.height.desc(),
            GovernanceEvent.id.desc()
        ).limit(limit).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_account_activity(
        self,
        account: str,
        limit: int = 50,
        offset: int = 0,
    ) -> List[GovernanceEvent]:
        """Get events whose primary account or trigger is ``account``."""
        query = select(GovernanceEvent).where(
            (GovernanceEvent.account == account) |
            (GovernanceEvent.triggered_by == account)
        ).order_by(
            GovernanceEvent.height.desc(),
            GovernanceEvent.id.desc()
        ).limit(limit).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_events_at_height(self, height: int) -> List[GovernanceEvent]:
        """Get all events applied at a specific height, in log order."""
        result = await self.db.execute(
            select(GovernanceEvent)
            .where(GovernanceEvent.height == height)
            .order_by(GovernanceEvent.id)
        )
        return list(result.scalars().all())
