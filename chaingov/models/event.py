"""Governance event model for the audit log."""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, BigInteger, DateTime, Text, JSON,
    Index, Enum as SQLEnum
)

from chaingov.models.database import Base


class EventType(str, enum.Enum):
    """All state transitions recorded in the audit log."""
    MINT = "mint"
    PROPOSAL_CREATE = "proposal_create"
    VOTE = "vote"
    PROPOSAL_FINALIZE = "proposal_finalize"


class GovernanceEvent(Base):
    """
    Append-only record of every accepted state transition.

    State as of any height is reconstructed by replaying events up to it.
    """
    __tablename__ = "governance_events"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Block height at which the transition was applied
    height = Column(BigInteger, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    event_type = Column(SQLEnum(EventType), nullable=False, index=True)

    account = Column(String(64), nullable=True, index=True)  # Proposer, voter or mint recipient
    amount = Column(BigInteger, nullable=True)  # Minted amount or vote weight

    reference_id = Column(Integer, nullable=True)  # Proposal id
    data = Column(JSON, nullable=True)

    triggered_by = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index('ix_governance_events_account_height', 'account', 'height'),
        Index('ix_governance_events_type_height', 'event_type', 'height'),
        Index('ix_governance_events_reference', 'reference_id'),
    )

    def __repr__(self):
        return f"<GovernanceEvent(id={self.id}, type={self.event_type}, height={self.height}, account={self.account})>"
