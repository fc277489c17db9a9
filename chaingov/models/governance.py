"""Governance models"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, BigInteger, Boolean, DateTime, ForeignKey, LargeBinary, UniqueConstraint
)
from sqlalchemy.orm import relationship

from chaingov.models.database import Base
from chaingov.services.governance_engine import ProposalState, ProposalStatus, VoteState


class Proposal(Base):
    """Governance proposal"""
    __tablename__ = "proposals"

    id = Column(Integer, primary_key=True, autoincrement=False)  # dense engine id, starts at 0
    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=False)
    proposer = Column(String(64), nullable=False, index=True)
    created_at_height = Column(BigInteger, nullable=False)
    votes_for = Column(BigInteger, nullable=False, default=0)
    votes_against = Column(BigInteger, nullable=False, default=0)
    status = Column(String(20), nullable=False)  # active, approved, rejected
    action_payload = Column(LargeBinary(1024), nullable=True)
    execution_delay = Column(BigInteger, nullable=False, default=0)
    finalized_at_height = Column(BigInteger, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    votes = relationship("VoteRecord", back_populates="proposal", lazy="dynamic")

    @classmethod
    def from_state(cls, state: ProposalState) -> "Proposal":
        return cls(
            id=state.id,
            title=state.title,
            description=state.description,
            proposer=state.proposer,
            created_at_height=state.created_at,
            votes_for=state.votes_for,
            votes_against=state.votes_against,
            status=state.status.value,
            action_payload=state.action_payload,
            execution_delay=state.execution_delay,
            finalized_at_height=state.finalized_at,
        )

    def to_state(self) -> ProposalState:
        return ProposalState(
            id=self.id,
            title=self.title,
            description=self.description,
            proposer=self.proposer,
            created_at=self.created_at_height,
            execution_delay=self.execution_delay,
            action_payload=self.action_payload,
            votes_for=self.votes_for,
            votes_against=self.votes_against,
            status=ProposalStatus(self.status),
            finalized_at=self.finalized_at_height,
        )

    def __repr__(self):
        return f"<Proposal {self.id} ({self.status})>"


class VoteRecord(Base):
    """Vote record"""
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(Integer, ForeignKey("proposals.id"), nullable=False, index=True)
    voter = Column(String(64), nullable=False, index=True)
    support = Column(Boolean, nullable=False)
    weight = Column(BigInteger, nullable=False)
    cast_at_height = Column(BigInteger, nullable=False)
    voted_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    proposal = relationship("Proposal", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("proposal_id", "voter", name="uq_votes_proposal_voter"),
    )

    @classmethod
    def from_state(cls, state: VoteState) -> "VoteRecord":
        return cls(
            proposal_id=state.proposal_id,
            voter=state.voter,
            support=state.support,
            weight=state.weight,
            cast_at_height=state.cast_at,
        )

    def to_state(self) -> VoteState:
        return VoteState(
            proposal_id=self.proposal_id,
            voter=self.voter,
            support=self.support,
            weight=self.weight,
            cast_at=self.cast_at_height,
        )

    def __repr__(self):
        return f"<VoteRecord {self.voter[:8]}... ({'for' if self.support else 'against'})>"
