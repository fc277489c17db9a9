"""Database models"""
from chaingov.models.database import Base, get_db
from chaingov.models.governance import Proposal, VoteRecord
from chaingov.models.balance import AccountBalance
from chaingov.models.event import GovernanceEvent, EventType

__all__ = [
    "Base",
    "get_db",
    "Proposal",
    "VoteRecord",
    "AccountBalance",
    "GovernanceEvent",
    "EventType",
]
