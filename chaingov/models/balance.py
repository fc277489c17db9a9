"""Account balance models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, BigInteger, DateTime

from chaingov.models.database import Base


class AccountBalance(Base):
    """Current voting-weight balance for each account"""
    __tablename__ = "account_balances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account = Column(String(64), nullable=False, unique=True, index=True)
    balance = Column(BigInteger, nullable=False, default=0)
    last_updated_height = Column(BigInteger, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<AccountBalance {self.account[:8]}... ({self.balance})>"
