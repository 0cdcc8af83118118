import enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint

from ..platform.database import Base
from .client_credit_account import CREDIT_NUMERIC
from .timestamps import utcnow


class CreditTransactionType(str, enum.Enum):
    ADD = "ADD"
    DEDUCT = "DEDUCT"
    RESET = "RESET"
    REFUND = "REFUND"


class CreditTransaction(Base):
    """Append-only ledger row; ``balance`` is the account balance after the change."""

    __tablename__ = "credit_transactions"
    __table_args__ = (
        UniqueConstraint("client_id", "external_ref", name="uq_credit_transactions_client_external_ref"),
        Index("ix_credit_transactions_client_created", "client_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(String, ForeignKey("client_credit_accounts.client_id"), index=True, nullable=False)
    client_name = Column(String, nullable=True)
    type = Column(String, nullable=False)
    amount = Column(CREDIT_NUMERIC, nullable=False)
    balance = Column(CREDIT_NUMERIC, nullable=False)
    description = Column(String, nullable=False, default="")
    feature = Column(String, nullable=True, index=True)
    order_id = Column(String, nullable=True, index=True)
    user_id = Column(String, nullable=True)
    external_ref = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def transaction_type(self) -> CreditTransactionType:
        return CreditTransactionType(self.type)
