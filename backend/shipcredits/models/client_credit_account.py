from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..platform.database import Base
from .timestamps import utcnow

# Credits are fractional (0.5 credit feature costs exist); 4 decimal places.
CREDIT_NUMERIC = Numeric(14, 4, asdecimal=True)


class ClientCreditAccount(Base):
    __tablename__ = "client_credit_accounts"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(String, ForeignKey("clients.id"), unique=True, index=True, nullable=False)
    balance = Column(CREDIT_NUMERIC, nullable=False, default=0)
    total_added = Column(CREDIT_NUMERIC, nullable=False, default=0)
    total_used = Column(CREDIT_NUMERIC, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    client = relationship("Client", back_populates="credit_account")
