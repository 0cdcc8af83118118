from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..platform.database import Base


class Client(Base):
    """Tenant row owned by tenant management; the ledger only reads it."""

    __tablename__ = "clients"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    company_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    credit_account = relationship("ClientCreditAccount", back_populates="client", uselist=False)
    credit_costs = relationship("FeatureCreditCost", back_populates="client")

    @property
    def display_name(self) -> str:
        return (self.company_name or self.name or self.id or "").strip()
