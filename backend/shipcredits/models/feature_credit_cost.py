from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from ..platform.database import Base
from .client_credit_account import CREDIT_NUMERIC
from .timestamps import utcnow


class FeatureCreditCost(Base):
    __tablename__ = "feature_credit_costs"
    __table_args__ = (
        UniqueConstraint("client_id", "feature", name="uq_feature_credit_costs_client_feature"),
    )

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(String, ForeignKey("clients.id"), index=True, nullable=False)
    feature = Column(String, nullable=False)
    cost = Column(CREDIT_NUMERIC, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    client = relationship("Client", back_populates="credit_costs")
