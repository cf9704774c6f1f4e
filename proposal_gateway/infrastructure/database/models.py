"""SQLAlchemy ORM models for policy proposals and their status history"""

import uuid
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class PolicyProposalRecord(Base):
    """Policy proposal aggregate state"""

    __tablename__ = "policy_proposal"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    product_id = Column(Text, nullable=False)
    category = Column(String(32), nullable=False)
    sales_channel = Column(String(32), nullable=False)
    payment_method = Column(String(32), nullable=False)
    monthly_premium_amount = Column(Numeric(18, 2), nullable=False)
    monthly_premium_currency = Column(String(3), nullable=False)
    insured_amount = Column(Numeric(18, 2), nullable=False)
    insured_currency = Column(String(3), nullable=False)
    # {"name": {"amount": "100000.00", "currency": "BRL"}}
    coverages = Column(JSON, nullable=False)
    assistances = Column(JSON, nullable=False)
    status = Column(String(32), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    payment_response_received = Column(Boolean, nullable=False, default=False)
    payment_confirmed = Column(Boolean, nullable=False, default=False)
    payment_rejection_reason = Column(Text, nullable=True)
    subscription_response_received = Column(Boolean, nullable=False, default=False)
    subscription_confirmed = Column(Boolean, nullable=False, default=False)
    subscription_rejection_reason = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    history = relationship(
        "StatusHistoryRecord",
        back_populates="proposal",
        cascade="all, delete-orphan",
        order_by="StatusHistoryRecord.sequence",
    )


class StatusHistoryRecord(Base):
    """One row per status change; rows are only ever inserted"""

    __tablename__ = "policy_status_history"
    __table_args__ = (UniqueConstraint("proposal_id", "sequence", name="uq_history_proposal_sequence"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    proposal_id = Column(Uuid(as_uuid=True), ForeignKey("policy_proposal.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    status = Column(String(32), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    reason = Column(Text, nullable=True)

    proposal = relationship("PolicyProposalRecord", back_populates="history")
