from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from mindfulai.db.base import Base


class TransactionStatus(str, Enum):
    CREATED = "created"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentTransaction(Base):
    """Append-only ledger row. Never updated or deleted once written."""

    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(String(32), nullable=False)
    transaction_id = Column(String(255), nullable=False, index=True)
    order_id = Column(String(255), nullable=True)
    amount = Column(Integer, nullable=False)  # minor currency units
    currency = Column(String(8), nullable=False)
    status = Column(String(16), nullable=False)
    plan_name = Column(String(255), nullable=True)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="payment_transactions")

    __table_args__ = (
        Index("idx_payment_transactions_user_created", "user_id", "created_at"),
        Index("idx_payment_transactions_provider_txn", "provider", "transaction_id"),
    )
