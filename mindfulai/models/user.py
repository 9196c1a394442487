from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from mindfulai.db.base import Base


class User(Base):
    __tablename__ = "users"

    # Issued by the auth provider, so it is a string rather than a serial id
    id = Column(String(64), primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    subscription = relationship("Subscription", back_populates="user", uselist=False)
    payment_transactions = relationship("PaymentTransaction", back_populates="user")
