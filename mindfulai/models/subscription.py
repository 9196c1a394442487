from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from mindfulai.db.base import Base

UNLIMITED = -1

METERED_FEATURES = ("videoSessions", "voiceCalls", "chatMessages")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def zero_usage(now: datetime) -> Dict[str, Any]:
    usage: Dict[str, Any] = {feature: 0 for feature in METERED_FEATURES}
    usage["lastResetDate"] = now.isoformat()
    return usage


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"


class SubscriptionStatus(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class PaymentProvider(str, Enum):
    SYSTEM = "system"
    MANUAL = "manual"
    RAZORPAY = "razorpay"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, unique=True, index=True)
    plan = Column(String(16), default=Plan.FREE.value, nullable=False)
    plan_name = Column(String(255), nullable=True)
    status = Column(String(16), default=SubscriptionStatus.INACTIVE.value, nullable=False)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    provider = Column(String(32), default=PaymentProvider.SYSTEM.value, nullable=False)
    subscription_id = Column(String(255), nullable=True, index=True)
    # feature -> allowed count, UNLIMITED for no cap
    limits = Column(JSON, nullable=False, default=dict)
    # feature -> consumed count, plus "lastResetDate" (ISO-8601)
    usage = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    user = relationship("User", back_populates="subscription")
