import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from mindfulai.core.config import Settings
from mindfulai.core.errors import PersistenceError, SubscriptionNotFoundError, UserNotFoundError, ValidationError
from mindfulai.models.subscription import (
    METERED_FEATURES,
    UNLIMITED,
    PaymentProvider,
    Plan,
    Subscription,
    SubscriptionStatus,
    as_utc,
    zero_usage,
)
from mindfulai.repositories.subscription_repository import SubscriptionRepository
from mindfulai.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass
class UsageDecision:
    allowed: bool
    remaining: int
    limit: int
    current: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _parse_reset_date(usage: Dict[str, Any]) -> Optional[datetime]:
    raw = usage.get("lastResetDate")
    if not isinstance(raw, str):
        return None
    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None


class UsageService:
    def __init__(self, db: Session, config: Settings):
        self.db = db
        self.config = config
        self.users = UserRepository(db)
        self.subscriptions = SubscriptionRepository(db)

    def provision_free_tier(self, user_id: str, now: Optional[datetime] = None) -> Subscription:
        """Give a newly onboarded user the free plan. Existing records are left alone."""
        if self.users.get_by_id(user_id) is None:
            raise UserNotFoundError(f"User {user_id} does not exist")
        existing = self.subscriptions.get_by_user_id(user_id)
        if existing:
            return existing

        now = now or datetime.now(timezone.utc)
        subscription = self.subscriptions.upsert(
            user_id=user_id,
            plan=Plan.FREE.value,
            plan_name=self.config.FREE_PLAN_NAME,
            status=SubscriptionStatus.ACTIVE.value,
            current_period_end=now + timedelta(days=self.config.BILLING_PERIOD_DAYS),
            provider=PaymentProvider.SYSTEM.value,
            subscription_id=None,
            limits=self.config.FREE_PLAN_LIMITS,
            usage=zero_usage(now),
        )
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"Free tier provisioned for user {user_id}")
        return subscription

    def _get_subscription(self, user_id: str) -> Subscription:
        subscription = self.subscriptions.get_by_user_id(user_id)
        if subscription is None:
            raise SubscriptionNotFoundError(f"No subscription for user {user_id}")
        return subscription

    def _current_usage(self, subscription: Subscription, now: datetime) -> Dict[str, Any]:
        """Usage counters, zeroed when the last reset is older than one billing period."""
        usage = dict(subscription.usage or {})
        last_reset = _parse_reset_date(usage)
        if last_reset is None or last_reset < now - timedelta(days=self.config.BILLING_PERIOD_DAYS):
            return zero_usage(now)
        for feature in METERED_FEATURES:
            usage.setdefault(feature, 0)
        return usage

    def _effective_limits(self, subscription: Subscription, now: datetime) -> Dict[str, int]:
        """Limits the record grants, or the free allowance once it lapsed or stopped."""
        period_end = as_utc(subscription.current_period_end)
        entitled = subscription.status == SubscriptionStatus.ACTIVE.value and (
            period_end is None or period_end > now
        )
        if entitled and subscription.limits:
            return {**self.config.FREE_PLAN_LIMITS, **subscription.limits}
        return dict(self.config.FREE_PLAN_LIMITS)

    def check_and_increment(self, user_id: str, feature: str, now: Optional[datetime] = None) -> UsageDecision:
        if feature not in METERED_FEATURES:
            raise ValidationError(f"Unknown usage type: {feature}")

        now = now or datetime.now(timezone.utc)
        # Another request may have counted first; re-read the record and retry once
        for attempt in range(2):
            try:
                return self._count(user_id, feature, now)
            except StaleDataError:
                self.db.rollback()
                if attempt == 1:
                    raise PersistenceError(f"Concurrent usage update for user {user_id} did not settle")
                logger.warning(f"Usage for user {user_id} changed concurrently, retrying once")

    def _count(self, user_id: str, feature: str, now: datetime) -> UsageDecision:
        subscription = self._get_subscription(user_id)
        limits = self._effective_limits(subscription, now)
        limit = limits[feature]

        if limit == UNLIMITED:
            return UsageDecision(allowed=True, remaining=UNLIMITED, limit=UNLIMITED, current=0)

        stored = dict(subscription.usage or {})
        usage = self._current_usage(subscription, now)
        current = int(usage.get(feature, 0))

        if current >= limit:
            if usage != stored:
                # Persist a pending reset even when the request is refused
                self.subscriptions.set_usage(subscription, usage)
                self.db.commit()
            return UsageDecision(allowed=False, remaining=0, limit=limit, current=current)

        usage[feature] = current + 1
        self.subscriptions.set_usage(subscription, usage)
        self.db.commit()
        return UsageDecision(allowed=True, remaining=limit - usage[feature], limit=limit, current=usage[feature])

    def get_usage(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        subscription = self._get_subscription(user_id)
        period_end = as_utc(subscription.current_period_end)
        return {
            "plan": subscription.plan,
            "planName": subscription.plan_name,
            "status": subscription.status,
            "currentPeriodEnd": period_end.isoformat() if period_end else None,
            "limits": self._effective_limits(subscription, now),
            "usage": self._current_usage(subscription, now),
        }
