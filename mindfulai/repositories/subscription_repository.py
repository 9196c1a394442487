from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from mindfulai.models.subscription import Subscription


class SubscriptionRepository:
    """Subscription rows are patched and flushed here; callers own the commit."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        return self.db.query(Subscription).filter(Subscription.user_id == user_id).first()

    def upsert(
        self,
        user_id: str,
        plan: str,
        plan_name: Optional[str],
        status: str,
        current_period_end: Optional[datetime],
        provider: str,
        subscription_id: Optional[str],
        limits: Dict[str, int],
        usage: Dict[str, Any],
    ) -> Subscription:
        """Replace every billing field of the user's record in one write."""
        subscription = self.get_by_user_id(user_id)
        if not subscription:
            subscription = Subscription(user_id=user_id)
            self.db.add(subscription)

        subscription.plan = plan
        subscription.plan_name = plan_name
        subscription.status = status
        subscription.current_period_end = current_period_end
        subscription.provider = provider
        subscription.subscription_id = subscription_id
        # JSON columns are replaced, never mutated in place, so the change is tracked
        subscription.limits = dict(limits)
        subscription.usage = dict(usage)

        self.db.flush()
        return subscription

    def set_usage(self, subscription: Subscription, usage: Dict[str, Any]) -> Subscription:
        subscription.usage = dict(usage)
        self.db.flush()
        return subscription
