"""
Entitlement state transitions driven by verified payment events.

`apply_verified_payment` is the only code path that moves a subscription to
the paid plan. It must only be called after the matching signature check has
passed. The subscription patch and the ledger append share one database
transaction, so they are committed together or not at all.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from mindfulai.core.config import Settings
from mindfulai.core.errors import PersistenceError, PersistenceInconsistency, UserNotFoundError
from mindfulai.models.payment_transaction import PaymentTransaction, TransactionStatus
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
from mindfulai.repositories.payment_transaction_repository import PaymentTransactionRepository
from mindfulai.repositories.subscription_repository import SubscriptionRepository
from mindfulai.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class PaymentKind(str, Enum):
    ORDER = "order"
    SUBSCRIPTION = "subscription"


@dataclass(frozen=True)
class VerifiedPaymentEvent:
    """A capture whose provider signature has already been checked."""

    kind: PaymentKind
    reference_id: str  # order id or recurring subscription id
    payment_id: str
    signature: str
    amount: int  # minor currency units
    currency: str
    plan_name: str
    provider: PaymentProvider = PaymentProvider.RAZORPAY


@dataclass
class EntitlementResult:
    subscription: Subscription
    transaction: Optional[PaymentTransaction]
    duplicate: bool = False


def build_paid_record(event: VerifiedPaymentEvent, now: datetime, period_days: int) -> Dict[str, Any]:
    """Target subscription fields for a settled payment."""
    return {
        "plan": Plan.PRO.value,
        "plan_name": event.plan_name,
        "status": SubscriptionStatus.ACTIVE.value,
        # Fixed-length window, no calendar-month arithmetic
        "current_period_end": now + timedelta(days=period_days),
        "provider": event.provider.value,
        "subscription_id": event.reference_id,
        "limits": {feature: UNLIMITED for feature in METERED_FEATURES},
        "usage": zero_usage(now),
    }


class EntitlementService:
    def __init__(self, db: Session, config: Settings):
        self.db = db
        self.config = config
        self.users = UserRepository(db)
        self.subscriptions = SubscriptionRepository(db)
        self.transactions = PaymentTransactionRepository(db)

    def apply_verified_payment(
        self,
        user_id: str,
        event: VerifiedPaymentEvent,
        now: Optional[datetime] = None,
    ) -> EntitlementResult:
        if self.users.get_by_id(user_id) is None:
            raise UserNotFoundError(f"User {user_id} does not exist")

        if self.config.PAYMENT_DEDUPLICATE_CALLBACKS and self.transactions.exists(
            user_id, event.provider.value, event.payment_id
        ):
            logger.info(f"Duplicate payment callback ignored for user {user_id}: {event.payment_id}")
            return EntitlementResult(
                subscription=self.subscriptions.get_by_user_id(user_id),
                transaction=None,
                duplicate=True,
            )

        # One retry on an optimistic-concurrency conflict with another writer
        for attempt in range(2):
            try:
                return self._write(user_id, event, now or datetime.now(timezone.utc))
            except StaleDataError:
                self.db.rollback()
                if attempt == 1:
                    raise PersistenceError(f"Concurrent subscription update for user {user_id} did not settle")
                logger.warning(f"Subscription for user {user_id} changed concurrently, retrying once")

    def _write(self, user_id: str, event: VerifiedPaymentEvent, now: datetime) -> EntitlementResult:
        record = build_paid_record(event, now, self.config.BILLING_PERIOD_DAYS)
        current = self.subscriptions.get_by_user_id(user_id)
        if current is not None and current.status == SubscriptionStatus.ACTIVE.value and current.plan == Plan.PRO.value:
            current_end = as_utc(current.current_period_end)
            if current_end is not None and current_end > record["current_period_end"]:
                record["current_period_end"] = current_end
        try:
            subscription = self.subscriptions.upsert(user_id=user_id, **record)
        except StaleDataError:
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Subscription update failed for user {user_id}: {e}") from e

        try:
            transaction = self.transactions.append(
                PaymentTransaction(
                    user_id=user_id,
                    provider=event.provider.value,
                    transaction_id=event.payment_id,
                    order_id=event.reference_id,
                    amount=event.amount,
                    currency=event.currency,
                    status=TransactionStatus.CAPTURED.value,
                    plan_name=event.plan_name,
                    meta={"signature": event.signature, "verifiedAt": now.isoformat()},
                )
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.critical(
                f"Ledger append failed after subscription update for user {user_id} "
                f"(payment {event.payment_id}, {event.kind.value} {event.reference_id}); "
                f"both writes rolled back: {e}"
            )
            raise PersistenceInconsistency(
                f"Transaction append failed for payment {event.payment_id}"
            ) from e

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Commit failed for payment {event.payment_id}: {e}") from e

        self.db.refresh(subscription)
        logger.info(
            f"Subscription activated for user {user_id}: plan={subscription.plan} "
            f"until {subscription.current_period_end.isoformat()} via {event.kind.value} {event.reference_id}"
        )
        return EntitlementResult(subscription=subscription, transaction=transaction)
