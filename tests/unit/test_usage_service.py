"""
Unit tests for UsageService: free-tier provisioning and metered feature limits.
Run: pytest tests/unit/test_usage_service.py -v
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from mindfulai.core.errors import PersistenceError, SubscriptionNotFoundError, UserNotFoundError, ValidationError
from mindfulai.models.subscription import Subscription
from mindfulai.services.entitlement_service import EntitlementService, PaymentKind, VerifiedPaymentEvent
from mindfulai.services.usage_service import UsageService

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db_session, test_settings):
    return UsageService(db_session, test_settings)


@pytest.fixture
def free_user(make_user, service):
    make_user("user_42")
    service.provision_free_tier("user_42", now=NOW)
    return "user_42"


class TestProvisionFreeTier:
    def test_creates_free_record(self, service, make_user):
        make_user("user_1")

        sub = service.provision_free_tier("user_1", now=NOW)

        assert sub.plan == "free"
        assert sub.plan_name == "The sad one"
        assert sub.status == "active"
        assert sub.provider == "system"
        assert sub.limits == {"videoSessions": 2, "voiceCalls": 3, "chatMessages": 50}
        assert sub.usage["chatMessages"] == 0

    def test_existing_record_is_left_alone(self, service, db_session, test_settings, make_user):
        make_user("user_1")
        EntitlementService(db_session, test_settings).apply_verified_payment(
            "user_1",
            VerifiedPaymentEvent(
                kind=PaymentKind.ORDER,
                reference_id="order_1",
                payment_id="pay_1",
                signature="s",
                amount=35000,
                currency="INR",
                plan_name="The depressed one",
            ),
            now=NOW,
        )

        sub = service.provision_free_tier("user_1", now=NOW)

        assert sub.plan == "pro"

    def test_unknown_user(self, service):
        with pytest.raises(UserNotFoundError):
            service.provision_free_tier("ghost", now=NOW)


class TestCheckAndIncrement:
    def test_counts_until_limit_then_refuses(self, service, free_user):
        first = service.check_and_increment(free_user, "videoSessions", now=NOW)
        second = service.check_and_increment(free_user, "videoSessions", now=NOW)
        third = service.check_and_increment(free_user, "videoSessions", now=NOW)

        assert (first.allowed, first.remaining, first.current) == (True, 1, 1)
        assert (second.allowed, second.remaining, second.current) == (True, 0, 2)
        assert third.allowed is False
        assert third.remaining == 0
        assert third.limit == 2
        assert third.current == 2

    def test_features_are_counted_separately(self, service, free_user):
        service.check_and_increment(free_user, "voiceCalls", now=NOW)

        summary = service.get_usage(free_user, now=NOW)

        assert summary["usage"]["voiceCalls"] == 1
        assert summary["usage"]["videoSessions"] == 0

    def test_counters_reset_after_billing_period(self, service, free_user):
        service.check_and_increment(free_user, "videoSessions", now=NOW)
        service.check_and_increment(free_user, "videoSessions", now=NOW)

        later = NOW + timedelta(days=31)
        decision = service.check_and_increment(free_user, "videoSessions", now=later)

        assert decision.allowed is True
        assert decision.current == 1

    def test_unlimited_feature_is_not_counted(self, service, db_session, test_settings, make_user):
        make_user("user_pro")
        EntitlementService(db_session, test_settings).apply_verified_payment(
            "user_pro",
            VerifiedPaymentEvent(
                kind=PaymentKind.SUBSCRIPTION,
                reference_id="sub_1",
                payment_id="pay_1",
                signature="s",
                amount=35000,
                currency="INR",
                plan_name="The depressed one",
            ),
            now=NOW,
        )

        decision = service.check_and_increment("user_pro", "chatMessages", now=NOW)

        assert decision.allowed is True
        assert decision.remaining == -1
        assert decision.limit == -1
        assert service.get_usage("user_pro", now=NOW)["usage"]["chatMessages"] == 0

    def test_lapsed_paid_plan_falls_back_to_free_limits(self, service, db_session, test_settings, make_user):
        make_user("user_pro")
        EntitlementService(db_session, test_settings).apply_verified_payment(
            "user_pro",
            VerifiedPaymentEvent(
                kind=PaymentKind.ORDER,
                reference_id="order_1",
                payment_id="pay_1",
                signature="s",
                amount=35000,
                currency="INR",
                plan_name="The depressed one",
            ),
            now=NOW,
        )

        decision = service.check_and_increment("user_pro", "videoSessions", now=NOW + timedelta(days=45))

        assert decision.limit == 2

    def test_unknown_feature(self, service, free_user):
        with pytest.raises(ValidationError) as exc:
            service.check_and_increment(free_user, "teleportation", now=NOW)
        assert exc.value.public_message == "Unknown usage type: teleportation"

    def test_missing_record(self, service, make_user):
        make_user("user_bare")
        with pytest.raises(SubscriptionNotFoundError):
            service.check_and_increment("user_bare", "chatMessages", now=NOW)


def test_get_usage_summary(service, free_user):
    summary = service.get_usage(free_user, now=NOW)

    assert summary["plan"] == "free"
    assert summary["planName"] == "The sad one"
    assert summary["status"] == "active"
    assert summary["currentPeriodEnd"].startswith("2025-03-31")
    assert summary["limits"]["chatMessages"] == 50


class TestConcurrentIncrements:
    def test_second_writer_rereads_and_counts(self, engine, free_user, test_settings):
        Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        first, second = Session(), Session()
        try:
            # Both requests load the record before either has written
            first.query(Subscription).filter(Subscription.user_id == free_user).one()
            second.query(Subscription).filter(Subscription.user_id == free_user).one()

            a = UsageService(first, test_settings).check_and_increment(free_user, "chatMessages", now=NOW)
            b = UsageService(second, test_settings).check_and_increment(free_user, "chatMessages", now=NOW)

            assert a.current == 1
            assert b.allowed is True
            assert b.current == 2
        finally:
            first.close()
            second.close()

    def test_persistent_conflict_is_persistence_error(self, service, free_user, monkeypatch):
        def always_stale(subscription, usage):
            raise StaleDataError("row version changed")

        monkeypatch.setattr(service.subscriptions, "set_usage", always_stale)

        with pytest.raises(PersistenceError):
            service.check_and_increment(free_user, "chatMessages", now=NOW)
