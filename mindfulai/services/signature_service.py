import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def sign(message: str, secret: str) -> str:
    """HMAC-SHA256 hex digest of `message`, the scheme Razorpay signs with."""
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def _verify(message: str, signature: Optional[str], secret: Optional[str]) -> bool:
    if not isinstance(signature, str) or not signature or not secret:
        return False
    try:
        expected = sign(message, secret)
        return hmac.compare_digest(expected, signature)
    except Exception as e:
        logger.warning(f"Signature computation failed: {type(e).__name__}")
        return False


def _all_present(*values) -> bool:
    return all(isinstance(v, str) and v for v in values)


def order_message(order_id: str, payment_id: str) -> str:
    return f"{order_id}|{payment_id}"


def subscription_message(subscription_id: str, payment_id: str) -> str:
    # Subscriptions are signed payment-first
    return f"{payment_id}|{subscription_id}"


def verify_order_signature(
    order_id: Optional[str],
    payment_id: Optional[str],
    signature: Optional[str],
    secret: Optional[str],
) -> bool:
    """Check a one-time order checkout confirmation. Never raises."""
    if not _all_present(order_id, payment_id):
        return False
    return _verify(order_message(order_id, payment_id), signature, secret)


def verify_subscription_signature(
    subscription_id: Optional[str],
    payment_id: Optional[str],
    signature: Optional[str],
    secret: Optional[str],
) -> bool:
    """Check a recurring subscription checkout confirmation. Never raises."""
    if not _all_present(subscription_id, payment_id):
        return False
    return _verify(subscription_message(subscription_id, payment_id), signature, secret)
