from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from mindfulai.core.errors import ValidationError
from mindfulai.services.razorpay_service import RazorpayClient


class SubscriptionAction(str, Enum):
    CANCEL = "cancel"
    PAUSE = "pause"
    RESUME = "resume"
    UPDATE = "update"
    INVOICES = "invoices"


ActionHandler = Callable[[RazorpayClient, str, Optional[str]], Awaitable[Any]]

_HANDLERS: Dict[SubscriptionAction, ActionHandler] = {
    SubscriptionAction.CANCEL: lambda client, sub_id, _plan: client.cancel_subscription(sub_id),
    SubscriptionAction.PAUSE: lambda client, sub_id, _plan: client.pause_subscription(sub_id),
    SubscriptionAction.RESUME: lambda client, sub_id, _plan: client.resume_subscription(sub_id),
    SubscriptionAction.UPDATE: lambda client, sub_id, plan: client.update_subscription(sub_id, plan),
    SubscriptionAction.INVOICES: lambda client, sub_id, _plan: client.list_subscription_invoices(sub_id),
}

# Every action needs a handler; fail at import rather than on a live request
_missing = set(SubscriptionAction) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"Subscription actions without handler: {sorted(a.value for a in _missing)}")


def parse_action(subscription_id: Optional[str], raw_action: Optional[str], new_plan_id: Optional[str]) -> SubscriptionAction:
    """Validate a management request before anything reaches the gateway."""
    if not subscription_id:
        raise ValidationError("Subscription ID is required")
    try:
        action = SubscriptionAction(raw_action)
    except ValueError:
        raise ValidationError("Invalid action")
    if action is SubscriptionAction.UPDATE and not new_plan_id:
        raise ValidationError("New plan ID is required for update")
    return action


def dispatch(
    client: RazorpayClient,
    action: SubscriptionAction,
    subscription_id: str,
    new_plan_id: Optional[str] = None,
) -> Awaitable[Any]:
    return _HANDLERS[action](client, subscription_id, new_plan_id)
