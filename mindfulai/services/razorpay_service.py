import logging
from typing import Any, Dict, List, Optional

import httpx

from mindfulai.core.config import Settings
from mindfulai.core.errors import ConfigurationError, GatewayError

logger = logging.getLogger(__name__)


def _response_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


class RazorpayClient:
    """One authenticated request per call against the Razorpay REST API.

    No retries happen here; retry policy belongs to the caller.
    """

    def __init__(
        self,
        key_id: Optional[str],
        key_secret: Optional[str],
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not key_id or not key_secret:
            raise ConfigurationError("Razorpay credentials not configured")
        self.key_id = key_id
        self._auth = httpx.BasicAuth(key_id, key_secret)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "RazorpayClient":
        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            base_url=settings.RAZORPAY_API_BASE,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=self._auth,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise GatewayError(f"Razorpay {method} {path} failed: {type(e).__name__}: {e}")

        body = _response_body(resp)
        if resp.status_code >= 300:
            raise GatewayError(
                f"Razorpay {method} {path} returned {resp.status_code}",
                provider_status=resp.status_code,
                body=body,
            )
        return body if body is not None else {}

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}}
        order = await self._request("POST", "/orders", json=payload)
        logger.info(f"Razorpay order created: {order.get('id')} ({amount} {currency})")
        return order

    async def create_subscription(
        self,
        plan_id: str,
        total_count: int,
        quantity: int = 1,
        customer_notify: bool = False,
        notes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload = {
            "plan_id": plan_id,
            "total_count": total_count,
            "quantity": quantity,
            "customer_notify": 1 if customer_notify else 0,
            "notes": notes or {},
        }
        subscription = await self._request("POST", "/subscriptions", json=payload)
        logger.info(f"Razorpay subscription created: {subscription.get('id')} (plan {plan_id})")
        return subscription

    async def cancel_subscription(self, subscription_id: str, cancel_at_cycle_end: bool = False) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/subscriptions/{subscription_id}/cancel",
            json={"cancel_at_cycle_end": 1 if cancel_at_cycle_end else 0},
        )

    async def pause_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/subscriptions/{subscription_id}/pause", json={"pause_at": "now"})

    async def resume_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/subscriptions/{subscription_id}/resume", json={"resume_at": "now"})

    async def update_subscription(self, subscription_id: str, plan_id: str) -> Dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/subscriptions/{subscription_id}",
            json={"plan_id": plan_id, "schedule_change_at": "cycle_end"},
        )

    async def list_subscription_invoices(self, subscription_id: str) -> List[Dict[str, Any]]:
        payload = await self._request("GET", "/invoices", params={"subscription_id": subscription_id})
        if isinstance(payload, dict):
            return payload.get("items") or []
        return payload or []
