"""
Unit tests for the Razorpay gateway client. No request leaves the process:
every call goes through httpx.MockTransport.
Run: pytest tests/unit/test_razorpay_service.py -v
"""
import base64
import json

import httpx
import pytest

from mindfulai.core.config import Settings
from mindfulai.core.errors import ConfigurationError, GatewayError
from mindfulai.services.razorpay_service import RazorpayClient


def _json(request: httpx.Request):
    return json.loads(request.content) if request.content else None


@pytest.mark.asyncio
async def test_create_order_uses_basic_auth_and_payload(gateway):
    gateway.respond("POST", "/v1/orders", json={"id": "order_1", "amount": 35000, "currency": "INR"})

    order = await gateway.client().create_order(35000, "INR", "receipt_1", {"planName": "The depressed one"})

    assert order == {"id": "order_1", "amount": 35000, "currency": "INR"}
    request = gateway.requests[0]
    expected = base64.b64encode(b"rzp_test_key:rzp_test_secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert _json(request) == {
        "amount": 35000,
        "currency": "INR",
        "receipt": "receipt_1",
        "notes": {"planName": "The depressed one"},
    }


@pytest.mark.asyncio
async def test_create_subscription_payload(gateway):
    gateway.respond("POST", "/v1/subscriptions", json={"id": "sub_1"})

    result = await gateway.client().create_subscription("plan_X", total_count=12, quantity=1, customer_notify=False)

    assert result["id"] == "sub_1"
    body = _json(gateway.requests[0])
    assert body["plan_id"] == "plan_X"
    assert body["total_count"] == 12
    assert body["customer_notify"] == 0


@pytest.mark.asyncio
async def test_lifecycle_calls_hit_expected_endpoints(gateway):
    client = gateway.client()
    await client.cancel_subscription("sub_1")
    await client.pause_subscription("sub_1")
    await client.resume_subscription("sub_1")
    await client.update_subscription("sub_1", "plan_Y")

    calls = [(r.method, r.url.path) for r in gateway.requests]
    assert calls == [
        ("POST", "/v1/subscriptions/sub_1/cancel"),
        ("POST", "/v1/subscriptions/sub_1/pause"),
        ("POST", "/v1/subscriptions/sub_1/resume"),
        ("PATCH", "/v1/subscriptions/sub_1"),
    ]
    assert _json(gateway.requests[3]) == {"plan_id": "plan_Y", "schedule_change_at": "cycle_end"}


@pytest.mark.asyncio
async def test_list_invoices_returns_items(gateway):
    gateway.respond("GET", "/v1/invoices", json={"count": 1, "items": [{"id": "inv_1"}]})

    invoices = await gateway.client().list_subscription_invoices("sub_1")

    assert invoices == [{"id": "inv_1"}]
    assert gateway.requests[0].url.params["subscription_id"] == "sub_1"


@pytest.mark.asyncio
async def test_non_2xx_raises_gateway_error_with_status_and_body(gateway):
    error_body = {"error": {"code": "BAD_REQUEST_ERROR", "description": "The id provided does not exist"}}
    gateway.respond("POST", "/v1/subscriptions/sub_404/cancel", status_code=400, json=error_body)

    with pytest.raises(GatewayError) as exc:
        await gateway.client().cancel_subscription("sub_404")

    assert exc.value.provider_status == 400
    assert exc.value.body == error_body


@pytest.mark.asyncio
async def test_transport_failure_raises_gateway_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = RazorpayClient("key", "secret", transport=httpx.MockTransport(handler))
    with pytest.raises(GatewayError) as exc:
        await client.create_order(100, "INR", "r")
    assert exc.value.provider_status is None


@pytest.mark.parametrize("key_id,key_secret", [(None, "secret"), ("key", None), ("", ""), (None, None)])
def test_missing_credentials_is_configuration_error(key_id, key_secret):
    with pytest.raises(ConfigurationError):
        RazorpayClient(key_id, key_secret)


def test_from_settings_reads_configuration():
    config = Settings(
        RAZORPAY_KEY_ID="rzp_k",
        RAZORPAY_KEY_SECRET="rzp_s",
        RAZORPAY_API_BASE="https://example.test/v1/",
        GATEWAY_TIMEOUT_SECONDS=5,
    )
    client = RazorpayClient.from_settings(config)
    assert client.key_id == "rzp_k"
    assert client.base_url == "https://example.test/v1"
    assert client.timeout == 5
