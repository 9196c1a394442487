import time
from typing import Any, Awaitable
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from mindfulai.api.v1.dependencies import GatewayFactory, get_gateway_client_factory, get_signature_secret
from mindfulai.core.config import Settings, get_settings
from mindfulai.core.errors import GatewayError, SignatureInvalid, ValidationError
from mindfulai.core.logging import mask
from mindfulai.core.timeouts import run_with_timeout
from mindfulai.db.session import get_db
from mindfulai.schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    CreateSubscriptionResponse,
    ManageSubscriptionRequest,
    ManageSubscriptionResponse,
    PlanInfo,
    PlansResponse,
    TransactionResponse,
    TransactionsResponse,
    VerifyOrderRequest,
    VerifyPaymentResponse,
    VerifySubscriptionRequest,
)
from mindfulai.services import subscription_actions
from mindfulai.services.entitlement_service import EntitlementService, PaymentKind, VerifiedPaymentEvent
from mindfulai.services.signature_service import verify_order_signature, verify_subscription_signature
from mindfulai.services.transaction_service import TransactionService, serialize_transaction

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payment"])


async def _call_gateway(awaitable: Awaitable[Any], operation: str, failure_message: str, config: Settings) -> Any:
    try:
        return await run_with_timeout(awaitable, config.GATEWAY_TIMEOUT_SECONDS, operation)
    except GatewayError as e:
        e.public_message = failure_message
        raise


def _paid_event(
    config: Settings, kind: PaymentKind, reference_id: str, payment_id: str, signature: str
) -> VerifiedPaymentEvent:
    plan_name = config.default_paid_plan_name
    plan = config.get_payment_plan(plan_name)
    return VerifiedPaymentEvent(
        kind=kind,
        reference_id=reference_id,
        payment_id=payment_id,
        signature=signature,
        amount=plan["amount"],
        currency=plan["currency"],
        plan_name=plan_name,
    )


@router.get("/plans", response_model=PlansResponse)
def list_plans(config: Settings = Depends(get_settings)):
    """Plans that can be bought through /payment/order."""
    plans = [
        PlanInfo(
            name=name,
            plan=info["plan"],
            amount=info["amount"],
            currency=info["currency"],
            description=info.get("description"),
        )
        for name, info in config.get_all_payment_plans().items()
    ]
    return PlansResponse(plans=plans)


@router.post("/order", response_model=CreateOrderResponse)
async def create_order(
    body: CreateOrderRequest,
    build_gateway: GatewayFactory = Depends(get_gateway_client_factory),
    config: Settings = Depends(get_settings),
):
    """Creates a one-time Razorpay order for a catalog plan."""
    gateway = build_gateway()

    plan = config.get_payment_plan(body.plan_name) if body.plan_name else None
    if plan is None:
        raise ValidationError("Invalid plan selected")

    order = await _call_gateway(
        gateway.create_order(
            amount=plan["amount"],
            currency=plan["currency"],
            receipt=f"receipt_{int(time.time() * 1000)}",
            notes={"planName": body.plan_name, "description": plan.get("description", "")},
        ),
        "create order",
        "Failed to create payment order",
        config,
    )

    return CreateOrderResponse(
        orderId=order["id"],
        amount=order.get("amount", plan["amount"]),
        currency=order.get("currency", plan["currency"]),
        keyId=gateway.key_id,
    )


@router.post("/subscription", response_model=CreateSubscriptionResponse)
async def create_subscription(
    build_gateway: GatewayFactory = Depends(get_gateway_client_factory),
    config: Settings = Depends(get_settings),
):
    """Creates a recurring Razorpay subscription on the fixed monthly plan."""
    gateway = build_gateway()

    subscription = await _call_gateway(
        gateway.create_subscription(
            plan_id=config.RAZORPAY_SUBSCRIPTION_PLAN_ID,
            total_count=config.RAZORPAY_SUBSCRIPTION_TOTAL_COUNT,
            quantity=1,
            customer_notify=False,
            notes={"description": "MindfulAI Pro Subscription"},
        ),
        "create subscription",
        "Failed to create subscription",
        config,
    )

    return CreateSubscriptionResponse(subscriptionId=subscription["id"], keyId=gateway.key_id)


@router.post("/subscription/manage", response_model=ManageSubscriptionResponse)
async def manage_subscription(
    body: ManageSubscriptionRequest,
    build_gateway: GatewayFactory = Depends(get_gateway_client_factory),
    config: Settings = Depends(get_settings),
):
    """
    Lifecycle actions on an existing Razorpay subscription:
    cancel, pause, resume, update (needs newPlanId) and invoices.
    """
    action = subscription_actions.parse_action(body.subscription_id, body.action, body.new_plan_id)
    gateway = build_gateway()

    data = await _call_gateway(
        subscription_actions.dispatch(gateway, action, body.subscription_id, body.new_plan_id),
        f"{action.value} subscription",
        "Failed to manage subscription",
        config,
    )
    logger.info(f"Subscription {body.subscription_id}: {action.value} accepted by provider")
    return ManageSubscriptionResponse(data=data)


@router.post("/verify-order", response_model=VerifyPaymentResponse)
def verify_order(
    body: VerifyOrderRequest,
    secret: str = Depends(get_signature_secret),
    config: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """Verifies a one-time order checkout and activates the paid plan."""
    if not body.user_id:
        raise ValidationError("User ID is required")

    if not verify_order_signature(body.order_id, body.payment_id, body.signature, secret):
        raise SignatureInvalid(
            f"order={body.order_id} payment={body.payment_id} user={body.user_id} "
            f"signature={mask(body.signature)}"
        )

    event = _paid_event(config, PaymentKind.ORDER, body.order_id, body.payment_id, body.signature)
    EntitlementService(db, config).apply_verified_payment(body.user_id, event)
    return VerifyPaymentResponse()


@router.post("/verify-subscription", response_model=VerifyPaymentResponse)
def verify_subscription(
    body: VerifySubscriptionRequest,
    secret: str = Depends(get_signature_secret),
    config: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """Verifies a recurring subscription checkout and activates the paid plan."""
    if not body.user_id:
        raise ValidationError("User ID is required")

    if not verify_subscription_signature(body.subscription_id, body.payment_id, body.signature, secret):
        raise SignatureInvalid(
            f"subscription={body.subscription_id} payment={body.payment_id} user={body.user_id} "
            f"signature={mask(body.signature)}"
        )

    event = _paid_event(config, PaymentKind.SUBSCRIPTION, body.subscription_id, body.payment_id, body.signature)
    EntitlementService(db, config).apply_verified_payment(body.user_id, event)
    return VerifyPaymentResponse()


@router.get("/transactions", response_model=TransactionsResponse)
def list_transactions(
    user_id: str = Query(..., alias="userId"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    transactions = TransactionService(db).list_for_user(user_id, limit=limit)
    return TransactionsResponse(transactions=[serialize_transaction(t) for t in transactions])


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    user_id: str = Query(..., alias="userId"),
    db: Session = Depends(get_db),
):
    transaction = TransactionService(db).get_by_transaction_id(user_id, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return TransactionResponse(transaction=serialize_transaction(transaction))
