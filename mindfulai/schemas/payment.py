from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field


class CreateOrderRequest(BaseModel):
    plan_name: Optional[str] = Field(None, validation_alias=AliasChoices("planName", "plan_name"))


class CreateOrderResponse(BaseModel):
    success: bool = True
    orderId: str
    amount: int
    currency: str
    keyId: str


class CreateSubscriptionResponse(BaseModel):
    success: bool = True
    subscriptionId: str
    keyId: str


class ManageSubscriptionRequest(BaseModel):
    subscription_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("subscriptionId", "subscription_id")
    )
    # Kept as a plain string so an unknown action is answered with 400, not a schema error
    action: Optional[str] = None
    new_plan_id: Optional[str] = Field(None, validation_alias=AliasChoices("newPlanId", "new_plan_id"))


class ManageSubscriptionResponse(BaseModel):
    success: bool = True
    data: Any = None


class VerifyOrderRequest(BaseModel):
    """Checkout confirmation for a one-time order."""

    order_id: Optional[str] = Field(None, validation_alias=AliasChoices("orderId", "razorpay_order_id"))
    payment_id: Optional[str] = Field(None, validation_alias=AliasChoices("paymentId", "razorpay_payment_id"))
    signature: Optional[str] = Field(None, validation_alias=AliasChoices("signature", "razorpay_signature"))
    user_id: Optional[str] = Field(None, validation_alias=AliasChoices("userId", "user_id"))


class VerifySubscriptionRequest(BaseModel):
    """Checkout confirmation for a recurring subscription."""

    subscription_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("subscriptionId", "razorpay_subscription_id")
    )
    payment_id: Optional[str] = Field(None, validation_alias=AliasChoices("paymentId", "razorpay_payment_id"))
    signature: Optional[str] = Field(None, validation_alias=AliasChoices("signature", "razorpay_signature"))
    user_id: Optional[str] = Field(None, validation_alias=AliasChoices("userId", "user_id"))


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    message: str = "Payment verified and subscription activated"


class PlanInfo(BaseModel):
    name: str
    plan: str
    amount: int
    currency: str
    description: Optional[str] = None


class PlansResponse(BaseModel):
    success: bool = True
    plans: List[PlanInfo]


class TransactionsResponse(BaseModel):
    success: bool = True
    transactions: List[Dict[str, Any]]


class TransactionResponse(BaseModel):
    success: bool = True
    transaction: Dict[str, Any]
