from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./mindfulai.db"

    # App Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "MindfulAI Backend"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Razorpay Integration
    RAZORPAY_API_BASE: str = "https://api.razorpay.com/v1"
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_SUBSCRIPTION_PLAN_ID: str = "plan_QnOsvZeQp2d6Ht"
    RAZORPAY_SUBSCRIPTION_TOTAL_COUNT: int = 12

    # Upper bound for any single call to the payment provider (seconds).
    # A timeout fails the request but does not cancel the provider-side action.
    GATEWAY_TIMEOUT_SECONDS: float = 30.0

    # When enabled, a repeated (provider, transaction_id) for the same user is a no-op.
    PAYMENT_DEDUPLICATE_CALLBACKS: bool = False

    # Length of one paid or free billing window, in days
    BILLING_PERIOD_DAYS: int = 30

    # Purchasable plans, keyed by the display name the checkout sends
    PAYMENT_PLANS: Dict[str, Dict[str, Any]] = {
        "The depressed one": {
            "plan": "pro",
            "amount": 35000,  # 350 INR in paise
            "currency": "INR",
            "description": "MindfulAI Pro Subscription",
        },
    }

    FREE_PLAN_NAME: str = "The sad one"
    FREE_PLAN_LIMITS: Dict[str, int] = {
        "videoSessions": 2,
        "voiceCalls": 3,
        "chatMessages": 50,
    }

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    def get_payment_plan(self, plan_name: str) -> Optional[Dict[str, Any]]:
        """Return the catalog entry for a plan name or None if it is not sold."""
        return self.PAYMENT_PLANS.get(plan_name)

    def get_all_payment_plans(self) -> Dict[str, Dict[str, Any]]:
        return self.PAYMENT_PLANS.copy()

    @property
    def default_paid_plan_name(self) -> str:
        return next(iter(self.PAYMENT_PLANS))

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()


def get_settings() -> Settings:
    """Dependency hook so routes receive configuration by injection."""
    return settings
