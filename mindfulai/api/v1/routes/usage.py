from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mindfulai.core.config import Settings, get_settings
from mindfulai.db.session import get_db
from mindfulai.schemas.usage import (
    IncrementUsageRequest,
    ProvisionResponse,
    UsageDecisionResponse,
    UsageSummaryResponse,
)
from mindfulai.services.usage_service import UsageService

router = APIRouter(tags=["usage"])


@router.get("/{user_id}", response_model=UsageSummaryResponse)
def get_usage(user_id: str, db: Session = Depends(get_db), config: Settings = Depends(get_settings)):
    """Plan, limits and this period's usage for the user."""
    return UsageSummaryResponse(**UsageService(db, config).get_usage(user_id))


@router.post("/{user_id}/increment", response_model=UsageDecisionResponse)
def increment_usage(
    user_id: str,
    body: IncrementUsageRequest,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    """
    Counts one use of a metered feature if the user still has allowance.

    `allowed: false` is a normal answer, not an error: the caller decides
    whether to show an upgrade prompt.
    """
    decision = UsageService(db, config).check_and_increment(user_id, body.feature or "")
    return UsageDecisionResponse(**decision.to_dict())


@router.post("/{user_id}/provision", response_model=ProvisionResponse)
def provision_free_tier(user_id: str, db: Session = Depends(get_db), config: Settings = Depends(get_settings)):
    subscription = UsageService(db, config).provision_free_tier(user_id)
    return ProvisionResponse(
        plan=subscription.plan,
        planName=subscription.plan_name,
        status=subscription.status,
    )
