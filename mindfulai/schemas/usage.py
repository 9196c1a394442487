from typing import Any, Dict, Optional

from pydantic import BaseModel


class IncrementUsageRequest(BaseModel):
    """Metered feature to count: videoSessions, voiceCalls or chatMessages."""
    feature: Optional[str] = None


class UsageDecisionResponse(BaseModel):
    success: bool = True
    allowed: bool
    remaining: int
    limit: int
    current: int


class UsageSummaryResponse(BaseModel):
    success: bool = True
    plan: str
    planName: Optional[str] = None
    status: str
    currentPeriodEnd: Optional[str] = None
    limits: Dict[str, int]
    usage: Dict[str, Any]


class ProvisionResponse(BaseModel):
    success: bool = True
    plan: str
    planName: Optional[str] = None
    status: str
