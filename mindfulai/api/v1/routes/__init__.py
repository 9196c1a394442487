from fastapi import APIRouter

from mindfulai.api.v1.routes import payment, usage

router = APIRouter()
router.include_router(payment.router, prefix="/payment")
router.include_router(usage.router, prefix="/usage")
