from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from mindfulai.models.payment_transaction import PaymentTransaction
from mindfulai.repositories.payment_transaction_repository import PaymentTransactionRepository

MAX_PAGE_SIZE = 100


def serialize_transaction(transaction: PaymentTransaction) -> Dict[str, Any]:
    meta = dict(transaction.meta or {})
    # The raw signature stays server-side
    meta.pop("signature", None)
    return {
        "id": transaction.id,
        "userId": transaction.user_id,
        "provider": transaction.provider,
        "transactionId": transaction.transaction_id,
        "orderId": transaction.order_id,
        "amount": transaction.amount,
        "currency": transaction.currency,
        "status": transaction.status,
        "planName": transaction.plan_name,
        "metadata": meta,
        "createdAt": transaction.created_at.isoformat() if transaction.created_at else None,
    }


class TransactionService:
    def __init__(self, db: Session):
        self.repo = PaymentTransactionRepository(db)

    def list_for_user(self, user_id: str, limit: int = 20) -> List[PaymentTransaction]:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        return self.repo.list_by_user(user_id, limit=limit)

    def get_by_transaction_id(self, user_id: str, transaction_id: str) -> Optional[PaymentTransaction]:
        return self.repo.get_by_transaction_id(user_id, transaction_id)
