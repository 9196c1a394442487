from typing import List, Optional

from sqlalchemy.orm import Session

from mindfulai.models.payment_transaction import PaymentTransaction


class PaymentTransactionRepository:
    """Append and read only: ledger rows are immutable."""

    def __init__(self, db: Session):
        self.db = db

    def append(self, transaction: PaymentTransaction) -> PaymentTransaction:
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def list_by_user(self, user_id: str, limit: Optional[int] = None) -> List[PaymentTransaction]:
        q = (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.user_id == user_id)
            .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
        )
        if limit is not None:
            q = q.limit(limit)
        return q.all()

    def get_by_transaction_id(self, user_id: str, transaction_id: str) -> Optional[PaymentTransaction]:
        return (
            self.db.query(PaymentTransaction)
            .filter(
                PaymentTransaction.user_id == user_id,
                PaymentTransaction.transaction_id == transaction_id,
            )
            .order_by(PaymentTransaction.id.desc())
            .first()
        )

    def exists(self, user_id: str, provider: str, transaction_id: str) -> bool:
        return (
            self.db.query(PaymentTransaction.id)
            .filter(
                PaymentTransaction.user_id == user_id,
                PaymentTransaction.provider == provider,
                PaymentTransaction.transaction_id == transaction_id,
            )
            .first()
            is not None
        )
