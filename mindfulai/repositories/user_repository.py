from typing import Optional

from sqlalchemy.orm import Session

from mindfulai.models.user import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self.db.query(User).filter(User.id == user_id).first()
