"""
Identity CRUD operations.
"""
from typing import Optional
from sqlalchemy.orm import Session
from messenger.model.user import User
from messenger.crud.base import CRUDBase


class CRUDUser(CRUDBase[User, dict, dict]):
    """Identity rows; passwords live in Cognito."""

    def get_by_email(self, db: Session, email: str) -> Optional[User]:
        return self.get_by_field(db, "email", email)


user_crud = CRUDUser(User)
