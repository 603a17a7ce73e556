"""
Profile CRUD: lookups, username availability and the presence write.
"""
from typing import Iterable, List, Optional
import uuid
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from messenger.core.database import utcnow
from messenger.model.profile import Profile
from messenger.crud.base import CRUDBase


class CRUDProfile(CRUDBase[Profile, dict, dict]):
    def get_by_user_id(self, db: Session, *, user_id: uuid.UUID) -> Optional[Profile]:
        return db.query(self.model).filter(self.model.user_id == user_id).first()

    def username_taken(self, db: Session, *, username: str) -> bool:
        return db.query(self.model.id).filter(self.model.username == username).first() is not None

    def map_by_user_ids(self, db: Session, *, user_ids: Iterable[uuid.UUID]) -> dict:
        """One query for all ids; returns {user_id: Profile}."""
        ids = set(user_ids)
        if not ids:
            return {}
        rows = db.query(self.model).filter(self.model.user_id.in_(ids)).all()
        return {p.user_id: p for p in rows}

    def search(
        self, db: Session, *, exclude_user_id: uuid.UUID, search: Optional[str] = None, limit: int = 50
    ) -> List[Profile]:
        """Profiles other than the caller, optionally filtered on display name or username."""
        base = db.query(self.model).filter(self.model.user_id != exclude_user_id)
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            base = base.filter(
                or_(
                    func.lower(self.model.display_name).like(term),
                    func.lower(self.model.username).like(term),
                )
            )
        return base.order_by(self.model.display_name).limit(limit).all()

    def update_user_status(self, db: Session, *, user_id: uuid.UUID, online: bool) -> bool:
        """
        Set is_online; stamp last_seen only when going offline.
        Returns False when the user has no profile.
        """
        values = {
            self.model.is_online: online,
            self.model.status: "online" if online else "offline",
        }
        if not online:
            values[self.model.last_seen] = utcnow()
        updated = (
            db.query(self.model)
            .filter(self.model.user_id == user_id)
            .update(values, synchronize_session="fetch")
        )
        db.commit()
        return updated > 0


profile_crud = CRUDProfile(Profile)
