"""
Chat room CRUD.
"""
from typing import Any, Dict, List, Optional
import uuid
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc

from messenger.model.chat_room import ChatRoom
from messenger.model.chat_participant import ChatParticipant
from messenger.crud.base import CRUDBase


class CRUDChatRoom(CRUDBase[ChatRoom, Dict[str, Any], Dict[str, Any]]):
    def get_by_id(self, db: Session, *, room_id: uuid.UUID) -> Optional[ChatRoom]:
        return db.query(self.model).filter(self.model.id == room_id).first()

    def get_by_pair_key(self, db: Session, *, pair_key: str) -> Optional[ChatRoom]:
        return db.query(self.model).filter(self.model.direct_pair_key == pair_key).first()

    def find_direct_between(
        self, db: Session, *, user_a: uuid.UUID, user_b: uuid.UUID
    ) -> Optional[ChatRoom]:
        """
        Earliest-created non-group room that both users participate in.
        Covers rooms that predate the pair key.
        """
        rooms_a = db.query(ChatParticipant.chat_room_id).filter(ChatParticipant.user_id == user_a)
        rooms_b = db.query(ChatParticipant.chat_room_id).filter(ChatParticipant.user_id == user_b)
        return (
            db.query(self.model)
            .filter(
                self.model.is_group.is_(False),
                self.model.id.in_(rooms_a),
                self.model.id.in_(rooms_b),
            )
            .order_by(self.model.created_at, self.model.id)
            .first()
        )

    def list_rooms_for_user(self, db: Session, *, user_id: uuid.UUID) -> List[ChatRoom]:
        """Rooms the user participates in, most recently active first, participants preloaded."""
        subq = db.query(ChatParticipant.chat_room_id).filter(ChatParticipant.user_id == user_id)
        return (
            db.query(self.model)
            .options(selectinload(self.model.participants))
            .filter(self.model.id.in_(subq))
            .order_by(desc(self.model.updated_at), desc(self.model.created_at))
            .all()
        )


chat_room_crud = CRUDChatRoom(ChatRoom)
