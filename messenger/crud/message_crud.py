"""
Message CRUD.
"""
from typing import Any, Dict, Iterable, List, Optional
import uuid
from sqlalchemy.orm import Session
from sqlalchemy import func

from messenger.model.message import Message
from messenger.crud.base import CRUDBase


class CRUDMessage(CRUDBase[Message, Dict[str, Any], Dict[str, Any]]):
    def list_by_room(self, db: Session, *, room_id: uuid.UUID) -> List[Message]:
        """All messages of a room, oldest first; equal timestamps fall back to insertion order."""
        return (
            db.query(self.model)
            .filter(self.model.chat_room_id == room_id)
            .order_by(self.model.created_at.asc(), self.model.id.asc())
            .all()
        )

    def get_by_client_id(
        self, db: Session, *, room_id: uuid.UUID, sender_id: uuid.UUID, client_message_id: str
    ) -> Optional[Message]:
        return (
            db.query(self.model)
            .filter(
                self.model.chat_room_id == room_id,
                self.model.sender_id == sender_id,
                self.model.client_message_id == client_message_id,
            )
            .first()
        )

    def latest_by_rooms(self, db: Session, *, room_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Message]:
        """Newest message per room in one query; rooms without messages are absent."""
        ids = list(room_ids)
        if not ids:
            return {}
        newest = (
            db.query(func.max(self.model.id).label("id"))
            .filter(self.model.chat_room_id.in_(ids))
            .group_by(self.model.chat_room_id)
            .subquery()
        )
        rows = db.query(self.model).join(newest, self.model.id == newest.c.id).all()
        return {m.chat_room_id: m for m in rows}


message_crud = CRUDMessage(Message)
