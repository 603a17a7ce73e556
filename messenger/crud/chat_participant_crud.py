"""
Chat participant CRUD.
"""
from typing import Any, Dict, Optional, Set
import uuid
from sqlalchemy.orm import Session

from messenger.model.chat_participant import ChatParticipant
from messenger.crud.base import CRUDBase


class CRUDChatParticipant(CRUDBase[ChatParticipant, Dict[str, Any], Dict[str, Any]]):
    def get_by_room_and_user(
        self, db: Session, *, room_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[ChatParticipant]:
        return (
            db.query(self.model)
            .filter(
                self.model.chat_room_id == room_id,
                self.model.user_id == user_id,
            )
            .first()
        )

    def is_participant(self, db: Session, *, room_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return self.get_by_room_and_user(db, room_id=room_id, user_id=user_id) is not None

    def user_ids_for_room(self, db: Session, *, room_id: uuid.UUID) -> Set[uuid.UUID]:
        rows = db.query(self.model.user_id).filter(self.model.chat_room_id == room_id).all()
        return {r[0] for r in rows}


chat_participant_crud = CRUDChatParticipant(ChatParticipant)
