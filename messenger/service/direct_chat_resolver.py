"""
Direct-chat resolver: one direct room per unordered pair of users.

The pair key column carries a unique constraint, so creation is "try the
insert, and if another session won the race use its room" instead of
check-then-insert.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from messenger.chat.live_channel import LiveUpdateChannel, ROOM_ADDED, live_channel, user_topic
from messenger.core.exceptions import InvalidDirectChat, NotFound
from messenger.crud import chat_participant_crud, chat_room_crud, user_crud
from messenger.model.chat_room import ChatRoom, direct_pair_key

logger = logging.getLogger(__name__)


class DirectChatResolver:
    def __init__(self, db: Session, channel: LiveUpdateChannel = live_channel):
        self.db = db
        self.channel = channel

    def resolve(self, self_id: uuid.UUID, other_id: uuid.UUID) -> uuid.UUID:
        """Id of the direct room between the two users, created on first use."""
        if self_id == other_id:
            raise InvalidDirectChat("other_user_id cannot be yourself.")
        if not user_crud.get(self.db, other_id):
            raise NotFound("User")

        room = self._find(self_id, other_id)
        if room:
            self._reconcile(room, self_id, other_id)
            return room.id

        pair_key = direct_pair_key(self_id, other_id)
        try:
            room = chat_room_crud.create_from_dict(
                self.db,
                obj_in={"is_group": False, "created_by": self_id, "direct_pair_key": pair_key},
                commit=False,
            )
            for user_id in (self_id, other_id):
                chat_participant_crud.create_from_dict(
                    self.db, obj_in={"chat_room_id": room.id, "user_id": user_id}, commit=False
                )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            room = self._find(self_id, other_id)
            if room is None:
                raise
            logger.info(f"Direct room for {pair_key} created concurrently, using {room.id}")
            self._reconcile(room, self_id, other_id)
            return room.id

        logger.info(f"Direct room {room.id} created for {pair_key}")
        for user_id in (self_id, other_id):
            self.channel.publish_nowait(user_topic(user_id), ROOM_ADDED, {"room_id": str(room.id)})
        return room.id

    def _find(self, user_a: uuid.UUID, user_b: uuid.UUID) -> Optional[ChatRoom]:
        room = chat_room_crud.get_by_pair_key(self.db, pair_key=direct_pair_key(user_a, user_b))
        if room:
            return room
        # Rooms created before the pair key existed
        return chat_room_crud.find_direct_between(self.db, user_a=user_a, user_b=user_b)

    def _reconcile(self, room: ChatRoom, user_a: uuid.UUID, user_b: uuid.UUID) -> None:
        """Re-add a participant row missing from a half-created room."""
        present = chat_participant_crud.user_ids_for_room(self.db, room_id=room.id)
        missing = [u for u in (user_a, user_b) if u not in present]
        if not missing:
            return
        try:
            for user_id in missing:
                chat_participant_crud.create_from_dict(
                    self.db, obj_in={"chat_room_id": room.id, "user_id": user_id}, commit=False
                )
            self.db.commit()
        except IntegrityError:
            # Another session repaired it first
            self.db.rollback()
            return
        logger.warning(f"Reconciled direct room {room.id}: added participants {missing}")
        for user_id in missing:
            self.channel.publish_nowait(user_topic(user_id), ROOM_ADDED, {"room_id": str(room.id)})
