"""
Message store: ordered reads with sender info, and appends that notify live subscribers.
"""
import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from messenger.chat.live_channel import LiveUpdateChannel, MESSAGE_INSERTED, live_channel
from messenger.core.config import settings
from messenger.core.exceptions import AppException, NotFound, NotParticipant, ServiceError
from messenger.crud import chat_participant_crud, chat_room_crud, message_crud, profile_crud
from messenger.model.message import Message
from messenger.schema.chat import MessageResponse, SenderInfo

logger = logging.getLogger(__name__)

UNKNOWN_SENDER = SenderInfo(display_name="Unknown User", username="unknown", avatar_url=None)


class MessageTooLong(AppException):
    code = "MESSAGE_TOO_LONG"
    message = f"Message content exceeds {settings.MESSAGE_MAX_LENGTH} characters."


def message_payload(msg: Message) -> dict:
    """Row as pushed to live subscribers (no sender display info)."""
    return {
        "id": msg.id,
        "chat_room_id": str(msg.chat_room_id),
        "sender_id": str(msg.sender_id),
        "content": msg.content,
        "message_type": msg.message_type,
        "client_message_id": msg.client_message_id,
        "created_at": msg.created_at.isoformat() if msg.created_at else None,
    }


class MessageStore:
    def __init__(self, db: Session, channel: LiveUpdateChannel = live_channel):
        self.db = db
        self.channel = channel

    def list_messages(self, room_id: uuid.UUID) -> List[MessageResponse]:
        """Messages oldest first, each with its sender's profile (one lookup for the batch)."""
        messages = message_crud.list_by_room(self.db, room_id=room_id)
        profiles = profile_crud.map_by_user_ids(self.db, user_ids={m.sender_id for m in messages})
        items = []
        for m in messages:
            profile = profiles.get(m.sender_id)
            sender = (
                SenderInfo(display_name=profile.display_name, username=profile.username, avatar_url=profile.avatar_url)
                if profile
                else UNKNOWN_SENDER
            )
            item = MessageResponse.model_validate(m)
            item.sender = sender
            items.append(item)
        return items

    def list_messages_for(self, room_id: uuid.UUID, reader_id: uuid.UUID) -> List[MessageResponse]:
        """list_messages restricted to participants (others see a missing room)."""
        if not chat_participant_crud.is_participant(self.db, room_id=room_id, user_id=reader_id):
            raise NotFound("Room")
        return self.list_messages(room_id)

    def send_message(
        self,
        room_id: uuid.UUID,
        sender_id: uuid.UUID,
        text: str,
        client_message_id: Optional[str] = None,
    ) -> Optional[Message]:
        """
        Append a text message. Blank text is ignored (None, nothing written).
        A repeated client_message_id returns the message stored the first time.

        Raises:
            NotParticipant: sender is not in the room
            MessageTooLong: content over MESSAGE_MAX_LENGTH
            ServiceError: the write failed
        """
        content = (text or "").strip()
        if not content:
            return None
        if len(content) > settings.MESSAGE_MAX_LENGTH:
            raise MessageTooLong()
        if not chat_participant_crud.is_participant(self.db, room_id=room_id, user_id=sender_id):
            raise NotParticipant()

        if client_message_id:
            existing = message_crud.get_by_client_id(
                self.db, room_id=room_id, sender_id=sender_id, client_message_id=client_message_id
            )
            if existing:
                return existing

        room = chat_room_crud.get_by_id(self.db, room_id=room_id)
        try:
            msg = message_crud.create_from_dict(
                self.db,
                obj_in={
                    "chat_room_id": room_id,
                    "sender_id": sender_id,
                    "content": content,
                    "message_type": "text",
                    "client_message_id": client_message_id,
                },
                commit=False,
            )
            room.updated_at = msg.created_at
            self.db.add(room)
            self.db.commit()
            self.db.refresh(msg)
        except IntegrityError:
            self.db.rollback()
            if client_message_id:
                existing = message_crud.get_by_client_id(
                    self.db, room_id=room_id, sender_id=sender_id, client_message_id=client_message_id
                )
                if existing:
                    return existing
            logger.exception(f"Failed to save message in room {room_id}")
            raise ServiceError("Failed to save message. Please try again.")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to save message in room {room_id}")
            raise ServiceError("Failed to save message. Please try again.")

        self.channel.publish_nowait(room_id, MESSAGE_INSERTED, message_payload(msg))
        return msg
