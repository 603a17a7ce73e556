"""
Conversation directory: the caller's rooms as display-ready summaries.
"""
import logging
import uuid
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from messenger.core.config import settings
from messenger.core.exceptions import NotFound
from messenger.crud import chat_participant_crud, chat_room_crud, message_crud, profile_crud
from messenger.model.chat_room import ChatRoom
from messenger.model.message import Message
from messenger.model.profile import Profile
from messenger.schema.chat import (
    ConversationSummary,
    LastMessagePreview,
    ParticipantInfo,
    RoomResponse,
)

logger = logging.getLogger(__name__)

GROUP_FALLBACK_NAME = "Group Chat"
UNKNOWN_USER = "Unknown User"


def _preview(message: Optional[Message]) -> Optional[LastMessagePreview]:
    if message is None:
        return None
    limit = settings.MESSAGE_PREVIEW_LENGTH
    content = message.content[:limit] + ("..." if len(message.content) > limit else "")
    return LastMessagePreview(content=content, created_at=message.created_at)


def _other_participant(room: ChatRoom, self_id: uuid.UUID, profiles: Dict[uuid.UUID, Profile]) -> Optional[Profile]:
    for participant in room.participants:
        if participant.user_id != self_id:
            return profiles.get(participant.user_id)
    return None


def display_for(room: ChatRoom, self_id: uuid.UUID, profiles: Dict[uuid.UUID, Profile]):
    """(display_name, display_avatar) of a room as seen by self_id."""
    if room.is_group:
        return room.name or GROUP_FALLBACK_NAME, None
    other = _other_participant(room, self_id, profiles)
    if other is None:
        return UNKNOWN_USER, None
    return other.display_name, other.avatar_url


class ConversationDirectory:
    def __init__(self, db: Session):
        self.db = db

    def list_conversations(self, self_id: uuid.UUID) -> List[ConversationSummary]:
        """Rooms of self_id, most recently active first."""
        rooms = chat_room_crud.list_rooms_for_user(self.db, user_id=self_id)
        other_ids = {
            p.user_id
            for room in rooms
            if not room.is_group
            for p in room.participants
            if p.user_id != self_id
        }
        profiles = profile_crud.map_by_user_ids(self.db, user_ids=other_ids)
        latest = message_crud.latest_by_rooms(self.db, room_ids=[r.id for r in rooms])

        items = []
        for room in rooms:
            name, avatar = display_for(room, self_id, profiles)
            items.append(
                ConversationSummary(
                    id=room.id,
                    is_group=room.is_group,
                    display_name=name,
                    display_avatar=avatar,
                    last_message=_preview(latest.get(room.id)),
                    updated_at=room.updated_at,
                )
            )
        return items

    def list_profiles(self, self_id: uuid.UUID, search: Optional[str] = None) -> List[Profile]:
        """Everyone but self_id, for starting a new chat; search matches display name or username."""
        return profile_crud.search(self.db, exclude_user_id=self_id, search=search)

    def describe_room(self, room_id: uuid.UUID, self_id: uuid.UUID) -> RoomResponse:
        """Room header with every participant's profile and presence. Participants only."""
        if not chat_participant_crud.is_participant(self.db, room_id=room_id, user_id=self_id):
            raise NotFound("Room")
        room = chat_room_crud.get_by_id(self.db, room_id=room_id)
        if not room:
            raise NotFound("Room")

        profiles = profile_crud.map_by_user_ids(self.db, user_ids=[p.user_id for p in room.participants])
        participants = []
        for p in room.participants:
            profile = profiles.get(p.user_id)
            participants.append(
                ParticipantInfo(
                    user_id=p.user_id,
                    username=profile.username if profile else None,
                    display_name=profile.display_name if profile else UNKNOWN_USER,
                    avatar_url=profile.avatar_url if profile else None,
                    is_online=bool(profile and profile.is_online),
                    last_seen=profile.last_seen if profile else None,
                )
            )
        name, avatar = display_for(room, self_id, profiles)
        return RoomResponse(
            id=room.id,
            name=room.name,
            is_group=room.is_group,
            display_name=name,
            display_avatar=avatar,
            created_by=room.created_by,
            created_at=room.created_at,
            updated_at=room.updated_at,
            participants=participants,
        )
