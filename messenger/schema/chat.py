"""
Chat schemas: rooms, directory entries and messages.
"""
from datetime import datetime
from typing import List, Optional
import uuid
from pydantic import BaseModel, Field

from messenger.core.config import settings


# --- Room ---

class DirectRoomBody(BaseModel):
    """Body for POST /chat/rooms/direct (find or create)."""
    other_user_id: uuid.UUID


class DirectRoomResponse(BaseModel):
    room_id: uuid.UUID


class LastMessagePreview(BaseModel):
    content: str
    created_at: datetime


class ConversationSummary(BaseModel):
    """One directory entry, already resolved for the viewing user."""
    id: uuid.UUID
    is_group: bool
    display_name: str
    display_avatar: Optional[str] = None
    last_message: Optional[LastMessagePreview] = None
    updated_at: datetime


class ConversationListResponse(BaseModel):
    items: List[ConversationSummary]


class ParticipantInfo(BaseModel):
    user_id: uuid.UUID
    username: Optional[str] = None
    display_name: str
    avatar_url: Optional[str] = None
    is_online: bool = False
    last_seen: Optional[datetime] = None


class RoomResponse(BaseModel):
    """Open-conversation header: room plus its participants."""
    id: uuid.UUID
    name: Optional[str] = None
    is_group: bool
    display_name: str
    display_avatar: Optional[str] = None
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime
    participants: List[ParticipantInfo]


# --- Message ---

class MessageCreateBody(BaseModel):
    """Body for POST /chat/rooms/{room_id}/messages."""
    content: str = Field(..., max_length=settings.MESSAGE_MAX_LENGTH)
    client_message_id: Optional[str] = Field(None, max_length=100)


class SenderInfo(BaseModel):
    display_name: str
    username: str
    avatar_url: Optional[str] = None


class MessageResponse(BaseModel):
    id: int
    chat_room_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    message_type: str
    client_message_id: Optional[str] = None
    created_at: datetime
    sender: Optional[SenderInfo] = None

    class Config:
        from_attributes = True


class MessageListResponse(BaseModel):
    items: List[MessageResponse]
