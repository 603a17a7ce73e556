"""
Chat API: rooms and messages (REST). WebSocket in same module.
"""
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Response, WebSocket, WebSocketDisconnect, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from messenger.chat.connection import ChatConnection
from messenger.chat.live_channel import LiveUpdateChannel
from messenger.core.database import get_db, SessionLocal
from messenger.core.dependencies import current_user_id, get_live_channel, get_presence_tracker
from messenger.core.exceptions import ServiceError
from messenger.schema.chat import (
    ConversationListResponse,
    DirectRoomBody,
    DirectRoomResponse,
    MessageCreateBody,
    MessageListResponse,
    MessageResponse,
    RoomResponse,
)
from messenger.service.conversation_directory import ConversationDirectory
from messenger.service.direct_chat_resolver import DirectChatResolver
from messenger.service.message_store import MessageStore
from messenger.service.presence_tracker import PresenceTracker

router = APIRouter()
logger = logging.getLogger(__name__)


# --- REST: Rooms ---

@router.get("/rooms", response_model=ConversationListResponse)
async def list_rooms(
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Rooms the current user participates in, most recently active first."""
    try:
        items = ConversationDirectory(db).list_conversations(user_id)
    except SQLAlchemyError:
        logger.exception("Failed to list rooms for user_id=%s", user_id)
        raise ServiceError()
    return ConversationListResponse(items=items)


@router.post("/rooms/direct", response_model=DirectRoomResponse)
async def get_or_create_direct_room(
    body: DirectRoomBody,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
    channel: LiveUpdateChannel = Depends(get_live_channel),
):
    """The one direct room shared with other_user_id, created on first use."""
    room_id = DirectChatResolver(db, channel).resolve(user_id, body.other_user_id)
    return DirectRoomResponse(room_id=room_id)


@router.get("/rooms/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """One room with its participants (only if current user is participant)."""
    return ConversationDirectory(db).describe_room(room_id, user_id)


# --- REST: Messages ---

@router.get("/rooms/{room_id}/messages", response_model=MessageListResponse)
async def list_messages(
    room_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Every message of the room, oldest first, with sender info."""
    try:
        items = MessageStore(db).list_messages_for(room_id, user_id)
    except SQLAlchemyError:
        logger.exception("Failed to list messages for room %s", room_id)
        raise ServiceError()
    return MessageListResponse(items=items)


@router.post("/rooms/{room_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(
    room_id: uuid.UUID,
    body: MessageCreateBody,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
    channel: LiveUpdateChannel = Depends(get_live_channel),
):
    """Send a message. Whitespace-only content is ignored (204, nothing stored)."""
    msg = MessageStore(db, channel).send_message(
        room_id, user_id, body.content, client_message_id=body.client_message_id
    )
    if msg is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return MessageResponse.model_validate(msg)


# --- WebSocket ---

@router.websocket("/ws")
async def websocket_chat(
    websocket: WebSocket,
    token: Optional[str] = None,
    channel: LiveUpdateChannel = Depends(get_live_channel),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """
    Live directory and open conversation for one tab. Auth via query ?token=.

    Client actions: open {room_id}, close, send {content, client_message_id?}, refresh.
    Server events: directory, messages, message_sent, error.
    """
    await websocket.accept()
    connection = ChatConnection(websocket, token, SessionLocal, channel, presence)
    if not await connection.start():
        return
    logger.info("Chat socket opened for user_id=%s", connection.user_id)
    try:
        while True:
            data = await websocket.receive_text()
            await connection.handle(data)
    except WebSocketDisconnect:
        logger.info("Chat socket closed for user_id=%s", connection.user_id)
    except Exception as e:
        logger.warning("WebSocket closed: %s", e)
    finally:
        connection.close()
