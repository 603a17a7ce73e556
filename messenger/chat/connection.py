"""
One chat WebSocket: session, directory and open conversation for a single tab.
"""
import json
import logging
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import HTTPException, WebSocket
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from messenger.chat.live_channel import LiveUpdateChannel
from messenger.chat.viewers import ConversationViewer, DirectoryViewer
from messenger.service.presence_tracker import PresenceTracker
from messenger.service.session_controller import CognitoSessionProvider, SessionController

logger = logging.getLogger(__name__)

# Close code for a socket opened without a valid session
CLOSE_UNAUTHENTICATED = 4001

# Matches the messages.client_message_id column
CLIENT_MESSAGE_ID_MAX_LENGTH = 100


class ChatConnection:
    def __init__(
        self,
        websocket: WebSocket,
        token: Optional[str],
        session_factory: Callable[[], Session],
        channel: LiveUpdateChannel,
        presence: PresenceTracker,
    ) -> None:
        self.websocket = websocket
        self.session_factory = session_factory
        self.channel = channel
        self.presence = presence
        self._db = session_factory()
        self.controller = SessionController(CognitoSessionProvider(self._db, token=token), presence)
        self.directory: Optional[DirectoryViewer] = None
        self.conversation: Optional[ConversationViewer] = None
        self.closed = False

    @property
    def user_id(self) -> Optional[uuid.UUID]:
        return self.controller.identity

    async def send_event(self, event: str, data: Dict[str, Any]) -> None:
        await self.websocket.send_text(json.dumps({"event": event, **data}, default=str))

    async def send_error(self, code: str, message: str) -> None:
        try:
            await self.send_event("error", {"code": code, "message": message})
        except Exception as e:
            logger.debug("Error event not delivered: %s", e)

    async def start(self) -> bool:
        """Resolve the session; False (socket closed with 4001) when there is none."""
        state = self.controller.start()
        if state.identity is None:
            await self.websocket.close(code=CLOSE_UNAUTHENTICATED)
            self.close()
            return False
        self.directory = DirectoryViewer(state.identity, self.session_factory, self.channel, self.send_event)
        self.conversation = ConversationViewer(state.identity, self.session_factory, self.channel, self.send_event)
        await self.directory.refresh()
        return True

    async def handle(self, raw: str) -> None:
        try:
            obj = json.loads(raw)
        except json.JSONDecodeError:
            await self.send_error("INVALID_JSON", "Request body must be valid JSON.")
            return
        if not isinstance(obj, dict):
            await self.send_error("INVALID_JSON", "Request body must be a JSON object.")
            return

        action = obj.get("action")
        try:
            if action == "open":
                room_id = self._room_id(obj.get("room_id"))
                if room_id is None:
                    await self.send_error("INVALID_ROOM_ID", "room_id must be a valid UUID.")
                    return
                await self.conversation.open(room_id)
            elif action == "close":
                self.conversation.close()
            elif action == "send":
                content, client_message_id = obj.get("content"), obj.get("client_message_id")
                if not isinstance(content, (str, type(None))):
                    await self.send_error("INVALID_CONTENT", "content must be a string.")
                    return
                if client_message_id is not None and not (
                    isinstance(client_message_id, str) and len(client_message_id) <= CLIENT_MESSAGE_ID_MAX_LENGTH
                ):
                    await self.send_error(
                        "INVALID_CLIENT_MESSAGE_ID",
                        f"client_message_id must be a string of at most {CLIENT_MESSAGE_ID_MAX_LENGTH} characters.",
                    )
                    return
                msg = await self.conversation.send(content or "", client_message_id)
                if msg is not None:
                    await self.send_event("message_sent", {"message": msg.model_dump(mode="json")})
            elif action == "refresh":
                await self.directory.refresh()
                await self.conversation.refresh()
            else:
                await self.send_error("UNKNOWN_ACTION", "Expected action: open, close, send, or refresh.")
        except HTTPException as e:
            detail = e.detail if isinstance(e.detail, dict) else {"code": "ERROR", "message": str(e.detail)}
            await self.send_error(detail.get("code", "ERROR"), detail.get("message", ""))
        except SQLAlchemyError:
            logger.exception("Chat action %s failed for user_id=%s", action, self.user_id)
            await self.send_error("SERVICE_ERROR", "Service temporarily unavailable. Please try again.")

    @staticmethod
    def _room_id(value: Any) -> Optional[uuid.UUID]:
        try:
            return uuid.UUID(str(value))
        except (ValueError, TypeError):
            return None

    def close(self) -> None:
        """Tear down subscriptions and mark the user offline. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        if self.user_id is not None:
            self.presence.fire_and_forget(self.user_id, False)
        if self.conversation is not None:
            self.conversation.close()
        if self.directory is not None:
            self.directory.close()
        self.controller.close()
        self._db.close()
