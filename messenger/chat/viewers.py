"""
Per-connection viewers: what one browser tab is looking at.

DirectoryViewer keeps the room list fresh; ConversationViewer keeps the open
room's messages fresh. Both own their live subscriptions and refetch on
every notification, because pushed rows carry no sender display info. A
failed read keeps the previous state.
"""
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from messenger.chat.live_channel import LiveEvent, LiveUpdateChannel, Subscription, user_topic
from messenger.core.database import utcnow
from messenger.core.exceptions import NotFound, ServiceError
from messenger.crud import chat_participant_crud
from messenger.schema.chat import ConversationSummary, MessageResponse
from messenger.service.conversation_directory import ConversationDirectory
from messenger.service.message_store import MessageStore

logger = logging.getLogger(__name__)

Notify = Callable[[str, Dict[str, Any]], Awaitable[None]]


async def _discard(event: str, data: Dict[str, Any]) -> None:
    return None


class DirectoryViewer:
    def __init__(
        self,
        user_id: uuid.UUID,
        session_factory: Callable[[], Session],
        channel: LiveUpdateChannel,
        notify: Notify = _discard,
    ) -> None:
        self.user_id = user_id
        self.session_factory = session_factory
        self.channel = channel
        self.notify = notify
        self.summaries: List[ConversationSummary] = []
        self._subscriptions: Dict[Hashable, Subscription] = {}

    async def refresh(self) -> List[ConversationSummary]:
        db = self.session_factory()
        try:
            summaries = ConversationDirectory(db).list_conversations(self.user_id)
        except SQLAlchemyError:
            logger.exception("Directory refresh failed for user_id=%s", self.user_id)
            return self.summaries
        finally:
            db.close()

        self.summaries = summaries
        self._follow({s.id for s in summaries} | {user_topic(self.user_id)})
        await self.notify("directory", {"items": [s.model_dump(mode="json") for s in summaries]})
        return summaries

    def _follow(self, topics: set) -> None:
        """One subscription per room plus the user's own topic; drop rooms no longer listed."""
        for topic in list(self._subscriptions):
            if topic not in topics:
                self._subscriptions.pop(topic).close()
        for topic in topics:
            if topic not in self._subscriptions:
                self._subscriptions[topic] = self.channel.subscribe(topic, self._on_event)

    async def _on_event(self, event: LiveEvent) -> None:
        await self.refresh()

    def close(self) -> None:
        for subscription in self._subscriptions.values():
            subscription.close()
        self._subscriptions.clear()


class ConversationViewer:
    def __init__(
        self,
        user_id: uuid.UUID,
        session_factory: Callable[[], Session],
        channel: LiveUpdateChannel,
        notify: Notify = _discard,
    ) -> None:
        self.user_id = user_id
        self.session_factory = session_factory
        self.channel = channel
        self.notify = notify
        self.room_id: Optional[uuid.UUID] = None
        self.messages: List[MessageResponse] = []
        # Optimistic entries keyed by client_message_id until the refetch confirms them
        self.pending: Dict[str, MessageResponse] = {}
        self.sending = False
        self._subscription: Optional[Subscription] = None

    @property
    def visible_messages(self) -> List[MessageResponse]:
        return self.messages + list(self.pending.values())

    async def open(self, room_id: uuid.UUID) -> List[MessageResponse]:
        """
        Switch to room_id: the old subscription is closed before the new one opens.
        A failed membership check raises ServiceError and leaves the current room open.
        """
        db = self.session_factory()
        try:
            allowed = chat_participant_crud.is_participant(db, room_id=room_id, user_id=self.user_id)
        except SQLAlchemyError:
            logger.exception("Membership check failed for room %s", room_id)
            raise ServiceError()
        finally:
            db.close()

        if not allowed:
            raise NotFound("Room")

        self.close()
        self.room_id = room_id
        self._subscription = self.channel.subscribe(room_id, self._on_insert)
        return await self.refresh()

    async def refresh(self) -> List[MessageResponse]:
        if self.room_id is None:
            return []
        room_id = self.room_id
        db = self.session_factory()
        try:
            messages = MessageStore(db, self.channel).list_messages(room_id)
        except SQLAlchemyError:
            logger.exception("Message refresh failed for room %s", room_id)
            return self.visible_messages
        finally:
            db.close()

        if room_id != self.room_id:
            # Switched away while loading
            return self.visible_messages
        self.messages = messages
        confirmed = {m.client_message_id for m in messages if m.client_message_id}
        for key in list(self.pending):
            if key in confirmed:
                del self.pending[key]
        await self.notify(
            "messages",
            {"room_id": str(room_id), "items": [m.model_dump(mode="json") for m in self.visible_messages]},
        )
        return self.visible_messages

    async def _on_insert(self, event: LiveEvent) -> None:
        await self.refresh()

    async def send(self, text: str, client_message_id: Optional[str] = None) -> Optional[MessageResponse]:
        """
        Send to the open room. Ignored while another send is in flight, for
        blank text, or with no room open. Errors from the store propagate after
        the optimistic entry is withdrawn.

        Nothing is awaited while `sending` is set: the store call is synchronous,
        so two sends on one loop never interleave and the flag is only visible
        to plain subscriber callbacks that publish_nowait runs inline.
        """
        if self.room_id is None or self.sending or not (text or "").strip():
            return None

        client_message_id = client_message_id or uuid.uuid4().hex
        self.sending = True
        db = self.session_factory()
        try:
            self.pending[client_message_id] = MessageResponse(
                id=0,
                chat_room_id=self.room_id,
                sender_id=self.user_id,
                content=text.strip(),
                message_type="text",
                client_message_id=client_message_id,
                created_at=utcnow(),
            )
            msg = MessageStore(db, self.channel).send_message(
                self.room_id, self.user_id, text, client_message_id=client_message_id
            )
            result = MessageResponse.model_validate(msg) if msg else None
        except Exception:
            self.pending.pop(client_message_id, None)
            raise
        finally:
            self.sending = False
            db.close()

        # The confirmed row replaces the optimistic one until the next refetch adds sender info
        self.pending.pop(client_message_id, None)
        if result is not None and all(m.id != result.id for m in self.messages):
            self.messages = sorted(self.messages + [result], key=lambda m: (m.created_at, m.id))
        return result

    def close(self) -> None:
        """Stop following the open room. Safe to call when nothing is open."""
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self.room_id = None
        self.messages = []
        self.pending = {}
