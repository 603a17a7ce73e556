"""
Per-connection viewers driven end to end through the live channel.
"""
import asyncio
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from messenger.chat.live_channel import user_topic
from messenger.chat.viewers import ConversationViewer, DirectoryViewer
from messenger.core.config import settings
from messenger.core.database import SessionLocal
from messenger.core.exceptions import NotFound, ServiceError
from messenger.service.direct_chat_resolver import DirectChatResolver
from messenger.service.message_store import MessageStore, MessageTooLong


class Recorder:
    def __init__(self):
        self.events = []

    async def __call__(self, event, data):
        self.events.append((event, data))

    def names(self):
        return [name for name, _ in self.events]


def _broken_session_factory():
    session = MagicMock()
    session.query.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))
    return lambda: session


class TestDirectoryViewer:
    def test_refresh_lists_rooms_and_follows_them(self, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        notify = Recorder()
        viewer = DirectoryViewer(alice.id, SessionLocal, channel, notify)

        summaries = asyncio.run(viewer.refresh())

        assert [s.id for s in summaries] == [room.id]
        assert notify.names() == ["directory"]
        assert channel.subscriber_count(room.id) == 1
        assert channel.subscriber_count(user_topic(alice.id)) == 1

    def test_new_message_refreshes_preview(self, db, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        viewer = DirectoryViewer(alice.id, SessionLocal, channel)

        async def scenario():
            await viewer.refresh()
            MessageStore(db, channel).send_message(room.id, bob.id, "are you there?")
            await channel.drain()

        asyncio.run(scenario())
        assert viewer.summaries[0].last_message.content == "are you there?"

    def test_room_created_elsewhere_appears(self, db, channel, alice, bob):
        directory = DirectoryViewer(alice.id, SessionLocal, channel)

        async def scenario():
            await directory.refresh()
            assert directory.summaries == []
            room_id = DirectChatResolver(db, channel).resolve(bob.id, alice.id)
            await channel.drain()
            return room_id

        room_id = asyncio.run(scenario())
        assert [s.id for s in directory.summaries] == [room_id]
        assert channel.subscriber_count(room_id) == 1

    def test_read_failure_keeps_previous_list(self, channel, make_room, alice, bob):
        make_room(alice, bob)
        notify = Recorder()
        viewer = DirectoryViewer(alice.id, SessionLocal, channel, notify)
        before = asyncio.run(viewer.refresh())

        viewer.session_factory = _broken_session_factory()
        after = asyncio.run(viewer.refresh())

        assert after == before
        assert notify.names() == ["directory"]

    def test_close_drops_every_subscription(self, channel, make_room, alice, bob):
        make_room(alice, bob)
        viewer = DirectoryViewer(alice.id, SessionLocal, channel)
        asyncio.run(viewer.refresh())

        viewer.close()
        viewer.close()
        assert channel.subscriber_count() == 0


class TestConversationViewer:
    def test_open_loads_messages(self, db, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        MessageStore(db, channel).send_message(room.id, bob.id, "hello")
        notify = Recorder()
        viewer = ConversationViewer(alice.id, SessionLocal, channel, notify)

        messages = asyncio.run(viewer.open(room.id))

        assert [m.content for m in messages] == ["hello"]
        assert messages[0].sender.display_name == "Bob"
        assert notify.names() == ["messages"]

    def test_incoming_message_triggers_refetch(self, db, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)

        async def scenario():
            await viewer.open(room.id)
            MessageStore(db, channel).send_message(room.id, bob.id, "ping")
            await channel.drain()

        asyncio.run(scenario())
        assert [(m.content, m.sender.display_name) for m in viewer.messages] == [("ping", "Bob")]

    def test_switching_rooms_closes_previous_subscription(self, channel, make_room, alice, bob, carol):
        with_bob = make_room(alice, bob)
        with_carol = make_room(alice, carol)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)

        async def scenario():
            await viewer.open(with_bob.id)
            await viewer.open(with_carol.id)

        asyncio.run(scenario())
        assert channel.subscriber_count(with_bob.id) == 0
        assert channel.subscriber_count(with_carol.id) == 1
        assert viewer.room_id == with_carol.id

    def test_messages_for_closed_room_are_ignored(self, db, channel, make_room, alice, bob, carol):
        with_bob = make_room(alice, bob)
        with_carol = make_room(alice, carol)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)

        async def scenario():
            await viewer.open(with_bob.id)
            await viewer.open(with_carol.id)
            MessageStore(db, channel).send_message(with_bob.id, bob.id, "elsewhere")
            await channel.drain()

        asyncio.run(scenario())
        assert viewer.messages == []

    def test_open_foreign_room_fails_and_keeps_state(self, channel, make_room, alice, bob, carol):
        mine = make_room(alice, bob)
        foreign = make_room(bob, carol)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)
        asyncio.run(viewer.open(mine.id))

        with pytest.raises(NotFound):
            asyncio.run(viewer.open(foreign.id))
        assert viewer.room_id == mine.id
        assert channel.subscriber_count(foreign.id) == 0

    def test_membership_check_failure_keeps_current_room(self, channel, make_room, alice, bob, carol):
        mine = make_room(alice, bob)
        other = make_room(alice, carol)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)
        asyncio.run(viewer.open(mine.id))

        viewer.session_factory = _broken_session_factory()
        with pytest.raises(ServiceError):
            asyncio.run(viewer.open(other.id))
        assert viewer.room_id == mine.id
        assert channel.subscriber_count(mine.id) == 1
        assert channel.subscriber_count(other.id) == 0

    def test_send_confirms_and_clears_pending(self, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)

        async def scenario():
            await viewer.open(room.id)
            sent = await viewer.send("hi bob", client_message_id="c-1")
            await channel.drain()
            return sent

        sent = asyncio.run(scenario())
        assert sent.content == "hi bob"
        assert viewer.pending == {}
        assert [m.id for m in viewer.visible_messages] == [sent.id]
        assert viewer.messages[0].sender.display_name == "Alice"

    def test_blank_send_is_noop(self, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)

        async def scenario():
            await viewer.open(room.id)
            return await viewer.send("   ")

        assert asyncio.run(scenario()) is None
        assert viewer.visible_messages == []

    def test_send_while_in_flight_is_ignored(self, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)
        asyncio.run(viewer.open(room.id))
        viewer.sending = True

        assert asyncio.run(viewer.send("again")) is None

    def test_sending_flag_spans_the_store_call(self, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)
        asyncio.run(viewer.open(room.id))
        seen = []
        channel.subscribe(room.id, lambda event: seen.append(viewer.sending))

        asyncio.run(viewer.send("guarded"))

        assert seen == [True]
        assert viewer.sending is False

    def test_failed_send_withdraws_optimistic_entry(self, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)
        asyncio.run(viewer.open(room.id))

        with pytest.raises(MessageTooLong):
            asyncio.run(viewer.send("z" * (settings.MESSAGE_MAX_LENGTH + 1), client_message_id="c-9"))
        assert viewer.pending == {}
        assert viewer.sending is False

    def test_read_failure_keeps_previous_messages(self, db, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        MessageStore(db, channel).send_message(room.id, bob.id, "kept")
        viewer = ConversationViewer(alice.id, SessionLocal, channel)
        asyncio.run(viewer.open(room.id))

        viewer.session_factory = _broken_session_factory()
        assert [m.content for m in asyncio.run(viewer.refresh())] == ["kept"]

    def test_close_is_idempotent(self, channel, make_room, alice, bob):
        room = make_room(alice, bob)
        viewer = ConversationViewer(alice.id, SessionLocal, channel)
        asyncio.run(viewer.open(room.id))

        viewer.close()
        viewer.close()
        assert channel.subscriber_count() == 0
        assert viewer.room_id is None


class TestEndToEnd:
    def test_message_reaches_recipient_views(self, channel, make_room, alice, bob, carol):
        """A says "hi" in R; B's open conversation and B's directory both catch up, R moves to the top."""
        room = make_room(alice, bob)
        older = make_room(bob, carol)
        bob_directory = DirectoryViewer(bob.id, SessionLocal, channel)
        bob_conversation = ConversationViewer(bob.id, SessionLocal, channel)
        alice_conversation = ConversationViewer(alice.id, SessionLocal, channel)

        async def scenario():
            await bob_directory.refresh()
            await bob_conversation.open(room.id)
            await alice_conversation.open(room.id)
            db = SessionLocal()
            try:
                MessageStore(db, channel).send_message(older.id, carol.id, "earlier elsewhere")
            finally:
                db.close()
            await channel.drain()
            assert bob_directory.summaries[0].id == older.id

            await alice_conversation.send("hi")
            await channel.drain()

        asyncio.run(scenario())

        assert [(m.content, m.sender_id) for m in bob_conversation.messages] == [("hi", alice.id)]
        assert bob_conversation.messages[0].sender.display_name == "Alice"
        top = bob_directory.summaries[0]
        assert top.id == room.id
        assert top.last_message.content == "hi"
