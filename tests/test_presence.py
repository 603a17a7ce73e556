"""
Presence tracker: online flag, last-seen stamping and failure handling.
"""
import asyncio
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from messenger.core.database import SessionLocal
from messenger.crud import profile_crud
from messenger.model import Profile
from messenger.service.presence_tracker import PresenceTracker


def _profile(user_id):
    db = SessionLocal()
    try:
        return db.query(Profile).filter(Profile.user_id == user_id).one()
    finally:
        db.close()


class TestSetPresence:
    def test_online_sets_flag_and_keeps_last_seen(self, presence, alice):
        before = _profile(alice.id).last_seen

        assert presence.set_presence(alice.id, True) is True

        profile = _profile(alice.id)
        assert profile.is_online is True
        assert profile.status == "online"
        assert profile.last_seen == before

    def test_offline_stamps_last_seen(self, presence, make_user):
        user = make_user("dave@example.com", is_online=True)
        before = _profile(user.id).last_seen

        assert presence.set_presence(user.id, False) is True

        profile = _profile(user.id)
        assert profile.is_online is False
        assert profile.status == "offline"
        assert profile.last_seen.replace(tzinfo=None) >= before.replace(tzinfo=None)

    def test_repeated_online_writes_are_harmless(self, presence, alice):
        assert presence.set_presence(alice.id, True)
        assert presence.set_presence(alice.id, True)
        assert _profile(alice.id).is_online is True

    def test_missing_profile_is_reported_not_raised(self, presence, make_user):
        user = make_user("nobody@example.com", with_profile=False)
        assert presence.set_presence(user.id, True) is False


class TestFailures:
    def test_retries_once_then_succeeds(self, alice):
        tracker = PresenceTracker(attempts=2)
        real = profile_crud.update_user_status
        calls = []

        def flaky(db, **kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise OperationalError("UPDATE profiles", {}, Exception("database is locked"))
            return real(db, **kwargs)

        with patch.object(profile_crud, "update_user_status", side_effect=flaky):
            assert tracker.set_presence(alice.id, True) is True
        assert len(calls) == 2
        assert _profile(alice.id).is_online is True

    def test_gives_up_without_raising(self, alice):
        tracker = PresenceTracker(attempts=2)
        error = OperationalError("UPDATE profiles", {}, Exception("disk I/O error"))
        with patch.object(profile_crud, "update_user_status", side_effect=error) as update:
            assert tracker.set_presence(alice.id, False) is False
        assert update.call_count == 2


class TestFireAndForget:
    def test_without_loop_writes_inline(self, presence, alice):
        presence.fire_and_forget(alice.id, True)
        assert _profile(alice.id).is_online is True

    def test_inside_loop_returns_before_writing(self, presence, alice):
        async def scenario():
            presence.fire_and_forget(alice.id, True)
            written_before = _profile(alice.id).is_online
            await asyncio.sleep(0)
            return written_before, _profile(alice.id).is_online

        before, after = asyncio.run(scenario())
        assert before is False
        assert after is True
