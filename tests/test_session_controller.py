"""
Session controller: identity lifecycle and its presence side effects.
"""
import uuid
from unittest.mock import MagicMock

import pytest

from messenger.service.auth_service import AuthService
from messenger.service.session_controller import (
    SIGNED_IN,
    SIGNED_OUT,
    CognitoSessionProvider,
    SessionController,
)
from messenger.session import create_session, get_session


class RecordingPresence:
    """Presence double that records calls, optionally failing."""

    def __init__(self, events, fail=False):
        self.events = events
        self.fail = fail

    def set_presence(self, user_id, online):
        self.events.append(("presence", user_id, online))
        if self.fail:
            raise RuntimeError("presence store down")
        return True


class FakeProvider:
    """Auth provider double with a settable session."""

    def __init__(self, events, session=None):
        self.events = events
        self.session = session
        self.listeners = []

    def get_session(self):
        return self.session

    def on_auth_state_change(self, listener):
        self.listeners.append(listener)

        def unsubscribe():
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    def emit(self, event, session):
        self.session = session
        for listener in list(self.listeners):
            listener(event, session)

    def sign_out(self):
        self.events.append(("provider_sign_out",))
        self.emit(SIGNED_OUT, None)


def _session(user_id):
    return {"user_id": str(user_id), "email": "someone@example.com", "token": "tok"}


class TestStart:
    def test_no_session_stops_loading(self):
        events = []
        controller = SessionController(FakeProvider(events), RecordingPresence(events))
        state = controller.start()

        assert state.loading is False
        assert state.identity is None
        assert events == []

    def test_restored_session_marks_online(self):
        events = []
        user_id = uuid.uuid4()
        controller = SessionController(FakeProvider(events, _session(user_id)), RecordingPresence(events))
        state = controller.start()

        assert state.identity == user_id
        assert state.loading is False
        assert events == [("presence", user_id, True)]

    def test_probe_and_event_in_either_order_converge(self):
        """A sign-in event plus the initial probe yield the same identity; duplicate online is fine."""
        events = []
        user_id = uuid.uuid4()
        provider = FakeProvider(events)
        controller = SessionController(provider, RecordingPresence(events))

        controller.start()
        provider.emit(SIGNED_IN, _session(user_id))
        controller.start()

        assert controller.identity == user_id
        assert events == [("presence", user_id, True), ("presence", user_id, True)]
        assert len(provider.listeners) == 1


class TestSignOut:
    def test_offline_before_provider_teardown(self):
        events = []
        user_id = uuid.uuid4()
        controller = SessionController(FakeProvider(events, _session(user_id)), RecordingPresence(events))
        controller.start()
        events.clear()

        controller.sign_out()

        assert events == [("presence", user_id, False), ("provider_sign_out",)]
        assert controller.identity is None

    def test_adopted_session_signs_out_without_online_write(self):
        events = []
        user_id = uuid.uuid4()
        controller = SessionController(FakeProvider(events), RecordingPresence(events))

        state = controller.adopt(_session(user_id))
        assert state.identity == user_id
        assert state.loading is False
        controller.sign_out()

        assert events == [("presence", user_id, False), ("provider_sign_out",)]

    def test_presence_failure_does_not_block_sign_out(self):
        events = []
        user_id = uuid.uuid4()
        provider = FakeProvider(events, _session(user_id))
        presence = RecordingPresence(events)
        controller = SessionController(provider, presence)
        controller.start()
        presence.fail = True

        controller.sign_out()

        assert ("provider_sign_out",) in events
        assert controller.identity is None

    def test_close_unsubscribes_once(self):
        events = []
        provider = FakeProvider(events)
        controller = SessionController(provider, RecordingPresence(events))
        controller.start()

        controller.close()
        controller.close()

        assert provider.listeners == []


class TestCognitoSessionProvider:
    def test_sign_in_opens_redis_session_and_notifies(self, db, alice, cognito):
        provider = CognitoSessionProvider(db, auth_service=AuthService(db, cognito=cognito))
        seen = []
        provider.on_auth_state_change(lambda event, session: seen.append((event, session)))

        response = provider.sign_in("alice@example.com", "pw")

        assert provider.token == response.access_token
        assert get_session(response.access_token)["user_id"] == str(alice.id)
        assert seen[0][0] == SIGNED_IN
        assert seen[0][1]["token"] == response.access_token

    def test_sign_out_removes_session_and_calls_cognito(self, db, alice, cognito):
        create_session("tok-1", {"user_id": str(alice.id), "email": alice.email, "access_token": "acc-1"})
        provider = CognitoSessionProvider(db, token="tok-1", auth_service=AuthService(db, cognito=cognito))
        seen = []
        provider.on_auth_state_change(lambda event, session: seen.append(event))

        provider.sign_out()

        assert get_session("tok-1") is None
        cognito.global_sign_out.assert_called_once_with("acc-1")
        assert seen == [SIGNED_OUT]

    def test_redis_outage_reads_as_signed_out(self, db, broken_redis):
        provider = CognitoSessionProvider(db, token="tok-1", auth_service=MagicMock())
        assert provider.get_session() is None

    def test_controller_end_to_end(self, db, alice, cognito, presence):
        provider = CognitoSessionProvider(db, auth_service=AuthService(db, cognito=cognito))
        controller = SessionController(provider, presence)
        controller.start()

        controller.sign_in("alice@example.com", "pw")
        assert controller.identity == alice.id

        db.expire_all()
        assert alice.profile.is_online is True

        controller.sign_out()
        db.expire_all()
        assert controller.identity is None
        assert alice.profile.is_online is False

    @pytest.mark.parametrize("code", ["NotAuthorizedException", "UserNotFoundException"])
    def test_bad_credentials(self, db, alice, cognito, code):
        from botocore.exceptions import ClientError
        from messenger.core.exceptions import InvalidCredentials

        cognito.initiate_auth.side_effect = ClientError(
            {"Error": {"Code": code, "Message": "nope"}}, "InitiateAuth"
        )
        provider = CognitoSessionProvider(db, auth_service=AuthService(db, cognito=cognito))
        with pytest.raises(InvalidCredentials):
            provider.sign_in("alice@example.com", "wrong")
        assert provider.token is None
