"""
Shared fixtures.

The database is in-memory SQLite (one shared connection), Redis is replaced
by a dict-backed fake on the session layer, and Cognito by a MagicMock.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import itertools
import uuid
from typing import Optional
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from messenger.chat.live_channel import LiveUpdateChannel
from messenger.core.database import Base, SessionLocal, engine
from messenger.model import ChatParticipant, ChatRoom, Profile, User
from messenger.model.chat_room import direct_pair_key
from messenger.service.presence_tracker import PresenceTracker
from messenger.session import session_layer


class FakeRedis:
    """The slice of the redis.Redis API the session layer uses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def get(self, key):
        return self.store.get(key)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def exists(self, *keys):
        return sum(1 for key in keys if key in self.store)


class BrokenRedis:
    """Every call fails the way an unreachable server does."""

    def _fail(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    setex = get = delete = exists = _fail


# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    client = FakeRedis()
    monkeypatch.setattr(session_layer, "_redis_client", client)
    return client


@pytest.fixture
def broken_redis(monkeypatch):
    client = BrokenRedis()
    monkeypatch.setattr(session_layer, "_redis_client", client)
    return client


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def channel():
    return LiveUpdateChannel()


@pytest.fixture
def presence():
    return PresenceTracker(session_factory=SessionLocal, attempts=2)


@pytest.fixture
def cognito():
    """Cognito wrapper double; every sign-in hands out fresh tokens."""
    counter = itertools.count(1)
    mock = MagicMock()
    mock.sign_up.side_effect = lambda email, password, **attrs: {
        "user_sub": str(uuid.uuid4()),
        "username": f"cognito-{email}",
        "user_confirmed": False,
    }

    def initiate_auth(email, password):
        n = next(counter)
        return {
            "id_token": f"id-token-{n}",
            "access_token": f"access-token-{n}",
            "refresh_token": f"refresh-token-{n}",
            "expires_in": 3600,
        }

    mock.initiate_auth.side_effect = initiate_auth
    return mock


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_user(db):
    """Create an identity with its profile (offline unless asked otherwise)."""

    def _make(
        email: str,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
        with_profile: bool = True,
        is_online: bool = False,
    ) -> User:
        user = User(email=email, cognito_username=f"cognito-{email}")
        db.add(user)
        db.flush()
        if with_profile:
            local = email.split("@", 1)[0]
            db.add(
                Profile(
                    user_id=user.id,
                    username=username or local,
                    display_name=display_name or local.title(),
                    is_online=is_online,
                    status="online" if is_online else "offline",
                )
            )
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_room(db):
    """Create a room with the given participants, bypassing the resolver."""

    def _make(creator: User, *members: User, is_group: bool = False, name: Optional[str] = None, keyed: bool = True):
        pair_key = None
        if not is_group and keyed and len(members) == 1:
            pair_key = direct_pair_key(creator.id, members[0].id)
        room = ChatRoom(is_group=is_group, name=name, created_by=creator.id, direct_pair_key=pair_key)
        db.add(room)
        db.flush()
        for member in (creator, *members):
            db.add(ChatParticipant(chat_room_id=room.id, user_id=member.id))
        db.commit()
        db.refresh(room)
        return room

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com", display_name="Alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com", display_name="Bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol@example.com", display_name="Carol")
