"""
Session controller - owns the authenticated identity of one viewer.

State is derived from an auth provider that can both be probed for its
current session and notify about changes. Both paths feed the same
`_apply_session`, which always *sets* the latest known value, so events
arriving twice or in either order converge on the same state. The one
ordering rule is on sign-out: presence goes offline before the provider
tears the session down, otherwise the user would stay "online" forever.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from messenger.schema.auth import LoginResponse, UserLogin
from messenger.service.auth_service import AuthService
from messenger.service.presence_tracker import PresenceTracker
from messenger.session import get_session

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

AuthListener = Callable[[str, Optional[Dict[str, Any]]], None]


@dataclass
class SessionState:
    identity: Optional[uuid.UUID] = None
    session: Optional[Dict[str, Any]] = None
    loading: bool = True


class CognitoSessionProvider:
    """
    Auth provider over AuthService (Cognito) and the Redis token sessions.

    A session is the stored identity payload plus the token it was found under.
    """

    def __init__(self, db: Session, token: Optional[str] = None, auth_service: Optional[AuthService] = None):
        self.token = token
        self._db = db
        self._auth_service = auth_service
        self._listeners: List[AuthListener] = []

    @property
    def auth_service(self) -> AuthService:
        if self._auth_service is None:
            self._auth_service = AuthService(self._db)
        return self._auth_service

    def get_session(self) -> Optional[Dict[str, Any]]:
        if not self.token:
            return None
        try:
            data = get_session(self.token)
        except RedisError as e:
            logger.warning(f"Session probe failed: {e}")
            return None
        if not data:
            return None
        return {**data, "token": self.token}

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener; the returned callable removes it (once)."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str, session: Optional[Dict[str, Any]]) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    def sign_in(self, email: str, password: str) -> LoginResponse:
        response = self.auth_service.login(UserLogin(email=email, password=password))
        self.token = response.access_token
        self._emit(SIGNED_IN, self.get_session())
        return response

    def sign_out(self) -> None:
        token, session = self.token, self.get_session()
        self.token = None
        try:
            if token:
                self.auth_service.logout(token, session or {})
        finally:
            self._emit(SIGNED_OUT, None)


class SessionController:
    def __init__(self, provider: CognitoSessionProvider, presence: PresenceTracker):
        self.provider = provider
        self.presence = presence
        self.state = SessionState()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def identity(self) -> Optional[uuid.UUID]:
        return self.state.identity

    def start(self) -> SessionState:
        """Listen for auth changes, then probe for an existing session."""
        if self._unsubscribe is None:
            self._unsubscribe = self.provider.on_auth_state_change(self._on_auth_event)
        self._apply_session(self.provider.get_session())
        return self.state

    def adopt(self, session: Dict[str, Any]) -> SessionState:
        """Take a session already validated upstream. No presence write."""
        self.state.session = session
        self.state.identity = uuid.UUID(session["user_id"])
        self.state.loading = False
        return self.state

    def _on_auth_event(self, event: str, session: Optional[Dict[str, Any]]) -> None:
        logger.debug(f"Auth event {event}")
        self._apply_session(session)

    def _apply_session(self, session: Optional[Dict[str, Any]]) -> None:
        identity = uuid.UUID(session["user_id"]) if session else None
        self.state.session = session
        self.state.identity = identity
        self.state.loading = False
        if identity is not None:
            self.presence.set_presence(identity, True)

    def sign_in(self, email: str, password: str) -> LoginResponse:
        return self.provider.sign_in(email, password)

    def sign_out(self) -> None:
        """Offline first, then end the session. Presence trouble never blocks sign-out."""
        identity = self.state.identity
        if identity is not None:
            try:
                self.presence.set_presence(identity, False)
            except Exception:
                logger.exception(f"Offline presence failed during sign-out for user_id={identity}")
        try:
            self.provider.sign_out()
        finally:
            self._apply_session(None)
        logger.info(f"Signed out user_id={identity}")

    def close(self) -> None:
        """Stop listening for auth changes. Safe to call more than once."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
