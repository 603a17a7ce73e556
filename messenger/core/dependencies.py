"""
FastAPI dependencies for route protection and shared services.
"""
import uuid
from fastapi import Request, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from messenger.core.exceptions import NotAuthenticated, SessionExpired
from messenger.chat.live_channel import LiveUpdateChannel, live_channel
from messenger.service.presence_tracker import PresenceTracker, presence_tracker
from typing import Dict, Any

# Security scheme for OpenAPI docs (shows lock icon and Authorization header)
bearer_scheme = HTTPBearer(
    scheme_name="Bearer",
    description="Id token from the login endpoint",
    auto_error=False,
)


async def validate_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)
) -> Dict[str, Any]:
    """
    Validates session loaded by middleware.

    Returns:
        Session dict with user_id, email, is_active

    Raises:
        NotAuthenticated: No token provided
        SessionExpired: Token not found in Redis
    """
    if credentials is None:
        raise NotAuthenticated()

    if not request.state.session:
        raise SessionExpired()

    return request.state.session


def current_user_id(current_user: Dict[str, Any] = Depends(validate_session)) -> uuid.UUID:
    return uuid.UUID(current_user["user_id"])


def get_current_token(request: Request) -> str:
    """Get current token from request state."""
    if not request.state.token:
        raise NotAuthenticated()
    return request.state.token


def get_presence_tracker() -> PresenceTracker:
    return presence_tracker


def get_live_channel() -> LiveUpdateChannel:
    return live_channel
