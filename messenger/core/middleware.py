"""
Session middleware - resolves the bearer token to a Redis session per request.
"""
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable
from redis.exceptions import RedisError
from messenger.session import extract_token, get_session

logger = logging.getLogger(__name__)


class SessionMiddleware(BaseHTTPMiddleware):
    """Attaches `token` and `session` to request.state (empty when anonymous)."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.session = {}
        request.state.token = None

        token = extract_token(request.headers.get("authorization"))
        if token:
            try:
                user_data = get_session(token)
            except RedisError as e:
                # Session store down: treat as anonymous, routes answer 401
                logger.warning(f"Session lookup failed: {e}")
                user_data = None
            if user_data:
                request.state.session = user_data
                request.state.token = token

        return await call_next(request)
