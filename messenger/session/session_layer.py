"""
Session layer - Redis-backed token sessions.

A session maps the id token handed out at login to the identity payload
(user_id, email, username, Cognito access token). Removing the key is what
invalidates a session locally; Cognito global sign-out is handled by the
auth service.
"""
from typing import Optional, Dict, Any
import logging
import json
import redis

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session:"

_redis_pool: Optional[redis.ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None
_session_ttl: int = 86400


def init_redis(host: str, port: int, db: int, session_ttl: int = 86400) -> None:
    """Initialize Redis connection pool. Call once at app startup."""
    global _redis_pool, _redis_client, _session_ttl
    _redis_pool = redis.ConnectionPool(
        host=host,
        port=port,
        db=db,
        decode_responses=True,
        max_connections=10
    )
    _redis_client = redis.Redis(connection_pool=_redis_pool)
    _session_ttl = session_ttl
    logger.info(f"Redis initialized: {host}:{port}/{db}, TTL: {session_ttl}s")


def _get_redis_client() -> redis.Redis:
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def _key(token: str) -> str:
    return f"{SESSION_PREFIX}{token}"


def create_session(token: str, user_data: Dict[str, Any]) -> None:
    """Store the identity payload under the token with the configured TTL."""
    _get_redis_client().setex(_key(token), _session_ttl, json.dumps(user_data))
    logger.info(f"Session created for user_id={user_data.get('user_id')}")


def get_session(token: str) -> Optional[Dict[str, Any]]:
    """Identity payload for the token, or None when absent/expired."""
    data = _get_redis_client().get(_key(token))
    if data:
        return json.loads(data)
    return None


def remove_session(token: str) -> bool:
    """Invalidate the token. True when a session was actually removed."""
    removed = _get_redis_client().delete(_key(token)) > 0
    if removed:
        logger.info("Session removed")
    return removed


def extract_token(auth_header: Optional[str]) -> Optional[str]:
    """Extract the bearer token from an Authorization header."""
    if not auth_header:
        return None

    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]
