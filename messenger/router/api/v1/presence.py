"""
Presence router - tab visibility and the unload beacon.
"""
import uuid
from typing import Any, Dict, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from redis.exceptions import RedisError
from messenger.core.dependencies import current_user_id, get_presence_tracker
from messenger.schema.auth import MessageResponse
from messenger.schema.presence import OfflineBeacon, PresenceResult, VisibilityBody
from messenger.service.presence_tracker import PresenceTracker
from messenger.session import get_session
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/visibility", response_model=PresenceResult)
async def set_visibility(
    body: VisibilityBody,
    user_id: uuid.UUID = Depends(current_user_id),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """Hidden tab goes offline, visible tab comes back online."""
    online = not body.hidden
    recorded = presence.set_presence(user_id, online)
    return PresenceResult(online=online, recorded=recorded)


@router.post("/offline", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
async def offline_beacon(
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[OfflineBeacon] = None,
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """
    Page teardown. Always 202: the write runs after the response is sent,
    and an unknown token is ignored.
    """
    session: Dict[str, Any] = request.state.session
    token = body.token if body else None
    if not session and token:
        try:
            session = get_session(token) or {}
        except RedisError as e:
            logger.warning(f"Beacon session lookup failed: {e}")
            session = {}
    if session:
        background_tasks.add_task(presence.set_presence, uuid.UUID(session["user_id"]), False)
    return MessageResponse(message="Accepted")
