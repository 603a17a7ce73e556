"""
Presence schemas.
"""
from typing import Optional
from pydantic import BaseModel


class VisibilityBody(BaseModel):
    hidden: bool


class OfflineBeacon(BaseModel):
    """
    Unload beacon payload. Beacons cannot carry an Authorization header,
    so the session token may travel in the body instead.
    """
    token: Optional[str] = None


class PresenceResult(BaseModel):
    online: bool
    recorded: bool
