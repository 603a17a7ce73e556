"""
Presence tracker - online flag and last-seen for a user.

Writes are "set to value" and therefore idempotent: repeated online writes
from overlapping triggers (login, session restore, socket connect) are
harmless, and a failed write can simply be attempted again. Failures are
logged and reported through the return value, never raised.
"""
import asyncio
import logging
import uuid
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from messenger.core.config import settings
from messenger.core.database import SessionLocal
from messenger.crud import profile_crud

logger = logging.getLogger(__name__)


class PresenceTracker:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        attempts: Optional[int] = None,
    ) -> None:
        self.session_factory = session_factory
        self.attempts = max(1, attempts or settings.PRESENCE_WRITE_ATTEMPTS)

    def set_presence(self, user_id: uuid.UUID, online: bool) -> bool:
        """Record the presence flag. True when the profile row was written."""
        for attempt in range(1, self.attempts + 1):
            db = self.session_factory()
            try:
                recorded = profile_crud.update_user_status(db, user_id=user_id, online=online)
                if not recorded:
                    logger.warning(f"Presence not recorded: no profile for user_id={user_id}")
                return recorded
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning(f"Presence write failed for user_id={user_id} (attempt {attempt}/{self.attempts}): {e}")
            finally:
                db.close()
        return False

    def fire_and_forget(self, user_id: uuid.UUID, online: bool) -> None:
        """
        Queue the write on the running loop and return at once (unload beacon,
        socket teardown). Without a loop the write happens inline.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.set_presence(user_id, online)
            return
        loop.call_soon(self.set_presence, user_id, online)


presence_tracker = PresenceTracker()
