"""
Profile service: provisioning with unique usernames, lookups and self-edits.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from messenger.core.exceptions import NotFound, ServiceError
from messenger.crud import profile_crud
from messenger.model.profile import Profile
from messenger.model.user import User
from messenger.schema.profile import ProfileUpdate

logger = logging.getLogger(__name__)

# Concurrent sign-ups can still collide between the availability check and
# the insert; the unique constraint catches it and we pick the next suffix.
MAX_PROVISION_ATTEMPTS = 5


def derive_username(email: str, hint: Optional[str] = None) -> str:
    """Requested username, else the email local part."""
    base = (hint or "").strip() or email.split("@", 1)[0].strip()
    return base or "user"


def generate_unique_username(db: Session, base: str) -> str:
    """
    First free name in base, base1, base2, ...

    Checked against every stored username, so an existing "alice1" pushes a
    second collision on "alice" to "alice2".
    """
    candidate = base
    counter = 0
    while profile_crud.username_taken(db, username=candidate):
        counter += 1
        candidate = f"{base}{counter}"
    return candidate


class ProfileService:
    def __init__(self, db: Session):
        self.db = db

    def provision(
        self,
        user: User,
        username_hint: Optional[str] = None,
        display_name_hint: Optional[str] = None,
    ) -> Profile:
        """Create the profile for a new identity; returns the existing one if already there."""
        existing = profile_crud.get_by_user_id(self.db, user_id=user.id)
        if existing:
            return existing

        base = derive_username(user.email, username_hint)
        display_name = (display_name_hint or "").strip() or user.email.split("@", 1)[0]

        for _ in range(MAX_PROVISION_ATTEMPTS):
            username = generate_unique_username(self.db, base)
            try:
                profile = profile_crud.create_from_dict(
                    self.db,
                    obj_in={
                        "user_id": user.id,
                        "username": username,
                        "display_name": display_name,
                        "status": "online",
                        "is_online": True,
                    },
                )
            except IntegrityError:
                self.db.rollback()
                # Either the username was taken meanwhile or the profile itself was
                existing = profile_crud.get_by_user_id(self.db, user_id=user.id)
                if existing:
                    return existing
                logger.info(f"Username {username} taken concurrently, retrying")
                continue
            logger.info(f"Profile provisioned: user_id={user.id} username={username}")
            return profile

        raise ServiceError("Could not allocate a unique username.")

    def get_profile(self, user_id: uuid.UUID) -> Profile:
        profile = profile_crud.get_by_user_id(self.db, user_id=user_id)
        if not profile:
            raise NotFound("Profile")
        return profile

    def update_profile(self, user_id: uuid.UUID, data: ProfileUpdate) -> Profile:
        profile = self.get_profile(user_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("display_name") is None:
            changes.pop("display_name", None)
        else:
            changes["display_name"] = changes["display_name"].strip()
        return profile_crud.update(self.db, db_obj=profile, obj_in=changes)
