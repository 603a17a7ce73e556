"""
User router - profile endpoints (protected).
"""
import uuid
from typing import Optional
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session
from messenger.aws.s3 import upload_avatar
from messenger.core.config import settings
from messenger.core.database import get_db
from messenger.core.dependencies import current_user_id
from messenger.service.conversation_directory import ConversationDirectory
from messenger.service.profile_service import ProfileService
from messenger.schema.profile import ProfileResponse, ProfileUpdate, ProfileListResponse
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

ALLOWED_AVATAR_TYPES = {"image/jpeg", "image/png", "image/webp", "image/jpg"}


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db)
):
    """Get the caller's own profile."""
    return ProfileService(db).get_profile(user_id)


@router.patch("/me", response_model=ProfileResponse)
async def update_me(
    data: ProfileUpdate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db)
):
    """Update display name and/or avatar URL."""
    return ProfileService(db).update_profile(user_id, data)


@router.patch("/me/avatar", response_model=ProfileResponse)
async def update_avatar(
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db),
    file: UploadFile = File(...),
):
    """Upload an avatar to S3 and set it on the profile. Requires S3_BUCKET_NAME."""
    if not settings.use_s3:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Avatar upload requires S3. Set S3_BUCKET_NAME.",
        )
    if file.content_type not in ALLOWED_AVATAR_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File must be an image (JPEG, PNG, WebP).",
        )
    service = ProfileService(db)
    service.get_profile(user_id)

    ext = ".jpg"
    if file.filename and "." in file.filename:
        ext = "." + file.filename.rsplit(".", 1)[-1].lower()
    if ext not in (".jpg", ".jpeg", ".png", ".webp"):
        ext = ".jpg"

    content = await file.read()
    url = upload_avatar(str(user_id), content, file.content_type or "image/jpeg", ext)
    return service.update_profile(user_id, ProfileUpdate(avatar_url=url))


@router.get("", response_model=ProfileListResponse)
async def list_users(
    search: Optional[str] = None,
    user_id: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db)
):
    """Other users' profiles, optionally filtered by name."""
    profiles = ConversationDirectory(db).list_profiles(user_id, search)
    return ProfileListResponse(items=[ProfileResponse.model_validate(p) for p in profiles])


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_user(
    user_id: uuid.UUID,
    _: uuid.UUID = Depends(current_user_id),
    db: Session = Depends(get_db)
):
    """Any user's profile, including presence."""
    return ProfileService(db).get_profile(user_id)
