"""
API Router - all endpoints.
"""
from fastapi import APIRouter
from messenger.router.api.v1 import auth, users, chat, presence

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"],
)

api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"],
)

api_router.include_router(
    chat.router,
    prefix="/chat",
    tags=["Chat"],
)

api_router.include_router(
    presence.router,
    prefix="/presence",
    tags=["Presence"],
)
