"""
Authentication router - signup/login/logout and session state.
"""
from typing import Dict, Any
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from messenger.core.database import get_db
from messenger.core.dependencies import validate_session, get_current_token, get_presence_tracker
from messenger.service.auth_service import AuthService
from messenger.service.presence_tracker import PresenceTracker
from messenger.service.session_controller import CognitoSessionProvider, SessionController
from messenger.schema.auth import UserRegister, UserLogin, LoginResponse, MessageResponse, SessionStatus, UserInfo
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


def _controller(db: Session, presence: PresenceTracker, token: str = None) -> SessionController:
    provider = CognitoSessionProvider(db, token=token, auth_service=AuthService(db))
    return SessionController(provider, presence)


@router.post("/signup", response_model=UserInfo, status_code=201)
async def signup(
    user_data: UserRegister,
    db: Session = Depends(get_db)
):
    """Register a new user and provision their profile."""
    auth_service = AuthService(db)
    return auth_service.register_user(user_data)


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """Login and get a session token. Marks the user online."""
    controller = _controller(db, presence)
    try:
        controller.start()
        return controller.sign_in(login_data.email, login_data.password)
    finally:
        controller.close()


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    current_user: Dict[str, Any] = Depends(validate_session),
    db: Session = Depends(get_db),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """Logout - marks the user offline, then signs out from Cognito and drops the session."""
    token = get_current_token(request)
    controller = _controller(db, presence, token=token)
    try:
        controller.adopt({**current_user, "token": token})
        controller.sign_out()
    finally:
        controller.close()
    logger.info(f"User logged out: {current_user['email']}")
    return MessageResponse(message="Logged out successfully")


@router.get("/session", response_model=SessionStatus)
async def get_session_status(
    request: Request,
    db: Session = Depends(get_db),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """Current session state. Restoring a session marks the user online."""
    controller = _controller(db, presence, token=request.state.token)
    try:
        state = controller.start()
    finally:
        controller.close()

    if state.identity is None:
        return SessionStatus(authenticated=False, loading=state.loading)
    session = state.session
    return SessionStatus(
        authenticated=True,
        loading=state.loading,
        identity=str(state.identity),
        user=UserInfo(
            id=session["user_id"],
            email=session["email"],
            username=session.get("username"),
            display_name=session.get("display_name"),
        ),
    )
