"""
Authentication service: Cognito identity + local identity/profile rows + Redis session.
"""
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from botocore.exceptions import ClientError
from messenger.aws import get_aws_client, CognitoIdentityProviderWrapper
from messenger.core.config import settings
from messenger.core.exceptions import EmailAlreadyExists, InvalidCredentials
from messenger.session import create_session, remove_session
from messenger.crud import user_crud
from messenger.schema.auth import UserRegister, UserLogin, LoginResponse, UserInfo
from messenger.service.profile_service import ProfileService
import logging

logger = logging.getLogger(__name__)


def default_cognito() -> CognitoIdentityProviderWrapper:
    return CognitoIdentityProviderWrapper(
        cognito_client=get_aws_client('cognito-idp'),
        user_pool_id=settings.COGNITO_USER_POOL_ID,
        client_id=settings.COGNITO_CLIENT_ID,
        client_secret=settings.COGNITO_CLIENT_SECRET
    )


class AuthService:
    """Registers, signs in and signs out identities."""

    def __init__(self, db: Session, cognito: Optional[CognitoIdentityProviderWrapper] = None):
        self.db = db
        self.cognito = cognito or default_cognito()

    def register_user(self, user_data: UserRegister) -> UserInfo:
        """Register in Cognito, then mirror the identity and provision its profile."""
        if user_crud.get_by_email(self.db, user_data.email):
            raise EmailAlreadyExists()

        try:
            cognito_response = self.cognito.sign_up(
                email=user_data.email,
                password=user_data.password,
                preferred_username=user_data.username,
                name=user_data.display_name,
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'UsernameExistsException':
                raise EmailAlreadyExists()
            raise InvalidCredentials(message=e.response['Error']['Message'])

        user = user_crud.create_from_dict(
            self.db,
            obj_in={"email": user_data.email, "cognito_username": cognito_response['username']},
        )
        profile = ProfileService(self.db).provision(
            user,
            username_hint=user_data.username,
            display_name_hint=user_data.display_name,
        )
        logger.info(f"User registered: {user.email} as @{profile.username}")
        return UserInfo(
            id=str(user.id), email=user.email, username=profile.username, display_name=profile.display_name
        )

    def login(self, login_data: UserLogin) -> LoginResponse:
        """Authenticate via Cognito, make sure the profile exists, open a Redis session."""
        try:
            tokens = self.cognito.initiate_auth(
                email=login_data.email,
                password=login_data.password
            )
        except ClientError as e:
            if e.response['Error']['Code'] in ['NotAuthorizedException', 'UserNotFoundException']:
                raise InvalidCredentials()
            raise InvalidCredentials(message=e.response['Error']['Message'])

        user = user_crud.get_by_email(self.db, login_data.email)
        if not user:
            raise InvalidCredentials(message="User not found in local database")

        # Identities created before profiles existed get one on first sign-in
        profile = ProfileService(self.db).provision(user)

        id_token = tokens['id_token']
        create_session(id_token, {
            "user_id": str(user.id),
            "email": user.email,
            "username": profile.username,
            "display_name": profile.display_name,
            "is_active": user.is_active,
            "access_token": tokens['access_token'],  # kept for global sign-out
        })
        logger.info(f"User logged in: {user.email}")

        return LoginResponse(
            message="Login successful",
            access_token=id_token,
            user=UserInfo(
                id=str(user.id), email=user.email, username=profile.username, display_name=profile.display_name
            ),
        )

    def logout(self, token: str, user_data: Dict[str, Any]) -> bool:
        """Sign out from Cognito (best effort) and always drop the local session."""
        access_token = user_data.get('access_token')
        if access_token:
            try:
                self.cognito.global_sign_out(access_token)
            except ClientError as e:
                logger.warning(f"Cognito sign out failed: {e.response['Error']['Message']}")

        return remove_session(token)
