"""
Amazon Cognito user-pool wrapper (boto3).
Cognito is the identity provider: it owns passwords and tokens, the local
database only mirrors the identity (users) and its profile.
"""
import base64
import hashlib
import hmac
import uuid
from typing import Dict, Any, Optional
from botocore.exceptions import ClientError
import logging

logger = logging.getLogger(__name__)


class CognitoIdentityProviderWrapper:
    """Sign-up, sign-in and sign-out against one user pool / app client."""

    def __init__(
        self,
        cognito_client,
        user_pool_id: str,
        client_id: str,
        client_secret: Optional[str] = None
    ):
        self.cognito_client = cognito_client
        self.user_pool_id = user_pool_id
        self.client_id = client_id
        self.client_secret = client_secret

    def _secret_hash(self, username: str) -> Optional[str]:
        """SECRET_HASH required when the app client has a secret."""
        if not self.client_secret:
            return None

        message = bytes(username + self.client_id, 'utf-8')
        key = bytes(self.client_secret, 'utf-8')
        return base64.b64encode(
            hmac.new(key, message, digestmod=hashlib.sha256).digest()
        ).decode()

    def sign_up(self, email: str, password: str, **user_attributes) -> Dict[str, Any]:
        """
        Register a new identity in the user pool.

        The pool uses email as an alias, so the Cognito Username is a fresh
        UUID. Extra attributes (e.g. preferred_username, name) are passed
        through as user attributes.

        Returns:
            Dict with user_sub, username and user_confirmed

        Raises:
            ClientError: If sign up fails
        """
        username = str(uuid.uuid4())

        attributes = [{'Name': 'email', 'Value': email}]
        for key, value in user_attributes.items():
            if value is not None:
                attributes.append({'Name': key, 'Value': str(value)})

        kwargs = {
            'ClientId': self.client_id,
            'Username': username,
            'Password': password,
            'UserAttributes': attributes
        }
        if self.client_secret:
            kwargs['SecretHash'] = self._secret_hash(username)

        try:
            response = self.cognito_client.sign_up(**kwargs)
        except ClientError as e:
            logger.error(f"Sign up failed for {email}: {e.response['Error']['Message']}")
            raise
        logger.info(f"User signed up: {email}")
        return {
            'user_sub': response['UserSub'],
            'username': username,
            'user_confirmed': response['UserConfirmed'],
        }

    def initiate_auth(self, email: str, password: str) -> Dict[str, Any]:
        """
        Authenticate with ADMIN_USER_PASSWORD_AUTH (email alias + client secret).

        Returns:
            Dict with id_token, access_token, refresh_token, expires_in

        Raises:
            ClientError: If authentication fails
        """
        kwargs = {
            'UserPoolId': self.user_pool_id,
            'ClientId': self.client_id,
            'AuthFlow': 'ADMIN_USER_PASSWORD_AUTH',
            'AuthParameters': {
                'USERNAME': email,
                'PASSWORD': password
            }
        }
        if self.client_secret:
            kwargs['AuthParameters']['SECRET_HASH'] = self._secret_hash(email)

        try:
            response = self.cognito_client.admin_initiate_auth(**kwargs)
        except ClientError as e:
            logger.error(f"Authentication failed for {email}: {e.response['Error']['Message']}")
            raise

        auth_result = response['AuthenticationResult']
        logger.info(f"User authenticated: {email}")
        return {
            'id_token': auth_result['IdToken'],
            'access_token': auth_result['AccessToken'],
            'refresh_token': auth_result.get('RefreshToken'),
            'expires_in': auth_result['ExpiresIn'],
        }

    def global_sign_out(self, access_token: str) -> bool:
        """
        Invalidate every token issued to the user.

        Raises:
            ClientError: If sign out fails
        """
        try:
            self.cognito_client.global_sign_out(AccessToken=access_token)
        except ClientError as e:
            logger.error(f"Global sign out failed: {e.response['Error']['Message']}")
            raise
        logger.info("User signed out globally")
        return True
