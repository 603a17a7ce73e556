"""
AWS integrations layer.
"""
from messenger.aws.client import get_aws_client
from messenger.aws.cognito import CognitoIdentityProviderWrapper
from messenger.aws.secrets import get_secret

__all__ = [
    "get_aws_client",
    "CognitoIdentityProviderWrapper",
    "get_secret",
]
