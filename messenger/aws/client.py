"""
AWS client factory - centralized boto3 client creation.
"""
import boto3
from typing import Optional
from messenger.core.config import settings


def get_aws_client(service_name: str, region_name: Optional[str] = None):
    """
    Create a boto3 client for an AWS service.

    Args:
        service_name: AWS service name ('cognito-idp', 's3', ...)
        region_name: Region override (defaults to COGNITO_REGION)

    Examples:
        >>> cognito_client = get_aws_client('cognito-idp')
        >>> s3_client = get_aws_client('s3', region_name=settings.s3_region)
    """
    region = region_name or settings.COGNITO_REGION
    return boto3.client(service_name, region_name=region)
