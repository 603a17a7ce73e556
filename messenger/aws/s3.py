"""
S3 upload for profile avatars.
"""
import logging

from messenger.aws.client import get_aws_client
from messenger.core.config import settings

logger = logging.getLogger(__name__)


def build_public_url(key: str) -> str:
    """Public URL for an object (bucket policy must allow s3:GetObject)."""
    return f"https://{settings.S3_BUCKET_NAME}.s3.{settings.s3_region}.amazonaws.com/{key}"


def upload_avatar(user_id: str, body: bytes, content_type: str, ext: str) -> str:
    """
    Store an avatar under users/<user_id>/avatar<ext> and return its URL.

    No ACLs are set; buckets with "Bucket owner enforced" reject them.
    """
    if not settings.S3_BUCKET_NAME:
        raise ValueError("S3_BUCKET_NAME not configured")

    key = f"users/{user_id}/avatar{ext}"
    get_aws_client("s3", region_name=settings.s3_region).put_object(
        Bucket=settings.S3_BUCKET_NAME,
        Key=key,
        Body=body,
        ContentType=content_type,
    )
    url = build_public_url(key)
    logger.info(f"Uploaded avatar key={key}")
    return url
