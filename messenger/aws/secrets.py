"""
AWS Secrets Manager lookup for database and Cognito credentials.
"""
import json
import boto3
from botocore.exceptions import ClientError
import logging

logger = logging.getLogger(__name__)


def get_secret(secret_name: str, region_name: str = "us-east-1") -> dict:
    """
    Fetch a JSON secret and return it as a dict.

    Raises:
        ClientError: secret missing or not readable
    """
    session = boto3.session.Session()
    client = session.client(service_name="secretsmanager", region_name=region_name)
    try:
        response = client.get_secret_value(SecretId=secret_name)
    except ClientError as e:
        logger.error(f"Could not read secret {secret_name}: {e.response['Error']['Message']}")
        raise
    logger.info(f"Secret {secret_name} retrieved.")
    return json.loads(response["SecretString"])
