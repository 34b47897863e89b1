"""AWS helper functions using Boto3."""

from typing import Any, List, Optional
import boto3
from botocore.exceptions import ClientError

from ..config import config
from .logger import get_logger

logger = get_logger(__name__)


def get_boto3_client(service_name: str, region: Optional[str] = None) -> Any:
    """
    Get a Boto3 client for the specified AWS service.

    Args:
        service_name: AWS service name (e.g., 's3', 'glue', 'athena')
        region: AWS region. If None, uses config default.

    Returns:
        Boto3 client instance.
    """
    region = region or config.aws.region
    logger.debug(f"Creating Boto3 client for {service_name} in {region}")
    return boto3.client(service_name, region_name=region)


def error_code(error: ClientError) -> str:
    """Return the AWS error code carried by a ClientError, or ''."""
    return error.response.get('Error', {}).get('Code', '')


def list_s3_objects(bucket: str, prefix: str = "", region: Optional[str] = None) -> List[str]:
    """
    List objects in an S3 bucket with optional prefix.

    Args:
        bucket: S3 bucket name
        prefix: Object key prefix filter
        region: AWS region. If None, uses config default.

    Returns:
        List of object keys.

    Raises:
        ClientError: If the bucket cannot be listed (missing bucket, access denied).
    """
    s3_client = get_boto3_client('s3', region=region)
    logger.info(f"Listing objects in s3://{bucket}/{prefix}")

    paginator = s3_client.get_paginator('list_objects_v2')
    pages = paginator.paginate(Bucket=bucket, Prefix=prefix)

    objects = []
    for page in pages:
        if 'Contents' in page:
            objects.extend([obj['Key'] for obj in page['Contents']])

    logger.info(f"Found {len(objects)} objects")
    return objects


def check_s3_bucket_exists(bucket: str, region: Optional[str] = None) -> bool:
    """
    Check if an S3 bucket exists and is accessible.

    Args:
        bucket: S3 bucket name
        region: AWS region. If None, uses config default.

    Returns:
        True if bucket exists and is accessible, False otherwise.
    """
    try:
        s3_client = get_boto3_client('s3', region=region)
        s3_client.head_bucket(Bucket=bucket)
        logger.info(f"Bucket {bucket} exists and is accessible")
        return True
    except ClientError as e:
        if error_code(e) in ('404', 'NoSuchBucket'):
            logger.warning(f"Bucket {bucket} does not exist")
        else:
            logger.error(f"Error checking bucket {bucket}: {e}")
        return False
