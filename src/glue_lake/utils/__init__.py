"""Utility modules for the glue-lake pipeline."""

from .logger import get_logger
from .aws_helpers import (
    get_boto3_client,
    error_code,
    list_s3_objects,
    check_s3_bucket_exists,
)

__all__ = [
    "get_logger",
    "get_boto3_client",
    "error_code",
    "list_s3_objects",
    "check_s3_bucket_exists",
]
