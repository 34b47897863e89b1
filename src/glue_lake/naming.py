"""Bucket name, ARN and S3 URI helpers."""

import ipaddress
import re
from typing import Tuple

S3_ARN_PREFIX = "arn:aws:s3:::"

_BUCKET_NAME_RE = re.compile(r"[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]")


def validate_bucket_name(name: str) -> str:
    """
    Check a bucket name against the S3 general purpose bucket naming rules.

    Args:
        name: Candidate bucket name.

    Returns:
        The name, unchanged.

    Raises:
        ValueError: If the name breaks any rule.
    """
    if not isinstance(name, str) or not name:
        raise ValueError("Bucket name must be a non-empty string")

    if not 3 <= len(name) <= 63:
        raise ValueError(f"Bucket name '{name}' must be between 3 and 63 characters long")

    if not _BUCKET_NAME_RE.fullmatch(name):
        raise ValueError(
            f"Bucket name '{name}' may only contain lowercase letters, digits, dots and hyphens, "
            "and must begin and end with a letter or digit"
        )

    if ".." in name:
        raise ValueError(f"Bucket name '{name}' must not contain two adjacent periods")

    try:
        ipaddress.IPv4Address(name)
    except ValueError:
        pass
    else:
        raise ValueError(f"Bucket name '{name}' must not be formatted as an IP address")

    if name.startswith("xn--") or name.endswith("-s3alias"):
        raise ValueError(f"Bucket name '{name}' uses a reserved prefix or suffix")

    return name


def normalize_prefix(prefix: str) -> str:
    """Strip leading slashes and ensure exactly one trailing slash ('' stays '')."""
    prefix = (prefix or "").strip().lstrip("/")
    if not prefix:
        return ""
    return prefix.rstrip("/") + "/"


def bucket_arn(name: str) -> str:
    return f"{S3_ARN_PREFIX}{name}"


def objects_arn(name: str, prefix: str = "") -> str:
    return f"{S3_ARN_PREFIX}{name}/{normalize_prefix(prefix)}*"


def parse_s3_arn(arn: str) -> Tuple[str, str]:
    """
    Split an S3 ARN into bucket name and key pattern.

    Args:
        arn: e.g. 'arn:aws:s3:::my-bucket/raw/*'

    Returns:
        (bucket, key_pattern); key_pattern is '' for a bucket ARN.

    Raises:
        ValueError: If the string is not an S3 ARN.
    """
    if not isinstance(arn, str) or not arn.startswith(S3_ARN_PREFIX):
        raise ValueError(f"Not an S3 ARN: {arn!r}")

    remainder = arn[len(S3_ARN_PREFIX):]
    bucket, _, key_pattern = remainder.partition("/")
    if not bucket:
        raise ValueError(f"S3 ARN has no bucket name: {arn!r}")
    return bucket, key_pattern


def s3_uri(bucket: str, prefix: str = "") -> str:
    return f"s3://{bucket}/{normalize_prefix(prefix)}"
