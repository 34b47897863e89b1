"""
Source bucket layout checks.

Glue crawlers and Athena tables point at a folder, not a bucket root. Flat
files dropped at the root of the bucket either end up in a table whose
LOCATION is the bucket itself or are skipped entirely; in both cases Athena
returns an empty result without any error. These checks catch that before a
crawl and explain it after an empty query.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional
from botocore.exceptions import ClientError

from ..naming import normalize_prefix
from ..utils.logger import get_logger
from ..utils.aws_helpers import list_s3_objects

logger = get_logger(__name__)

ERROR = "error"
WARNING = "warning"


class LayoutError(ValueError):
    """Raised when source objects are placed where the crawler cannot use them."""


@dataclass(frozen=True)
class LayoutIssue:
    key: str
    severity: str
    message: str

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR


def _is_placeholder(key: str) -> bool:
    return key.endswith("/")


def find_layout_issues(keys: Iterable[str], prefix: str) -> List[LayoutIssue]:
    """
    Inspect object keys for placements the crawler will mishandle.

    Args:
        keys: Every object key in the bucket (or at least the root and prefix).
        prefix: The folder the source crawler points at.

    Returns:
        list: LayoutIssue entries, errors first.
    """
    prefix = normalize_prefix(prefix)
    keys = list(keys)
    issues: List[LayoutIssue] = []

    for key in keys:
        if "/" not in key:
            issues.append(LayoutIssue(
                key=key,
                severity=ERROR,
                message=(
                    f"'{key}' sits at the bucket root; move it under '{prefix or '<folder>/'}' "
                    "or queries against the crawled table will return no rows"
                ),
            ))

    data_keys = [k for k in keys if k.startswith(prefix) and not _is_placeholder(k) and "/" in k]
    if not data_keys:
        issues.append(LayoutIssue(
            key=prefix,
            severity=ERROR,
            message=f"No data files found under '{prefix}'",
        ))
        return issues

    direct_files = [k for k in data_keys if "/" not in k[len(prefix):]]
    has_subfolders = any("/" in k[len(prefix):] for k in data_keys)
    if direct_files and has_subfolders:
        for key in direct_files:
            issues.append(LayoutIssue(
                key=key,
                severity=WARNING,
                message=(
                    f"'{key}' sits next to subfolders of '{prefix}'; the crawler may split "
                    "it into a separate table or mix schemas"
                ),
            ))

    return issues


def check_source_layout(
    bucket: str,
    prefix: str,
    strict: bool = False,
    region: Optional[str] = None
) -> List[LayoutIssue]:
    """
    List the source bucket and report layout issues.

    Args:
        bucket: Source bucket name.
        prefix: Folder the source crawler points at.
        strict: Raise instead of only logging when errors are found.
        region: AWS region.

    Returns:
        list: Issues found (possibly empty).

    Raises:
        LayoutError: In strict mode, when any issue is an error.
        ClientError: If the bucket cannot be listed.
    """
    keys = list_s3_objects(bucket, region=region)
    issues = find_layout_issues(keys, prefix)

    for issue in issues:
        if issue.is_error:
            logger.error(f"Layout error: {issue.message}")
        else:
            logger.warning(f"Layout warning: {issue.message}")

    if not issues:
        logger.info(f"✓ Layout of s3://{bucket}/{normalize_prefix(prefix)} looks good")

    errors = [issue for issue in issues if issue.is_error]
    if strict and errors:
        raise LayoutError("; ".join(issue.message for issue in errors))

    return issues


def explain_empty_results(bucket: str, prefix: str, region: Optional[str] = None) -> Optional[str]:
    """
    Explain an empty query result using the source bucket layout, if it can.

    Returns:
        str: Operator hint, or None when the layout looks fine or cannot be read.
    """
    try:
        found = check_source_layout(bucket, prefix, region=region)
    except ClientError as e:
        logger.error(f"Cannot check the layout of s3://{bucket}/: {e}")
        return None

    issues = [issue for issue in found if issue.is_error]
    if not issues:
        return None
    root_files = [issue.key for issue in issues if "/" not in issue.key and issue.key]
    if root_files:
        return (
            f"{len(root_files)} file(s) sit at the root of s3://{bucket}/; move them under "
            f"'{normalize_prefix(prefix)}', re-run the source crawler and the job"
        )
    return issues[0].message
