"""S3 bucket management and source layout checks."""

from .buckets import BucketManager
from .layout import LayoutError, LayoutIssue, check_source_layout, explain_empty_results, find_layout_issues

__all__ = [
    "BucketManager",
    "LayoutError",
    "LayoutIssue",
    "check_source_layout",
    "explain_empty_results",
    "find_layout_issues",
]
