"""
IAM permission document for the pipeline's three storage locations.

The Glue service role gets one inline policy with three Allow statements:
- read on the source bucket
- write on the target bucket
- write on the Athena query-results bucket

Each statement is scoped to the exact bucket ARN and its object ARN. The
module also validates documents loaded from disk, so a hand-edited policy
file can be checked against the bucket names it is meant to cover.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..naming import bucket_arn, objects_arn, parse_s3_arn, validate_bucket_name
from ..utils.logger import get_logger

logger = get_logger(__name__)

POLICY_VERSION = "2012-10-17"
VALID_EFFECTS = ("Allow", "Deny")

SOURCE_READ_SID = "SourceBucketRead"
TARGET_WRITE_SID = "TargetBucketWrite"
RESULTS_WRITE_SID = "QueryResultsWrite"

SOURCE_READ_ACTIONS = [
    "s3:GetObject",
    "s3:ListBucket",
]
TARGET_WRITE_ACTIONS = [
    "s3:GetObject",
    "s3:PutObject",
    "s3:DeleteObject",
    "s3:ListBucket",
]
RESULTS_WRITE_ACTIONS = [
    "s3:GetObject",
    "s3:PutObject",
    "s3:ListBucket",
    "s3:GetBucketLocation",
    "s3:AbortMultipartUpload",
]

_ACTION_RE = re.compile(r"[a-z0-9-]+:[A-Za-z0-9*]+")


class PolicyValidationError(ValueError):
    """Raised when a permission document fails validation."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid policy document: " + "; ".join(self.problems))


class PolicyStatement(BaseModel):
    """One (effect, action-set, resource-set) grant."""

    sid: str = Field(..., alias="Sid")
    effect: Literal["Allow", "Deny"] = Field(default="Allow", alias="Effect")
    actions: List[str] = Field(default_factory=list, alias="Action")
    resources: List[str] = Field(default_factory=list, alias="Resource")

    model_config = {
        "populate_by_name": True,
    }

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class PolicyDocument(BaseModel):
    """IAM policy document composed of statements."""

    version: str = Field(default=POLICY_VERSION, alias="Version")
    statements: List[PolicyStatement] = Field(default_factory=list, alias="Statement")

    model_config = {
        "populate_by_name": True,
    }

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyDocument":
        """
        Build a document from its AWS JSON shape.

        Raises:
            PolicyValidationError: If the data does not fit the document shape.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            problems = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise PolicyValidationError(problems) from e

    @classmethod
    def from_json(cls, text: str) -> "PolicyDocument":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PolicyValidationError([f"Malformed JSON: {e}"]) from e
        return cls.from_dict(data)

    @property
    def sids(self) -> List[str]:
        return [statement.sid for statement in self.statements]

    def statement(self, sid: str) -> Optional[PolicyStatement]:
        for statement in self.statements:
            if statement.sid == sid:
                return statement
        return None


def glue_trust_policy() -> Dict[str, Any]:
    """
    Get trust policy for the Glue service.

    Returns:
        dict: Trust policy document.
    """
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {
                    "Service": "glue.amazonaws.com"
                },
                "Action": "sts:AssumeRole"
            }
        ]
    }


def _bucket_resources(bucket: str) -> List[str]:
    return [bucket_arn(bucket), objects_arn(bucket)]


def build_pipeline_policy(source_bucket: str, target_bucket: str, results_bucket: str) -> PolicyDocument:
    """
    Build the three-statement permission document.

    Args:
        source_bucket: Bucket holding the raw flat files.
        target_bucket: Bucket receiving the structured output.
        results_bucket: Bucket receiving Athena query results.

    Returns:
        PolicyDocument with SourceBucketRead, TargetBucketWrite and
        QueryResultsWrite statements, in that order.

    Raises:
        ValueError: If a bucket name is invalid or the names are not distinct.
    """
    buckets = [source_bucket, target_bucket, results_bucket]
    for bucket in buckets:
        validate_bucket_name(bucket)

    if len(set(buckets)) != len(buckets):
        raise ValueError(
            "Source, target and results buckets must be distinct, got "
            f"{source_bucket}, {target_bucket}, {results_bucket}"
        )

    return PolicyDocument(
        statements=[
            PolicyStatement(
                sid=SOURCE_READ_SID,
                effect="Allow",
                actions=list(SOURCE_READ_ACTIONS),
                resources=_bucket_resources(source_bucket),
            ),
            PolicyStatement(
                sid=TARGET_WRITE_SID,
                effect="Allow",
                actions=list(TARGET_WRITE_ACTIONS),
                resources=_bucket_resources(target_bucket),
            ),
            PolicyStatement(
                sid=RESULTS_WRITE_SID,
                effect="Allow",
                actions=list(RESULTS_WRITE_ACTIONS),
                resources=_bucket_resources(results_bucket),
            ),
        ]
    )


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0 and all(isinstance(item, str) and item for item in value)


def validate_policy_document(
    document: Union[str, Dict[str, Any], PolicyDocument],
    expected_buckets: Optional[Iterable[str]] = None,
    complete: bool = True,
) -> List[str]:
    """
    Check a permission document and collect every problem found.

    Args:
        document: JSON text, a parsed dict, or a PolicyDocument.
        expected_buckets: When given, every resource must be an ARN of one of
            these buckets and every bucket must be covered by some statement.
        complete: When False, expected_buckets is only part of the bucket set;
            each must still be covered, but resources of other buckets are allowed.

    Returns:
        list: Human-readable problems; empty when the document is valid.
    """
    if isinstance(document, PolicyDocument):
        data: Any = document.to_dict()
    elif isinstance(document, str):
        try:
            data = json.loads(document)
        except json.JSONDecodeError as e:
            return [f"Malformed JSON: {e}"]
    else:
        data = document

    if not isinstance(data, dict):
        return ["Policy document must be a JSON object"]

    problems: List[str] = []

    if data.get("Version") != POLICY_VERSION:
        problems.append(f"Version must be '{POLICY_VERSION}', got {data.get('Version')!r}")

    statements = data.get("Statement")
    if not isinstance(statements, list) or not statements:
        problems.append("Statement must be a non-empty list")
        return problems

    expected = set(expected_buckets) if expected_buckets is not None else None
    covered = set()
    seen_sids = set()

    for index, statement in enumerate(statements):
        label = f"Statement[{index}]"
        if not isinstance(statement, dict):
            problems.append(f"{label} must be an object")
            continue

        sid = statement.get("Sid")
        if not isinstance(sid, str) or not sid:
            problems.append(f"{label} is missing a string Sid")
        else:
            label = f"Statement[{index}] ({sid})"
            if sid in seen_sids:
                problems.append(f"{label} duplicates an earlier Sid")
            seen_sids.add(sid)

        effect = statement.get("Effect")
        if effect not in VALID_EFFECTS:
            problems.append(f"{label} Effect must be 'Allow' or 'Deny', got {effect!r}")

        actions = statement.get("Action")
        if not _is_string_list(actions):
            problems.append(f"{label} Action must be a non-empty list of strings")
        else:
            for action in actions:
                if not _ACTION_RE.fullmatch(action):
                    problems.append(f"{label} has malformed action {action!r}")

        resources = statement.get("Resource")
        if not _is_string_list(resources):
            problems.append(f"{label} Resource must be a non-empty list of strings")
            continue

        if expected is None:
            continue

        for resource in resources:
            try:
                bucket, _ = parse_s3_arn(resource)
            except ValueError:
                problems.append(f"{label} resource {resource!r} is not an S3 ARN")
                continue
            if bucket in expected:
                covered.add(bucket)
            elif complete:
                problems.append(f"{label} resource {resource!r} does not belong to a named bucket")

    if expected is not None:
        for bucket in sorted(expected - covered):
            problems.append(f"Bucket '{bucket}' is not granted by any statement")

    return problems


def assert_valid_policy(
    document: Union[str, Dict[str, Any], PolicyDocument],
    expected_buckets: Optional[Iterable[str]] = None,
) -> None:
    """Raise PolicyValidationError listing every problem in the document."""
    problems = validate_policy_document(document, expected_buckets=expected_buckets)
    if problems:
        for problem in problems:
            logger.error(f"Policy problem: {problem}")
        raise PolicyValidationError(problems)
    logger.info("✓ Policy validation passed")


def load_policy_file(path: Union[str, Path]) -> PolicyDocument:
    """
    Load a permission document from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        PolicyValidationError: If the JSON is malformed or mis-shaped.
    """
    logger.info(f"Loading policy document from: {path}")
    text = Path(path).read_text(encoding="utf-8")
    return PolicyDocument.from_json(text)


def write_policy_file(document: PolicyDocument, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document.to_json() + "\n", encoding="utf-8")
    logger.info(f"Wrote policy document to: {path}")
    return path
