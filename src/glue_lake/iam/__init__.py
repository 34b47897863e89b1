"""IAM permission document and Glue service role."""

from .policy import (
    PolicyDocument,
    PolicyStatement,
    PolicyValidationError,
    build_pipeline_policy,
    validate_policy_document,
    assert_valid_policy,
    load_policy_file,
    write_policy_file,
    glue_trust_policy,
)
from .role import GlueRoleManager

__all__ = [
    "PolicyDocument",
    "PolicyStatement",
    "PolicyValidationError",
    "build_pipeline_policy",
    "validate_policy_document",
    "assert_valid_policy",
    "load_policy_file",
    "write_policy_file",
    "glue_trust_policy",
    "GlueRoleManager",
]
