"""
Bucket policy documents.

The public-read policy a website bucket needs, and a shape check for
hand-written policy files before they are pasted into the console.
Nothing here talks to AWS.
"""

import json
from pathlib import Path

from ..remote.client import normalize_prefix

POLICY_VERSION = "2012-10-17"
VALID_EFFECTS = ("Allow", "Deny")


class PolicyError(Exception):
    """Raised when a policy file cannot be read or parsed."""
    pass


def public_read_policy(bucket: str, prefix: str = "") -> dict:
    """
    Build a policy granting anonymous s3:GetObject under a prefix.

    Args:
        bucket: Bucket name
        prefix: Optional key prefix to restrict the grant to

    Returns:
        Policy document as a dict
    """
    if not bucket:
        raise ValueError("Bucket name is required")
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Sid": "PublicReadGetObject",
                "Effect": "Allow",
                "Principal": "*",
                "Action": "s3:GetObject",
                "Resource": f"arn:aws:s3:::{bucket}/{normalize_prefix(prefix)}*",
            }
        ],
    }


def validate_policy(document) -> list[str]:
    """
    Check the shape of a policy document.

    Only structure is checked (required keys and value types), not
    whether the grants make sense.

    Args:
        document: Parsed policy JSON

    Returns:
        List of problems, empty when the shape is valid
    """
    if not isinstance(document, dict):
        return ["Policy must be a JSON object"]

    problems = []
    if document.get("Version") != POLICY_VERSION:
        problems.append(f"Version must be '{POLICY_VERSION}'")

    statements = document.get("Statement")
    if isinstance(statements, dict):
        statements = [statements]
    if not isinstance(statements, list) or not statements:
        problems.append("Statement must be a non-empty list")
        return problems

    for i, statement in enumerate(statements):
        where = f"Statement[{i}]"
        if not isinstance(statement, dict):
            problems.append(f"{where} must be an object")
            continue
        if statement.get("Effect") not in VALID_EFFECTS:
            problems.append(f"{where}.Effect must be one of {', '.join(VALID_EFFECTS)}")
        if not _is_str_or_str_list(statement.get("Action")):
            problems.append(f"{where}.Action must be a string or list of strings")
        if not _is_str_or_str_list(statement.get("Resource")):
            problems.append(f"{where}.Resource must be a string or list of strings")
        if "Principal" not in statement:
            problems.append(f"{where}.Principal is required in a bucket policy")

    return problems


def _is_str_or_str_list(value) -> bool:
    if isinstance(value, str):
        return bool(value)
    return isinstance(value, list) and bool(value) and all(
        isinstance(item, str) and item for item in value
    )


def load_policy(path: Path) -> dict:
    """
    Read a policy document from a JSON file.

    Raises:
        PolicyError: If the file cannot be read or is not valid JSON
    """
    try:
        with open(path) as f:
            return json.load(f)
    except OSError as e:
        raise PolicyError(f"Cannot read policy file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise PolicyError(f"Invalid JSON in {path}: {e}") from e
