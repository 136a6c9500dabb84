"""Builders for the S3 configuration documents of the backup bucket."""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

from ..constants import (
    BUCKET_NAME_MAX_LENGTH,
    BUCKET_NAME_SUFFIX_LENGTH,
    BUCKET_NAME_TEMPLATE,
    POLICY_VERSION,
    TLS_STATEMENT_SID,
)
from ..core.models import DeploymentContext, LifecycleRule

# Every flag on: public ACLs and public policies are both refused and ignored
PUBLIC_ACCESS_BLOCK_ALL: dict[str, bool] = {
    "BlockPublicAcls": True,
    "IgnorePublicAcls": True,
    "BlockPublicPolicy": True,
    "RestrictPublicBuckets": True,
}

OBJECT_OWNERSHIP = "BucketOwnerEnforced"

KMS_ALGORITHM = "aws:kms"


def generate_bucket_name(context: DeploymentContext) -> str:
    """Generate a deterministic bucket name for a deployment.

    The suffix is a hash of account, region and project, so every run for the
    same deployment resolves to the same name.

    Args:
        context: Deployment context

    Returns:
        A valid S3 bucket name of at most 63 characters
    """
    scope = f"{context.account_id}/{context.region}/{context.project_name}"
    suffix = hashlib.sha256(scope.encode("utf-8")).hexdigest()[:BUCKET_NAME_SUFFIX_LENGTH]

    project = re.sub(r"[^a-z0-9-]+", "-", context.project_name.lower()).strip("-") or "project"
    name = BUCKET_NAME_TEMPLATE.format(project=project, suffix=suffix)
    if len(name) > BUCKET_NAME_MAX_LENGTH:
        head_length = BUCKET_NAME_MAX_LENGTH - BUCKET_NAME_SUFFIX_LENGTH - 1
        name = f"{name[:head_length].rstrip('-')}-{suffix}"
    return name


def bucket_arn(bucket_name: str, partition: str = "aws") -> str:
    return f"arn:{partition}:s3:::{bucket_name}"


def build_tls_statement(arn: str) -> dict[str, Any]:
    """Build the statement denying every request made without TLS."""
    return {
        "Sid": TLS_STATEMENT_SID,
        "Effect": "Deny",
        "Principal": {"AWS": "*"},
        "Action": "s3:*",
        "Resource": [arn, f"{arn}/*"],
        "Condition": {"Bool": {"aws:SecureTransport": "false"}},
    }


def merge_tls_statement(existing: dict[str, Any] | None, arn: str) -> dict[str, Any]:
    """Return a bucket policy holding the TLS statement.

    Statements of an existing policy are kept; a statement with the TLS Sid is
    replaced by the canonical one.
    """
    statements = [
        stmt
        for stmt in (existing or {}).get("Statement", [])
        if stmt.get("Sid") != TLS_STATEMENT_SID
    ]
    statements.append(build_tls_statement(arn))
    return {
        "Version": (existing or {}).get("Version", POLICY_VERSION),
        "Statement": statements,
    }


def has_tls_statement(policy: dict[str, Any] | None, arn: str) -> bool:
    """Check whether a bucket policy already holds the canonical TLS statement."""
    if not policy:
        return False
    expected = _normalize(build_tls_statement(arn))
    return any(_normalize(stmt) == expected for stmt in policy.get("Statement", []))


def build_lifecycle_configuration(rules: tuple[LifecycleRule, ...] | list[LifecycleRule]) -> dict[str, Any]:
    """Convert lifecycle rules to the S3 LifecycleConfiguration document."""
    aws_rules = []
    for rule in rules:
        aws_rule: dict[str, Any] = {
            "ID": rule.rule_id,
            "Status": "Enabled" if rule.enabled else "Disabled",
            "Filter": {"Prefix": ""},
        }
        if rule.transitions:
            aws_rule["Transitions"] = [
                {"Days": t.after_days, "StorageClass": t.storage_class.value}
                for t in rule.transitions
            ]
        if rule.noncurrent_version_transitions:
            aws_rule["NoncurrentVersionTransitions"] = [
                {"NoncurrentDays": t.after_days, "StorageClass": t.storage_class.value}
                for t in rule.noncurrent_version_transitions
            ]
        if rule.abort_incomplete_multipart_upload_after_days:
            aws_rule["AbortIncompleteMultipartUpload"] = {
                "DaysAfterInitiation": rule.abort_incomplete_multipart_upload_after_days
            }
        aws_rules.append(aws_rule)
    return {"Rules": aws_rules}


def normalize_lifecycle_configuration(configuration: dict[str, Any] | None) -> str:
    """Normalize a lifecycle document for drift comparison.

    Every key of every rule is compared, so an added expiration or a narrowed
    filter counts as drift. An empty filter, an empty prefix filter and the
    legacy top-level empty prefix all mean "whole bucket" and compare equal.
    Ordering of rules, transitions and keys does not matter.
    """
    normalized = [_normalize_rule(rule) for rule in (configuration or {}).get("Rules", [])]
    return json.dumps(sorted(normalized, key=lambda x: str(x.get("ID", ""))), sort_keys=True)


def _normalize_rule(rule: dict[str, Any]) -> dict[str, Any]:
    entry = dict(rule)
    prefix = entry.pop("Prefix", "")
    rule_filter = entry.pop("Filter", {})
    if prefix or rule_filter not in ({}, {"Prefix": ""}):
        entry["Filter"] = rule_filter
        entry["Prefix"] = prefix
    else:
        entry["Filter"] = {"Prefix": ""}
    for track in ("Transitions", "NoncurrentVersionTransitions"):
        if track in entry:
            entry[track] = sorted(entry[track], key=lambda t: json.dumps(t, sort_keys=True, default=str))
    # Round-trip so datetimes (Transition.Date) compare as text
    return json.loads(json.dumps(entry, default=str))


def _normalize(statement: dict[str, Any]) -> str:
    stmt = dict(statement)
    resource = stmt.get("Resource")
    if isinstance(resource, list):
        stmt["Resource"] = sorted(resource)
    principal = stmt.get("Principal")
    # "*" and {"AWS": "*"} are equivalent principals
    if principal == "*":
        stmt["Principal"] = {"AWS": "*"}
    return json.dumps(stmt, sort_keys=True)
