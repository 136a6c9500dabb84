"""Storage Policy Engine: security posture and lifecycle of the backup bucket."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import Any

from .. import metrics
from ..builders.bucket import (
    KMS_ALGORITHM,
    OBJECT_OWNERSHIP,
    PUBLIC_ACCESS_BLOCK_ALL,
    bucket_arn,
    build_lifecycle_configuration,
    generate_bucket_name,
    has_tls_statement,
    merge_tls_statement,
    normalize_lifecycle_configuration,
)
from ..constants import CONTROLLER_NAME, KIND_BACKUP_BUCKET, TAG_MANAGED_BY, TAG_PROJECT
from ..exceptions import ConfigurationError, PolicyConflictError, ProvisioningError
from ..services.aws.client import AWS_ERRORS, error_code
from ..services.base import BackupBackend
from ..tracing import trace_span
from ..utils.errors import sanitize_exception
from .lifecycle import validate_lifecycle_rules
from .models import BucketPolicy, DeploymentContext, KeyHandle, LifecycleRule

logger = logging.getLogger(__name__)

_BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
_IP_ADDRESS_RE = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")
_TAG_KEY_MAX = 128
_TAG_VALUE_MAX = 256


def validate_bucket_name(name: str) -> None:
    """Check an explicit bucket name against S3 naming rules.

    Raises:
        ConfigurationError: If the name is not a valid S3 bucket name
    """
    if not _BUCKET_NAME_RE.match(name) or ".." in name or _IP_ADDRESS_RE.match(name):
        raise ConfigurationError(f"Invalid bucket name: {name!r}")


def validate_tags(tags: dict[str, str] | None) -> dict[str, str]:
    """Check user supplied bucket tags against S3 tagging rules.

    Raises:
        ConfigurationError: If a key or value breaks S3 tagging rules
    """
    if tags is None:
        return {}
    if not isinstance(tags, dict):
        raise ConfigurationError(f"Tags must be a mapping, got {type(tags).__name__}")
    for key, value in tags.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ConfigurationError(f"Tag {key!r}: keys and values must be strings, got {value!r}")
        if not 1 <= len(key) <= _TAG_KEY_MAX:
            raise ConfigurationError(f"Tag key must be 1 to {_TAG_KEY_MAX} characters, got {key!r}")
        if len(value) > _TAG_VALUE_MAX:
            raise ConfigurationError(f"Tag {key!r}: value longer than {_TAG_VALUE_MAX} characters")
        if key.lower().startswith("aws:"):
            raise ConfigurationError(f"Tag key {key!r} uses the reserved aws: prefix")
    return dict(tags)


class StoragePolicyEngine:
    """Creates the backup bucket and converges it to the fixed security posture.

    Posture enforced on every run, whatever the caller asks for:
    SSE-KMS with the deployment key, TLS-only access, public access blocked,
    ACLs disabled, versioning enabled. The bucket is never deleted.
    """

    def __init__(
        self,
        backend: BackupBackend,
        context: DeploymentContext,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.backend = backend
        self.context = context
        self.tags = {
            **validate_tags(tags),
            TAG_PROJECT: context.project_name,
            TAG_MANAGED_BY: CONTROLLER_NAME,
        }

    def resolve_bucket_name(self, bucket_name: str | None = None) -> str:
        """Return the explicit name if given, otherwise the generated one."""
        if bucket_name:
            validate_bucket_name(bucket_name)
            return bucket_name
        return generate_bucket_name(self.context)

    def provision(
        self,
        key: KeyHandle,
        rules: Sequence[LifecycleRule],
        bucket_name: str | None = None,
    ) -> BucketPolicy:
        """Create or converge the backup bucket.

        Args:
            key: Key the bucket's default encryption is bound to
            rules: Lifecycle rules, validated before any backend call
            bucket_name: Optional explicit name; generated when unset

        Returns:
            The resolved bucket policy

        Raises:
            ConfigurationError: If the rules or the explicit name are invalid
            PolicyConflictError: If an existing bucket has an incompatible
                encryption or versioning setting
            ProvisioningError: If the backend rejects an operation
        """
        rules = validate_lifecycle_rules(rules)
        name = self.resolve_bucket_name(bucket_name)
        arn = bucket_arn(name, self.context.partition)

        with trace_span("provision_bucket", kind=KIND_BACKUP_BUCKET, attributes={"bucket.name": name}):
            exists = self._call("head", name, self.backend.bucket_exists, name)

            created = False
            if not exists:
                created = self._create(name)

            if not created:
                self._check_conflicts(name, key)

            drift = self._converge(name, arn, key, rules, track_drift=not created)

            return BucketPolicy(
                bucket_name=name,
                arn=arn,
                encryption_key=key,
                lifecycle_rules=rules,
                tags=dict(self.tags),
                created=created,
                drift_corrected=tuple(drift),
            )

    def teardown(self, policy: BucketPolicy) -> None:
        """Tear down the bucket declaration. The bucket and its data are retained."""
        logger.info(
            f"Retaining bucket {policy.bucket_name} and its contents "
            f"(removal policy {policy.removal_policy.value})"
        )
        metrics.bucket_operations_total.labels(operation="retain", result="success").inc()

    def _create(self, name: str) -> bool:
        try:
            self.backend.create_bucket(name, self.context.region)
        except AWS_ERRORS as e:
            code = error_code(e)
            if code == "BucketAlreadyOwnedByYou":
                # Created between the existence check and now
                logger.info(f"Bucket {name} already owned by this account")
                return False
            metrics.bucket_operations_total.labels(operation="create", result="failed").inc()
            if code == "BucketAlreadyExists":
                raise ProvisioningError(f"Bucket name {name} is taken by another account", code=code) from e
            raise ProvisioningError(f"Failed to create bucket {name}: {sanitize_exception(e)}", code=code) from e
        metrics.bucket_operations_total.labels(operation="create", result="success").inc()
        logger.info(f"Created bucket {name}")
        return True

    def _check_conflicts(self, name: str, key: KeyHandle) -> None:
        versioning = self._call("get_versioning", name, self.backend.get_bucket_versioning, name)
        if versioning.get("suspended"):
            self._conflict(
                "versioning",
                f"Bucket {name} has versioning suspended; re-enable it manually before reconciling",
            )

        encryption = self._call("get_encryption", name, self.backend.get_bucket_encryption, name)
        algorithm = encryption.get("algorithm")
        kms_key_id = encryption.get("kms_key_id")
        if algorithm and algorithm.startswith(KMS_ALGORITHM) and kms_key_id not in key.references():
            self._conflict(
                "encryption",
                f"Bucket {name} is encrypted with a different KMS key; refusing to rebind it",
            )

    def _conflict(self, resource_type: str, message: str) -> None:
        metrics.policy_conflicts_total.labels(resource_type=resource_type).inc()
        logger.error(message)
        raise PolicyConflictError(message, resource_type=resource_type)

    def _converge(
        self,
        name: str,
        arn: str,
        key: KeyHandle,
        rules: tuple[LifecycleRule, ...],
        track_drift: bool,
    ) -> list[str]:
        drift: list[str] = []

        def corrected(resource_type: str) -> None:
            if track_drift:
                drift.append(resource_type)
                metrics.drift_detected_total.labels(kind=KIND_BACKUP_BUCKET, resource_type=resource_type).inc()
                logger.info(f"Drift detected: {resource_type} configuration for bucket {name}")

        # Public access first so nothing below can be exposed even briefly
        current_block = self._call("get_public_access_block", name, self.backend.get_public_access_block, name)
        if current_block != PUBLIC_ACCESS_BLOCK_ALL:
            corrected("public_access_block")
            self._call(
                "update_public_access_block", name,
                self.backend.put_public_access_block, name, dict(PUBLIC_ACCESS_BLOCK_ALL),
            )

        if self._call("get_ownership", name, self.backend.get_bucket_ownership, name) != OBJECT_OWNERSHIP:
            corrected("ownership")
            self._call("update_ownership", name, self.backend.set_bucket_ownership, name, OBJECT_OWNERSHIP)

        encryption = self._call("get_encryption", name, self.backend.get_bucket_encryption, name)
        if encryption.get("algorithm") != KMS_ALGORITHM or encryption.get("kms_key_id") not in key.references():
            corrected("encryption")
            self._call(
                "update_encryption", name,
                self.backend.set_bucket_encryption, name, KMS_ALGORITHM, key.arn,
            )

        if not self._call("get_versioning", name, self.backend.get_bucket_versioning, name).get("enabled"):
            corrected("versioning")
            self._call("update_versioning", name, self.backend.set_bucket_versioning, name, True)

        current_policy = self._call("get_policy", name, self.backend.get_bucket_policy, name)
        if not has_tls_statement(current_policy, arn):
            corrected("tls_policy")
            self._call(
                "update_policy", name,
                self.backend.set_bucket_policy, name, merge_tls_statement(current_policy, arn),
            )

        desired_lifecycle = build_lifecycle_configuration(rules)
        current_lifecycle = self._call("get_lifecycle", name, self.backend.get_bucket_lifecycle, name)
        if normalize_lifecycle_configuration(current_lifecycle) != normalize_lifecycle_configuration(desired_lifecycle):
            corrected("lifecycle")
            self._call("update_lifecycle", name, self.backend.set_bucket_lifecycle, name, desired_lifecycle)

        current_tags = self._call("get_tags", name, self.backend.get_bucket_tags, name)
        merged_tags = {**current_tags, **self.tags}
        if merged_tags != current_tags:
            corrected("tags")
            self._call("update_tags", name, self.backend.set_bucket_tags, name, merged_tags)

        return drift

    def _call(self, operation: str, name: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a backend call, mapping botocore errors to ProvisioningError."""
        try:
            result = fn(*args)
        except AWS_ERRORS as e:
            metrics.bucket_operations_total.labels(operation=operation, result="failed").inc()
            code = error_code(e)
            if code in ("403", "AccessDenied", "Forbidden"):
                message = f"Access denied for {operation} on bucket {name}"
            else:
                message = f"Failed to {operation.replace('_', ' ')} for bucket {name}: {sanitize_exception(e)}"
            raise ProvisioningError(message, code=code) from e
        if operation.startswith("update_"):
            metrics.bucket_operations_total.labels(operation=operation, result="success").inc()
        return result
