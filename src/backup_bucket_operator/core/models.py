"""Data model of the backup bucket: key, lifecycle rules, bucket and registry record."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..constants import KEY_PENDING_WINDOW_DAYS_DEFAULT, PARAMETER_TYPE


class StorageClass(str, Enum):
    """S3 storage classes a lifecycle transition can target."""

    STANDARD_IA = "STANDARD_IA"
    ONEZONE_IA = "ONEZONE_IA"
    INTELLIGENT_TIERING = "INTELLIGENT_TIERING"
    GLACIER_IR = "GLACIER_IR"
    GLACIER = "GLACIER"
    DEEP_ARCHIVE = "DEEP_ARCHIVE"


class RemovalPolicy(str, Enum):
    """What happens to a resource when its declaring object is torn down."""

    RETAIN = "Retain"
    DESTROY = "Destroy"


class BlockPublicAccess(str, Enum):
    """Public access stance of a bucket. Only BLOCK_ALL exists."""

    BLOCK_ALL = "BlockAll"


class ReconcileState(str, Enum):
    """States of a reconcile run."""

    PENDING = "Pending"
    CONVERGED = "Converged"
    FAILED = "Failed"


@dataclass(frozen=True)
class DeploymentContext:
    """Account, region and naming scope threaded through every component."""

    project_name: str
    account_id: str
    region: str
    partition: str = "aws"


@dataclass(frozen=True)
class KeyHandle:
    """Encryption key protecting the bucket's objects."""

    key_id: str
    arn: str
    alias: str
    pending_window_days: int = KEY_PENDING_WINDOW_DAYS_DEFAULT
    removal_policy: RemovalPolicy = RemovalPolicy.DESTROY

    def references(self) -> set[str]:
        """All identifiers S3 may report for this key in an encryption config."""
        refs = {self.key_id, self.arn, self.alias}
        # arn:aws:kms:region:account:key/id -> arn:aws:kms:region:account:alias/name
        prefix, _, _ = self.arn.rpartition(":")
        if prefix:
            refs.add(f"{prefix}:{self.alias}")
        return refs


@dataclass(frozen=True)
class Transition:
    """Move objects to ``storage_class`` once they are ``after_days`` old."""

    storage_class: StorageClass
    after_days: int


@dataclass(frozen=True)
class LifecycleRule:
    """Age-triggered transitions for current and noncurrent object versions."""

    rule_id: str
    transitions: tuple[Transition, ...] = ()
    noncurrent_version_transitions: tuple[Transition, ...] = ()
    abort_incomplete_multipart_upload_after_days: int | None = None
    enabled: bool = True

    def has_actions(self) -> bool:
        return bool(
            self.transitions
            or self.noncurrent_version_transitions
            or self.abort_incomplete_multipart_upload_after_days
        )


@dataclass(frozen=True)
class BucketPolicy:
    """Resolved state of the backup bucket.

    The security posture fields are not constructor arguments: a bucket is
    always versioned, TLS-only, closed to the public and retained on teardown.
    """

    bucket_name: str
    arn: str
    encryption_key: KeyHandle
    lifecycle_rules: tuple[LifecycleRule, ...]
    tags: dict[str, str] = field(default_factory=dict, compare=False)
    created: bool = field(default=False, compare=False)
    drift_corrected: tuple[str, ...] = field(default=(), compare=False)

    block_public_access: BlockPublicAccess = field(default=BlockPublicAccess.BLOCK_ALL, init=False)
    enforce_ssl: bool = field(default=True, init=False)
    versioned: bool = field(default=True, init=False)
    removal_policy: RemovalPolicy = field(default=RemovalPolicy.RETAIN, init=False)


@dataclass(frozen=True)
class RegistryRecord:
    """Published name/value pair locating the bucket."""

    name: str
    value: str
    version: int
    changed: bool = field(default=False, compare=False)
    type: str = field(default=PARAMETER_TYPE, init=False)
