"""Reconciler: converges key, bucket and registry record for one project."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime

from .. import metrics
from ..builders.bucket import bucket_arn
from ..constants import (
    KEY_PENDING_WINDOW_DAYS_DEFAULT,
    KIND_BACKUP_BUCKET,
    PARAMETER_NAME_TEMPLATE,
)
from ..exceptions import BackupBucketError, ConfigurationError, ProvisioningError
from ..services.aws.client import AWS_ERRORS, error_code
from ..services.base import BackupBackend
from ..tracing import trace_span
from ..utils.errors import sanitize_exception
from .key_manager import KeyManager, validate_pending_window
from .lifecycle import default_lifecycle_rules, validate_lifecycle_rules
from .models import (
    BucketPolicy,
    DeploymentContext,
    KeyHandle,
    ReconcileState,
    RegistryRecord,
)
from .registry import RegistryPublisher, validate_parameter_name
from .storage_policy import StoragePolicyEngine, validate_bucket_name, validate_tags

logger = logging.getLogger(__name__)

# Must fit a KMS alias, an S3 bucket name prefix and a parameter path level
_PROJECT_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
PROJECT_NAME_MAX_LENGTH = 128


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a converged run."""

    state: ReconcileState
    key: KeyHandle
    bucket: BucketPolicy
    record: RegistryRecord


@dataclass(frozen=True)
class TeardownResult:
    """Outcome of a teardown: what was scheduled and what was kept."""

    key_deletion_date: datetime | None
    bucket_name: str
    parameter_name: str


def validate_project_name(project_name: str | None) -> str:
    """Check a project identifier before anything is sent to the backend.

    Raises:
        ConfigurationError: If the identifier is empty or unusable in resource names
    """
    if not project_name or not project_name.strip():
        raise ConfigurationError("Project name is required")
    if len(project_name) > PROJECT_NAME_MAX_LENGTH:
        raise ConfigurationError(
            f"Project name is {len(project_name)} characters, at most {PROJECT_NAME_MAX_LENGTH} are allowed"
        )
    if not _PROJECT_NAME_RE.match(project_name):
        raise ConfigurationError(
            f"Project name {project_name!r} may only contain letters, digits, hyphens and underscores"
        )
    try:
        validate_parameter_name(PARAMETER_NAME_TEMPLATE.format(project=project_name))
    except ProvisioningError as e:
        raise ConfigurationError(str(e)) from e
    return project_name


def partition_for_region(region: str) -> str:
    """Return the AWS partition a region belongs to."""
    if region.startswith("cn-"):
        return "aws-cn"
    if region.startswith("us-gov-"):
        return "aws-us-gov"
    return "aws"


class Reconciler:
    """Runs Key Manager, Storage Policy Engine and Registry Publisher in order.

    State moves from ``PENDING`` to ``CONVERGED``, or to ``FAILED`` from any
    step. Nothing is rolled back on failure; resources created by earlier
    steps are left in place for inspection.
    """

    def __init__(
        self,
        backend: BackupBackend,
        account_id: str | None = None,
        pending_window_days: int = KEY_PENDING_WINDOW_DAYS_DEFAULT,
        tags: dict[str, str] | None = None,
    ) -> None:
        validate_pending_window(pending_window_days)
        self.backend = backend
        self.account_id = account_id
        self.pending_window_days = pending_window_days
        self.tags = validate_tags(tags)
        self.state = ReconcileState.PENDING

    def run(self, project_name: str, bucket_name: str | None = None) -> ReconcileResult:
        """Converge the project's key, bucket and registry record.

        Args:
            project_name: Identifier scoping every resource name
            bucket_name: Optional explicit bucket name; generated when unset

        Returns:
            The converged key, bucket and record

        Raises:
            ConfigurationError: If the identifier or rule set is invalid; raised
                before any backend call
            PolicyConflictError: If the existing bucket cannot be converged
            ProvisioningError: If the backend rejects an operation
        """
        self.state = ReconcileState.PENDING
        try:
            validate_project_name(project_name)
            rules = validate_lifecycle_rules(default_lifecycle_rules())
            if bucket_name:
                validate_bucket_name(bucket_name)

            with trace_span("reconcile", kind=KIND_BACKUP_BUCKET, attributes={"project.name": project_name}):
                context = self._context(project_name)

                with trace_span("reconcile_key", kind=KIND_BACKUP_BUCKET):
                    key_manager = KeyManager(self.backend, context, self.pending_window_days)
                    key = key_manager.provision()

                with trace_span("reconcile_bucket", kind=KIND_BACKUP_BUCKET):
                    engine = StoragePolicyEngine(self.backend, context, tags=self.tags)
                    bucket = engine.provision(key, rules, bucket_name=bucket_name)

                with trace_span("reconcile_record", kind=KIND_BACKUP_BUCKET):
                    publisher = RegistryPublisher(self.backend)
                    record = publisher.publish(
                        PARAMETER_NAME_TEMPLATE.format(project=project_name),
                        bucket.bucket_name,
                    )
        except BackupBucketError as e:
            self.state = ReconcileState.FAILED
            logger.error(f"Reconcile of project {project_name!r} failed: {sanitize_exception(e)}")
            raise

        self.state = ReconcileState.CONVERGED
        corrected = list(bucket.drift_corrected)
        if record.changed:
            corrected.append("registry_record")
        if corrected:
            logger.info(f"Project {project_name} converged, corrected: {', '.join(corrected)}")
        else:
            logger.info(f"Project {project_name} converged, no changes")
        return ReconcileResult(state=self.state, key=key, bucket=bucket, record=record)

    def teardown(self, project_name: str, bucket_name: str | None = None) -> TeardownResult:
        """Tear down a project.

        The key is scheduled for deletion after its grace period. The bucket
        and its contents are retained and the registry record stays in place.

        Raises:
            ConfigurationError: If the identifier is invalid
            ProvisioningError: If the key cannot be scheduled for deletion
        """
        validate_project_name(project_name)
        if bucket_name:
            validate_bucket_name(bucket_name)

        with trace_span("teardown", kind=KIND_BACKUP_BUCKET, attributes={"project.name": project_name}):
            context = self._context(project_name)
            key_manager = KeyManager(self.backend, context, self.pending_window_days)
            engine = StoragePolicyEngine(self.backend, context, tags=self.tags)
            resolved_name = engine.resolve_bucket_name(bucket_name)

            deletion_date = None
            key = key_manager.lookup()
            if key is None:
                logger.info(f"No key found for project {project_name}, nothing to schedule")
                logger.info(f"Retaining bucket {resolved_name} and its contents")
            else:
                deletion_date = key_manager.schedule_destruction(key)
                engine.teardown(
                    BucketPolicy(
                        bucket_name=resolved_name,
                        arn=bucket_arn(resolved_name, context.partition),
                        encryption_key=key,
                        lifecycle_rules=default_lifecycle_rules(),
                    )
                )

        metrics.resource_status_total.labels(kind=KIND_BACKUP_BUCKET, status="torn_down").inc()
        return TeardownResult(
            key_deletion_date=deletion_date,
            bucket_name=resolved_name,
            parameter_name=PARAMETER_NAME_TEMPLATE.format(project=project_name),
        )

    def _context(self, project_name: str) -> DeploymentContext:
        if self.account_id is None:
            try:
                self.account_id = self.backend.get_account_id()
            except AWS_ERRORS as e:
                raise ProvisioningError(
                    f"Failed to resolve the AWS account: {sanitize_exception(e)}", code=error_code(e)
                ) from e
        region = self.backend.region
        return DeploymentContext(
            project_name=project_name,
            account_id=self.account_id,
            region=region,
            partition=partition_for_region(region),
        )
