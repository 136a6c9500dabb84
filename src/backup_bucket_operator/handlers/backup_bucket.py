"""Handler for BackupBucket CRD."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable

import kopf

from ..builders.provider import (
    account_id_from_env,
    create_provider_from_spec,
    int_from_env,
    pending_window_from_env,
)
from ..constants import API_GROUP_VERSION, KIND_BACKUP_BUCKET
from ..core.models import ReconcileState
from ..core.reconciler import Reconciler
from ..exceptions import ConfigurationError, PolicyConflictError, ProvisioningError
from ..services.base import BackupBackend
from ..tracing import trace_span
from ..utils.conditions import (
    clear_failure_conditions,
    set_configuration_invalid_condition,
    set_policy_conflict_condition,
    set_provisioning_failed_condition,
    set_ready_condition,
)
from ..utils.errors import sanitize_exception
from ..utils.events import (
    emit_bucket_retained,
    emit_converged,
    emit_key_deletion_scheduled,
    emit_policy_conflict,
    emit_validate_succeeded,
)
from .base import BaseHandler, to_kopf_error


class BackupBucketHandler(BaseHandler):
    """Handler for BackupBucket resources."""

    def __init__(
        self,
        provider_factory: Callable[[dict[str, Any], Mapping[str, Any]], BackupBackend] = create_provider_from_spec,
    ):
        """Initialize backup bucket handler.

        Args:
            provider_factory: Builds the AWS backend from a spec and metadata
        """
        super().__init__(KIND_BACKUP_BUCKET)
        self.provider_factory = provider_factory

    def _reconciler(self, spec: dict[str, Any], meta: Mapping[str, Any]) -> Reconciler:
        return Reconciler(
            self.provider_factory(spec, meta),
            account_id=account_id_from_env(),
            pending_window_days=pending_window_from_env(),
            tags=spec.get("tags"),
        )

    def reconcile(
        self,
        spec: dict[str, Any],
        body: Mapping[str, Any],
        status: Mapping[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Reconcile BackupBucket resource."""
        meta = body.get("metadata", {})
        name = meta.get("name", "unknown")
        generation = meta.get("generation")

        with trace_span("reconcile_backup_bucket", kind=KIND_BACKUP_BUCKET, attributes={"backupbucket.name": name}):
            project_name = spec.get("projectName")
            if not project_name:
                error = ConfigurationError("projectName is required")
                self._record_failure(meta, status, patch, error, set_configuration_invalid_condition)
                self.handle_validation_error(body, str(error))

            emit_validate_succeeded(body)

            try:
                result = self._reconciler(spec, meta).run(project_name, bucket_name=spec.get("bucketName"))
            except ConfigurationError as e:
                self._record_failure(meta, status, patch, e, set_configuration_invalid_condition)
                raise
            except PolicyConflictError as e:
                emit_policy_conflict(body, sanitize_exception(e))
                self._record_failure(meta, status, patch, e, set_policy_conflict_condition)
                raise
            except ProvisioningError as e:
                self._record_failure(meta, status, patch, e, set_provisioning_failed_condition)
                raise

            corrected = list(result.bucket.drift_corrected)
            if result.record.changed and not result.bucket.created:
                corrected.append("registry_record")

            conditions = clear_failure_conditions(list(status.get("conditions", [])))
            conditions = set_ready_condition(conditions, True, "Backup bucket converged", generation)

            if result.bucket.created:
                self.log_info(meta, f"Created bucket {result.bucket.bucket_name}", event="create", reason="Created")
            elif corrected:
                self.log_info(
                    meta,
                    f"Corrected drift on bucket {result.bucket.bucket_name}",
                    event="drift",
                    reason="DriftCorrected",
                    corrected=corrected,
                )
            if result.bucket.created or corrected:
                emit_converged(body, result.bucket.bucket_name, corrected)

            self.update_resource_status(
                patch,
                meta,
                True,
                {
                    "state": result.state.value,
                    "bucketName": result.bucket.bucket_name,
                    "keyArn": result.key.arn,
                    "parameterName": result.record.name,
                    "parameterVersion": result.record.version,
                    "lastSyncTime": datetime.now(timezone.utc).isoformat(),
                    "conditions": conditions,
                },
            )

    def _record_failure(
        self,
        meta: Mapping[str, Any],
        status: Mapping[str, Any],
        patch: kopf.Patch,
        error: Exception,
        condition_fn: Callable[..., list[dict[str, Any]]],
    ) -> None:
        generation = meta.get("generation")

        def conditions_for(conditions: list[dict[str, Any]], message: str) -> list[dict[str, Any]]:
            conditions = condition_fn(conditions, message, generation)
            return set_ready_condition(conditions, False, message, generation)

        self.handle_reconciliation_error(
            meta,
            status,
            patch,
            error,
            condition_fn=conditions_for,
            status_data={"state": ReconcileState.FAILED.value},
        )

    def delete(
        self,
        spec: dict[str, Any],
        body: Mapping[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Handle BackupBucket resource deletion.

        The key is scheduled for deletion; the bucket and the registry record
        are retained.
        """
        meta = body.get("metadata", {})
        project_name = spec.get("projectName")
        self.log_info(meta, "BackupBucket is being deleted", event="deletion", reason="Deletion")

        if project_name:
            with trace_span("delete_backup_bucket", kind=KIND_BACKUP_BUCKET, attributes={"project.name": project_name}):
                try:
                    result = self._reconciler(spec, meta).teardown(project_name, bucket_name=spec.get("bucketName"))
                except ConfigurationError as e:
                    # Nothing can have been provisioned from an invalid spec
                    self.log_warning(
                        meta, f"Skipping teardown: {sanitize_exception(e)}", event="deletion", reason="TeardownSkipped"
                    )
                except ProvisioningError as e:
                    self.log_error(meta, "Teardown failed", error=e, event="deletion", reason="TeardownFailed")
                    raise to_kopf_error(e) from e
                else:
                    if result.key_deletion_date is not None:
                        emit_key_deletion_scheduled(body, result.key_deletion_date)
                    emit_bucket_retained(body, result.bucket_name)
                    self.log_info(
                        meta,
                        f"Bucket {result.bucket_name} retained, parameter {result.parameter_name} left in place",
                        event="deletion",
                        reason="Retained",
                        key_deletion_date=result.key_deletion_date,
                    )
        else:
            self.log_info(meta, "No projectName, nothing to tear down", event="deletion", reason="Deletion")

        self.remove_finalizer(meta, patch)


# Global handler instance
_handler = BackupBucketHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_BACKUP_BUCKET)
@kopf.on.update(API_GROUP_VERSION, KIND_BACKUP_BUCKET)
@kopf.on.resume(API_GROUP_VERSION, KIND_BACKUP_BUCKET)
@kopf.timer(API_GROUP_VERSION, KIND_BACKUP_BUCKET, interval=int_from_env("DRIFT_CHECK_INTERVAL_SECONDS", 300))
def handle_backup_bucket(
    spec: dict[str, Any],
    body: kopf.Body,
    meta: kopf.Meta,
    status: kopf.Status,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle BackupBucket resource reconciliation and periodic drift checks."""
    _handler.ensure_finalizer(meta, patch)
    _handler.reconcile_with_metrics(body, lambda: _handler.reconcile(spec, body, status, patch))


@kopf.on.delete(API_GROUP_VERSION, KIND_BACKUP_BUCKET)
def handle_backup_bucket_delete(
    spec: dict[str, Any],
    body: kopf.Body,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle BackupBucket resource deletion."""
    _handler.delete(spec, body, patch)
