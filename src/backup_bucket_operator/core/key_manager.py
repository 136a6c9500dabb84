"""Key Manager: lifecycle of the KMS key protecting the backup bucket."""

from __future__ import annotations

import logging
from datetime import datetime

from .. import metrics
from ..constants import (
    CONTROLLER_NAME,
    KEY_ALIAS_TEMPLATE,
    KEY_PENDING_WINDOW_DAYS_DEFAULT,
    KEY_PENDING_WINDOW_DAYS_MAX,
    KEY_PENDING_WINDOW_DAYS_MIN,
    TAG_MANAGED_BY,
    TAG_PROJECT,
)
from ..exceptions import ConfigurationError, ProvisioningError
from ..services.aws.client import AWS_ERRORS, error_code
from ..services.base import BackupBackend
from ..tracing import add_span_attribute, trace_span
from ..utils.errors import sanitize_exception
from .models import DeploymentContext, KeyHandle

logger = logging.getLogger(__name__)


def validate_pending_window(days: int) -> None:
    """Check a key deletion grace period against the range KMS accepts.

    Raises:
        ConfigurationError: If the period is outside 7-30 days
    """
    if isinstance(days, bool) or not isinstance(days, int) or not (
        KEY_PENDING_WINDOW_DAYS_MIN <= days <= KEY_PENDING_WINDOW_DAYS_MAX
    ):
        raise ConfigurationError(
            f"Key pending window must be between {KEY_PENDING_WINDOW_DAYS_MIN} and "
            f"{KEY_PENDING_WINDOW_DAYS_MAX} days, got {days!r}"
        )


class KeyManager:
    """Provisions the deployment's single encryption key, located by alias."""

    def __init__(
        self,
        backend: BackupBackend,
        context: DeploymentContext,
        pending_window_days: int = KEY_PENDING_WINDOW_DAYS_DEFAULT,
    ) -> None:
        validate_pending_window(pending_window_days)
        self.backend = backend
        self.context = context
        self.pending_window_days = pending_window_days
        self.alias = KEY_ALIAS_TEMPLATE.format(project=context.project_name)

    def provision(self) -> KeyHandle:
        """Return the deployment's key, creating or restoring it as needed.

        A key that is pending deletion is restored: its deletion is cancelled
        and it is enabled again.

        Raises:
            ProvisioningError: If the backend rejects a key operation
        """
        with trace_span("provision_key", attributes={"key.alias": self.alias}):
            metadata = self._describe()
            if metadata is None:
                metadata = self._create()
            else:
                self._restore(metadata)

            handle = KeyHandle(
                key_id=metadata["KeyId"],
                arn=metadata["Arn"],
                alias=self.alias,
                pending_window_days=self.pending_window_days,
            )
            add_span_attribute("key.id", handle.key_id)
            return handle

    def _describe(self) -> dict | None:
        try:
            return self.backend.describe_key_by_alias(self.alias)
        except AWS_ERRORS as e:
            metrics.key_operations_total.labels(operation="describe", result="failed").inc()
            raise ProvisioningError(
                f"Failed to look up key {self.alias}: {sanitize_exception(e)}", code=error_code(e)
            ) from e

    def _create(self) -> dict:
        tags = {TAG_PROJECT: self.context.project_name, TAG_MANAGED_BY: CONTROLLER_NAME}
        try:
            metadata = self.backend.create_key(
                description=f"Backup bucket encryption key for {self.context.project_name}",
                tags=tags,
            )
        except AWS_ERRORS as e:
            metrics.key_operations_total.labels(operation="create", result="failed").inc()
            raise ProvisioningError(
                f"Failed to create key for {self.context.project_name}: {sanitize_exception(e)}",
                code=error_code(e),
            ) from e
        metrics.key_operations_total.labels(operation="create", result="success").inc()

        try:
            self.backend.create_alias(self.alias, metadata["KeyId"])
        except AWS_ERRORS as e:
            metrics.key_operations_total.labels(operation="create_alias", result="failed").inc()
            # The new key is unreachable without its alias, so it is not kept around
            try:
                self.backend.schedule_key_deletion(metadata["KeyId"], self.pending_window_days)
            except AWS_ERRORS as cleanup_error:
                logger.error(
                    f"Failed to schedule deletion of orphaned key {metadata['KeyId']}: "
                    f"{sanitize_exception(cleanup_error)}"
                )
            raise ProvisioningError(
                f"Failed to create alias {self.alias}: {sanitize_exception(e)}", code=error_code(e)
            ) from e

        metrics.key_operations_total.labels(operation="create_alias", result="success").inc()
        logger.info(f"Created key {metadata['KeyId']} with alias {self.alias}")
        return metadata

    def _restore(self, metadata: dict) -> None:
        key_id = metadata["KeyId"]
        state = metadata.get("KeyState", "Enabled")
        try:
            if state == "PendingDeletion":
                logger.info(f"Key {key_id} is pending deletion, cancelling")
                self.backend.cancel_key_deletion(key_id)
                metrics.key_operations_total.labels(operation="cancel_deletion", result="success").inc()
                state = "Disabled"
            if state == "Disabled":
                logger.info(f"Enabling key {key_id}")
                self.backend.enable_key(key_id)
                metrics.key_operations_total.labels(operation="enable", result="success").inc()
            elif state != "Enabled":
                raise ProvisioningError(f"Key {self.alias} is in state {state} and cannot be used", code=state)
        except AWS_ERRORS as e:
            metrics.key_operations_total.labels(operation="restore", result="failed").inc()
            raise ProvisioningError(
                f"Failed to restore key {self.alias}: {sanitize_exception(e)}", code=error_code(e)
            ) from e

    def lookup(self) -> KeyHandle | None:
        """Return the deployment's key without changing it, or None if there is none.

        Raises:
            ProvisioningError: If the backend lookup fails
        """
        metadata = self._describe()
        if metadata is None:
            return None
        return KeyHandle(
            key_id=metadata["KeyId"],
            arn=metadata["Arn"],
            alias=self.alias,
            pending_window_days=self.pending_window_days,
        )

    def schedule_destruction(self, handle: KeyHandle) -> datetime:
        """Schedule the key for deletion after its grace period.

        A repeat ``provision()`` within the grace period cancels the deletion.
        Scheduling a key that is already pending deletion keeps the original date.

        Returns:
            The date at which the key will be deleted

        Raises:
            ProvisioningError: If the backend rejects the request
        """
        with trace_span("schedule_key_deletion", attributes={"key.alias": handle.alias}):
            try:
                deletion_date = self.backend.schedule_key_deletion(handle.key_id, handle.pending_window_days)
            except AWS_ERRORS as e:
                if error_code(e) == "KMSInvalidStateException":
                    pending_date = self._pending_deletion_date()
                    if pending_date is not None:
                        logger.info(f"Key {handle.key_id} is already pending deletion ({pending_date})")
                        return pending_date
                metrics.key_operations_total.labels(operation="schedule_deletion", result="failed").inc()
                raise ProvisioningError(
                    f"Failed to schedule deletion of key {handle.alias}: {sanitize_exception(e)}",
                    code=error_code(e),
                ) from e
            metrics.key_operations_total.labels(operation="schedule_deletion", result="success").inc()
            logger.info(
                f"Key {handle.key_id} scheduled for deletion in {handle.pending_window_days} days ({deletion_date})"
            )
            return deletion_date

    def _pending_deletion_date(self) -> datetime | None:
        try:
            metadata = self.backend.describe_key_by_alias(self.alias)
        except AWS_ERRORS as e:
            logger.warning(f"Failed to re-read key {self.alias}: {sanitize_exception(e)}")
            return None
        if metadata and metadata.get("KeyState") == "PendingDeletion":
            return metadata.get("DeletionDate")
        return None
