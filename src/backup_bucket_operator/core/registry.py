"""Registry Publisher: makes the bucket name discoverable through SSM Parameter Store."""

from __future__ import annotations

import logging
import re

from .. import metrics
from ..constants import PARAMETER_TYPE
from ..exceptions import ProvisioningError
from ..services.aws.client import AWS_ERRORS, error_code
from ..services.base import BackupBackend
from ..tracing import trace_span
from ..utils.errors import sanitize_exception
from .models import RegistryRecord

logger = logging.getLogger(__name__)

PARAMETER_NAME_MAX_LENGTH = 1011
PARAMETER_MAX_DEPTH = 15

_PARAMETER_NAME_RE = re.compile(r"^[a-zA-Z0-9_.\-/]+$")
_RESERVED_PREFIX_RE = re.compile(r"^/?(aws|ssm)", re.IGNORECASE)


def validate_parameter_name(name: str) -> None:
    """Check a parameter name against Parameter Store constraints.

    Raises:
        ProvisioningError: If the backend would reject the name
    """
    if not name or not name.startswith("/"):
        raise ProvisioningError(f"Parameter name {name!r} must be a fully qualified path", code="ValidationException")
    if len(name) > PARAMETER_NAME_MAX_LENGTH:
        raise ProvisioningError(
            f"Parameter name is {len(name)} characters, at most {PARAMETER_NAME_MAX_LENGTH} are allowed",
            code="ValidationException",
        )
    if not _PARAMETER_NAME_RE.match(name) or "//" in name or name.endswith("/"):
        raise ProvisioningError(f"Parameter name {name!r} contains invalid characters", code="ValidationException")
    if name.count("/") > PARAMETER_MAX_DEPTH:
        raise ProvisioningError(
            f"Parameter name {name!r} is deeper than {PARAMETER_MAX_DEPTH} levels", code="ValidationException"
        )
    if _RESERVED_PREFIX_RE.match(name):
        raise ProvisioningError(f"Parameter name {name!r} uses a reserved prefix", code="ValidationException")


class RegistryPublisher:
    """Publishes plain string records; publishing twice overwrites."""

    def __init__(self, backend: BackupBackend) -> None:
        self.backend = backend

    def publish(self, name: str, value: str) -> RegistryRecord:
        """Publish ``value`` under ``name``.

        An unchanged value is not written again, so repeated publishing does
        not create new parameter versions.

        Raises:
            ProvisioningError: If the name is invalid or the backend fails
        """
        validate_parameter_name(name)

        with trace_span("publish_record", attributes={"parameter.name": name}):
            try:
                current = self.backend.get_parameter(name)
            except AWS_ERRORS as e:
                metrics.parameter_operations_total.labels(operation="get", result="failed").inc()
                raise ProvisioningError(
                    f"Failed to read parameter {name}: {sanitize_exception(e)}", code=error_code(e)
                ) from e

            if current is not None and current.get("Value") == value and current.get("Type") == PARAMETER_TYPE:
                logger.debug(f"Parameter {name} already up to date")
                return RegistryRecord(name=name, value=value, version=current.get("Version", 1))

            try:
                version = self.backend.put_parameter(
                    name,
                    value,
                    PARAMETER_TYPE,
                    description="Name of the backup bucket",
                )
            except AWS_ERRORS as e:
                metrics.parameter_operations_total.labels(operation="put", result="failed").inc()
                raise ProvisioningError(
                    f"Failed to publish parameter {name}: {sanitize_exception(e)}", code=error_code(e)
                ) from e

            metrics.parameter_operations_total.labels(operation="put", result="success").inc()
            if current is None:
                logger.info(f"Published parameter {name}")
            else:
                logger.info(f"Updated parameter {name} (was {current.get('Value')!r})")
            return RegistryRecord(name=name, value=value, version=version, changed=True)
