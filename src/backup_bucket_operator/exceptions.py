"""Exception types raised by the backup bucket reconciler."""

from __future__ import annotations


class BackupBucketError(Exception):
    """Base class for all reconciler errors."""


class ConfigurationError(BackupBucketError):
    """Invalid or missing configuration. Never retried."""


class ProvisioningError(BackupBucketError):
    """The backend rejected an operation (quota, permission, name collision)."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class PolicyConflictError(BackupBucketError):
    """An existing resource is incompatible with the desired policy.

    Requires manual resolution; the existing resource is never overwritten.
    """

    def __init__(self, message: str, resource_type: str) -> None:
        super().__init__(message)
        self.resource_type = resource_type
