"""Backend interface used by the reconciler components."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol


class BackupBackend(Protocol):
    """Protocol defining the key, storage and registry operations."""

    region: str

    def get_account_id(self) -> str:
        """Return the account ID of the calling credentials."""
        ...

    def describe_key_by_alias(self, alias: str) -> dict[str, Any] | None:
        """Describe the key an alias points to, None if missing."""
        ...

    def create_key(self, description: str, tags: dict[str, str]) -> dict[str, Any]:
        """Create a symmetric encryption key."""
        ...

    def create_alias(self, alias: str, key_id: str) -> None:
        """Point a new alias at a key."""
        ...

    def enable_key(self, key_id: str) -> None:
        """Enable a disabled key."""
        ...

    def cancel_key_deletion(self, key_id: str) -> None:
        """Cancel a pending key deletion."""
        ...

    def schedule_key_deletion(self, key_id: str, pending_window_days: int) -> datetime:
        """Schedule a key for deletion after the pending window."""
        ...

    def bucket_exists(self, name: str) -> bool:
        """Check if a bucket exists."""
        ...

    def create_bucket(self, name: str, region: str | None = None) -> None:
        """Create a bucket."""
        ...

    def get_bucket_versioning(self, name: str) -> dict[str, bool]:
        """Get bucket versioning configuration."""
        ...

    def set_bucket_versioning(self, name: str, enabled: bool) -> None:
        """Set bucket versioning configuration."""
        ...

    def get_bucket_encryption(self, name: str) -> dict[str, str | None]:
        """Get bucket encryption configuration."""
        ...

    def set_bucket_encryption(self, name: str, algorithm: str, kms_key_id: str | None = None) -> None:
        """Set bucket encryption configuration."""
        ...

    def get_public_access_block(self, name: str) -> dict[str, bool] | None:
        """Get the bucket's public access block."""
        ...

    def put_public_access_block(self, name: str, configuration: dict[str, bool]) -> None:
        """Set the bucket's public access block."""
        ...

    def get_bucket_ownership(self, name: str) -> str | None:
        """Get the bucket's object ownership setting."""
        ...

    def set_bucket_ownership(self, name: str, object_ownership: str) -> None:
        """Set the bucket's object ownership setting."""
        ...

    def get_bucket_policy(self, name: str) -> dict[str, Any] | None:
        """Get bucket policy."""
        ...

    def set_bucket_policy(self, name: str, policy: dict[str, Any]) -> None:
        """Set bucket policy."""
        ...

    def get_bucket_lifecycle(self, name: str) -> dict[str, Any] | None:
        """Get bucket lifecycle configuration."""
        ...

    def set_bucket_lifecycle(self, name: str, configuration: dict[str, Any]) -> None:
        """Set bucket lifecycle configuration."""
        ...

    def get_bucket_tags(self, name: str) -> dict[str, str]:
        """Get bucket tags."""
        ...

    def set_bucket_tags(self, name: str, tags: dict[str, str]) -> None:
        """Set bucket tags."""
        ...

    def get_parameter(self, name: str) -> dict[str, Any] | None:
        """Get a parameter, None if it does not exist."""
        ...

    def put_parameter(self, name: str, value: str, parameter_type: str, description: str = "") -> int:
        """Create or overwrite a parameter."""
        ...
