"""Shared fixtures: an in-memory AWS backend with the AWSProvider interface."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from botocore.exceptions import ClientError

from backup_bucket_operator.core.models import DeploymentContext

ACCOUNT_ID = "123456789012"
REGION = "eu-central-1"
NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def client_error(code: str, operation: str = "Operation", status: int = 400) -> ClientError:
    """Build a botocore ClientError with the given error code."""
    return ClientError(
        {"Error": {"Code": code, "Message": f"{code} raised"}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class FakeBackend:
    """Stateful stand-in for AWSProvider covering KMS, S3, SSM and STS."""

    def __init__(self, region: str = REGION, account_id: str = ACCOUNT_ID) -> None:
        self.region = region
        self.account_id = account_id
        self.keys: dict[str, dict[str, Any]] = {}
        self.aliases: dict[str, str] = {}
        self.buckets: dict[str, dict[str, Any]] = {}
        self.parameters: dict[str, dict[str, Any]] = {}
        self.calls: list[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)

    def writes(self) -> list[str]:
        """Calls that changed state."""
        read_prefixes = ("get_", "describe_", "bucket_exists")
        return [c for c in self.calls if not c.startswith(read_prefixes)]

    def get_account_id(self) -> str:
        self._record("get_account_id")
        return self.account_id

    def describe_key_by_alias(self, alias: str) -> dict[str, Any] | None:
        self._record("describe_key_by_alias")
        key_id = self.aliases.get(alias)
        return copy.deepcopy(self.keys[key_id]) if key_id else None

    def create_key(self, description: str, tags: dict[str, str]) -> dict[str, Any]:
        self._record("create_key")
        key_id = f"key-{len(self.keys) + 1:04d}"
        self.keys[key_id] = {
            "KeyId": key_id,
            "Arn": f"arn:aws:kms:{self.region}:{self.account_id}:key/{key_id}",
            "KeyState": "Enabled",
            "Description": description,
            "Tags": dict(tags),
        }
        return copy.deepcopy(self.keys[key_id])

    def create_alias(self, alias: str, key_id: str) -> None:
        self._record("create_alias")
        if alias in self.aliases:
            raise client_error("AlreadyExistsException", "CreateAlias")
        self.aliases[alias] = key_id

    def enable_key(self, key_id: str) -> None:
        self._record("enable_key")
        self.keys[key_id]["KeyState"] = "Enabled"

    def cancel_key_deletion(self, key_id: str) -> None:
        self._record("cancel_key_deletion")
        self.keys[key_id]["KeyState"] = "Disabled"
        self.keys[key_id].pop("DeletionDate", None)

    def schedule_key_deletion(self, key_id: str, pending_window_days: int) -> datetime:
        self._record("schedule_key_deletion")
        key = self.keys[key_id]
        if key["KeyState"] == "PendingDeletion":
            raise client_error("KMSInvalidStateException", "ScheduleKeyDeletion")
        key["KeyState"] = "PendingDeletion"
        key["PendingWindowInDays"] = pending_window_days
        key["DeletionDate"] = NOW + timedelta(days=pending_window_days)
        return key["DeletionDate"]

    def bucket_exists(self, name: str) -> bool:
        self._record("bucket_exists")
        return name in self.buckets

    def create_bucket(self, name: str, region: str | None = None) -> None:
        self._record("create_bucket")
        if name in self.buckets:
            raise client_error("BucketAlreadyOwnedByYou", "CreateBucket", 409)
        # New buckets get SSE-S3 and owner-enforced ownership by default
        self.buckets[name] = {
            "region": region,
            "versioning": None,
            "encryption": {"algorithm": "AES256", "kms_key_id": None},
            "public_access_block": None,
            "ownership": "BucketOwnerEnforced",
            "policy": None,
            "lifecycle": None,
            "tags": {},
            "objects": {},
        }

    def get_bucket_versioning(self, name: str) -> dict[str, bool]:
        self._record("get_bucket_versioning")
        status = self.buckets[name]["versioning"]
        return {"enabled": status == "Enabled", "suspended": status == "Suspended", "mfa_delete": False}

    def set_bucket_versioning(self, name: str, enabled: bool) -> None:
        self._record("set_bucket_versioning")
        self.buckets[name]["versioning"] = "Enabled" if enabled else "Suspended"

    def get_bucket_encryption(self, name: str) -> dict[str, str | None]:
        self._record("get_bucket_encryption")
        return dict(self.buckets[name]["encryption"])

    def set_bucket_encryption(self, name: str, algorithm: str, kms_key_id: str | None = None) -> None:
        self._record("set_bucket_encryption")
        self.buckets[name]["encryption"] = {"algorithm": algorithm, "kms_key_id": kms_key_id}

    def get_public_access_block(self, name: str) -> dict[str, bool] | None:
        self._record("get_public_access_block")
        block = self.buckets[name]["public_access_block"]
        return dict(block) if block is not None else None

    def put_public_access_block(self, name: str, configuration: dict[str, bool]) -> None:
        self._record("put_public_access_block")
        self.buckets[name]["public_access_block"] = dict(configuration)

    def get_bucket_ownership(self, name: str) -> str | None:
        self._record("get_bucket_ownership")
        return self.buckets[name]["ownership"]

    def set_bucket_ownership(self, name: str, object_ownership: str) -> None:
        self._record("set_bucket_ownership")
        self.buckets[name]["ownership"] = object_ownership

    def get_bucket_policy(self, name: str) -> dict[str, Any] | None:
        self._record("get_bucket_policy")
        return copy.deepcopy(self.buckets[name]["policy"])

    def set_bucket_policy(self, name: str, policy: dict[str, Any]) -> None:
        self._record("set_bucket_policy")
        self.buckets[name]["policy"] = copy.deepcopy(policy)

    def get_bucket_lifecycle(self, name: str) -> dict[str, Any] | None:
        self._record("get_bucket_lifecycle")
        return copy.deepcopy(self.buckets[name]["lifecycle"])

    def set_bucket_lifecycle(self, name: str, configuration: dict[str, Any]) -> None:
        self._record("set_bucket_lifecycle")
        self.buckets[name]["lifecycle"] = copy.deepcopy(configuration)

    def get_bucket_tags(self, name: str) -> dict[str, str]:
        self._record("get_bucket_tags")
        return dict(self.buckets[name]["tags"])

    def set_bucket_tags(self, name: str, tags: dict[str, str]) -> None:
        self._record("set_bucket_tags")
        self.buckets[name]["tags"] = dict(tags)

    def get_parameter(self, name: str) -> dict[str, Any] | None:
        self._record("get_parameter")
        parameter = self.parameters.get(name)
        return dict(parameter) if parameter else None

    def put_parameter(self, name: str, value: str, parameter_type: str, description: str = "") -> int:
        self._record("put_parameter")
        version = self.parameters.get(name, {}).get("Version", 0) + 1
        self.parameters[name] = {"Name": name, "Value": value, "Type": parameter_type, "Version": version}
        return version


@pytest.fixture
def backend() -> FakeBackend:
    """Empty in-memory backend."""
    return FakeBackend()


@pytest.fixture
def context() -> DeploymentContext:
    """Deployment context for project acme."""
    return DeploymentContext(project_name="acme", account_id=ACCOUNT_ID, region=REGION)
