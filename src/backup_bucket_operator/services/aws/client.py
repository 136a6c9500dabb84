"""AWS client implementation for the KMS, S3 and SSM calls of a reconcile."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# Error codes S3 returns for a bucket that does not exist
_NO_SUCH_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


# Everything a boto3 call can raise: service errors and transport failures
AWS_ERRORS = (ClientError, BotoCoreError)


def error_code(error: Exception) -> str:
    """Return the service error code of a botocore error, or its class name."""
    if isinstance(error, ClientError):
        return str(error.response.get("Error", {}).get("Code", ""))
    return type(error).__name__


class AWSProvider:
    """AWS provider wrapping the S3, KMS, SSM and STS clients."""

    def __init__(
        self,
        region: str,
        endpoint: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        session_token: str | None = None,
    ) -> None:
        """Initialize AWS provider.

        Credentials left unset fall back to the default boto3 credential chain.

        Args:
            region: AWS region
            endpoint: Optional endpoint URL override (e.g. LocalStack)
            access_key: Optional access key ID
            secret_key: Optional secret access key
            session_token: Optional session token for temporary credentials
        """
        self.region = region
        self.endpoint = endpoint

        config = Config(
            signature_version="s3v4",
            retries={"max_attempts": 1, "mode": "standard"},
        )
        client_kwargs: dict[str, Any] = {
            "region_name": region,
            "endpoint_url": endpoint,
            "aws_access_key_id": access_key,
            "aws_secret_access_key": secret_key,
            "aws_session_token": session_token,
            "config": config,
        }

        self.client = boto3.client("s3", **client_kwargs)
        self.kms_client = boto3.client("kms", **client_kwargs)
        self.ssm_client = boto3.client("ssm", **client_kwargs)
        self.sts_client = boto3.client("sts", **client_kwargs)

    def get_account_id(self) -> str:
        """Return the account ID of the calling credentials."""
        try:
            return self.sts_client.get_caller_identity()["Account"]
        except ClientError as e:
            logger.error(f"Failed to resolve caller identity: {e}")
            raise

    def describe_key_by_alias(self, alias: str) -> dict[str, Any] | None:
        """Describe the key an alias points to.

        Returns:
            KeyMetadata dict, or None if the alias does not exist
        """
        try:
            response = self.kms_client.describe_key(KeyId=alias)
            return response["KeyMetadata"]
        except ClientError as e:
            if error_code(e) == "NotFoundException":
                return None
            logger.error(f"Failed to describe key {alias}: {e}")
            raise

    def create_key(self, description: str, tags: dict[str, str]) -> dict[str, Any]:
        """Create a symmetric encryption key.

        Returns:
            KeyMetadata of the new key
        """
        try:
            response = self.kms_client.create_key(
                Description=description,
                KeyUsage="ENCRYPT_DECRYPT",
                KeySpec="SYMMETRIC_DEFAULT",
                Tags=[{"TagKey": k, "TagValue": v} for k, v in tags.items()],
            )
            metadata = response["KeyMetadata"]
            logger.info(f"Created KMS key {metadata['KeyId']}")
            return metadata
        except ClientError as e:
            logger.error(f"Failed to create KMS key: {e}")
            raise

    def create_alias(self, alias: str, key_id: str) -> None:
        """Point a new alias at a key."""
        try:
            self.kms_client.create_alias(AliasName=alias, TargetKeyId=key_id)
        except ClientError as e:
            logger.error(f"Failed to create alias {alias}: {e}")
            raise

    def enable_key(self, key_id: str) -> None:
        """Enable a disabled key."""
        try:
            self.kms_client.enable_key(KeyId=key_id)
        except ClientError as e:
            logger.error(f"Failed to enable key {key_id}: {e}")
            raise

    def cancel_key_deletion(self, key_id: str) -> None:
        """Cancel a pending key deletion. The key is left disabled."""
        try:
            self.kms_client.cancel_key_deletion(KeyId=key_id)
        except ClientError as e:
            logger.error(f"Failed to cancel deletion of key {key_id}: {e}")
            raise

    def schedule_key_deletion(self, key_id: str, pending_window_days: int) -> datetime:
        """Schedule a key for deletion after the pending window.

        Returns:
            The date at which the key will be deleted
        """
        try:
            response = self.kms_client.schedule_key_deletion(
                KeyId=key_id,
                PendingWindowInDays=pending_window_days,
            )
            return response["DeletionDate"]
        except ClientError as e:
            logger.error(f"Failed to schedule deletion of key {key_id}: {e}")
            raise

    def bucket_exists(self, name: str) -> bool:
        """Check if bucket exists.

        Raises:
            ClientError: For anything but a missing bucket (e.g. 403 when the
                name is owned by another account)
        """
        try:
            self.client.head_bucket(Bucket=name)
            return True
        except ClientError as e:
            if error_code(e) in _NO_SUCH_BUCKET_CODES:
                return False
            logger.error(f"Failed to check bucket {name}: {e}")
            raise

    def create_bucket(self, name: str, region: str | None = None) -> None:
        """Create a bucket with ACLs disabled (bucket owner enforced)."""
        try:
            create_params: dict[str, Any] = {
                "Bucket": name,
                "ObjectOwnership": "BucketOwnerEnforced",
            }
            # us-east-1 rejects an explicit location constraint
            if region and region != "us-east-1":
                create_params["CreateBucketConfiguration"] = {"LocationConstraint": region}

            self.client.create_bucket(**create_params)
            logger.info(f"Created bucket {name}")
        except ClientError as e:
            logger.error(f"Failed to create bucket {name}: {e}")
            raise

    def get_bucket_versioning(self, name: str) -> dict[str, bool]:
        """Get bucket versioning configuration."""
        try:
            response = self.client.get_bucket_versioning(Bucket=name)
            return {
                "enabled": response.get("Status") == "Enabled",
                "suspended": response.get("Status") == "Suspended",
                "mfa_delete": response.get("MFADelete") == "Enabled",
            }
        except ClientError as e:
            logger.error(f"Failed to get versioning for bucket {name}: {e}")
            raise

    def set_bucket_versioning(self, name: str, enabled: bool) -> None:
        """Set bucket versioning configuration."""
        try:
            self.client.put_bucket_versioning(
                Bucket=name,
                VersioningConfiguration={"Status": "Enabled" if enabled else "Suspended"},
            )
        except ClientError as e:
            logger.error(f"Failed to set versioning for bucket {name}: {e}")
            raise

    def get_bucket_encryption(self, name: str) -> dict[str, str | None]:
        """Get bucket encryption configuration."""
        try:
            response = self.client.get_bucket_encryption(Bucket=name)
            rules = response.get("ServerSideEncryptionConfiguration", {}).get("Rules", [])
            if rules:
                sse_config = rules[0].get("ApplyServerSideEncryptionByDefault", {})
                return {
                    "algorithm": sse_config.get("SSEAlgorithm"),
                    "kms_key_id": sse_config.get("KMSMasterKeyID"),
                }
            return {"algorithm": None, "kms_key_id": None}
        except ClientError as e:
            # Encryption not configured
            if error_code(e) == "ServerSideEncryptionConfigurationNotFoundError":
                return {"algorithm": None, "kms_key_id": None}
            logger.error(f"Failed to get encryption for bucket {name}: {e}")
            raise

    def set_bucket_encryption(self, name: str, algorithm: str, kms_key_id: str | None = None) -> None:
        """Set bucket encryption configuration."""
        try:
            default_encryption: dict[str, str] = {"SSEAlgorithm": algorithm}
            if kms_key_id:
                default_encryption["KMSMasterKeyID"] = kms_key_id

            self.client.put_bucket_encryption(
                Bucket=name,
                ServerSideEncryptionConfiguration={
                    "Rules": [{"ApplyServerSideEncryptionByDefault": default_encryption}]
                },
            )
        except ClientError as e:
            logger.error(f"Failed to set encryption for bucket {name}: {e}")
            raise

    def get_public_access_block(self, name: str) -> dict[str, bool] | None:
        """Get the bucket's public access block, None if not configured."""
        try:
            response = self.client.get_public_access_block(Bucket=name)
            return response.get("PublicAccessBlockConfiguration", {})
        except ClientError as e:
            if error_code(e) == "NoSuchPublicAccessBlockConfiguration":
                return None
            logger.error(f"Failed to get public access block for bucket {name}: {e}")
            raise

    def put_public_access_block(self, name: str, configuration: dict[str, bool]) -> None:
        """Set the bucket's public access block."""
        try:
            self.client.put_public_access_block(
                Bucket=name,
                PublicAccessBlockConfiguration=configuration,
            )
        except ClientError as e:
            logger.error(f"Failed to set public access block for bucket {name}: {e}")
            raise

    def get_bucket_ownership(self, name: str) -> str | None:
        """Get the bucket's object ownership setting, None if not configured."""
        try:
            response = self.client.get_bucket_ownership_controls(Bucket=name)
            rules = response.get("OwnershipControls", {}).get("Rules", [])
            return rules[0].get("ObjectOwnership") if rules else None
        except ClientError as e:
            if error_code(e) == "OwnershipControlsNotFoundError":
                return None
            logger.error(f"Failed to get ownership controls for bucket {name}: {e}")
            raise

    def set_bucket_ownership(self, name: str, object_ownership: str) -> None:
        """Set the bucket's object ownership setting."""
        try:
            self.client.put_bucket_ownership_controls(
                Bucket=name,
                OwnershipControls={"Rules": [{"ObjectOwnership": object_ownership}]},
            )
        except ClientError as e:
            logger.error(f"Failed to set ownership controls for bucket {name}: {e}")
            raise

    def get_bucket_policy(self, name: str) -> dict[str, Any] | None:
        """Get bucket policy.

        Returns:
            Policy document dict if policy exists, None if no policy is set
        """
        try:
            response = self.client.get_bucket_policy(Bucket=name)
            return json.loads(response["Policy"])
        except ClientError as e:
            # No policy configured - return None
            if error_code(e) == "NoSuchBucketPolicy":
                return None
            logger.error(f"Failed to get policy for bucket {name}: {e}")
            raise

    def set_bucket_policy(self, name: str, policy: dict[str, Any]) -> None:
        """Set bucket policy."""
        try:
            self.client.put_bucket_policy(Bucket=name, Policy=json.dumps(policy))
            logger.info(f"Set bucket policy for {name}")
        except ClientError as e:
            logger.error(f"Failed to set policy for bucket {name}: {e}")
            raise

    def get_bucket_lifecycle(self, name: str) -> dict[str, Any] | None:
        """Get bucket lifecycle configuration, None if not configured."""
        try:
            return self.client.get_bucket_lifecycle_configuration(Bucket=name)
        except ClientError as e:
            if error_code(e) == "NoSuchLifecycleConfiguration":
                return None
            logger.error(f"Failed to get lifecycle for bucket {name}: {e}")
            raise

    def set_bucket_lifecycle(self, name: str, configuration: dict[str, Any]) -> None:
        """Set bucket lifecycle configuration."""
        try:
            self.client.put_bucket_lifecycle_configuration(
                Bucket=name,
                LifecycleConfiguration=configuration,
            )
        except ClientError as e:
            logger.error(f"Failed to set lifecycle for bucket {name}: {e}")
            raise

    def get_bucket_tags(self, name: str) -> dict[str, str]:
        """Get bucket tags."""
        try:
            response = self.client.get_bucket_tagging(Bucket=name)
            return {tag["Key"]: tag["Value"] for tag in response.get("TagSet", [])}
        except ClientError as e:
            # Tags not configured - return empty dict
            if error_code(e) == "NoSuchTagSet":
                return {}
            logger.error(f"Failed to get tags for bucket {name}: {e}")
            raise

    def set_bucket_tags(self, name: str, tags: dict[str, str]) -> None:
        """Set bucket tags."""
        try:
            tag_set = [{"Key": k, "Value": v} for k, v in tags.items()]
            self.client.put_bucket_tagging(
                Bucket=name,
                Tagging={"TagSet": tag_set},
            )
        except ClientError as e:
            logger.error(f"Failed to set tags for bucket {name}: {e}")
            raise

    def get_parameter(self, name: str) -> dict[str, Any] | None:
        """Get a parameter, None if it does not exist."""
        try:
            response = self.ssm_client.get_parameter(Name=name)
            return response["Parameter"]
        except ClientError as e:
            if error_code(e) == "ParameterNotFound":
                return None
            logger.error(f"Failed to get parameter {name}: {e}")
            raise

    def put_parameter(self, name: str, value: str, parameter_type: str, description: str = "") -> int:
        """Create or overwrite a parameter.

        Returns:
            The new parameter version
        """
        try:
            response = self.ssm_client.put_parameter(
                Name=name,
                Value=value,
                Type=parameter_type,
                Description=description,
                Overwrite=True,
            )
            return response["Version"]
        except ClientError as e:
            logger.error(f"Failed to put parameter {name}: {e}")
            raise
