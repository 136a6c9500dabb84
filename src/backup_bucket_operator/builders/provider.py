"""Builder for AWS provider instances and reconciler settings."""

from __future__ import annotations

import os
from typing import Any

from kubernetes import client, config

from ..constants import KEY_PENDING_WINDOW_DAYS_DEFAULT
from ..core.key_manager import validate_pending_window
from ..exceptions import ConfigurationError
from ..services.aws.client import AWSProvider
from ..utils.secrets import get_secret_value


def resolve_region(spec: dict[str, Any]) -> str:
    """Return the region from the resource spec or the environment.

    Raises:
        ConfigurationError: If no region is configured anywhere
    """
    region = spec.get("region") or os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
    if not region:
        raise ConfigurationError("region is required: set spec.region or AWS_REGION")
    return region


def int_from_env(name: str, default: int) -> int:
    """Read a positive integer setting from the environment.

    Raises:
        ConfigurationError: If the value is not a positive integer
    """
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def pending_window_from_env() -> int:
    """Read the key deletion grace period from ``KEY_PENDING_WINDOW_DAYS``.

    Raises:
        ConfigurationError: If the value is not an integer between 7 and 30
    """
    days = int_from_env("KEY_PENDING_WINDOW_DAYS", KEY_PENDING_WINDOW_DAYS_DEFAULT)
    validate_pending_window(days)
    return days


def account_id_from_env() -> str | None:
    """Return ``AWS_ACCOUNT_ID`` if set; the reconciler asks STS otherwise."""
    return os.getenv("AWS_ACCOUNT_ID") or None


def create_provider_from_spec(
    spec: dict[str, Any],
    meta: dict[str, Any],
) -> AWSProvider:
    """Create an AWS provider instance from a BackupBucket spec.

    Without ``spec.auth`` the default boto3 credential chain is used (IRSA,
    instance profile, environment).

    Args:
        spec: BackupBucket CRD spec
        meta: Resource metadata

    Returns:
        Configured AWS provider instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    region = resolve_region(spec)
    endpoint = spec.get("endpoint") or os.getenv("AWS_ENDPOINT_URL") or None

    auth = spec.get("auth") or {}
    if not auth:
        return AWSProvider(region=region, endpoint=endpoint)

    access_key_ref = auth.get("accessKeySecretRef", {})
    secret_key_ref = auth.get("secretKeySecretRef", {})

    access_key_name = access_key_ref.get("name")
    access_key_key = access_key_ref.get("key", "access-key")
    secret_key_name = secret_key_ref.get("name")
    secret_key_key = secret_key_ref.get("key", "secret-key")

    if not access_key_name or not secret_key_name:
        raise ConfigurationError("auth requires both accessKeySecretRef and secretKeySecretRef")

    # Get Kubernetes API client
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    api = client.CoreV1Api()
    namespace = meta.get("namespace", "default")

    access_key = get_secret_value(api, namespace, access_key_name, access_key_key)
    secret_key = get_secret_value(api, namespace, secret_key_name, secret_key_key)

    # Get optional session token
    session_token = None
    session_token_ref = auth.get("sessionTokenSecretRef")
    if session_token_ref and session_token_ref.get("name"):
        session_token = get_secret_value(
            api, namespace, session_token_ref["name"], session_token_ref.get("key", "session-token")
        )

    return AWSProvider(
        region=region,
        endpoint=endpoint,
        access_key=access_key,
        secret_key=secret_key,
        session_token=session_token,
    )
