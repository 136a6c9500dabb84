"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_BUCKET_RETAINED,
    EVENT_REASON_CONVERGED,
    EVENT_REASON_KEY_DELETION_SCHEDULED,
    EVENT_REASON_POLICY_CONFLICT,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_VALIDATE_FAILED,
    EVENT_REASON_VALIDATE_SUCCEEDED,
)


def emit_event(
    body: Mapping[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body (apiVersion, kind and metadata)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: Mapping[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: Mapping[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_succeeded(body: Mapping[str, Any]) -> None:
    """Emit validation succeeded event."""
    emit_event(body, EVENT_REASON_VALIDATE_SUCCEEDED, "Validation succeeded")


def emit_validate_failed(body: Mapping[str, Any], message: str) -> None:
    """Emit validation failed event."""
    emit_event(body, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_converged(body: Mapping[str, Any], bucket_name: str, corrected: list[str]) -> None:
    """Emit converged event, naming any drift that was corrected."""
    message = f"Bucket {bucket_name} converged"
    if corrected:
        message += f", corrected drift in {', '.join(corrected)}"
    emit_event(body, EVENT_REASON_CONVERGED, message)


def emit_policy_conflict(body: Mapping[str, Any], message: str) -> None:
    """Emit policy conflict event."""
    emit_event(body, EVENT_REASON_POLICY_CONFLICT, message, type_="Warning")


def emit_key_deletion_scheduled(body: Mapping[str, Any], deletion_date: datetime | None) -> None:
    """Emit key deletion scheduled event."""
    emit_event(body, EVENT_REASON_KEY_DELETION_SCHEDULED, f"Encryption key scheduled for deletion on {deletion_date}")


def emit_bucket_retained(body: Mapping[str, Any], bucket_name: str) -> None:
    """Emit bucket retained event."""
    emit_event(body, EVENT_REASON_BUCKET_RETAINED, f"Bucket {bucket_name} and its contents were retained")
