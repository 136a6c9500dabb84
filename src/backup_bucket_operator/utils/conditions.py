"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_CONFIGURATION_INVALID,
    COND_POLICY_CONFLICT,
    COND_PROVISIONING_FAILED,
    COND_READY,
)


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).isoformat()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is not None:
        existing = conditions[existing_idx]
        # Only update lastTransitionTime if status changed
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def clear_condition(conditions: list[dict[str, Any]], condition_type: str) -> list[dict[str, Any]]:
    """Drop a condition from the list if present."""
    return [cond for cond in conditions if cond.get("type") != condition_type]


def set_ready_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the Ready condition."""
    return update_condition(
        conditions,
        COND_READY,
        "True" if status else "False",
        "Converged" if status else "NotConverged",
        message,
        observed_generation,
    )


def set_configuration_invalid_condition(
    conditions: list[dict[str, Any]],
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the ConfigurationInvalid condition."""
    return update_condition(
        conditions,
        COND_CONFIGURATION_INVALID,
        "True",
        "ConfigurationInvalid",
        message,
        observed_generation,
    )


def set_provisioning_failed_condition(
    conditions: list[dict[str, Any]],
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the ProvisioningFailed condition."""
    return update_condition(
        conditions,
        COND_PROVISIONING_FAILED,
        "True",
        "ProvisioningFailed",
        message,
        observed_generation,
    )


def set_policy_conflict_condition(
    conditions: list[dict[str, Any]],
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the PolicyConflict condition."""
    return update_condition(
        conditions,
        COND_POLICY_CONFLICT,
        "True",
        "PolicyConflict",
        message,
        observed_generation,
    )


def clear_failure_conditions(conditions: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop every failure condition after a successful reconcile."""
    for condition_type in (COND_CONFIGURATION_INVALID, COND_PROVISIONING_FAILED, COND_POLICY_CONFLICT):
        conditions = clear_condition(conditions, condition_type)
    return conditions
