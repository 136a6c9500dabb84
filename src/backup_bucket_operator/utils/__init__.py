"""Utility functions for the Backup Bucket Operator."""

from .conditions import (
    set_configuration_invalid_condition,
    set_policy_conflict_condition,
    set_provisioning_failed_condition,
    set_ready_condition,
    update_condition,
)
from .errors import sanitize_exception
from .events import emit_event
from .secrets import get_secret_value

__all__ = [
    "update_condition",
    "set_ready_condition",
    "set_configuration_invalid_condition",
    "set_provisioning_failed_condition",
    "set_policy_conflict_condition",
    "emit_event",
    "get_secret_value",
    "sanitize_exception",
]
