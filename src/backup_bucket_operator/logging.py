"""Structured logging configuration for the Backup Bucket Operator."""

import json
import logging
import os
import sys
from typing import Any

from .constants import CONTROLLER_NAME
from .exceptions import ConfigurationError
from .utils.errors import sanitize_dict


def setup_structured_logging() -> None:
    """Configure structured JSON logging.

    The level comes from ``LOG_LEVEL`` (default INFO).

    Raises:
        ConfigurationError: If ``LOG_LEVEL`` is not a logging level name
    """
    level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"LOG_LEVEL must be a logging level name, got {level!r}")
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # botocore logs every retry and credential lookup at INFO
    logging.getLogger("botocore").setLevel(logging.WARNING)


def log_resource_event(
    logger: logging.Logger,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    controller: str = CONTROLLER_NAME,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured resource event.

    Extra fields are passed through ``sanitize_dict`` so credentials never
    reach the log stream.
    """
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(sanitize_dict(kwargs))
    logger.log(level, json.dumps(log_data, default=str))
