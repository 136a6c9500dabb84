"""Main entry point for the Backup Bucket Operator.

Run with ``kopf run -m backup_bucket_operator.main``.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import kopf

from . import __version__, health
from . import handlers  # noqa: F401
from . import logging as structured_logging
from .builders.provider import int_from_env, pending_window_from_env
from .constants import CONTROLLER_NAME
from .tracing import initialize_tracing

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging()

    # Fail at startup rather than on the first reconcile
    pending_window_from_env()

    os.environ.setdefault("OTEL_SERVICE_VERSION", __version__)
    initialize_tracing(CONTROLLER_NAME)

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.INFO
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    # Start metrics HTTP server with health check endpoints on port 8080
    metrics_port = int_from_env("METRICS_PORT", 8080)
    health.start_metrics_server(metrics_port)
    health.mark_ready()
    logger.info(f"{CONTROLLER_NAME} {__version__} started, metrics on port {metrics_port}")


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Report not ready while the operator shuts down."""
    health.mark_not_ready()
