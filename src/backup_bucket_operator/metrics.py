"""Prometheus metrics for the Backup Bucket Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "backup_bucket_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "backup_bucket_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Backend operation metrics
bucket_operations_total = Counter(
    "backup_bucket_operator_bucket_operations_total",
    "Total number of S3 bucket operations",
    ["operation", "result"],
)

key_operations_total = Counter(
    "backup_bucket_operator_key_operations_total",
    "Total number of KMS key operations",
    ["operation", "result"],
)

parameter_operations_total = Counter(
    "backup_bucket_operator_parameter_operations_total",
    "Total number of SSM parameter operations",
    ["operation", "result"],
)

# Configuration drift detection metrics
drift_detected_total = Counter(
    "backup_bucket_operator_drift_detected_total",
    "Total number of configuration drift detections",
    ["kind", "resource_type"],
)

policy_conflicts_total = Counter(
    "backup_bucket_operator_policy_conflicts_total",
    "Existing resources found incompatible with the desired policy",
    ["resource_type"],
)

# Error metrics
error_total = Counter(
    "backup_bucket_operator_error_total",
    "Total number of reconcile errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "backup_bucket_operator_resource_status_total",
    "Resource status updates",
    ["kind", "status"],
)
