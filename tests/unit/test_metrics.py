"""Tests for Prometheus metrics."""

from __future__ import annotations

import pytest

from backup_bucket_operator.metrics import (
    bucket_operations_total,
    drift_detected_total,
    error_total,
    key_operations_total,
    parameter_operations_total,
    policy_conflicts_total,
    reconcile_duration_seconds,
    reconcile_total,
    resource_status_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    @pytest.mark.parametrize(
        "metric,name",
        [
            # Prometheus counters don't include "_total" in their _name attribute
            (reconcile_total, "backup_bucket_operator_reconcile"),
            (bucket_operations_total, "backup_bucket_operator_bucket_operations"),
            (key_operations_total, "backup_bucket_operator_key_operations"),
            (parameter_operations_total, "backup_bucket_operator_parameter_operations"),
            (drift_detected_total, "backup_bucket_operator_drift_detected"),
            (policy_conflicts_total, "backup_bucket_operator_policy_conflicts"),
            (error_total, "backup_bucket_operator_error"),
            (resource_status_total, "backup_bucket_operator_resource_status"),
            (reconcile_duration_seconds, "backup_bucket_operator_reconcile_duration_seconds"),
        ],
    )
    def test_metric_name(self, metric, name):
        """Test metric names carry the operator prefix."""
        assert metric._name == name


class TestMetricLabels:
    """Test that metrics have correct labels."""

    def test_reconcile_total_labels(self):
        reconcile_total.labels(kind="BackupBucket", result="success").inc(0)

    def test_operation_counters_labels(self):
        bucket_operations_total.labels(operation="create", result="success").inc(0)
        key_operations_total.labels(operation="schedule_deletion", result="failed").inc(0)
        parameter_operations_total.labels(operation="put", result="success").inc(0)

    def test_drift_and_conflict_labels(self):
        drift_detected_total.labels(kind="BackupBucket", resource_type="lifecycle").inc(0)
        policy_conflicts_total.labels(resource_type="encryption").inc(0)

    def test_wrong_labels_rejected(self):
        """Test that unknown label names are refused."""
        with pytest.raises(ValueError):
            key_operations_total.labels(kind="BackupBucket")


class TestMetricOperations:
    """Test metric operations."""

    def test_counter_increment(self):
        """Test that counters can be incremented."""
        counter = reconcile_total.labels(kind="TestCounter", result="test")
        initial = counter._value.get()

        counter.inc()

        assert counter._value.get() == initial + 1

    def test_different_label_values_independent(self):
        """Test that metrics with different labels are independent."""
        first = bucket_operations_total.labels(operation="test1", result="success")
        second = bucket_operations_total.labels(operation="test2", result="success")
        first_initial = first._value.get()
        second_initial = second._value.get()

        first.inc(3)
        second.inc(5)

        assert first._value.get() == first_initial + 3
        assert second._value.get() == second_initial + 5

    def test_histogram_observe(self):
        """Test that histograms can observe values."""
        reconcile_duration_seconds.labels(kind="TestHistogram").observe(0.5)
        reconcile_duration_seconds.labels(kind="TestHistogram").observe(12.0)
